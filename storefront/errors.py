"""Error taxonomy shared by the order engine, the gateway and the API.

Every engine error is a caller/input error and is never retried. Only
``PersistenceError`` reflects a fault in the data store.
"""


class StorefrontError(ValueError):
    status_code = 400
    message = "操作失敗，請稍後再試"

    @property
    def kind(self) -> str:
        return type(self).__name__


class AuthenticationFailed(StorefrontError):
    status_code = 401
    message = "用戶名、密碼或角色不正確"


class InvalidTransition(StorefrontError):
    status_code = 409
    message = "無法變更訂單狀態"


class EmptyCart(StorefrontError):
    message = "購物車是空的"


class MissingSelection(StorefrontError):
    message = "請選擇取餐時間和付款方式"


class InvalidPickupTime(StorefrontError):
    message = "取餐時間選項無效"


class InvalidQuantity(StorefrontError):
    message = "商品數量必須大於零"


class ItemUnavailable(StorefrontError):
    message = "此商品目前無法供應"


class PersistenceError(StorefrontError):
    status_code = 503
    message = "資料庫操作失敗，請稍後再試"
