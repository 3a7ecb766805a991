"""Runtime configuration for the storefront (toggleable during tests/runtime)."""
import os
from typing import NamedTuple, Optional
from zoneinfo import ZoneInfo


class ConfigState(NamedTuple):
    timezone: Optional[str]
    allow_empty_pickup_options: bool


def _flag(value: Optional[str]) -> bool:
    return (value or "").lower() in ("1", "true", "yes", "on")


state = ConfigState(
    timezone=os.getenv("STORE_TIMEZONE") or None,
    allow_empty_pickup_options=_flag(os.getenv("ALLOW_EMPTY_PICKUP_OPTIONS")),
)


def set_timezone(name: Optional[str]):
    global state
    if name:
        ZoneInfo(name)  # raises for unknown zones
    state = state._replace(timezone=name or None)


def set_allow_empty_pickup_options(value: bool):
    global state
    state = state._replace(allow_empty_pickup_options=bool(value))


def local_timezone() -> Optional[ZoneInfo]:
    """Zone used for calendar-day matching; None means the host's local zone."""
    return ZoneInfo(state.timezone) if state.timezone else None


def allow_empty_pickup_options() -> bool:
    return state.allow_empty_pickup_options
