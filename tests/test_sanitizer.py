from storefront.utils import sanitize_input, sanitize_optional


def test_sanitize_removes_script_tags():
    s = "<script>alert(1)</script>Bob"
    out = sanitize_input(s)
    assert "<script" not in out.lower()
    assert "bob" in out.lower()


def test_sanitize_keeps_plain_text():
    assert sanitize_input("  焦糖   瑪奇朵 ") == "焦糖 瑪奇朵"
    assert sanitize_input("Fish & Chips") == "Fish & Chips"


def test_sanitize_none_and_blank():
    assert sanitize_input(None) == ""
    assert sanitize_optional(None) is None
    assert sanitize_optional("   ") is None
    assert sanitize_optional("\x00hi") == "hi"


def test_sanitize_strips_formatting_and_link_tags():
    out = sanitize_input('<b>拿鐵</b> <i>大杯</i> <a href="http://x.test">看更多</a>')
    assert out == "拿鐵 大杯 看更多"
    assert "<" not in out
