import pytest

from recipehub.core.pagination import page_params, pagination_meta
from recipehub.core.text import clean_text
from recipehub.infra.redis_cache import delete_prefix_sync, get_or_set_json_sync


@pytest.mark.parametrize("page, limit, expected", [
    (None, None, (1, 10)),
    (0, 0, (1, 10)),
    (-3, 5, (1, 5)),
    (2, 500, (2, 100)),
])
def test_page_params_clamped(page, limit, expected):
    params = page_params(page, limit)
    assert (params.page, params.limit) == expected


def test_pagination_meta():
    meta = pagination_meta(page_params(1, 10), 0)
    assert meta["total_pages"] == 0
    assert meta["has_next"] is False

    meta = pagination_meta(page_params(3, 10), 25)
    assert meta == {"page": 3, "limit": 10, "total": 25, "total_pages": 3, "has_next": False, "has_prev": True}


def test_clean_text_strips_tags_and_control_chars():
    assert clean_text("  <b>Hot</b> soup\x00\n ") == "Hot soup"
    assert clean_text("line one\nline two") == "line one\nline two"
    assert clean_text(None) == ""


def test_cache_helper(mock_redis):
    calls = 0

    def compute():
        nonlocal calls
        calls += 1
        return {"data": "fresh"}

    # 1. Miss
    val, hit = get_or_set_json_sync("analytics:test", 10, compute)
    assert val == {"data": "fresh"}
    assert hit is False

    # 2. Hit
    val2, hit2 = get_or_set_json_sync("analytics:test", 10, compute)
    assert val2 == {"data": "fresh"}
    assert hit2 is True
    assert calls == 1

    assert delete_prefix_sync("analytics:") == 1
    assert mock_redis.get("analytics:test") is None
    assert delete_prefix_sync("analytics:") == 0
