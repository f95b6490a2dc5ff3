import pytest

from config import parse_max_depth


@pytest.mark.parametrize("value,expected", [(None, None), ("", None), (" 3 ", 3), ("1", 1)])
def test_parse_max_depth(value, expected):
    assert parse_max_depth(value) == expected


@pytest.mark.parametrize("value", ["three", "0", "-2", "2.5"])
def test_parse_max_depth_rejects_garbage(value):
    with pytest.warns(RuntimeWarning):
        assert parse_max_depth(value) is None
