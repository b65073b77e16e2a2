import pytest

from core.exceptions import ValidationError
from services.wager_service import parse_amount


@pytest.mark.parametrize("raw, expected", [
    ("1", 1),
    ("300", 300),
    ("+25", 25),
    (42, 42),
])
def test_positive_integers_are_accepted(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", ["0", "-5", "abc", "1.5", "", " 10", "1_000", 0, -1, True, None, 2.0])
def test_everything_else_is_rejected(raw):
    with pytest.raises(ValidationError) as exc:
        parse_amount(raw)
    assert str(exc.value) == "invalid amount"
