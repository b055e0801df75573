from __future__ import annotations

import pytest

from blockcord.core.coercion import coerce_bool, coerce_float, coerce_int


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1.5, 1.5),
        (3, 3.0),
        (" 2.25 ", 2.25),
        ("abc", None),
        (True, None),
        ("nan", None),
        ("1e400", None),
        (10**400, None),
    ],
)
def test_coerce_float(value: object, expected: object) -> None:
    assert coerce_float(value) == expected


def test_coerce_float_falls_back_to_default() -> None:
    assert coerce_float(10**400, 0.0) == 0.0


def test_coerce_int_and_bool() -> None:
    assert coerce_int("7") == 7
    assert coerce_int("7.9") == 7
    assert coerce_int(True) is None
    assert coerce_bool("yes", False) is True
    assert coerce_bool("off", True) is False
    assert coerce_bool("maybe", True) is True
