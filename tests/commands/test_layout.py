from __future__ import annotations

from blockcord.commands.layout import layout_components, row_sizes
from blockcord.commands.models import ButtonSpec, SelectOptionSpec, SelectSpec


def _buttons(count: int) -> list[ButtonSpec]:
    return [ButtonSpec(custom_id=f"b{i}", label=f"B{i}") for i in range(count)]


def _select(custom_id: str = "s") -> SelectSpec:
    return SelectSpec(custom_id=custom_id, options=(SelectOptionSpec("A", "a"),))


def test_twelve_buttons_fill_rows_of_five() -> None:
    assert row_sizes(layout_components(_buttons(12))) == [5, 5, 2]


def test_select_takes_its_own_row() -> None:
    select = _select()
    buttons = _buttons(3)
    assert layout_components([select, *buttons]) == [[select], buttons]


def test_select_closes_open_row() -> None:
    buttons = _buttons(4)
    select = _select()
    rows = layout_components([buttons[0], buttons[1], select, buttons[2], buttons[3]])
    assert rows == [[buttons[0], buttons[1]], [select], [buttons[2], buttons[3]]]


def test_empty_input_has_no_rows() -> None:
    assert layout_components([]) == []


def test_layout_preserves_order_and_is_deterministic() -> None:
    specs = [*_buttons(7), _select("s1"), _select("s2"), *_buttons(1)]
    first = layout_components(specs)
    assert first == layout_components(specs)
    assert [spec for row in first for spec in row] == specs
    assert row_sizes(first) == [5, 2, 1, 1, 1]
