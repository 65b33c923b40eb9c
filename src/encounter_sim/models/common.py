"""Shared field types for the simulator's pydantic models."""

from __future__ import annotations

from typing import Annotated

import d20
from pydantic import AfterValidator


def _check_formula(value: int | float | str) -> int | float | str:
    """Reject strings that d20 cannot parse as dice notation.

    Averaging and rolling happen later against the same parse, so a
    formula accepted here can always be rolled.
    """
    if isinstance(value, str):
        stripped = value.strip().lower()
        if not stripped:
            raise ValueError("empty dice formula")
        try:
            d20.parse(stripped)
        except d20.RollError as exc:
            raise ValueError(f"not a dice formula: {value!r}") from exc
        return stripped
    return value


DiceFormula = Annotated[int | float | str, AfterValidator(_check_formula)]
"""A flat number or a dice-notation string such as ``"1d6+3"``."""


__all__ = ["DiceFormula"]
