"""Runtime values: tagged INT / FLT / STR with truthiness and rendering rules."""

from __future__ import annotations
import math
import re
from dataclasses import dataclass
from typing import Any, Union


TYPE_INT = "INT"
TYPE_FLT = "FLT"
TYPE_STR = "STR"

INT_MIN = -(2 ** 63)
INT_MAX = 2 ** 63 - 1

# Same shape as numeric literals in source text.
NUMBER_PATTERN = re.compile(r"-?[0-9]+(\.[0-9]+)?")


@dataclass(frozen=True)
class Value:
    type: str
    value: Any

    def __str__(self) -> str:
        return to_text(self)


ZERO = Value(TYPE_INT, 0)
ONE = Value(TYPE_INT, 1)


def int_value(number: int) -> Value:
    return Value(TYPE_INT, int(number))


def flt_value(number: float) -> Value:
    return Value(TYPE_FLT, float(number))


def str_value(text: str) -> Value:
    return Value(TYPE_STR, str(text))


def bool_value(flag: bool) -> Value:
    return ONE if flag else ZERO


def from_python(obj: Union[int, float, str, Value]) -> Value:
    """Wrap a plain Python scalar; existing Values pass through."""
    if isinstance(obj, Value):
        return obj
    # bool is an int subclass; treat it as 0/1.
    if isinstance(obj, bool):
        return bool_value(obj)
    if isinstance(obj, int):
        return int_value(obj)
    if isinstance(obj, float):
        return flt_value(obj)
    if isinstance(obj, str):
        return str_value(obj)
    raise TypeError(f"Cannot convert {type(obj).__name__} to a Letterbox value")


def is_truthy(value: Value) -> bool:
    # Only INT 0 is false; FLT 0.0 and the empty string are both true.
    if value.type == TYPE_INT:
        return value.value != 0
    return True


def is_numeric(value: Value) -> bool:
    return value.type == TYPE_INT or value.type == TYPE_FLT


def in_int_range(number: int) -> bool:
    return INT_MIN <= number <= INT_MAX


def to_text(value: Value) -> str:
    if value.type == TYPE_INT:
        return str(int(value.value))
    if value.type == TYPE_FLT:
        return repr(float(value.value))
    return str(value.value)


def parse_number(text: str) -> Value:
    """Parse decimal text as INT, falling back to FLT.

    Only the literal syntax is accepted (`42`, `-4.5`); anything else,
    surrounding whitespace included, raises ValueError.
    """
    match = NUMBER_PATTERN.fullmatch(text)
    if match is None:
        raise ValueError(f"not a number: {text!r}")
    if match.group(1) is None:
        number = int(text)
        if not in_int_range(number):
            raise ValueError(f"integer out of 64-bit range: {text!r}")
        return int_value(number)
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {text!r}")
    return flt_value(number)


def coerce_input(text: str) -> Value:
    """Turn a raw input string into INT, FLT or STR, in that order of preference."""
    try:
        return parse_number(text)
    except ValueError:
        return str_value(text)
