"""
Runtime values for the Reef interpreter.

A Value is a tagged union: the `type` tag says which variant it is and
`data` holds the Python payload (float, str, bool, None or a callable).
Values are immutable; assignment rebinds a name to a different Value.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any
import math


class ValueType(Enum):
    """The closed set of runtime value variants."""
    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    NIL = "nil"
    CALLABLE = "function"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, eq=False)
class Value:
    """
    A runtime value with its variant tag.

    Equality follows the language rule rather than Python's: values of
    different variants are never equal (so `true != 1`), numbers compare by
    IEEE equality (so `nan != nan`), and callables compare by identity.
    """
    data: Any
    type: ValueType

    def __repr__(self) -> str:
        return f"Value({self.data!r}, {self.type})"

    def __str__(self) -> str:
        return stringify(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return values_equal(self, other)

    def __hash__(self) -> int:
        if self.type == ValueType.CALLABLE:
            return hash((self.type, id(self.data)))
        return hash((self.type, self.data))

    @property
    def type_name(self) -> str:
        return self.type.value

    def is_truthy(self) -> bool:
        """nil and false are falsy; everything else (0, "") is truthy."""
        if self.type == ValueType.NIL:
            return False
        if self.type == ValueType.BOOLEAN:
            return bool(self.data)
        return True

    @property
    def is_number(self) -> bool:
        return self.type == ValueType.NUMBER

    @property
    def is_string(self) -> bool:
        return self.type == ValueType.STRING

    @property
    def is_callable(self) -> bool:
        return self.type == ValueType.CALLABLE


# Convenience constructors

def number_val(x: float) -> Value:
    """Create a number value."""
    return Value(float(x), ValueType.NUMBER)


def string_val(s: str) -> Value:
    """Create a string value."""
    return Value(str(s), ValueType.STRING)


def bool_val(b: bool) -> Value:
    """Create a boolean value."""
    return TRUE if b else FALSE


def callable_val(fn: Any) -> Value:
    """Wrap a ReefCallable as a first-class value."""
    return Value(fn, ValueType.CALLABLE)


NIL = Value(None, ValueType.NIL)
TRUE = Value(True, ValueType.BOOLEAN)
FALSE = Value(False, ValueType.BOOLEAN)


def literal_val(raw: Any) -> Value:
    """Map a literal payload from the AST to its Value."""
    if raw is None:
        return NIL
    if isinstance(raw, bool):
        return bool_val(raw)
    if isinstance(raw, (int, float)):
        return number_val(raw)
    if isinstance(raw, str):
        return string_val(raw)
    raise ValueError(f"Not a literal payload: {raw!r}")


def values_equal(a: Value, b: Value) -> bool:
    """Language equality: same variant and equal payload."""
    if a.type != b.type:
        return False
    if a.type == ValueType.NIL:
        return True
    if a.type == ValueType.CALLABLE:
        return a.data is b.data
    return a.data == b.data


def format_number(x: float) -> str:
    """Integral finite numbers print without a fraction: 7, not 7.0."""
    if math.isfinite(x) and x.is_integer():
        return str(int(x))
    return repr(x)


def stringify(value: Value) -> str:
    """Display form used by print() and str()."""
    if value.type == ValueType.NIL:
        return "nil"
    if value.type == ValueType.BOOLEAN:
        return "true" if value.data else "false"
    if value.type == ValueType.NUMBER:
        return format_number(value.data)
    return str(value.data)
