"""Value model for preference values.

A preference value is one of six shapes, represented with native Python
types:

    String      -> str
    Integer     -> int (64-bit signed)
    Float       -> float
    Boolean     -> bool
    Array       -> list of preference values
    Dictionary  -> dict of str to preference values

Adapters convert between this model and:
- tomlkit items (the configuration document's native value syntax)
- plain YAML-safe data (the snapshot file)

Every adapter fails with ValueConversionError for any other shape.
"""
import math
from enum import Enum
from typing import Any, Union

import tomlkit
from tomlkit.items import AoT, InlineTable, Item, Table

from .errors import ValueConversionError

PreferenceValue = Union[str, int, float, bool, list, dict]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Deepest nesting accepted for arrays/dictionaries
MAX_VALUE_DEPTH = 64


class ValueKind(str, Enum):
    """Tag of a preference value."""
    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    ARRAY = "array"
    DICTIONARY = "dictionary"


def kind_of(value: Any) -> ValueKind:
    """
    Classify a value into its ValueKind.

    Booleans are checked before integers since bool subclasses int.

    Raises:
        ValueConversionError: If the value is not one of the six shapes
    """
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.ARRAY
    if isinstance(value, dict):
        return ValueKind.DICTIONARY
    raise ValueConversionError(
        f"Unsupported preference value of type {type(value).__name__}: {value!r}"
    )


def check_value(value: Any, _depth: int = 0) -> PreferenceValue:
    """
    Validate a value and return a plain-typed deep copy of it.

    Subclasses of the native types (e.g. tomlkit items) are normalized to
    the plain builtins.

    Raises:
        ValueConversionError: On any unsupported shape
    """
    if _depth > MAX_VALUE_DEPTH:
        raise ValueConversionError(
            f"Preference value nested deeper than {MAX_VALUE_DEPTH} levels"
        )

    kind = kind_of(value)

    if kind == ValueKind.BOOLEAN:
        return bool(value)
    if kind == ValueKind.INTEGER:
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueConversionError(
                f"Integer {value} does not fit in 64 bits"
            )
        return int(value)
    if kind == ValueKind.FLOAT:
        return float(value)
    if kind == ValueKind.STRING:
        return str(value)
    if kind == ValueKind.ARRAY:
        return [check_value(v, _depth + 1) for v in value]

    result = {}
    for k, v in value.items():
        if not isinstance(k, str):
            raise ValueConversionError(
                f"Dictionary keys must be strings, got {type(k).__name__}: {k!r}"
            )
        result[str(k)] = check_value(v, _depth + 1)
    return result


def values_equal(a: Any, b: Any) -> bool:
    """
    Strict structural equality over preference values.

    Unlike ``==``, kinds must match: ``1`` differs from ``1.0`` and ``True``
    differs from ``1``. Arrays compare in order, dictionaries ignore order.
    Values outside the model never compare equal.
    """
    try:
        kind_a = kind_of(a)
        kind_b = kind_of(b)
    except ValueConversionError:
        return False

    if kind_a != kind_b:
        return False

    if kind_a == ValueKind.ARRAY:
        return len(a) == len(b) and all(
            values_equal(x, y) for x, y in zip(a, b)
        )

    if kind_a == ValueKind.DICTIONARY:
        if set(a.keys()) != set(b.keys()):
            return False
        return all(values_equal(a[k], b[k]) for k in a)

    if kind_a == ValueKind.FLOAT and math.isnan(a) and math.isnan(b):
        return True

    return a == b


# --- Document (TOML) adapter ---

def from_toml(item: Any) -> PreferenceValue:
    """
    Convert a tomlkit value to a preference value.

    Inline tables become dictionaries. Headed tables and arrays of tables
    are not values and are rejected; the collector handles headed tables
    before calling this.

    Raises:
        ValueConversionError: For tables, arrays of tables, dates and times
    """
    if isinstance(item, (Table, AoT)):
        raise ValueConversionError(
            "Tables and arrays of tables cannot be used as preference values"
        )

    if isinstance(item, Item):
        item = item.unwrap()

    return check_value(item)


def to_toml(value: PreferenceValue) -> Item:
    """
    Convert a preference value to a tomlkit item.

    Dictionaries become inline tables so that writing them back into a
    domain table never creates a new domain.
    """
    kind = kind_of(value)

    if kind == ValueKind.DICTIONARY:
        table: InlineTable = tomlkit.inline_table()
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValueConversionError(
                    f"Dictionary keys must be strings, got {type(k).__name__}"
                )
            table.append(k, to_toml(v))
        return table

    if kind == ValueKind.ARRAY:
        array = tomlkit.array()
        for v in value:
            array.append(to_toml(v))
        return array

    return tomlkit.item(check_value(value))


# --- Serializable (snapshot) adapter ---

def to_serializable(value: Any) -> PreferenceValue:
    """
    Convert a preference value to its on-disk form.

    The on-disk form is plain builtins; the kinds survive a YAML round trip
    because YAML keeps ints, floats and bools distinct.
    """
    return check_value(value)


def from_serializable(data: Any) -> PreferenceValue:
    """
    Convert on-disk data back to a preference value.

    Raises:
        ValueConversionError: If the data holds nulls, timestamps or other
            shapes YAML can produce but the model cannot hold
    """
    return check_value(data)


def format_value(value: Any) -> str:
    """Render a value compactly for log output."""
    try:
        kind = kind_of(value)
    except ValueConversionError:
        return repr(value)

    if kind == ValueKind.BOOLEAN:
        return "true" if value else "false"
    if kind == ValueKind.STRING:
        return f'"{value}"'
    if kind == ValueKind.ARRAY:
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    if kind == ValueKind.DICTIONARY:
        inner = ", ".join(f"{k} = {format_value(v)}" for k, v in value.items())
        return "{ " + inner + " }" if inner else "{}"
    return str(value)
