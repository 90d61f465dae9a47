"""Regression tests for scalar converters and zero values."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

import pytest

from fieldmap.domain import (
    MappingConversionError,
    domain_build_runtime_converter,
    domain_build_scalar_converter,
    domain_is_assignable,
    domain_unwrap_optional,
    domain_zero_value_factory,
)


class Status(Enum):
    ACTIVE = 1
    SUSPENDED = 2


def test_domain_unwrap_optional_splits_none_from_unions() -> None:
    """Split optional annotations into inner type and flag.

    Returns:
        None: Assertions validate optional unwrapping.

    Raises:
        AssertionError: Raised when unwrapping is wrong.
    """

    assert domain_unwrap_optional(int | None) == (int, True)
    assert domain_unwrap_optional(Optional[str]) == (str, True)
    assert domain_unwrap_optional(int) == (int, False)


@pytest.mark.parametrize(
    ("annotation", "expected"),
    [
        (int, 0),
        (str, ""),
        (Decimal, Decimal("0")),
        (list[int], []),
        (int | None, None),
        (date, None),
    ],
)
def test_domain_zero_value_factory_returns_empty_values(annotation: Any, expected: object) -> None:
    """Produce zero values for required destination fields.

    Args:
        annotation: Destination annotation.
        expected: Expected zero value.

    Returns:
        None: Assertions validate zero values.

    Raises:
        AssertionError: Raised when the zero value is wrong.
    """

    assert domain_zero_value_factory(annotation)() == expected


def test_domain_is_assignable_does_not_widen_int_to_float() -> None:
    """Treat subclasses as assignable but route int to float through conversion.

    Returns:
        None: Assertions validate assignability.

    Raises:
        AssertionError: Raised when assignability is wrong.
    """

    assert domain_is_assignable(bool, int)
    assert domain_is_assignable(str, str)
    assert not domain_is_assignable(int, float)
    assert not domain_is_assignable(str, int)


def test_domain_build_scalar_converter_handles_supported_pairs() -> None:
    """Convert enums, text, numbers and timestamps.

    Returns:
        None: Assertions validate converter selection.

    Raises:
        AssertionError: Raised when a conversion is wrong.
    """

    assert domain_build_scalar_converter(Status, str)(Status.ACTIVE) == "ACTIVE"
    assert domain_build_scalar_converter(str, Status)("SUSPENDED") is Status.SUSPENDED
    assert domain_build_scalar_converter(int, Status)(1) is Status.ACTIVE
    assert domain_build_scalar_converter(str, int)("42") == 42
    assert domain_build_scalar_converter(str, date)("2024-02-29") == date(2024, 2, 29)
    assert domain_build_scalar_converter(int, Decimal)(7) == Decimal("7")
    assert domain_build_scalar_converter(datetime, date)(datetime(2024, 1, 2, 3, 4)) == date(2024, 1, 2)
    assert domain_build_scalar_converter(date, str)(date(2024, 1, 2)) == "2024-01-02"
    assert domain_build_scalar_converter(date, int) is None
    assert domain_build_scalar_converter(Status, int) is None


def test_domain_build_scalar_converter_raises_conversion_errors_for_bad_values() -> None:
    """Raise `MappingConversionError` for values that do not parse.

    Returns:
        None: Assertions validate call-time conversion errors.

    Raises:
        AssertionError: Raised when bad values are accepted.
    """

    with pytest.raises(MappingConversionError):
        domain_build_scalar_converter(str, int)("abc")
    with pytest.raises(MappingConversionError):
        domain_build_scalar_converter(str, Status)("DELETED")
    with pytest.raises(TypeError):
        domain_build_scalar_converter(str, int)("abc")


def test_domain_build_runtime_converter_dispatches_on_value_type() -> None:
    """Convert values of untyped sources according to their runtime type.

    Returns:
        None: Assertions validate runtime conversion.

    Raises:
        AssertionError: Raised when runtime conversion is wrong.
    """

    to_int = domain_build_runtime_converter(int)

    assert to_int("5") == 5
    assert to_int(6) == 6
    assert to_int(date(2024, 1, 1)) == date(2024, 1, 1)
    assert domain_build_runtime_converter(list[int])(["1"]) == ["1"]
