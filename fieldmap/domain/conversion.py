"""Scalar value conversion and zero-value helpers for destination fields.

Converters are resolved once when a plan is compiled. A pair of annotations
without a converter is a configuration error, so call-time failures are limited
to values that do not parse (for example `"abc"` into `int`).
"""

from __future__ import annotations

import types
import typing
from collections.abc import Callable
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from .errors import MappingConversionError

ScalarConverter = Callable[[object], object]

_DOMAIN_NUMERIC_TYPES = (int, float, Decimal)
_DOMAIN_TEXT_PARSEABLE_TYPES = (int, float, Decimal, bool, date, datetime, time, UUID)
_DOMAIN_ZERO_VALUES: dict[type, Callable[[], object]] = {
    int: int,
    float: float,
    bool: bool,
    str: str,
    bytes: bytes,
    Decimal: Decimal,
    list: list,
    dict: dict,
    set: set,
    frozenset: frozenset,
    tuple: tuple,
}


def domain_unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Split `T | None` into `T` and an optional flag.

    Args:
        annotation: Type annotation.

    Returns:
        tuple[Any, bool]: Inner annotation and whether None was part of the union.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        arguments = tuple(argument for argument in typing.get_args(annotation) if argument is not type(None))
        is_optional = len(arguments) != len(typing.get_args(annotation))
        if len(arguments) == 1:
            return arguments[0], is_optional
        return typing.Union[arguments], is_optional
    if annotation is type(None):
        return Any, True
    return annotation, False


def domain_zero_value_factory(annotation: Any) -> Callable[[], object]:
    """Return a factory for the zero value of one destination annotation.

    Optional annotations and unknown types zero to None; builtin scalars and
    containers zero to their empty value.

    Args:
        annotation: Destination field annotation.

    Returns:
        Callable[[], object]: Factory producing the zero value.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    inner_annotation, is_optional = domain_unwrap_optional(annotation)
    if is_optional:
        return _domain_none
    origin = typing.get_origin(inner_annotation) or inner_annotation
    if isinstance(origin, type):
        for zero_type, factory in _DOMAIN_ZERO_VALUES.items():
            if origin is zero_type:
                return factory
    return _domain_none


def domain_build_scalar_converter(source_annotation: Any, destination_annotation: Any) -> ScalarConverter | None:
    """Resolve a converter between two non-optional scalar annotations.

    Args:
        source_annotation: Annotation of the source member.
        destination_annotation: Annotation of the destination field.

    Returns:
        ScalarConverter | None: Converter callable, or None when the pair is not
            assignable or convertible.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if destination_annotation is Any:
        return _domain_identity
    if source_annotation is Any:
        return domain_build_runtime_converter(destination_annotation)
    if source_annotation is datetime and destination_annotation is date:
        return _domain_datetime_to_date
    if domain_is_assignable(source_annotation, destination_annotation):
        return _domain_identity
    if not _domain_is_plain_class(source_annotation) or not _domain_is_plain_class(destination_annotation):
        return None

    if destination_annotation is str:
        if issubclass(source_annotation, Enum):
            return _domain_enum_to_name
        return str
    if issubclass(destination_annotation, Enum):
        if issubclass(source_annotation, str):
            return _domain_build_enum_from_name(destination_annotation)
        if issubclass(source_annotation, int):
            return _domain_build_validating_converter(destination_annotation)
        return None
    if issubclass(source_annotation, str) and issubclass(destination_annotation, _DOMAIN_TEXT_PARSEABLE_TYPES):
        return _domain_build_validating_converter(destination_annotation)
    if issubclass(source_annotation, _DOMAIN_NUMERIC_TYPES) and issubclass(destination_annotation, _DOMAIN_NUMERIC_TYPES):
        return _domain_build_validating_converter(destination_annotation)
    return None


def domain_build_runtime_converter(destination_annotation: Any) -> ScalarConverter:
    """Resolve a converter from the runtime value type, for sources typed `Any`.

    Mapping rows and untyped members only reveal their value types at call time.
    Values that already match, and destinations that are not plain classes, pass
    through unchanged.

    Args:
        destination_annotation: Non-optional destination annotation.

    Returns:
        ScalarConverter: Converter dispatching on `type(value)`.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if not _domain_is_plain_class(destination_annotation):
        return _domain_identity

    converters_by_type: dict[type, ScalarConverter | None] = {}

    def _convert(value: object) -> object:
        value_type = type(value)
        if value_type not in converters_by_type:
            converters_by_type[value_type] = domain_build_scalar_converter(value_type, destination_annotation)
        value_converter = converters_by_type[value_type]
        if value_converter is None:
            return value
        return value_converter(value)

    return _convert


def domain_is_assignable(source_annotation: Any, destination_annotation: Any) -> bool:
    """Return whether a source value can be assigned to the destination unchanged."""

    if source_annotation == destination_annotation:
        return True
    if _domain_is_plain_class(source_annotation) and _domain_is_plain_class(destination_annotation):
        if destination_annotation is float and source_annotation is int:
            return False
        return issubclass(source_annotation, destination_annotation)
    return False


def _domain_is_plain_class(annotation: Any) -> bool:
    return isinstance(annotation, type) and typing.get_origin(annotation) is None


def _domain_build_validating_converter(destination_annotation: type) -> ScalarConverter:
    type_adapter = TypeAdapter(destination_annotation)

    def _convert(value: object) -> object:
        try:
            return type_adapter.validate_python(value)
        except ValidationError as error:
            raise MappingConversionError(
                f"cannot convert {value!r} to {destination_annotation.__name__}: {error.errors()[0]['msg']}"
            ) from error

    return _convert


def _domain_build_enum_from_name(enum_type: type[Enum]) -> ScalarConverter:
    def _convert(value: object) -> object:
        try:
            return enum_type[value]
        except KeyError:
            pass
        try:
            return enum_type(value)
        except ValueError as error:
            raise MappingConversionError(f"cannot convert {value!r} to {enum_type.__name__}") from error

    return _convert


def _domain_enum_to_name(value: object) -> object:
    return value.name


def _domain_datetime_to_date(value: object) -> object:
    return value.date()


def _domain_identity(value: object) -> object:
    return value


def _domain_none() -> None:
    return None
