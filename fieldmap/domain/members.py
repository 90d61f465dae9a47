"""Member discovery for the record shapes the mapping engine accepts.

Supported shapes are dataclasses, pydantic models, SQLAlchemy mapped classes and
plain annotated classes whose initializer accepts annotated names as keywords.
`Mapping` types (dict rows) are accepted as sources only; their members are
resolved by key at call time.
"""

from __future__ import annotations

import dataclasses
import typing
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel
from sqlalchemy import inspect as sqlalchemy_inspect
from sqlalchemy.exc import NoInspectionAvailable

MISSING = object()
"""Sentinel returned when a `Mapping` source does not contain the requested key."""

_DOMAIN_SCALAR_TYPES = (str, bytes, int, float, complex, bool)


@dataclass(frozen=True)
class MemberInfo:
    """Readable and constructible member of one record shape.

    Attributes:
        name: Attribute name used for reads.
        init_name: Keyword used when constructing the shape.
        annotation: Resolved type annotation, `Any` when unknown.
        init: Whether the member can be passed to the initializer.
        default_factory: Factory for the declared default, or None when required.
    """

    name: str
    init_name: str
    annotation: Any
    init: bool = True
    default_factory: Callable[[], object] | None = None

    @property
    def member_is_required(self) -> bool:
        """Return whether construction fails without an explicit value."""

        return self.init and self.default_factory is None


def domain_is_mapping_shape(shape: object) -> bool:
    """Return whether `shape` is a dict-like type read by key."""

    if not isinstance(shape, type) or typing.get_origin(shape) is not None:
        return False
    return issubclass(shape, Mapping)


def domain_is_structured_shape(shape: object) -> bool:
    """Return whether `shape` declares named members the mapper can read and construct.

    Args:
        shape: Candidate type annotation.

    Returns:
        bool: True for dataclasses, pydantic models, SQLAlchemy mapped classes and
            annotated plain classes.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    if not isinstance(shape, type) or typing.get_origin(shape) is not None:
        return False
    if issubclass(shape, (Enum, *_DOMAIN_SCALAR_TYPES)) or domain_is_mapping_shape(shape):
        return False
    if shape.__module__ in ("builtins", "datetime", "decimal", "uuid", "enum", "pathlib"):
        return False
    if dataclasses.is_dataclass(shape) or issubclass(shape, BaseModel):
        return True
    if _domain_sqlalchemy_mapper(shape) is not None:
        return True
    return bool(_domain_resolve_annotations(shape))


def domain_describe_members(shape: type) -> tuple[MemberInfo, ...]:
    """Describe the members of one structured shape in declaration order.

    Args:
        shape: Dataclass, pydantic model, SQLAlchemy mapped class or annotated class.

    Returns:
        tuple[MemberInfo, ...]: Member descriptors; empty for `Mapping` shapes.

    Raises:
        TypeError: Raised when `shape` is not a class.
    """

    if not isinstance(shape, type):
        raise TypeError(f"expected a class, got {shape!r}")
    if domain_is_mapping_shape(shape):
        return ()

    sqlalchemy_mapper = _domain_sqlalchemy_mapper(shape)
    if sqlalchemy_mapper is not None:
        return _domain_describe_sqlalchemy_members(sqlalchemy_mapper)
    if issubclass(shape, BaseModel):
        return _domain_describe_pydantic_members(shape)
    if dataclasses.is_dataclass(shape):
        return _domain_describe_dataclass_members(shape)
    return _domain_describe_annotated_members(shape)


def domain_read_member(instance: object, name: str) -> object:
    """Read one member from a source instance.

    Args:
        instance: Source object or mapping.
        name: Member name or mapping key.

    Returns:
        object: Member value, or `MISSING` when a mapping lacks the key.

    Raises:
        AttributeError: Raised when an object instance lacks the attribute.
    """

    if isinstance(instance, Mapping):
        return instance.get(name, MISSING)
    return getattr(instance, name)


def domain_read_member_path(instance: object, path: tuple[str, ...]) -> object:
    """Read a dotted member path, propagating None through absent intermediates.

    Args:
        instance: Source object or mapping.
        path: Member names from the root to the leaf.

    Returns:
        object: Leaf value, None when an intermediate is None, or `MISSING`.

    Raises:
        AttributeError: Raised when an object instance lacks one path attribute.
    """

    current = instance
    for name in path:
        if current is None:
            return None
        current = domain_read_member(current, name)
        if current is MISSING:
            return MISSING
    return current


def _domain_sqlalchemy_mapper(shape: type):
    try:
        return sqlalchemy_inspect(shape, raiseerr=False)
    except NoInspectionAvailable:
        return None


def _domain_describe_sqlalchemy_members(sqlalchemy_mapper) -> tuple[MemberInfo, ...]:
    members: list[MemberInfo] = []
    for column_property in sqlalchemy_mapper.column_attrs:
        column = column_property.columns[0]
        try:
            annotation: Any = column.type.python_type
        except NotImplementedError:
            annotation = Any
        if getattr(column, "nullable", False):
            annotation = annotation | None if annotation is not Any else Any
        members.append(
            MemberInfo(
                name=column_property.key,
                init_name=column_property.key,
                annotation=annotation,
                default_factory=_domain_none_factory,
            )
        )
    for relationship in sqlalchemy_mapper.relationships:
        related_class = relationship.mapper.class_
        annotation = list[related_class] if relationship.uselist else related_class | None
        members.append(
            MemberInfo(
                name=relationship.key,
                init_name=relationship.key,
                annotation=annotation,
                default_factory=list if relationship.uselist else _domain_none_factory,
            )
        )
    return tuple(members)


def _domain_describe_pydantic_members(shape: type[BaseModel]) -> tuple[MemberInfo, ...]:
    members: list[MemberInfo] = []
    for field_name, field_info in shape.model_fields.items():
        default_factory = None
        if not field_info.is_required():
            default_factory = _domain_pydantic_default_factory(field_info)
        populate_by_name = bool(shape.model_config.get("populate_by_name", False))
        init_name = field_name if populate_by_name or not field_info.alias else field_info.alias
        members.append(
            MemberInfo(
                name=field_name,
                init_name=init_name,
                annotation=field_info.annotation if field_info.annotation is not None else Any,
                default_factory=default_factory,
            )
        )
    return tuple(members)


def _domain_pydantic_default_factory(field_info) -> Callable[[], object]:
    def _factory() -> object:
        return field_info.get_default(call_default_factory=True)

    return _factory


def _domain_describe_dataclass_members(shape: type) -> tuple[MemberInfo, ...]:
    type_hints = _domain_resolve_annotations(shape)
    members: list[MemberInfo] = []
    for dataclass_field in dataclasses.fields(shape):
        default_factory: Callable[[], object] | None = None
        if dataclass_field.default is not dataclasses.MISSING:
            default_factory = _domain_constant_factory(dataclass_field.default)
        elif dataclass_field.default_factory is not dataclasses.MISSING:
            default_factory = dataclass_field.default_factory
        members.append(
            MemberInfo(
                name=dataclass_field.name,
                init_name=dataclass_field.name,
                annotation=type_hints.get(dataclass_field.name, Any),
                init=dataclass_field.init,
                default_factory=default_factory,
            )
        )
    return tuple(members)


def _domain_describe_annotated_members(shape: type) -> tuple[MemberInfo, ...]:
    members: list[MemberInfo] = []
    for member_name, annotation in _domain_resolve_annotations(shape).items():
        default_factory = None
        for klass in shape.__mro__:
            if member_name in vars(klass):
                default_factory = _domain_constant_factory(vars(klass)[member_name])
                break
        members.append(
            MemberInfo(
                name=member_name,
                init_name=member_name,
                annotation=annotation,
                default_factory=default_factory,
            )
        )
    return tuple(members)


def _domain_resolve_annotations(shape: type) -> dict[str, Any]:
    try:
        type_hints = typing.get_type_hints(shape)
    except (NameError, TypeError):
        type_hints = {}
        for klass in reversed(shape.__mro__):
            type_hints.update(getattr(klass, "__annotations__", {}))
    return {
        member_name: annotation
        for member_name, annotation in type_hints.items()
        if not member_name.startswith("_") and typing.get_origin(annotation) is not ClassVar and annotation is not ClassVar
    }


def _domain_constant_factory(value: object) -> Callable[[], object]:
    def _factory() -> object:
        return value

    return _factory


def _domain_none_factory() -> None:
    return None
