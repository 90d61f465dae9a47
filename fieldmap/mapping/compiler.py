"""Plan compiler turning type-pair configurations into validated, immutable plans.

All resolution happens here: explicit rules, case-insensitive name matching,
flattened path lookup, value converters and nested pairs. A configuration that
cannot be resolved raises `MappingConfigurationError` before any mapping call.
"""

from __future__ import annotations

import collections.abc
import logging
import typing
from collections.abc import Callable, Mapping
from typing import Any

from fieldmap.config import MapperSettings
from fieldmap.domain import (
    MappingConfigurationError,
    MemberInfo,
    ScalarConverter,
    domain_build_scalar_converter,
    domain_describe_members,
    domain_is_mapping_shape,
    domain_is_structured_shape,
    domain_normalize_member_name,
    domain_strip_member_prefix,
    domain_unwrap_optional,
    domain_zero_value_factory,
)

from .interfaces import (
    FIELD_ORIGIN_DEFAULT,
    FIELD_ORIGIN_FLATTENED,
    FIELD_ORIGIN_IGNORED,
    FIELD_ORIGIN_NAME_MATCH,
    FIELD_ORIGIN_RULE,
    FieldConverter,
    FieldPlan,
    MappingRule,
    TypePairConfiguration,
    TypePairPlan,
)

logger = logging.getLogger(__name__)

PairKey = tuple[type, type]

_COMPILER_SEQUENCE_CONTAINERS: dict[object, type] = {
    list: list,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
    collections.abc.Sequence: list,
    collections.abc.MutableSequence: list,
    collections.abc.Collection: list,
    collections.abc.Iterable: list,
    collections.abc.Set: frozenset,
    collections.abc.MutableSet: set,
}
_COMPILER_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


class MappingPlanCompiler:
    """Compile and cache plans for registered and automatically configured type pairs."""

    def __init__(
        self,
        settings: MapperSettings,
        configurations: Mapping[PairKey, TypePairConfiguration] | None = None,
    ):
        """Initialize the compiler.

        Args:
            settings: Validated mapper settings.
            configurations: Registered configurations keyed by pair.

        Raises:
            ValueError: Raised when settings are missing.
        """

        if settings is None:
            raise ValueError("settings must not be None")
        self._settings = settings
        self._configurations: dict[PairKey, TypePairConfiguration] = dict(configurations or {})
        self._origins: dict[PairKey, str] = {pair_key: "registered" for pair_key in self._configurations}
        self._plans: dict[PairKey, TypePairPlan] = {}
        self._compiling: set[PairKey] = set()

    @property
    def compiler_settings(self) -> MapperSettings:
        """Return the settings used for name matching and strictness."""

        return self._settings

    def compiler_register_configuration(self, configuration: TypePairConfiguration, origin: str) -> None:
        """Register or replace one configuration and drop its cached plan.

        Args:
            configuration: Configuration to compile for its pair.
            origin: Plan origin label.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        pair_key = configuration.configuration_pair_key
        self._configurations[pair_key] = configuration
        self._origins[pair_key] = origin
        self._plans.pop(pair_key, None)

    def compiler_compiled_plans(self) -> tuple[TypePairPlan, ...]:
        """Return every compiled plan in compilation order."""

        return tuple(self._plans.values())

    def compiler_find_plan(self, source_type: type, destination_type: type) -> TypePairPlan | None:
        """Return a compiled plan for the source type or its closest base class.

        Args:
            source_type: Runtime source type.
            destination_type: Destination type.

        Returns:
            TypePairPlan | None: Compiled plan, or None when none matches.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        for candidate_type in source_type.__mro__:
            plan = self._plans.get((candidate_type, destination_type))
            if plan is not None:
                return plan
        return None

    def compiler_get_plan(self, source_type: type, destination_type: type) -> TypePairPlan:
        """Return the plan for one pair, compiling it on first request.

        Args:
            source_type: Source type.
            destination_type: Destination type.

        Returns:
            TypePairPlan: Compiled plan.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved, or when
                it was never registered and explicit mapping is required.
        """

        pair_key = (source_type, destination_type)
        plan = self._plans.get(pair_key)
        if plan is not None:
            return plan

        configuration = self._configurations.get(pair_key)
        origin = self._origins.get(pair_key, "automatic")
        if configuration is None:
            if self._settings.require_explicit_mapping:
                raise MappingConfigurationError(
                    f"no mapping registered for {_compiler_type_name(source_type)} -> "
                    f"{_compiler_type_name(destination_type)} and explicit mapping is required",
                    source_type=source_type,
                    destination_type=destination_type,
                )
            configuration = TypePairConfiguration(source_type=source_type, destination_type=destination_type)

        # Nested plans compiled during a failed outermost compile may point at a plan
        # that is never stored, so they are dropped with it.
        is_outermost = not self._compiling
        cached_before = set(self._plans) if is_outermost else set()
        self._compiling.add(pair_key)
        try:
            plan = self._compiler_build_plan(configuration, origin)
        except Exception:
            if is_outermost:
                for stale_key in set(self._plans) - cached_before:
                    del self._plans[stale_key]
            raise
        finally:
            self._compiling.discard(pair_key)
        self._plans[pair_key] = plan
        logger.debug(
            "Compiled %s mapping plan %s -> %s with %d fields",
            origin,
            _compiler_type_name(source_type),
            _compiler_type_name(destination_type),
            len(plan.fields),
        )
        return plan

    def _compiler_build_plan(self, configuration: TypePairConfiguration, origin: str) -> TypePairPlan:
        source_type, destination_type = configuration.configuration_pair_key
        if not domain_is_structured_shape(destination_type):
            raise MappingConfigurationError(
                f"destination type {_compiler_type_name(destination_type)} declares no mappable members",
                source_type=source_type,
                destination_type=destination_type,
            )
        if not (domain_is_structured_shape(source_type) or domain_is_mapping_shape(source_type)):
            raise MappingConfigurationError(
                f"source type {_compiler_type_name(source_type)} declares no readable members",
                source_type=source_type,
                destination_type=destination_type,
            )

        destination_members = tuple(member for member in domain_describe_members(destination_type) if member.init)
        destination_names = {member.name for member in destination_members}
        for rule in configuration.rules:
            if rule.destination not in destination_names:
                raise MappingConfigurationError(
                    f"rule targets unknown destination field '{rule.destination}' on "
                    f"{_compiler_type_name(destination_type)}",
                    source_type=source_type,
                    destination_type=destination_type,
                    field_name=rule.destination,
                )
        unknown_ignored_names = sorted(configuration.ignore - destination_names)
        if unknown_ignored_names:
            raise MappingConfigurationError(
                f"ignored fields do not exist on {_compiler_type_name(destination_type)}: "
                f"{', '.join(unknown_ignored_names)}",
                source_type=source_type,
                destination_type=destination_type,
                field_name=unknown_ignored_names[0],
            )

        source_members = domain_describe_members(source_type)
        field_plans = tuple(
            self._compiler_build_field_plan(configuration, destination_member, source_members)
            for destination_member in destination_members
        )
        return TypePairPlan(
            source_type=source_type,
            destination_type=destination_type,
            fields=field_plans,
            origin=origin,
        )

    def _compiler_build_field_plan(
        self,
        configuration: TypePairConfiguration,
        destination_member: MemberInfo,
        source_members: tuple[MemberInfo, ...],
    ) -> FieldPlan:
        source_type, destination_type = configuration.configuration_pair_key
        fallback_factory = None
        if destination_member.default_factory is None:
            fallback_factory = domain_zero_value_factory(destination_member.annotation)

        if destination_member.name in configuration.ignore:
            return FieldPlan(
                destination=destination_member.name,
                init_name=destination_member.init_name,
                origin=FIELD_ORIGIN_IGNORED,
                fallback_factory=fallback_factory,
            )

        rule = configuration.configuration_rule_for(destination_member.name)
        if rule is not None:
            return self._compiler_build_rule_field_plan(configuration, rule, destination_member, fallback_factory)

        if domain_is_mapping_shape(source_type):
            return FieldPlan(
                destination=destination_member.name,
                init_name=destination_member.init_name,
                origin=FIELD_ORIGIN_NAME_MATCH,
                source_path=(destination_member.name,),
                converter=self._compiler_build_converter(Any, destination_member.annotation),
                fallback_factory=fallback_factory,
            )

        incompatible_detail = ""
        matched_member = self._compiler_match_member(destination_member.name, source_members, configuration)
        if matched_member is not None:
            converter = self._compiler_build_converter(matched_member.annotation, destination_member.annotation)
            if converter is not None:
                return FieldPlan(
                    destination=destination_member.name,
                    init_name=destination_member.init_name,
                    origin=FIELD_ORIGIN_NAME_MATCH,
                    source_path=(matched_member.name,),
                    converter=converter,
                    fallback_factory=fallback_factory,
                )
            incompatible_detail = f" (source member '{matched_member.name}' has an incompatible type)"

        flattened = self._compiler_resolve_flattened(
            destination_member.name,
            source_type,
            destination_member.annotation,
            depth=0,
        )
        if flattened is not None:
            source_path, converter = flattened
            return FieldPlan(
                destination=destination_member.name,
                init_name=destination_member.init_name,
                origin=FIELD_ORIGIN_FLATTENED,
                source_path=source_path,
                converter=converter,
                fallback_factory=fallback_factory,
            )

        if destination_member.member_is_required or self._settings.require_destination_member_source:
            raise MappingConfigurationError(
                f"destination field '{destination_member.name}' on {_compiler_type_name(destination_type)} "
                f"has no rule and no matching member on {_compiler_type_name(source_type)}{incompatible_detail}",
                source_type=source_type,
                destination_type=destination_type,
                field_name=destination_member.name,
            )
        return FieldPlan(
            destination=destination_member.name,
            init_name=destination_member.init_name,
            origin=FIELD_ORIGIN_DEFAULT,
        )

    def _compiler_build_rule_field_plan(
        self,
        configuration: TypePairConfiguration,
        rule: MappingRule,
        destination_member: MemberInfo,
        fallback_factory: Callable[[], object] | None,
    ) -> FieldPlan:
        source_type, destination_type = configuration.configuration_pair_key
        if rule.compute is not None:
            return FieldPlan(
                destination=destination_member.name,
                init_name=destination_member.init_name,
                origin=FIELD_ORIGIN_RULE,
                compute=rule.compute,
                when=rule.when,
                projection=rule.projection,
                fallback_factory=fallback_factory,
            )

        source_path, leaf_annotation = self._compiler_resolve_rule_path(configuration, rule)
        converter = self._compiler_build_converter(leaf_annotation, destination_member.annotation)
        if converter is None:
            raise MappingConfigurationError(
                f"source member '{rule.source}' cannot be converted to destination field "
                f"'{destination_member.name}' on {_compiler_type_name(destination_type)}",
                source_type=source_type,
                destination_type=destination_type,
                field_name=destination_member.name,
            )
        return FieldPlan(
            destination=destination_member.name,
            init_name=destination_member.init_name,
            origin=FIELD_ORIGIN_RULE,
            source_path=source_path,
            when=rule.when,
            projection=rule.projection,
            converter=converter,
            fallback_factory=fallback_factory,
        )

    def _compiler_resolve_rule_path(
        self,
        configuration: TypePairConfiguration,
        rule: MappingRule,
    ) -> tuple[tuple[str, ...], Any]:
        source_type, destination_type = configuration.configuration_pair_key
        requested_path = rule.rule_source_path or ()
        resolved_path: list[str] = []
        owner_type: Any = source_type
        leaf_annotation: Any = Any

        for index, segment in enumerate(requested_path):
            if owner_type is Any or domain_is_mapping_shape(owner_type):
                resolved_path.extend(requested_path[index:])
                return tuple(resolved_path), Any
            if not domain_is_structured_shape(owner_type):
                raise MappingConfigurationError(
                    f"source path '{rule.source}' for '{rule.destination}' descends into "
                    f"non-structured member '{'.'.join(resolved_path)}'",
                    source_type=source_type,
                    destination_type=destination_type,
                    field_name=rule.destination,
                )
            member = self._compiler_match_member(segment, domain_describe_members(owner_type), configuration)
            if member is None:
                raise MappingConfigurationError(
                    f"source path '{rule.source}' for '{rule.destination}': member '{segment}' "
                    f"not found on {_compiler_type_name(owner_type)}",
                    source_type=source_type,
                    destination_type=destination_type,
                    field_name=rule.destination,
                )
            resolved_path.append(member.name)
            leaf_annotation = member.annotation
            owner_type, _ = domain_unwrap_optional(member.annotation)

        return tuple(resolved_path), leaf_annotation

    def _compiler_match_member(
        self,
        name: str,
        candidate_members: tuple[MemberInfo, ...],
        configuration: TypePairConfiguration,
    ) -> MemberInfo | None:
        exact_members = [member for member in candidate_members if member.name == name]
        if exact_members:
            return exact_members[0]

        normalized_name = domain_normalize_member_name(name, self._settings.name_matching)
        matched_members = [
            member
            for member in candidate_members
            if domain_normalize_member_name(member.name, self._settings.name_matching) == normalized_name
        ]
        if len(matched_members) > 1:
            raise MappingConfigurationError(
                f"ambiguous source members for '{name}': {', '.join(member.name for member in matched_members)}",
                source_type=configuration.source_type,
                destination_type=configuration.destination_type,
                field_name=name,
            )
        return matched_members[0] if matched_members else None

    def _compiler_resolve_flattened(
        self,
        destination_name: str,
        owner_type: Any,
        destination_annotation: Any,
        depth: int,
    ) -> tuple[tuple[str, ...], FieldConverter] | None:
        if depth >= self._settings.max_depth or not domain_is_structured_shape(owner_type):
            return None

        name_matching = self._settings.name_matching
        for owner_member in domain_describe_members(owner_type):
            remainder = domain_strip_member_prefix(destination_name, owner_member.name, name_matching)
            if remainder is None:
                continue
            member_type, _ = domain_unwrap_optional(owner_member.annotation)
            if not domain_is_structured_shape(member_type):
                continue

            normalized_remainder = domain_normalize_member_name(remainder, name_matching)
            for nested_member in domain_describe_members(member_type):
                if domain_normalize_member_name(nested_member.name, name_matching) != normalized_remainder:
                    continue
                converter = self._compiler_build_converter(nested_member.annotation, destination_annotation)
                if converter is not None:
                    return (owner_member.name, nested_member.name), converter

            deeper = self._compiler_resolve_flattened(remainder, member_type, destination_annotation, depth + 1)
            if deeper is not None:
                deeper_path, converter = deeper
                return (owner_member.name, *deeper_path), converter
        return None

    def _compiler_build_converter(self, source_annotation: Any, destination_annotation: Any) -> FieldConverter | None:
        source_inner, _ = domain_unwrap_optional(source_annotation)
        destination_inner, _ = domain_unwrap_optional(destination_annotation)

        collection_converter = self._compiler_build_collection_converter(source_inner, destination_inner)
        if collection_converter is not None:
            return collection_converter

        scalar_converter = domain_build_scalar_converter(source_inner, destination_inner)
        if scalar_converter is not None:
            return _compiler_wrap_scalar(scalar_converter)

        source_is_structured = domain_is_structured_shape(source_inner) or domain_is_mapping_shape(source_inner)
        if source_is_structured and domain_is_structured_shape(destination_inner):
            return self._compiler_build_nested_converter(source_inner, destination_inner)
        return None

    def _compiler_build_collection_converter(self, source_inner: Any, destination_inner: Any) -> FieldConverter | None:
        source_origin = typing.get_origin(source_inner)
        destination_origin = typing.get_origin(destination_inner)

        if source_origin in _COMPILER_SEQUENCE_CONTAINERS and destination_origin in _COMPILER_SEQUENCE_CONTAINERS:
            source_element = _compiler_first_argument(source_inner)
            destination_element = _compiler_first_argument(destination_inner)
            element_converter = self._compiler_build_converter(source_element, destination_element)
            if element_converter is None:
                return None
            container_type = _COMPILER_SEQUENCE_CONTAINERS[destination_origin]

            def _convert_sequence(value: object, depth: int) -> object:
                return container_type(
                    None if item is None else element_converter(item, depth) for item in value
                )

            return _convert_sequence

        if source_origin in _COMPILER_MAPPING_ORIGINS and destination_origin in _COMPILER_MAPPING_ORIGINS:
            source_arguments = typing.get_args(source_inner) or (Any, Any)
            destination_arguments = typing.get_args(destination_inner) or (Any, Any)
            key_converter = self._compiler_build_converter(source_arguments[0], destination_arguments[0])
            value_converter = self._compiler_build_converter(source_arguments[1], destination_arguments[1])
            if key_converter is None or value_converter is None:
                return None

            def _convert_mapping(value: object, depth: int) -> object:
                return {
                    key_converter(key, depth): None if item is None else value_converter(item, depth)
                    for key, item in value.items()
                }

            return _convert_mapping
        return None

    def _compiler_build_nested_converter(self, source_type: type, destination_type: type) -> FieldConverter:
        pair_key = (source_type, destination_type)
        if pair_key not in self._compiling:
            self.compiler_get_plan(source_type, destination_type)

        plans = self._plans
        max_depth = self._settings.max_depth

        def _convert_nested(value: object, depth: int) -> object:
            if depth + 1 > max_depth:
                return None
            return plans[pair_key].plan_apply(value, depth + 1)

        return _convert_nested


def _compiler_wrap_scalar(scalar_converter: ScalarConverter) -> FieldConverter:
    def _convert_scalar(value: object, _depth: int) -> object:
        return scalar_converter(value)

    return _convert_scalar


def _compiler_first_argument(annotation: Any) -> Any:
    arguments = typing.get_args(annotation)
    if not arguments:
        return Any
    return arguments[0]


def _compiler_type_name(shape: object) -> str:
    return getattr(shape, "__qualname__", repr(shape))
