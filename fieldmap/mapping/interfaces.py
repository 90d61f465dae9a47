"""Typed interfaces for declarative type-pair mapping configuration and compiled plans."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from fieldmap.domain import MISSING, MappingConfigurationError, domain_read_member_path

FieldConverter = Callable[[object, int], object]
"""Compiled value converter receiving the value and the current nesting depth."""

INVERSE_POLICY_PARTIAL = "partial"
INVERSE_POLICY_STRICT = "strict"

FIELD_ORIGIN_RULE = "rule"
FIELD_ORIGIN_NAME_MATCH = "name_match"
FIELD_ORIGIN_FLATTENED = "flattened"
FIELD_ORIGIN_DEFAULT = "default"
FIELD_ORIGIN_IGNORED = "ignored"


@dataclass(frozen=True)
class MappingRule:
    """One explicit destination-field rule.

    Exactly one derivation is set: `source` copies a member by name or dotted
    path, `compute` evaluates a function of the whole source instance.

    Attributes:
        destination: Destination field name.
        source: Source member name or dotted path such as `department.name`.
        compute: Pure function of the source instance producing the value.
        when: Optional predicate over the source instance; False leaves the field at its default.
        projection: Optional function of the source entity class returning an SQL
            expression, used when the pair is projected into a query.
    """

    destination: str
    source: str | None = None
    compute: Callable[[Any], object] | None = None
    when: Callable[[Any], bool] | None = None
    projection: Callable[[type], object] | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.destination, str) or not self.destination.strip():
            raise MappingConfigurationError("rule destination must be a non-blank field name")
        if (self.source is None) == (self.compute is None):
            raise MappingConfigurationError(
                f"rule for '{self.destination}' must define exactly one of source or compute",
                field_name=self.destination,
            )
        if self.source is not None and (not self.source.strip() or any(not part for part in self.source.split("."))):
            raise MappingConfigurationError(
                f"rule for '{self.destination}' has an invalid source path '{self.source}'",
                field_name=self.destination,
            )

    @property
    def rule_source_path(self) -> tuple[str, ...] | None:
        """Return the source member path split on dots, or None for computed rules."""

        if self.source is None:
            return None
        return tuple(self.source.split("."))

    def rule_is_plain_copy(self) -> bool:
        """Return whether the rule copies one top-level member unconditionally.

        Only plain copies are inverted by two-way configurations.
        """

        source_path = self.rule_source_path
        return source_path is not None and len(source_path) == 1 and self.when is None


@dataclass(frozen=True)
class TypePairConfiguration:
    """Ordered rule set governing conversion from one source type to one destination type.

    Attributes:
        source_type: Type of the instances being mapped.
        destination_type: Type of the instances being produced.
        rules: Explicit rules, at most one per destination field.
        ignore: Destination fields never assigned by the mapper.
        two_way: Synthesize the inverse configuration from plain-copy rules and name matches.
        inverse_policy: `partial` skips non-invertible rules with a warning;
            `strict` rejects two-way configurations that contain any.
    """

    source_type: type
    destination_type: type
    rules: tuple[MappingRule, ...] = ()
    ignore: frozenset[str] = field(default_factory=frozenset)
    two_way: bool = False
    inverse_policy: Literal["partial", "strict"] = INVERSE_POLICY_PARTIAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))
        object.__setattr__(self, "ignore", frozenset(self.ignore))

        if not isinstance(self.source_type, type) or not isinstance(self.destination_type, type):
            raise MappingConfigurationError("source_type and destination_type must be classes")
        if self.inverse_policy not in (INVERSE_POLICY_PARTIAL, INVERSE_POLICY_STRICT):
            raise MappingConfigurationError(
                f"unsupported inverse policy '{self.inverse_policy}'",
                source_type=self.source_type,
                destination_type=self.destination_type,
            )

        seen_destinations: set[str] = set()
        for rule in self.rules:
            if not isinstance(rule, MappingRule):
                raise MappingConfigurationError(
                    f"rules must be MappingRule instances, got {type(rule).__name__}",
                    source_type=self.source_type,
                    destination_type=self.destination_type,
                )
            if rule.destination in seen_destinations:
                raise MappingConfigurationError(
                    f"duplicate rule for destination field '{rule.destination}'",
                    source_type=self.source_type,
                    destination_type=self.destination_type,
                    field_name=rule.destination,
                )
            seen_destinations.add(rule.destination)

        overlapping_fields = sorted(seen_destinations & self.ignore)
        if overlapping_fields:
            raise MappingConfigurationError(
                f"fields both ruled and ignored: {', '.join(overlapping_fields)}",
                source_type=self.source_type,
                destination_type=self.destination_type,
                field_name=overlapping_fields[0],
            )

    @property
    def configuration_pair_key(self) -> tuple[type, type]:
        """Return the `(source_type, destination_type)` registry key."""

        return self.source_type, self.destination_type

    def configuration_rule_for(self, destination: str) -> MappingRule | None:
        """Return the explicit rule for one destination field, if any."""

        for rule in self.rules:
            if rule.destination == destination:
                return rule
        return None


@dataclass(frozen=True)
class FieldPlan:
    """Compiled assignment for one destination field.

    Attributes:
        destination: Destination field name.
        init_name: Keyword used when constructing the destination.
        origin: How the field was resolved (rule, name match, flattened, default, ignored).
        source_path: Member path read from the source, when copied.
        compute: Computed-rule function, when computed.
        when: Applicability predicate, when conditional.
        projection: SQL expression factory for query projection.
        converter: Compiled value converter, None for pass-through.
        fallback_factory: Zero-value factory used when no value is assigned and the
            field has no declared default; None lets the declared default apply.
    """

    destination: str
    init_name: str
    origin: str
    source_path: tuple[str, ...] | None = None
    compute: Callable[[Any], object] | None = None
    when: Callable[[Any], bool] | None = None
    projection: Callable[[type], object] | None = None
    converter: FieldConverter | None = None
    fallback_factory: Callable[[], object] | None = None

    def field_has_source(self) -> bool:
        """Return whether the field reads or computes a value from the source."""

        return self.source_path is not None or self.compute is not None

    def field_resolve(self, source: object, depth: int) -> object:
        """Resolve the destination value for one source instance.

        Args:
            source: Source instance.
            depth: Current nesting depth.

        Returns:
            object: Converted value, or `MISSING` when the field is not assigned.

        Raises:
            Exception: Computed-rule and predicate errors propagate unmodified.
        """

        if not self.field_has_source():
            return MISSING
        if self.when is not None and not self.when(source):
            return MISSING
        if self.compute is not None:
            value = self.compute(source)
        else:
            value = domain_read_member_path(source, self.source_path)
        if value is MISSING:
            return MISSING
        return self.field_convert(value, depth)

    def field_convert(self, value: object, depth: int) -> object:
        """Apply the compiled converter; None passes through unchanged."""

        if value is None or self.converter is None:
            return value
        return self.converter(value, depth)

    def field_describe(self) -> str:
        """Render one human-readable plan line."""

        if self.origin == FIELD_ORIGIN_IGNORED:
            return f"{self.destination}: ignored"
        if self.origin == FIELD_ORIGIN_DEFAULT:
            return f"{self.destination}: default"
        derivation = "computed" if self.compute is not None else ".".join(self.source_path or ())
        suffix = " [conditional]" if self.when is not None else ""
        return f"{self.destination} <- {derivation} ({self.origin}){suffix}"


@dataclass(frozen=True)
class TypePairPlan:
    """Compiled, validated and immutable mapping plan for one type pair.

    Attributes:
        source_type: Source type.
        destination_type: Destination type.
        fields: Field plans in destination declaration order.
        origin: `registered`, `inverse` or `automatic`.
    """

    source_type: type
    destination_type: type
    fields: tuple[FieldPlan, ...]
    origin: str = "registered"

    def plan_apply(self, source: object, depth: int = 0) -> object:
        """Map one source instance into a new destination instance.

        Args:
            source: Source instance.
            depth: Current nesting depth.

        Returns:
            object: New destination instance.

        Raises:
            MappingConversionError: Raised when one value cannot be converted.
            Exception: Computed-rule and predicate errors propagate unmodified.
        """

        keyword_values: dict[str, object] = {}
        for field_plan in self.fields:
            value = field_plan.field_resolve(source, depth)
            self._plan_assign(keyword_values, field_plan, value)
        return self.destination_type(**keyword_values)

    def plan_apply_values(self, values: Mapping[str, object], depth: int = 0) -> object:
        """Build one destination instance from values keyed by destination field name.

        Used for projected query rows, where the database already evaluated paths.

        Args:
            values: Row mapping keyed by destination field name.
            depth: Current nesting depth.

        Returns:
            object: New destination instance.

        Raises:
            MappingConversionError: Raised when one value cannot be converted.
        """

        keyword_values: dict[str, object] = {}
        for field_plan in self.fields:
            value = MISSING
            if field_plan.field_has_source() and field_plan.destination in values:
                value = values[field_plan.destination]
                if field_plan.compute is None:
                    value = field_plan.field_convert(value, depth)
            self._plan_assign(keyword_values, field_plan, value)
        return self.destination_type(**keyword_values)

    def plan_describe(self) -> tuple[str, ...]:
        """Render the plan as human-readable lines, header first."""

        header = f"{self.source_type.__name__} -> {self.destination_type.__name__} ({self.origin})"
        return (header, *(f"  {field_plan.field_describe()}" for field_plan in self.fields))

    @staticmethod
    def _plan_assign(keyword_values: dict[str, object], field_plan: FieldPlan, value: object) -> None:
        if value is not MISSING:
            keyword_values[field_plan.init_name] = value
        elif field_plan.fallback_factory is not None:
            keyword_values[field_plan.init_name] = field_plan.fallback_factory()


class MapperPort(Protocol):
    """Port definition for mapping source instances into destination instances."""

    def mapper_map(self, source: object, destination_type: type) -> object:
        """Map one source instance.

        Args:
            source: Source instance, or None.
            destination_type: Registered destination type.

        Returns:
            object: New destination instance, or None for a None source.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved.
        """

    def mapper_map_many(self, sources: Iterable[object], destination_type: type) -> list[object]:
        """Map a sequence element-wise, preserving order and count.

        Args:
            sources: Source instances.
            destination_type: Registered destination type.

        Returns:
            list[object]: One destination per source, in source order.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved.
        """

    def mapper_get_plan(self, source_type: type, destination_type: type) -> TypePairPlan:
        """Return the compiled plan for one pair.

        Args:
            source_type: Source type.
            destination_type: Destination type.

        Returns:
            TypePairPlan: Compiled plan.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved.
        """
