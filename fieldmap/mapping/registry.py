"""Registry collecting type-pair configurations before they are compiled."""

from __future__ import annotations

import logging

from fieldmap.config import MapperSettings, config_load_settings
from fieldmap.domain import MappingConfigurationError, domain_describe_members

from .compiler import MappingPlanCompiler
from .interfaces import (
    FIELD_ORIGIN_FLATTENED,
    FIELD_ORIGIN_NAME_MATCH,
    FIELD_ORIGIN_RULE,
    INVERSE_POLICY_STRICT,
    MappingRule,
    TypePairConfiguration,
    TypePairPlan,
)
from .service import CompiledMapper

logger = logging.getLogger(__name__)


class MappingRegistry:
    """Mutable collection of configurations, compiled once into an immutable mapper.

    Registering the same pair twice merges the configurations per destination
    field: the later rule replaces the earlier one, a later `ignore` removes an
    earlier rule and a later rule removes an earlier `ignore`.
    """

    def __init__(self):
        self._configurations: dict[tuple[type, type], TypePairConfiguration] = {}

    def registry_register(self, configuration: TypePairConfiguration) -> None:
        """Register one configuration, merging with an earlier one for the same pair.

        Args:
            configuration: Type pair configuration.

        Raises:
            MappingConfigurationError: Raised when the merged configuration is invalid.
        """

        if not isinstance(configuration, TypePairConfiguration):
            raise MappingConfigurationError(
                f"expected TypePairConfiguration, got {type(configuration).__name__}"
            )
        pair_key = configuration.configuration_pair_key
        existing_configuration = self._configurations.get(pair_key)
        if existing_configuration is not None:
            configuration = registry_merge_configurations(existing_configuration, configuration)
        self._configurations[pair_key] = configuration

    def registry_configurations(self) -> tuple[TypePairConfiguration, ...]:
        """Return registered configurations in registration order."""

        return tuple(self._configurations.values())

    def registry_compile(self, settings: MapperSettings | None = None) -> CompiledMapper:
        """Validate and compile every registered pair, including synthesized inverses.

        Args:
            settings: Mapper settings; loaded from the environment when omitted.

        Returns:
            CompiledMapper: Immutable mapper over the compiled plans.

        Raises:
            MappingConfigurationError: Raised when any pair cannot be resolved.
            SettingsLoadError: Raised when settings are loaded and invalid.
        """

        resolved_settings = settings or config_load_settings()
        compiler = MappingPlanCompiler(settings=resolved_settings, configurations=self._configurations)

        for source_type, destination_type in self._configurations:
            compiler.compiler_get_plan(source_type, destination_type)

        for configuration in self._configurations.values():
            if not configuration.two_way:
                continue
            forward_plan = compiler.compiler_get_plan(*configuration.configuration_pair_key)
            inverse_configuration = registry_build_inverse_configuration(
                configuration,
                forward_plan,
            )
            explicit_inverse = self._configurations.get(inverse_configuration.configuration_pair_key)
            if explicit_inverse is not None:
                inverse_configuration = registry_merge_configurations(inverse_configuration, explicit_inverse)
            compiler.compiler_register_configuration(inverse_configuration, origin="inverse")
            compiler.compiler_get_plan(*inverse_configuration.configuration_pair_key)

        compiled_mapper = CompiledMapper(compiler)
        logger.info("Compiled %d mapping plans", len(compiled_mapper.mapper_plans()))
        return compiled_mapper


def registry_merge_configurations(
    existing_configuration: TypePairConfiguration,
    incoming_configuration: TypePairConfiguration,
) -> TypePairConfiguration:
    """Merge two configurations for the same pair; the incoming one wins per field.

    Args:
        existing_configuration: Earlier configuration.
        incoming_configuration: Later configuration.

    Returns:
        TypePairConfiguration: Merged configuration.

    Raises:
        MappingConfigurationError: Raised when the pairs differ.
    """

    if existing_configuration.configuration_pair_key != incoming_configuration.configuration_pair_key:
        raise MappingConfigurationError(
            "cannot merge configurations for different type pairs",
            source_type=incoming_configuration.source_type,
            destination_type=incoming_configuration.destination_type,
        )

    rules_by_destination = {rule.destination: rule for rule in existing_configuration.rules}
    replaced_destinations: list[str] = []
    for rule in incoming_configuration.rules:
        if rule.destination in rules_by_destination:
            replaced_destinations.append(rule.destination)
        rules_by_destination[rule.destination] = rule
    for ignored_name in incoming_configuration.ignore:
        rules_by_destination.pop(ignored_name, None)

    incoming_destinations = {rule.destination for rule in incoming_configuration.rules}
    merged_ignore = (existing_configuration.ignore - incoming_destinations) | incoming_configuration.ignore

    if replaced_destinations:
        logger.warning(
            "Mapping %s -> %s registered again; later rules replace earlier ones for: %s",
            incoming_configuration.source_type.__qualname__,
            incoming_configuration.destination_type.__qualname__,
            ", ".join(replaced_destinations),
        )

    return TypePairConfiguration(
        source_type=incoming_configuration.source_type,
        destination_type=incoming_configuration.destination_type,
        rules=tuple(rules_by_destination.values()),
        ignore=merged_ignore,
        two_way=existing_configuration.two_way or incoming_configuration.two_way,
        inverse_policy=incoming_configuration.inverse_policy,
    )


def registry_build_inverse_configuration(
    configuration: TypePairConfiguration,
    forward_plan: TypePairPlan,
) -> TypePairConfiguration:
    """Synthesize the destination -> source configuration of a two-way pair.

    The inverse copies back exactly what the forward plan copied one member to
    one field: name matches and single-member unconditional copy rules. Every
    other source member is ignored in the inverse, so fields the forward plan
    ignored, defaulted, computed or flattened never receive a value that only
    happens to share their name.

    Args:
        configuration: Forward configuration with `two_way` set.
        forward_plan: Compiled forward plan.

    Returns:
        TypePairConfiguration: Inverse configuration.

    Raises:
        MappingConfigurationError: Raised when the inverse policy is strict and
            non-invertible rules exist, or when two fields copy the same member.
    """

    source_type, destination_type = configuration.configuration_pair_key
    constructible_members = {member.name for member in domain_describe_members(source_type) if member.init}
    inverse_rules: dict[str, MappingRule] = {}
    skipped_rule_destinations: list[str] = []
    skipped_flattened_destinations: list[str] = []

    for field_plan in forward_plan.fields:
        if field_plan.origin == FIELD_ORIGIN_FLATTENED:
            skipped_flattened_destinations.append(field_plan.destination)
            continue
        if field_plan.origin == FIELD_ORIGIN_RULE:
            rule = configuration.configuration_rule_for(field_plan.destination)
            if rule is None or not rule.rule_is_plain_copy():
                skipped_rule_destinations.append(field_plan.destination)
                continue
        elif field_plan.origin != FIELD_ORIGIN_NAME_MATCH:
            continue

        inverse_destination = field_plan.source_path[0]
        if inverse_destination not in constructible_members:
            continue
        if inverse_destination in inverse_rules:
            raise MappingConfigurationError(
                f"two-way mapping is ambiguous: '{inverse_destination}' is copied into both "
                f"'{inverse_rules[inverse_destination].source}' and '{field_plan.destination}'",
                source_type=destination_type,
                destination_type=source_type,
                field_name=inverse_destination,
            )
        inverse_rules[inverse_destination] = MappingRule(destination=inverse_destination, source=field_plan.destination)

    if skipped_rule_destinations and configuration.inverse_policy == INVERSE_POLICY_STRICT:
        raise MappingConfigurationError(
            f"two-way mapping {source_type.__qualname__} <-> {destination_type.__qualname__} uses a strict "
            f"inverse policy but these rules cannot be inverted: {', '.join(skipped_rule_destinations)}",
            source_type=destination_type,
            destination_type=source_type,
            field_name=skipped_rule_destinations[0],
        )
    if skipped_rule_destinations or skipped_flattened_destinations:
        logger.warning(
            "Inverse mapping %s -> %s is partial; not inverted: %s",
            destination_type.__qualname__,
            source_type.__qualname__,
            ", ".join(skipped_rule_destinations + skipped_flattened_destinations),
        )

    return TypePairConfiguration(
        source_type=destination_type,
        destination_type=source_type,
        rules=tuple(inverse_rules.values()),
        ignore=constructible_members - set(inverse_rules),
        inverse_policy=configuration.inverse_policy,
    )
