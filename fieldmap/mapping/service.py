"""Compiled mapper service executing immutable type-pair plans."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from fieldmap.config import MapperSettings

from .compiler import MappingPlanCompiler
from .interfaces import MapperPort, TypePairPlan

logger = logging.getLogger(__name__)


class CompiledMapper(MapperPort):
    """Concrete mapper over plans compiled by `MappingRegistry.registry_compile`.

    Registered plans never change after compilation. Pairs that were never
    registered are compiled on first use (unless explicit mapping is required)
    and cached; that cache is the only mutable state and is guarded by a lock.
    """

    def __init__(self, compiler: MappingPlanCompiler):
        """Initialize the mapper.

        Args:
            compiler: Compiler holding every registered plan.

        Raises:
            ValueError: Raised when compiler is None.
        """

        if compiler is None:
            raise ValueError("compiler must not be None")
        self._compiler = compiler
        self._lock = threading.Lock()

    @property
    def mapper_settings(self) -> MapperSettings:
        """Return the settings the plans were compiled with."""

        return self._compiler.compiler_settings

    def mapper_map(self, source: object, destination_type: type) -> object:
        """Map one source instance into a new destination instance.

        Args:
            source: Source instance, or None.
            destination_type: Destination type.

        Returns:
            object: New destination instance, or None when `source` is None.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved.
            MappingConversionError: Raised when one value cannot be converted.
        """

        if source is None:
            return None
        plan = self.mapper_get_plan(type(source), destination_type)
        return plan.plan_apply(source)

    def mapper_map_many(self, sources: Iterable[object], destination_type: type) -> list[object]:
        """Map a sequence element-wise, preserving order and count.

        None elements map to None so the output length always equals the input length.

        Args:
            sources: Source instances.
            destination_type: Destination type.

        Returns:
            list[object]: One destination per source, in source order.

        Raises:
            ValueError: Raised when `sources` is None.
            MappingConfigurationError: Raised when one pair cannot be resolved.
        """

        if sources is None:
            raise ValueError("sources must not be None")

        plans_by_type: dict[type, TypePairPlan] = {}
        mapped_items: list[object] = []
        for source in sources:
            if source is None:
                mapped_items.append(None)
                continue
            source_type = type(source)
            plan = plans_by_type.get(source_type)
            if plan is None:
                plan = self.mapper_get_plan(source_type, destination_type)
                plans_by_type[source_type] = plan
            mapped_items.append(plan.plan_apply(source))
        return mapped_items

    def mapper_has_pair(self, source_type: type, destination_type: type) -> bool:
        """Return whether a plan is already compiled for the pair or a base of the source type."""

        return self._compiler.compiler_find_plan(source_type, destination_type) is not None

    def mapper_get_plan(self, source_type: type, destination_type: type) -> TypePairPlan:
        """Return the compiled plan for one pair.

        Args:
            source_type: Source type.
            destination_type: Destination type.

        Returns:
            TypePairPlan: Compiled plan for the pair or the closest registered base.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved.
        """

        plan = self._compiler.compiler_find_plan(source_type, destination_type)
        if plan is not None:
            return plan
        with self._lock:
            plan = self._compiler.compiler_find_plan(source_type, destination_type)
            if plan is not None:
                return plan
            plan = self._compiler.compiler_get_plan(source_type, destination_type)
        logger.info(
            "Compiled automatic mapping plan %s -> %s on first use",
            source_type.__qualname__,
            destination_type.__qualname__,
        )
        return plan

    def mapper_describe_pair(self, source_type: type, destination_type: type) -> tuple[str, ...]:
        """Return the human-readable summary of one compiled plan.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be resolved.
        """

        return self.mapper_get_plan(source_type, destination_type).plan_describe()

    def mapper_plans(self) -> tuple[TypePairPlan, ...]:
        """Return every compiled plan."""

        return self._compiler.compiler_compiled_plans()
