"""Mapping layer package for declarative type-pair configuration and compiled plans."""

from fieldmap.domain import MappingConfigurationError, MappingConversionError, MappingError

from .compiler import MappingPlanCompiler
from .interfaces import (
	INVERSE_POLICY_PARTIAL,
	INVERSE_POLICY_STRICT,
	FieldPlan,
	MapperPort,
	MappingRule,
	TypePairConfiguration,
	TypePairPlan,
)
from .registry import MappingRegistry, registry_build_inverse_configuration, registry_merge_configurations
from .service import CompiledMapper

__all__ = [
	"CompiledMapper",
	"FieldPlan",
	"INVERSE_POLICY_PARTIAL",
	"INVERSE_POLICY_STRICT",
	"MapperPort",
	"MappingConfigurationError",
	"MappingConversionError",
	"MappingError",
	"MappingPlanCompiler",
	"MappingRegistry",
	"MappingRule",
	"TypePairConfiguration",
	"TypePairPlan",
	"registry_build_inverse_configuration",
	"registry_merge_configurations",
]
