"""Domain helpers shared across mapping and db layer boundaries."""

from .conversion import (
	ScalarConverter,
	domain_build_runtime_converter,
	domain_build_scalar_converter,
	domain_is_assignable,
	domain_unwrap_optional,
	domain_zero_value_factory,
)
from .errors import MappingConfigurationError, MappingConversionError, MappingError
from .members import (
	MISSING,
	MemberInfo,
	domain_describe_members,
	domain_is_mapping_shape,
	domain_is_structured_shape,
	domain_read_member,
	domain_read_member_path,
)
from .naming import (
	NAME_MATCHING_EXACT,
	NAME_MATCHING_FLEXIBLE,
	domain_normalize_member_name,
	domain_strip_member_prefix,
)

__all__ = [
	"MISSING",
	"MemberInfo",
	"MappingError",
	"MappingConfigurationError",
	"MappingConversionError",
	"NAME_MATCHING_EXACT",
	"NAME_MATCHING_FLEXIBLE",
	"ScalarConverter",
	"domain_build_runtime_converter",
	"domain_build_scalar_converter",
	"domain_describe_members",
	"domain_is_assignable",
	"domain_is_mapping_shape",
	"domain_is_structured_shape",
	"domain_normalize_member_name",
	"domain_read_member",
	"domain_read_member_path",
	"domain_strip_member_prefix",
	"domain_unwrap_optional",
	"domain_zero_value_factory",
]
