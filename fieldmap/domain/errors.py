"""Project-native typed exceptions for mapping configuration and evaluation failures."""

from __future__ import annotations


class MappingError(Exception):
    """Base exception for mapping-layer failures.

    Attributes:
        source_type: Source type of the affected type pair, when known.
        destination_type: Destination type of the affected type pair, when known.
        field_name: Destination field that triggered the failure, when known.
    """

    def __init__(
        self,
        message: str,
        source_type: type | None = None,
        destination_type: type | None = None,
        field_name: str | None = None,
    ):
        super().__init__(message)
        self.source_type = source_type
        self.destination_type = destination_type
        self.field_name = field_name


class MappingConfigurationError(MappingError, ValueError):
    """Registration or compile-time failure: unresolvable, ambiguous or invalid rule set."""


class MappingConversionError(MappingError, TypeError):
    """Call-time failure converting one member value into the destination field type."""
