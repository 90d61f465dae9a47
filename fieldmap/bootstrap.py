"""Bootstrap wiring for loading a registry and compiling it at process start."""

import importlib

from fieldmap.config import MapperSettings, config_load_settings
from fieldmap.logging_config import logging_configure
from fieldmap.mapping import CompiledMapper, MappingRegistry


def bootstrap_load_registry(target: str) -> MappingRegistry:
    """Import a registry from a `module:attribute` reference.

    The attribute may be a `MappingRegistry` or a zero-argument callable returning one.

    Args:
        target: Reference such as `myapp.mappings:build_registry`.

    Returns:
        MappingRegistry: Loaded registry.

    Raises:
        ValueError: Raised when the reference is malformed or does not resolve to a registry.
        ImportError: Raised when the module cannot be imported.
    """

    module_name, separator, attribute_name = target.partition(":")
    if not separator or not module_name.strip() or not attribute_name.strip():
        raise ValueError(f"registry reference must look like 'module:attribute', got '{target}'")

    module = importlib.import_module(module_name.strip())
    try:
        loaded_object = getattr(module, attribute_name.strip())
    except AttributeError as error:
        raise ValueError(f"module '{module_name}' has no attribute '{attribute_name}'") from error

    if not isinstance(loaded_object, MappingRegistry) and callable(loaded_object):
        loaded_object = loaded_object()
    if not isinstance(loaded_object, MappingRegistry):
        raise ValueError(f"'{target}' did not resolve to a MappingRegistry")
    return loaded_object


def bootstrap_create_mapper(target: str, settings: MapperSettings | None = None) -> CompiledMapper:
    """Load, validate and compile a registry after configuring logging.

    Args:
        target: Registry reference in `module:attribute` form.
        settings: Optional settings; loaded from the environment when omitted.

    Returns:
        CompiledMapper: Mapper over every compiled plan.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
        MappingConfigurationError: Raised when any registered pair cannot be compiled.
        ValueError: Raised when the registry reference is invalid.
    """

    resolved_settings = settings or config_load_settings()
    logging_configure(resolved_settings.log_level)
    registry = bootstrap_load_registry(target)
    return registry.registry_compile(resolved_settings)
