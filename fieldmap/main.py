"""Main module entrypoint for validating mapping registries.

`check` compiles a registry and exits with status 1 on configuration errors so
misconfigured mappings stop a deployment before the application starts.
`describe` prints every compiled plan.
"""

import argparse
import sys

from fieldmap.bootstrap import bootstrap_create_mapper
from fieldmap.domain import MappingConfigurationError


def main(argv: list[str] | None = None) -> None:
    """Run the selected command against one registry reference.

    Args:
        argv: Optional argument list; defaults to `sys.argv[1:]`.

    Returns:
        None: This function does not return a runtime value.

    Raises:
        SystemExit: Raised with status 1 when the registry fails to compile.
        SettingsLoadError: Raised when configuration validation fails.
    """

    argument_parser = argparse.ArgumentParser(description="fieldmap registry tooling")
    argument_parser.add_argument(
        "command",
        choices=("check", "describe"),
        help="Runtime command: `check` compiles the registry, `describe` also prints the compiled plans",
        type=str,
    )
    argument_parser.add_argument(
        "target",
        help="Registry reference in `module:attribute` form; the attribute may be a factory",
        type=str,
    )
    parsed_arguments = argument_parser.parse_args(argv)

    try:
        mapper = bootstrap_create_mapper(parsed_arguments.target)
    except MappingConfigurationError as error:
        print(f"MAPPING_CONFIGURATION_ERROR: {error}", file=sys.stderr)
        raise SystemExit(1) from error

    compiled_plans = mapper.mapper_plans()
    if parsed_arguments.command == "describe":
        for plan in compiled_plans:
            print("\n".join(plan.plan_describe()))
    print(f"OK: {len(compiled_plans)} mapping plans compiled")


if __name__ == "__main__":
    main()
