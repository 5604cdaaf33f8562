"""Command implementations used by the CLI."""

from localmesh.commands.create_transformation import (
    EXAMPLE_TRANSFORMATION,
    CreateResult,
    TransformationCreator,
    load_transformation_file,
    parse_transformation_spec,
    read_transformation_input,
)
from localmesh.commands.setup import ComponentStatus, LocalSetup

__all__ = [
    "EXAMPLE_TRANSFORMATION",
    "CreateResult",
    "TransformationCreator",
    "load_transformation_file",
    "parse_transformation_spec",
    "read_transformation_input",
    "ComponentStatus",
    "LocalSetup",
]
