"""Task-runner files: parsing and cross-runner parity."""

from .models import TaskDefinition, TaskSource
from .parsers import (
    TaskFileError,
    discover_task_files,
    parse_justfile,
    parse_makefile,
    parse_package_json,
    parse_task_file,
    parse_taskfile,
)
from .parity import (
    ParityReport,
    apply_missing,
    check_files,
    check_parity,
    generate_parity,
    missing_definitions,
    recipe_name,
    render_missing,
)

__all__ = [
    "TaskDefinition",
    "TaskSource",
    "TaskFileError",
    "discover_task_files",
    "parse_justfile",
    "parse_makefile",
    "parse_package_json",
    "parse_task_file",
    "parse_taskfile",
    "ParityReport",
    "apply_missing",
    "check_files",
    "check_parity",
    "generate_parity",
    "missing_definitions",
    "recipe_name",
    "render_missing",
]
