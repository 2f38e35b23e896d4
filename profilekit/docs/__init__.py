"""Documentation generation and help coverage checks."""

from .generator import (
    HelpIssue,
    check_help,
    render_command_reference,
    render_fragment_readme,
    write_docs,
)

__all__ = [
    "HelpIssue",
    "check_help",
    "render_command_reference",
    "render_fragment_readme",
    "write_docs",
]
