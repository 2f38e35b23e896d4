"""Standalone script wrappers for fragment commands.

Each wrapper is a tiny script named after a command that hands its
arguments to ``profilekit run``, so commands work from shells and tools
that never load a profile.
"""

import logging
import re
from pathlib import Path
from typing import Iterable

from profilekit.fragments import WrapperCommand


logger = logging.getLogger(__name__)

WRAPPER_MARKER = "generated by profilekit"
WRAPPER_PLATFORMS = ("posix", "windows")
SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def wrapper_file_name(name: str, platform: str) -> str:
    return f"{name}.cmd" if platform == "windows" else name


def render_wrapper(name: str, description: str = "", platform: str = "posix") -> str:
    """Script text that runs ``profilekit run NAME`` with all arguments."""
    description = description.splitlines()[0] if description else ""
    if platform == "windows":
        lines = ["@echo off", f"rem {name}: {WRAPPER_MARKER}"]
        if description:
            lines.append(f"rem {description}")
        lines.append(f"profilekit run {name} -- %*")
        return "\r\n".join(lines) + "\r\n"

    lines = ["#!/bin/sh", f"# {name}: {WRAPPER_MARKER}"]
    if description:
        lines.append(f"# {description}")
    lines.append(f'exec profilekit run {name} -- "$@"')
    return "\n".join(lines) + "\n"


def write_command_wrappers(
    commands: Iterable[WrapperCommand],
    directory: Path,
    platform: str = "posix",
    include_aliases: bool = False,
    force: bool = False,
) -> tuple[list[Path], list[str]]:
    """Write one wrapper script per command (and optionally per alias).

    Files that exist but were not written by profilekit are left alone
    unless ``force`` is set.

    Args:
        commands: Registered wrapper commands
        directory: Output directory
        platform: ``posix`` (sh scripts) or ``windows`` (.cmd files)
        include_aliases: Also write a wrapper for every alias
        force: Overwrite foreign files

    Returns:
        Written paths and the names that were skipped
    """
    if platform not in WRAPPER_PLATFORMS:
        raise ValueError(
            f"Unknown platform: {platform}. Choose from: {', '.join(WRAPPER_PLATFORMS)}"
        )

    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    skipped: list[str] = []
    for command in commands:
        names = [command.name]
        if include_aliases:
            names.extend(command.aliases)

        for name in names:
            path = directory / wrapper_file_name(name, platform)
            if not SAFE_NAME_RE.match(name):
                logger.warning(f"Skipping wrapper for '{name}': not a safe file name")
                skipped.append(name)
                continue
            if path.exists() and not force and not _is_generated(path):
                logger.warning(f"Skipping {path}: not written by profilekit")
                skipped.append(name)
                continue

            text = render_wrapper(name, command.description, platform)
            path.write_text(text, encoding="utf-8", newline="")
            if platform == "posix":
                path.chmod(0o755)
            written.append(path)

    logger.info(f"Wrote {len(written)} command wrappers to {directory}")
    return written, skipped


def _is_generated(path: Path) -> bool:
    try:
        return WRAPPER_MARKER in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
