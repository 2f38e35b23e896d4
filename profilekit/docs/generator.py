"""Markdown documentation for fragments and their commands."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from profilekit.fragments import Fragment
from profilekit.tools import ToolRegistry


logger = logging.getLogger(__name__)

INSTALL_PLATFORMS = ("linux", "darwin", "windows")


@dataclass
class HelpIssue:
    """A missing piece of documentation."""

    fragment: str
    kind: str          # fragment, command, tool
    name: str
    message: str

    def to_dict(self) -> dict:
        return {
            "fragment": self.fragment,
            "kind": self.kind,
            "name": self.name,
            "message": self.message,
        }


def _escape(text: str) -> str:
    return text.replace("|", "\\|")


def render_fragment_readme(
    fragment: Fragment,
    registry: Optional[ToolRegistry] = None,
) -> str:
    """Render a README for one fragment.

    Args:
        fragment: Fragment to document
        registry: Used to describe tools the fragment only references
    """
    registry = registry or ToolRegistry()
    lines = [f"# {fragment.name}", ""]
    if fragment.description:
        lines += [fragment.description, ""]

    lines.append(f"- **Tier:** {fragment.tier.value}")
    if fragment.depends_on:
        lines.append(f"- **Depends on:** {', '.join(fragment.depends_on)}")
    if fragment.source:
        lines.append(f"- **Source:** `{fragment.source.name}`")
    lines.append("")

    if fragment.commands:
        lines += [
            "## Commands",
            "",
            "| Command | Aliases | Tool | Description |",
            "|---|---|---|---|",
        ]
        for command in sorted(fragment.commands, key=lambda c: c.name.lower()):
            aliases = ", ".join(f"`{a}`" for a in command.aliases) or "-"
            lines.append(
                f"| `{command.name}` | {aliases} | {command.tool} | "
                f"{_escape(command.description) or '-'} |"
            )
        lines.append("")

    tool_names = sorted({c.tool for c in fragment.commands} | {t.name for t in fragment.tools})
    local = {t.name.lower(): t for t in fragment.tools}
    tools = [local.get(n.lower()) or registry.get(n) for n in tool_names]
    tools = [t for t in tools if t is not None]
    if tools:
        lines += ["## Tools", ""]
        for tool in tools:
            lines.append(f"### {tool.name}")
            lines.append("")
            if tool.description:
                lines += [tool.description, ""]
            hints = []
            for platform in INSTALL_PLATFORMS:
                command = tool.get_install_command(platform)
                if command and command not in hints:
                    hints.append(command)
            if hints:
                lines.append("Install:")
                lines.append("")
                lines += [f"- `{hint}`" for hint in hints]
                lines.append("")
            elif tool.install_url:
                lines += [f"Install: <{tool.install_url}>", ""]
            if tool.alternatives:
                lines += [f"Falls back to: {', '.join(tool.alternatives)}", ""]

    return "\n".join(lines).rstrip() + "\n"


def render_command_reference(fragments: list[Fragment]) -> str:
    """Render one reference page covering every fragment's commands."""
    lines = ["# Command Reference", ""]
    total = sum(len(f.commands) for f in fragments)
    lines += [f"{total} commands in {len(fragments)} fragments.", ""]

    for fragment in fragments:
        lines.append(f"## {fragment.name}")
        lines.append("")
        if fragment.description:
            lines += [fragment.description, ""]
        for command in sorted(fragment.commands, key=lambda c: c.name.lower()):
            lines.append(f"### `{command.name}`")
            lines.append("")
            if command.description:
                lines += [command.description, ""]
            lines.append(f"Runs: `{' '.join(command.template)}`")
            if command.aliases:
                lines.append("")
                lines.append(f"Aliases: {', '.join(f'`{a}`' for a in command.aliases)}")
            lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def write_docs(
    fragments: list[Fragment],
    output_dir: Path,
    registry: Optional[ToolRegistry] = None,
) -> list[Path]:
    """Write one README per fragment plus the command reference.

    Returns:
        Paths written
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []

    for fragment in fragments:
        path = output_dir / f"{fragment.name}.md"
        path.write_text(render_fragment_readme(fragment, registry), encoding="utf-8")
        written.append(path)

    reference = output_dir / "README.md"
    reference.write_text(render_command_reference(fragments), encoding="utf-8")
    written.append(reference)

    logger.info(f"Wrote {len(written)} documentation files to {output_dir}")
    return written


def check_help(
    fragments: list[Fragment],
    registry: Optional[ToolRegistry] = None,
) -> list[HelpIssue]:
    """Find fragments, commands and tools lacking a description."""
    registry = registry or ToolRegistry()
    issues = []

    for fragment in fragments:
        if not fragment.description.strip():
            issues.append(HelpIssue(
                fragment.name, "fragment", fragment.name, "fragment has no description"
            ))
        for command in fragment.commands:
            if not command.description.strip():
                issues.append(HelpIssue(
                    fragment.name, "command", command.name, "command has no description"
                ))
        for tool in fragment.tools:
            if not tool.description.strip():
                issues.append(HelpIssue(
                    fragment.name, "tool", tool.name, "tool has no description"
                ))
        for tool_name in sorted({c.tool for c in fragment.commands}):
            known = {t.name.lower() for t in fragment.tools}
            if tool_name.lower() not in known and registry.get(tool_name) is None:
                issues.append(HelpIssue(
                    fragment.name, "tool", tool_name, "tool is not registered"
                ))

    return issues
