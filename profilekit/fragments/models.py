"""Data models for profile fragments.

A fragment is a YAML document contributing tools, wrapper commands and
aliases:

    name: containers
    description: Container runtime helpers
    tier: standard
    depends_on: [core]
    tools:
      - name: docker
        category: container
        alternatives: [podman]
    commands:
      - name: dps
        tool: docker
        template: [docker, ps, "{args}"]
        aliases: [containers]
        description: List running containers
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from profilekit.tools.registry import ToolInfo


ARGS_PLACEHOLDER = "{args}"


class FragmentError(Exception):
    """Raised when a fragment document is invalid."""

    def __init__(self, message: str, source: Optional[Path] = None):
        self.source = source
        if source is not None:
            message = f"{source}: {message}"
        super().__init__(message)


def _name_list(value, key: str, owner: str) -> list[str]:
    """Normalise a YAML scalar, list or null into a list of names."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise FragmentError(f"{owner}: '{key}' must be a name or a list of names")
    return [str(v) for v in value]


class FragmentTier(str, Enum):
    """Load tiers, earlier tiers load first."""

    CORE = "core"
    ESSENTIAL = "essential"
    STANDARD = "standard"
    OPTIONAL = "optional"

    @property
    def rank(self) -> int:
        return list(FragmentTier).index(self)


@dataclass
class WrapperCommand:
    """A thin command forwarding arguments to an external executable."""

    name: str
    tool: str
    template: list[str]
    description: str = ""
    aliases: list[str] = field(default_factory=list)
    fragment: str = ""

    def expand(self, args: Optional[list[str]] = None) -> list[str]:
        """Build the argv for this command.

        Every ``{args}`` token is replaced by the user arguments; without a
        placeholder they are appended.
        """
        args = list(args or [])
        if ARGS_PLACEHOLDER not in self.template:
            return list(self.template) + args

        argv = []
        for part in self.template:
            if part == ARGS_PLACEHOLDER:
                argv.extend(args)
            else:
                argv.append(part)
        return argv

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "tool": self.tool,
            "template": list(self.template),
            "description": self.description,
            "aliases": list(self.aliases),
            "fragment": self.fragment,
        }

    @classmethod
    def from_dict(cls, data: dict, fragment: str = "") -> "WrapperCommand":
        """Create from dictionary.

        ``template`` may be a list or a shell-style string; ``tool`` defaults
        to the template's executable.
        """
        name = data.get("name")
        if not name or not isinstance(name, str):
            raise FragmentError(f"command without a name in fragment '{fragment}'")

        template = data.get("template")
        if isinstance(template, str):
            template = shlex.split(template)
        if not template or not isinstance(template, list):
            raise FragmentError(f"command '{name}' has no template")
        template = [str(part) for part in template]

        aliases = _name_list(data.get("aliases"), "aliases", f"command '{name}'")

        return cls(
            name=name,
            tool=data.get("tool") or template[0],
            template=template,
            description=data.get("description", "") or "",
            aliases=aliases,
            fragment=fragment,
        )


@dataclass
class Fragment:
    """An independently loadable unit of tools and commands."""

    name: str
    description: str = ""
    tier: FragmentTier = FragmentTier.STANDARD
    depends_on: list[str] = field(default_factory=list)
    tools: list[ToolInfo] = field(default_factory=list)
    commands: list[WrapperCommand] = field(default_factory=list)
    enabled: bool = True
    source: Optional[Path] = None

    @property
    def alias_count(self) -> int:
        return sum(len(c.aliases) for c in self.commands)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "tier": self.tier.value,
            "depends_on": list(self.depends_on),
            "tools": [t.to_dict() for t in self.tools],
            "commands": [c.to_dict() for c in self.commands],
            "enabled": self.enabled,
            "source": str(self.source) if self.source else None,
        }

    @classmethod
    def from_dict(cls, data: dict, source: Optional[Path] = None) -> "Fragment":
        """Create from a parsed fragment document."""
        if not isinstance(data, dict):
            raise FragmentError("fragment document must be a mapping", source)

        name = data.get("name")
        if not name and source is not None:
            name = source.stem
        if not name or not isinstance(name, str):
            raise FragmentError("fragment has no name", source)

        try:
            tier = FragmentTier(data.get("tier", "standard"))
        except ValueError:
            raise FragmentError(f"unknown tier '{data.get('tier')}'", source)

        try:
            depends_on = _name_list(data.get("depends_on"), "depends_on", f"fragment '{name}'")
            tools = [ToolInfo.from_dict(t) for t in data.get("tools", []) or []]
            commands = [
                WrapperCommand.from_dict(c, fragment=name)
                for c in data.get("commands", []) or []
            ]
        except FragmentError as e:
            raise FragmentError(str(e), source)
        except (ValueError, TypeError, AttributeError) as e:
            raise FragmentError(f"invalid entry: {e}", source)

        return cls(
            name=name,
            description=data.get("description", "") or "",
            tier=tier,
            depends_on=depends_on,
            tools=tools,
            commands=commands,
            enabled=bool(data.get("enabled", True)),
            source=source,
        )
