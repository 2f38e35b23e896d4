"""Catalogue of wrapped command-line tools.

The built-in entries live in ``data/catalogue.yaml``; fragments add their own
through :meth:`ToolRegistry.load_entries`.
"""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml


CATALOGUE_PATH = Path(__file__).parent / "data" / "catalogue.yaml"


class ToolCategory(str, Enum):
    """Categories of wrapped tools."""

    PACKAGE_MANAGER = "package_manager"
    CONTAINER = "container"
    KUBERNETES = "kubernetes"
    CLOUD = "cloud"
    VCS = "vcs"
    LANGUAGE = "language"
    CONVERSION = "conversion"
    MEDIA = "media"
    SECURITY = "security"
    SEARCH = "search"
    UTILITY = "utility"


# Checked in order; the first populated field for the platform wins, then the
# cross-platform installers.
PLATFORM_INSTALLERS = {
    "linux": [("install_apt", "sudo apt-get install -y {}")],
    "darwin": [("install_brew", "brew install {}")],
    "windows": [
        ("install_winget", "winget install --id {} -e"),
        ("install_scoop", "scoop install {}"),
    ],
}
PORTABLE_INSTALLERS = [
    ("install_pip", "pip install {}"),
    ("install_npm", "npm install -g {}"),
]


@dataclass
class ToolInfo:
    """An executable a command can wrap, with how to install it."""

    name: str
    description: str
    category: ToolCategory
    command: str
    version_arg: str = "--version"
    install_apt: Optional[str] = None
    install_brew: Optional[str] = None
    install_winget: Optional[str] = None    # package id
    install_scoop: Optional[str] = None
    install_pip: Optional[str] = None
    install_npm: Optional[str] = None
    install_url: Optional[str] = None
    alternatives: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["category"] = self.category.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ToolInfo":
        """Build from a catalogue or fragment entry.

        ``command`` defaults to the tool name and unknown keys are ignored.
        Raises ValueError for an unknown category.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["name"] = data.get("name") or ""
        values["description"] = data.get("description") or ""
        values["category"] = ToolCategory(data.get("category") or "utility")
        values["command"] = data.get("command") or values["name"]
        values["version_arg"] = data.get("version_arg") or "--version"
        values["alternatives"] = list(data.get("alternatives") or [])
        return cls(**values)

    def get_install_command(self, platform: str = "linux") -> Optional[str]:
        """Package-manager command installing this tool on ``platform``.

        ``platform`` is linux, darwin or windows; pip and npm packages are
        offered on any platform without a native package.
        """
        for attr, template in PLATFORM_INSTALLERS.get(platform, []) + PORTABLE_INSTALLERS:
            package = getattr(self, attr)
            if package:
                return template.format(package)
        return None

    def install_hint(self, platform: str = "linux") -> str:
        """Human readable installation hint, falling back to the URL."""
        command = self.get_install_command(platform)
        if command:
            return command
        if self.install_url:
            return f"see {self.install_url}"
        return f"install '{self.command}' and make sure it is on PATH"


def load_catalogue(path: Path = CATALOGUE_PATH) -> list[dict]:
    """Read a YAML list of tool entries."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or []


class ToolRegistry:
    """Name-keyed set of known tools, case-insensitive.

    Example:
        registry = ToolRegistry()
        docker = registry.get("docker")
        containers = registry.get_by_category(ToolCategory.CONTAINER)
    """

    def __init__(self, with_defaults: bool = True):
        """
        Args:
            with_defaults: Start from the built-in catalogue
        """
        self._tools: dict[str, ToolInfo] = {}
        if with_defaults:
            self.load_entries(load_catalogue())

    def register(self, tool: ToolInfo) -> None:
        """Add ``tool``, replacing one with the same name."""
        self._tools[tool.name.lower()] = tool

    def load_entries(self, entries: list[dict]) -> list[ToolInfo]:
        """Register every entry accepted by ``ToolInfo.from_dict``."""
        tools = [ToolInfo.from_dict(entry) for entry in entries]
        for tool in tools:
            self.register(tool)
        return tools

    def unregister(self, name: str) -> bool:
        """Drop ``name``; False if it was not registered."""
        return self._tools.pop(name.lower(), None) is not None

    def get(self, name: str) -> Optional[ToolInfo]:
        return self._tools.get(name.lower())

    def get_all(self) -> list[ToolInfo]:
        return list(self._tools.values())

    def get_by_category(self, category: ToolCategory) -> list[ToolInfo]:
        return [t for t in self._tools.values() if t.category == category]

    def get_by_command(self, command: str) -> Optional[ToolInfo]:
        """Tool whose executable is ``command``."""
        return next((t for t in self._tools.values() if t.command == command), None)

    def find_alternatives(self, name: str) -> list[ToolInfo]:
        """Registered replacements for ``name``, in declared preference order."""
        tool = self.get(name)
        if tool is None:
            return []
        candidates = (self.get(alt) for alt in tool.alternatives)
        return [alt for alt in candidates if alt is not None]

    def search(self, query: str) -> list[ToolInfo]:
        """Tools whose name or description contains ``query``."""
        needle = query.lower()
        return [
            t for t in self._tools.values()
            if needle in t.name.lower() or needle in t.description.lower()
        ]

    @property
    def count(self) -> int:
        return len(self._tools)
