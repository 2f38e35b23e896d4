"""Fallback management for unavailable tools.

Picks an installed drop-in replacement (docker -> podman, npm -> pnpm, ...)
and rewrites a wrapper's argv to use it.
"""

import logging
from typing import Optional

from .detector import ToolDetector
from .registry import ToolInfo, ToolRegistry


logger = logging.getLogger(__name__)


class FallbackResolver:
    """Chooses between a tool and its declared alternatives.

    Example:
        resolver = FallbackResolver(registry, detector)
        argv = resolver.rewrite(["docker", "ps"], "docker")
        # ["podman", "ps"] when only podman is installed
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        detector: Optional[ToolDetector] = None,
    ):
        self.registry = registry or ToolRegistry()
        self.detector = detector or ToolDetector(self.registry)

    def candidates(self, name: str) -> list[ToolInfo]:
        """The tool followed by its alternatives, in preference order."""
        tool = self.registry.get(name)
        if tool is None:
            return []
        return [tool] + self.registry.find_alternatives(name)

    def pick(self, name: str) -> Optional[ToolInfo]:
        """First available tool among ``name`` and its alternatives.

        Tools missing from the registry are resolved as bare executables.
        """
        candidates = self.candidates(name)
        if not candidates:
            if self.detector.is_installed(name):
                return self.detector.info_for(name)
            return None

        for candidate in candidates:
            if self.detector.is_installed(candidate.name):
                if candidate.name.lower() != name.lower():
                    logger.info(f"{name} unavailable, falling back to {candidate.name}")
                return candidate
        return None

    def rewrite(self, argv: list[str], name: str) -> Optional[list[str]]:
        """Rewrite argv so that it runs the picked tool.

        Only the leading executable is replaced, and only when it is the
        original tool's command.

        Returns:
            The new argv, or None when nothing usable is installed.
        """
        picked = self.pick(name)
        if picked is None:
            return None

        original = self.registry.get(name)
        if argv and original is not None and argv[0] == original.command:
            return [picked.command] + list(argv[1:])
        return list(argv)
