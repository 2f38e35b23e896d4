"""Availability and version probing for wrapped executables.

``resolve`` is the cheap check a lazy enabler runs on first use: a PATH
lookup, memoized for the detector's lifetime and optionally persisted.
``detect``/``detect_all`` also run each tool to read its version.
"""

import asyncio
import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, TYPE_CHECKING

from .registry import ToolRegistry, ToolInfo, ToolCategory

if TYPE_CHECKING:
    from profilekit.storage.probes import ProbeCache


logger = logging.getLogger(__name__)

VERSION_RE = re.compile(r"(?:version\s+)?v?(\d+\.\d+(?:\.\d+)?)", re.IGNORECASE)


class ToolStatus(str, Enum):
    """Probe outcome."""

    AVAILABLE = "available"
    NOT_FOUND = "not_found"
    ERROR = "error"             # on PATH but the version probe failed
    UNKNOWN = "unknown"

    @property
    def is_installed(self) -> bool:
        """The executable is on PATH, whether or not its version was read."""
        return self in (ToolStatus.AVAILABLE, ToolStatus.ERROR)


STATUS_MARKS = {
    ToolStatus.AVAILABLE: "✓",
    ToolStatus.NOT_FOUND: "✗",
    ToolStatus.ERROR: "⚠",
    ToolStatus.UNKNOWN: "?",
}


@dataclass
class DetectedTool:
    """Probe result for one tool."""

    info: ToolInfo
    status: ToolStatus = ToolStatus.UNKNOWN
    version: str = ""
    path: str = ""
    last_checked: str = field(default_factory=lambda: datetime.now().isoformat())
    error_message: str = ""

    @property
    def is_available(self) -> bool:
        return self.status == ToolStatus.AVAILABLE

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.info.name,
            "command": self.info.command,
            "category": self.info.category.value,
            "status": self.status.value,
            "version": self.version,
            "path": self.path,
            "last_checked": self.last_checked,
            "error_message": self.error_message,
        }

    def format(self) -> str:
        """One report line, e.g. ``  ✓ git (2.43.0)``."""
        if self.status == ToolStatus.AVAILABLE:
            detail = self.version
        elif self.status == ToolStatus.NOT_FOUND:
            detail = "not found"
        elif self.status == ToolStatus.UNKNOWN:
            detail = "not checked"
        else:
            detail = self.error_message or "error"

        line = f"  {STATUS_MARKS[self.status]} {self.info.name}"
        return f"{line} ({detail})" if detail else line


class ToolDetector:
    """Probes registered tools, remembering every answer.

    Example:
        detector = ToolDetector(registry, cache=ProbeCache(config))
        if detector.resolve("docker") == ToolStatus.AVAILABLE:
            ...
        report = await detector.detect_all()
    """

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        cache: Optional["ProbeCache"] = None,
        probe_timeout: float = 5.0,
    ):
        """
        Args:
            registry: Tools to probe, the default catalogue when omitted
            cache: Persisted probe results shared between sessions
            probe_timeout: Seconds a version probe may take
        """
        self.registry = registry or ToolRegistry()
        self.cache = cache
        self.probe_timeout = probe_timeout
        self.probe_count = 0
        self._detected: dict[str, DetectedTool] = {}
        self._full_pass_done = False

    def info_for(self, name: str) -> ToolInfo:
        """Registry entry for ``name``, or a bare executable of that name."""
        return self.registry.get(name) or ToolInfo(
            name=name,
            description="",
            category=ToolCategory.UTILITY,
            command=name,
        )

    def _remember(self, key: str, detected: DetectedTool, persist: bool = True) -> DetectedTool:
        self._detected[key] = detected
        if persist and self.cache is not None:
            self.cache.put(
                detected.info.name,
                detected.info.command,
                detected.status.value,
                detected.version,
                detected.path,
            )
        return detected

    def _from_cache(self, tool: ToolInfo) -> Optional[DetectedTool]:
        if self.cache is None:
            return None
        probe = self.cache.get(tool.name)
        if probe is None or probe.command != tool.command:
            return None
        logger.debug(f"Probe cache hit for {tool.name}: {probe.status}")
        return DetectedTool(
            info=tool,
            status=ToolStatus(probe.status),
            version=probe.version,
            path=probe.path,
            last_checked=probe.checked_at.isoformat(),
        )

    def resolve(self, name: str) -> ToolStatus:
        """Whether ``name`` is installed, without running it.

        Checks the in-memory memo, then a fresh persisted probe, then PATH.
        Each tool hits PATH at most once per detector.
        """
        key = name.lower()
        known = self._detected.get(key)
        if known is not None and known.status != ToolStatus.UNKNOWN:
            return known.status

        tool = self.info_for(name)
        cached = self._from_cache(tool)
        if cached is not None:
            return self._remember(key, cached, persist=False).status
        return self._remember(key, self._probe_path(tool)).status

    def is_installed(self, name: str) -> bool:
        """What the lazy enabler asks: ``resolve`` found ``name`` on PATH."""
        return self.resolve(name).is_installed

    def _probe_path(self, tool: ToolInfo) -> DetectedTool:
        self.probe_count += 1
        path = shutil.which(tool.command)
        logger.debug(f"Probed {tool.command}: {path or 'not found'}")
        if path is None:
            return DetectedTool(info=tool, status=ToolStatus.NOT_FOUND)
        return DetectedTool(info=tool, status=ToolStatus.AVAILABLE, path=path)

    async def detect_all(self, force: bool = False) -> list[DetectedTool]:
        """Fully probe every registered tool concurrently.

        A second call returns the earlier results unless ``force`` is set.
        """
        if self._full_pass_done and not force:
            return list(self._detected.values())

        results = await asyncio.gather(
            *(self._detect_tool(tool) for tool in self.registry.get_all())
        )
        for result in results:
            self._remember(result.info.name.lower(), result)

        self._full_pass_done = True
        return list(results)

    async def detect(self, name: str) -> Optional[DetectedTool]:
        """Fully probe one registered tool, None for unknown names."""
        tool = self.registry.get(name)
        if tool is None:
            return None
        return self._remember(name.lower(), await self._detect_tool(tool))

    async def _detect_tool(self, tool: ToolInfo) -> DetectedTool:
        detected = self._probe_path(tool)
        if not detected.is_available:
            return detected

        try:
            detected.version = await self._get_version(tool, detected.path)
        except OSError as e:
            detected.status = ToolStatus.ERROR
            detected.error_message = str(e)
        return detected

    async def _get_version(self, tool: ToolInfo, path: str) -> str:
        """Run ``<path> <version_arg>``; "timeout" if the tool hangs."""
        proc = await asyncio.create_subprocess_exec(
            path,
            *shlex.split(tool.version_arg),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            out, err = await asyncio.wait_for(proc.communicate(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"Version probe for {tool.name} timed out")
            return "timeout"

        return self._parse_version(out.decode(errors="replace") + err.decode(errors="replace"))

    def _parse_version(self, output: str) -> str:
        match = VERSION_RE.search(output)
        if match:
            return match.group(1)
        lines = output.strip().splitlines()
        return lines[0][:50] if lines else ""

    def get(self, name: str) -> Optional[DetectedTool]:
        """Last result recorded for ``name``."""
        return self._detected.get(name.lower())

    def is_available(self, name: str) -> bool:
        """Availability according to results already recorded."""
        detected = self.get(name)
        return detected is not None and detected.is_available

    def _select(self, status: ToolStatus) -> list[DetectedTool]:
        return [d for d in self._detected.values() if d.status == status]

    @property
    def available_tools(self) -> list[DetectedTool]:
        return self._select(ToolStatus.AVAILABLE)

    @property
    def missing_tools(self) -> list[DetectedTool]:
        return self._select(ToolStatus.NOT_FOUND)

    def get_by_category(self, category: ToolCategory) -> list[DetectedTool]:
        """Recorded results for tools in ``category``."""
        return [d for d in self._detected.values() if d.info.category == category]

    def suggest_installation(self, name: str, platform: str = "linux") -> Optional[str]:
        """Install command for ``name`` on ``platform``, if one is known."""
        tool = self.registry.get(name)
        return tool.get_install_command(platform) if tool else None

    def find_alternative(self, name: str) -> Optional[DetectedTool]:
        """First installed alternative to ``name``, in declared order."""
        if self.registry.get(name) is None:
            return None
        for alternative in self.registry.find_alternatives(name):
            if self.is_installed(alternative.name):
                return self.get(alternative.name)
        return None

    def format_report(self) -> str:
        """Plain-text report of recorded results grouped by category."""
        lines = ["Detected Tools:"]
        for category in ToolCategory:
            members = sorted(self.get_by_category(category), key=lambda d: d.info.name)
            if not members:
                continue
            lines.append("")
            lines.append(f"  {category.value.replace('_', ' ').title()}:")
            lines.extend(d.format() for d in members)

        lines.append("")
        lines.append(f"  {len(self.available_tools)}/{len(self._detected)} tools available")
        return "\n".join(lines)

    def clear_cache(self, persisted: bool = False) -> None:
        """Forget recorded results, and the persisted probes if asked."""
        self._detected.clear()
        self._full_pass_done = False
        if persisted and self.cache is not None:
            self.cache.clear()
