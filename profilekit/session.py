"""Profile session: the once-per-session lazy registration pass.

Loading a session registers every fragment's tools, wrapper commands and
aliases without probing anything. The first use of a command runs its lazy
enabler, which probes the tool (memoized), picks a fallback if needed and
fixes the executable the command runs with.
"""

import difflib
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Optional

from profilekit.config import ProfileConfig
from profilekit.core.executor import CommandExecutor, ExecutionResult
from profilekit.fragments import Fragment, FragmentLoader, WrapperCommand
from profilekit.tools import FallbackResolver, ToolDetector, ToolInfo, ToolRegistry


logger = logging.getLogger(__name__)


class UnknownCommandError(Exception):
    """Raised when a name is neither a command nor an alias."""

    def __init__(self, name: str, suggestions: Optional[list[str]] = None):
        self.name = name
        self.suggestions = suggestions or []
        message = f"Unknown command: {name}"
        if self.suggestions:
            message += f" (did you mean {', '.join(self.suggestions)}?)"
        super().__init__(message)


class ToolUnavailableError(Exception):
    """Raised when a command's tool and all its alternatives are missing."""

    def __init__(self, command: str, tool: str, hint: str = ""):
        self.command = command
        self.tool = tool
        self.hint = hint
        message = f"'{command}' needs {tool}, which is not installed"
        if hint:
            message += f"; install with: {hint}"
        super().__init__(message)


@dataclass
class Duplicate:
    """A command or alias name defined more than once across fragments.

    Each definition is a dict with the ``kind`` (command or alias), the
    ``fragment`` it comes from and the ``command`` it belongs to.
    ``resolves_to`` is the command the name runs after registration.
    """

    name: str
    definitions: list[dict] = field(default_factory=list)
    resolves_to: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "definitions": list(self.definitions),
            "resolves_to": self.resolves_to,
        }


def current_platform() -> str:
    """Platform key used for install hints."""
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


class ProfileSession:
    """Registry of wrapper commands for one session.

    Example:
        session = ProfileSession(config)
        session.load()
        result = session.invoke("dps", ["-a"])
    """

    def __init__(
        self,
        config: Optional[ProfileConfig] = None,
        registry: Optional[ToolRegistry] = None,
        detector: Optional[ToolDetector] = None,
        executor: Optional[CommandExecutor] = None,
        loader: Optional[FragmentLoader] = None,
        platform: Optional[str] = None,
    ):
        self.config = config or ProfileConfig()
        self.registry = registry or ToolRegistry()

        if detector is None:
            cache = None
            if self.config.enable_probe_cache:
                from profilekit.storage.probes import ProbeCache
                cache = ProbeCache(self.config)
            detector = ToolDetector(
                self.registry, cache=cache, probe_timeout=self.config.probe_timeout
            )
        self.detector = detector
        self.fallback = FallbackResolver(self.registry, self.detector)
        self.executor = executor or CommandExecutor()
        self.loader = loader or FragmentLoader(self.config)
        self.platform = platform or current_platform()

        self.fragments: list[Fragment] = []
        self.load_times: dict[str, float] = {}
        self._commands: dict[str, WrapperCommand] = {}
        self._aliases: dict[str, str] = {}
        self._enabled: dict[str, ToolInfo] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> list[Fragment]:
        """Run the registration pass once; later calls are no-ops.

        Returns:
            Loaded fragments in load order
        """
        if self._loaded:
            return self.fragments

        for fragment in self.loader.load():
            started = time.perf_counter()
            for tool in fragment.tools:
                self.registry.register(tool)
            for command in fragment.commands:
                self._register_command(command)
            self.load_times[fragment.name] = time.perf_counter() - started
            self.fragments.append(fragment)
            logger.debug(
                f"Loaded fragment {fragment.name} ({len(fragment.commands)} commands)"
            )

        self._loaded = True
        logger.info(
            f"Session loaded {len(self.fragments)} fragments, "
            f"{len(self._commands)} commands, {len(self._aliases)} aliases"
        )
        return self.fragments

    def _register_command(self, command: WrapperCommand) -> None:
        key = command.name.lower()
        existing = self._commands.get(key)
        if existing is not None:
            logger.warning(
                f"Command '{command.name}' from {command.fragment} replaces "
                f"the one from {existing.fragment}"
            )
            for alias in existing.aliases:
                if self._aliases.get(alias.lower()) == key:
                    del self._aliases[alias.lower()]
        self._aliases.pop(key, None)
        self._commands[key] = command
        self._enabled.pop(key, None)

        for alias in command.aliases:
            alias_key = alias.lower()
            if alias_key in self._commands:
                logger.warning(
                    f"Alias '{alias}' of {command.name} shadows a command, ignored"
                )
                continue
            if alias_key in self._aliases and self._aliases[alias_key] != key:
                logger.warning(
                    f"Alias '{alias}' moved from {self._aliases[alias_key]} to {command.name}"
                )
            self._aliases[alias_key] = key

    def resolve_command(self, name: str) -> WrapperCommand:
        """Find a command by name or alias (case-insensitive).

        Raises:
            UnknownCommandError: No such command or alias.
        """
        self.load()
        key = name.lower()
        if key in self._commands:
            return self._commands[key]
        if key in self._aliases:
            return self._commands[self._aliases[key]]

        known = list(self._commands) + list(self._aliases)
        raise UnknownCommandError(name, difflib.get_close_matches(key, known, n=3))

    def is_enabled(self, name: str) -> bool:
        """Whether a command's lazy enabler has already run."""
        try:
            command = self.resolve_command(name)
        except UnknownCommandError:
            return False
        return command.name.lower() in self._enabled

    def enable(self, name: str) -> ToolInfo:
        """Run the lazy enabler for a command.

        Probes the command's tool on first use only; the chosen tool (the
        original or an installed alternative) is remembered for the session.

        Raises:
            UnknownCommandError: No such command or alias.
            ToolUnavailableError: Neither the tool nor an alternative is installed.
        """
        command = self.resolve_command(name)
        key = command.name.lower()
        if key in self._enabled:
            return self._enabled[key]

        picked = self.fallback.pick(command.tool)
        if picked is None:
            tool = self.registry.get(command.tool)
            hint = tool.install_hint(self.platform) if tool else ""
            raise ToolUnavailableError(command.name, command.tool, hint)

        self._enabled[key] = picked
        logger.debug(f"Enabled {command.name} using {picked.command}")
        return picked

    def build_argv(self, name: str, args: Optional[list[str]] = None) -> list[str]:
        """The argv a command runs with, after fallback substitution."""
        command = self.resolve_command(name)
        picked = self.enable(command.name)
        argv = command.expand(args)

        original = self.registry.get(command.tool)
        original_command = original.command if original else command.tool
        if picked.command != original_command and argv and argv[0] == original_command:
            argv[0] = picked.command
        return argv

    def invoke(
        self,
        name: str,
        args: Optional[list[str]] = None,
        timeout: Optional[int] = None,
        capture_output: bool = True,
    ) -> ExecutionResult:
        """Run a wrapper command with user arguments."""
        argv = self.build_argv(name, args)
        return self.executor.execute_sync(
            argv, timeout=timeout, capture_output=capture_output
        )

    def commands(self) -> list[WrapperCommand]:
        """Registered commands sorted by name."""
        self.load()
        return sorted(self._commands.values(), key=lambda c: c.name.lower())

    def aliases(self) -> dict[str, str]:
        """Alias to command name."""
        self.load()
        return {alias: self._commands[key].name for alias, key in sorted(self._aliases.items())}

    def tools_in_use(self) -> list[ToolInfo]:
        """Registry entries referenced by at least one command."""
        self.load()
        names = {c.tool.lower() for c in self._commands.values()}
        return [t for t in self.registry.get_all() if t.name.lower() in names]

    def find_duplicates(self) -> list[Duplicate]:
        """Names that more than one command or alias define.

        Registration keeps only one definition per name, so every entry
        here hides at least one command or alias from a loaded fragment.
        """
        self.load()
        seen: dict[str, list[dict]] = {}
        for fragment in self.fragments:
            for command in fragment.commands:
                seen.setdefault(command.name.lower(), []).append(
                    {"kind": "command", "fragment": fragment.name, "command": command.name}
                )
                for alias in command.aliases:
                    seen.setdefault(alias.lower(), []).append(
                        {"kind": "alias", "fragment": fragment.name, "command": command.name}
                    )

        duplicates = []
        for key in sorted(seen):
            definitions = seen[key]
            if len(definitions) < 2:
                continue
            try:
                resolves_to = self.resolve_command(key).name
            except UnknownCommandError:
                resolves_to = ""
            duplicates.append(Duplicate(key, definitions, resolves_to))

        if duplicates:
            logger.info(f"Found {len(duplicates)} duplicate names")
        return duplicates
