"""Tests for the tool registry, memoized probe and fallback resolution."""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from profilekit.tools import (
    DetectedTool,
    FallbackResolver,
    ToolCategory,
    ToolDetector,
    ToolInfo,
    ToolRegistry,
    ToolStatus,
)


WHICH = "profilekit.tools.detector.shutil.which"


def only_installed(*commands):
    """shutil.which replacement that finds only ``commands``."""
    def which(command):
        return f"/usr/bin/{command}" if command in commands else None
    return which


# =============================================================================
# ToolCategory Tests
# =============================================================================

class TestToolCategory:
    """Tests for tool category enum."""

    def test_all_categories_exist(self):
        """All expected categories exist."""
        expected = [
            "package_manager",
            "container",
            "kubernetes",
            "cloud",
            "vcs",
            "language",
            "conversion",
            "media",
            "security",
            "search",
            "utility",
        ]
        for cat in expected:
            assert hasattr(ToolCategory, cat.upper())

    def test_category_values(self):
        """Category values are strings."""
        assert ToolCategory.CONTAINER.value == "container"
        assert ToolCategory.PACKAGE_MANAGER.value == "package_manager"


# =============================================================================
# ToolInfo Tests
# =============================================================================

class TestToolInfo:
    """Tests for tool information model."""

    def test_tool_info_to_dict(self):
        """Tool info converts to dictionary."""
        tool = ToolInfo(
            name="jq",
            description="JSON processor",
            category=ToolCategory.UTILITY,
            command="jq",
        )
        data = tool.to_dict()
        assert data["name"] == "jq"
        assert data["category"] == "utility"
        assert data["alternatives"] == []

    def test_tool_info_from_dict_defaults_command(self):
        """Command defaults to the tool name."""
        tool = ToolInfo.from_dict({"name": "trivy", "category": "security"})
        assert tool.command == "trivy"
        assert tool.category == ToolCategory.SECURITY
        assert tool.version_arg == "--version"

    def test_tool_info_from_dict_invalid_category(self):
        """Unknown categories are rejected."""
        with pytest.raises(ValueError):
            ToolInfo.from_dict({"name": "x", "category": "nonsense"})

    def test_get_install_command_per_platform(self):
        """Install commands follow the platform's package manager."""
        tool = ToolInfo(
            name="fd",
            description="Find",
            category=ToolCategory.SEARCH,
            command="fd",
            install_apt="fd-find",
            install_brew="fd",
            install_scoop="fd",
        )
        assert tool.get_install_command("linux") == "sudo apt-get install -y fd-find"
        assert tool.get_install_command("darwin") == "brew install fd"
        assert tool.get_install_command("windows") == "scoop install fd"

    def test_get_install_command_prefers_winget(self):
        """Winget wins over scoop on Windows."""
        tool = ToolInfo(
            name="gh",
            description="GitHub CLI",
            category=ToolCategory.VCS,
            command="gh",
            install_winget="GitHub.cli",
            install_scoop="gh",
        )
        assert tool.get_install_command("windows") == "winget install --id GitHub.cli -e"

    def test_get_install_command_language_fallback(self):
        """pip and npm packages apply on any platform."""
        tool = ToolInfo(
            name="semgrep",
            description="Static analysis",
            category=ToolCategory.SECURITY,
            command="semgrep",
            install_pip="semgrep",
        )
        assert tool.get_install_command("windows") == "pip install semgrep"

    def test_install_hint_fallbacks(self):
        """Install hints fall back to the URL, then a generic message."""
        with_url = ToolInfo(
            name="x",
            description="",
            category=ToolCategory.UTILITY,
            command="x",
            install_url="https://example.org/x",
        )
        bare = ToolInfo(name="y", description="", category=ToolCategory.UTILITY, command="y")

        assert with_url.get_install_command("linux") is None
        assert with_url.install_hint("linux") == "see https://example.org/x"
        assert "'y'" in bare.install_hint("linux")


# =============================================================================
# ToolRegistry Tests
# =============================================================================

class TestToolRegistry:
    """Tests for tool registry."""

    def test_default_catalogue(self):
        """Default registry carries common tools."""
        registry = ToolRegistry()
        for name in ["git", "docker", "podman", "kubectl", "npm", "pandoc", "trivy", "rg"]:
            assert registry.get(name) is not None
        assert registry.count > 20

    def test_catalogue_alternatives_are_registered(self):
        """Every alternative named in the catalogue is itself a known tool."""
        registry = ToolRegistry()
        for tool in registry.get_all():
            assert tool.command == tool.name
            for alternative in tool.alternatives:
                assert registry.get(alternative) is not None, (tool.name, alternative)

    def test_catalogue_version_args(self):
        """Tools without --version carry their own probe arguments."""
        registry = ToolRegistry()
        assert registry.get("kubectl").version_arg == "version --client"
        assert registry.get("ffmpeg").version_arg == "-version"

    def test_empty_registry(self):
        """Registry without defaults starts empty."""
        assert ToolRegistry(with_defaults=False).count == 0

    def test_get_is_case_insensitive(self):
        """Lookups ignore case."""
        registry = ToolRegistry()
        assert registry.get("Docker") is registry.get("docker")

    def test_register_and_unregister(self):
        """Tools can be added and removed."""
        registry = ToolRegistry(with_defaults=False)
        registry.register(ToolInfo(
            name="just", description="Task runner", category=ToolCategory.UTILITY, command="just"
        ))
        assert registry.get("just") is not None
        assert registry.unregister("JUST") is True
        assert registry.unregister("just") is False
        assert registry.get("just") is None

    def test_load_entries(self):
        """Declarative entries are registered."""
        registry = ToolRegistry(with_defaults=False)
        tools = registry.load_entries([
            {"name": "libreoffice", "command": "soffice", "category": "conversion"},
            {"name": "pandoc", "category": "conversion"},
        ])
        assert [t.name for t in tools] == ["libreoffice", "pandoc"]
        assert registry.get_by_command("soffice").name == "libreoffice"

    def test_get_by_category(self):
        """Tools are filtered by category."""
        registry = ToolRegistry()
        names = {t.name for t in registry.get_by_category(ToolCategory.CONTAINER)}
        assert {"docker", "podman"} <= names

    def test_find_alternatives(self):
        """Alternatives are returned in declared order."""
        registry = ToolRegistry()
        assert [t.name for t in registry.find_alternatives("docker")] == ["podman"]
        assert registry.find_alternatives("missing") == []

    def test_find_alternatives_skips_unregistered(self):
        """Alternatives missing from the registry are ignored."""
        registry = ToolRegistry(with_defaults=False)
        registry.register(ToolInfo(
            name="a", description="", category=ToolCategory.UTILITY, command="a",
            alternatives=["b", "c"],
        ))
        registry.register(ToolInfo(name="c", description="", category=ToolCategory.UTILITY, command="c"))
        assert [t.name for t in registry.find_alternatives("a")] == ["c"]

    def test_search(self):
        """Search matches names and descriptions."""
        registry = ToolRegistry()
        names = {t.name for t in registry.search("container")}
        assert "docker" in names


# =============================================================================
# DetectedTool Tests
# =============================================================================

class TestDetectedTool:
    """Tests for detected tool model."""

    @pytest.fixture
    def info(self):
        return ToolInfo(name="git", description="VCS", category=ToolCategory.VCS, command="git")

    def test_available(self, info):
        """Available tools report as such."""
        tool = DetectedTool(info=info, status=ToolStatus.AVAILABLE, version="2.43.0")
        assert tool.is_available is True
        assert "2.43.0" in tool.format()

    def test_not_found(self, info):
        """Missing tools format as not found."""
        tool = DetectedTool(info=info, status=ToolStatus.NOT_FOUND)
        assert tool.is_available is False
        assert "not found" in tool.format()

    def test_unknown(self, info):
        """Unchecked tools format as not checked."""
        assert "not checked" in DetectedTool(info=info).format()

    def test_to_dict(self, info):
        """Detected tools convert to dictionary."""
        data = DetectedTool(info=info, status=ToolStatus.AVAILABLE, path="/usr/bin/git").to_dict()
        assert data["name"] == "git"
        assert data["status"] == "available"
        assert data["command"] == "git"
        assert data["category"] == "vcs"


# =============================================================================
# ToolDetector Tests
# =============================================================================

class TestToolDetector:
    """Tests for the memoized availability probe."""

    def test_installed_statuses(self):
        """Available and error mean the executable is on PATH."""
        assert ToolStatus.AVAILABLE.is_installed is True
        assert ToolStatus.ERROR.is_installed is True
        assert ToolStatus.NOT_FOUND.is_installed is False
        assert ToolStatus.UNKNOWN.is_installed is False

    def test_info_for_unregistered_name(self):
        """Unknown names become bare executables."""
        info = ToolDetector(ToolRegistry(with_defaults=False)).info_for("mytool")
        assert info.command == "mytool"
        assert info.category == ToolCategory.UTILITY

    def test_resolve_available(self):
        """Tools on PATH resolve as available."""
        detector = ToolDetector()
        with patch(WHICH, side_effect=only_installed("git")):
            assert detector.resolve("git") == ToolStatus.AVAILABLE
        assert detector.get("git").path == "/usr/bin/git"

    def test_resolve_missing(self):
        """Tools missing from PATH resolve as not found."""
        detector = ToolDetector()
        with patch(WHICH, return_value=None):
            assert detector.resolve("docker") == ToolStatus.NOT_FOUND

    def test_resolve_is_memoized(self):
        """A second resolve does not probe again."""
        detector = ToolDetector()
        with patch(WHICH, side_effect=only_installed("git")) as which:
            detector.resolve("git")
            detector.resolve("GIT")
            detector.resolve("git")
        assert which.call_count == 1
        assert detector.probe_count == 1

    def test_resolve_unregistered_name(self):
        """Names outside the registry are probed as bare commands."""
        detector = ToolDetector(ToolRegistry(with_defaults=False))
        with patch(WHICH, side_effect=only_installed("mytool")) as which:
            assert detector.resolve("mytool") == ToolStatus.AVAILABLE
        which.assert_called_once_with("mytool")

    def test_resolve_uses_registered_command(self):
        """The registry's executable name is probed, not the tool name."""
        registry = ToolRegistry(with_defaults=False)
        registry.register(ToolInfo(
            name="libreoffice", description="", category=ToolCategory.CONVERSION, command="soffice"
        ))
        detector = ToolDetector(registry)
        with patch(WHICH, side_effect=only_installed("soffice")) as which:
            assert detector.resolve("libreoffice") == ToolStatus.AVAILABLE
        which.assert_called_once_with("soffice")

    def test_resolve_uses_fresh_cache_entry(self):
        """A persisted probe avoids probing PATH."""
        cache = MagicMock()
        cache.get.return_value = SimpleNamespace(
            command="docker",
            status="available",
            version="24.0.7",
            path="/usr/bin/docker",
            checked_at=datetime.now(),
        )
        detector = ToolDetector(cache=cache)
        with patch(WHICH) as which:
            assert detector.resolve("docker") == ToolStatus.AVAILABLE
        which.assert_not_called()
        assert detector.probe_count == 0
        assert detector.get("docker").version == "24.0.7"

    def test_resolve_ignores_cache_for_other_command(self):
        """A persisted probe of a different executable is not trusted."""
        cache = MagicMock()
        cache.get.return_value = SimpleNamespace(
            command="old-docker",
            status="available",
            version="",
            path="",
            checked_at=datetime.now(),
        )
        detector = ToolDetector(cache=cache)
        with patch(WHICH, return_value=None):
            assert detector.resolve("docker") == ToolStatus.NOT_FOUND
        assert detector.probe_count == 1

    def test_resolve_persists_result(self):
        """Fresh probes are written to the cache."""
        cache = MagicMock()
        cache.get.return_value = None
        detector = ToolDetector(cache=cache)
        with patch(WHICH, return_value=None):
            detector.resolve("docker")
        cache.put.assert_called_once_with("docker", "docker", "not_found", "", "")

    @pytest.mark.asyncio
    async def test_detect_reads_version(self):
        """Full detection records the version."""
        detector = ToolDetector()
        with patch(WHICH, side_effect=only_installed("git")), \
                patch.object(detector, "_get_version", AsyncMock(return_value="2.43.0")):
            result = await detector.detect("git")
        assert result.status == ToolStatus.AVAILABLE
        assert result.version == "2.43.0"
        assert detector.is_available("git")

    @pytest.mark.asyncio
    async def test_detect_unknown_tool(self):
        """Detecting an unregistered tool returns None."""
        assert await ToolDetector().detect("no-such-tool") is None

    @pytest.mark.asyncio
    async def test_detect_version_error(self):
        """A tool that cannot run is reported as an error."""
        detector = ToolDetector()
        with patch(WHICH, side_effect=only_installed("git")), \
                patch.object(detector, "_get_version", AsyncMock(side_effect=OSError("exec format"))):
            result = await detector.detect("git")
        assert result.status == ToolStatus.ERROR
        assert "exec format" in result.error_message

    @pytest.mark.asyncio
    async def test_detect_all(self):
        """All registered tools are detected."""
        registry = ToolRegistry(with_defaults=False)
        registry.load_entries([{"name": "git"}, {"name": "docker"}])
        detector = ToolDetector(registry)
        with patch(WHICH, side_effect=only_installed("git")), \
                patch.object(detector, "_get_version", AsyncMock(return_value="1.0")):
            results = await detector.detect_all()

        assert len(results) == 2
        assert [t.info.name for t in detector.available_tools] == ["git"]
        assert [t.info.name for t in detector.missing_tools] == ["docker"]
        assert "1/2 tools available" in detector.format_report()

    def test_parse_version(self):
        """Versions are extracted from typical output."""
        detector = ToolDetector()
        assert detector._parse_version("git version 2.43.0") == "2.43.0"
        assert detector._parse_version("Docker version 24.0.7, build afdd53b") == "24.0.7"
        assert detector._parse_version("v20.11.1") == "20.11.1"
        assert detector._parse_version("") == ""

    def test_suggest_installation(self):
        """Install suggestions come from the registry."""
        detector = ToolDetector()
        assert detector.suggest_installation("docker", "darwin") == "brew install docker"
        assert detector.suggest_installation("missing") is None

    def test_find_alternative(self):
        """An installed alternative is found."""
        detector = ToolDetector()
        with patch(WHICH, side_effect=only_installed("podman")):
            alt = detector.find_alternative("docker")
        assert alt.info.name == "podman"

    def test_clear_cache(self):
        """Clearing forgets memoized results."""
        cache = MagicMock()
        cache.get.return_value = None
        detector = ToolDetector(cache=cache)
        with patch(WHICH, return_value=None):
            detector.resolve("git")
            detector.clear_cache(persisted=True)
            detector.resolve("git")
        assert detector.probe_count == 2
        cache.clear.assert_called_once()


# =============================================================================
# FallbackResolver Tests
# =============================================================================

class TestFallbackResolver:
    """Tests for fallback resolution."""

    def test_candidates(self):
        """Candidates list the tool then its alternatives."""
        resolver = FallbackResolver()
        assert [t.name for t in resolver.candidates("docker")] == ["docker", "podman"]
        assert resolver.candidates("unknown") == []

    def test_pick_prefers_original(self):
        """The original tool wins when installed."""
        resolver = FallbackResolver()
        with patch(WHICH, side_effect=only_installed("docker", "podman")):
            assert resolver.pick("docker").name == "docker"

    def test_pick_falls_back(self):
        """An installed alternative is picked."""
        resolver = FallbackResolver()
        with patch(WHICH, side_effect=only_installed("podman")):
            assert resolver.pick("docker").name == "podman"

    def test_pick_nothing_available(self):
        """None when neither tool nor alternatives exist."""
        resolver = FallbackResolver()
        with patch(WHICH, return_value=None):
            assert resolver.pick("docker") is None

    def test_pick_tool_whose_version_check_failed(self):
        """A persisted error status still counts as installed."""
        cache = MagicMock()
        cache.get.return_value = SimpleNamespace(
            command="docker",
            status="error",
            version="",
            path="/usr/bin/docker",
            checked_at=datetime.now(),
        )
        registry = ToolRegistry()
        resolver = FallbackResolver(registry, ToolDetector(registry, cache=cache))
        with patch(WHICH) as which:
            assert resolver.pick("docker").name == "docker"
        which.assert_not_called()

    @pytest.mark.asyncio
    async def test_pick_after_detect_error(self):
        """A tool whose version check failed is still enabled."""
        registry = ToolRegistry()
        detector = ToolDetector(registry)
        resolver = FallbackResolver(registry, detector)
        with patch(WHICH, side_effect=only_installed("git")), \
                patch.object(detector, "_get_version", AsyncMock(side_effect=OSError("exec format"))):
            await detector.detect("git")
            assert detector.get("git").status == ToolStatus.ERROR
            assert resolver.pick("git").name == "git"

    def test_pick_unregistered_tool(self):
        """Unregistered tools resolve as bare executables."""
        resolver = FallbackResolver(ToolRegistry(with_defaults=False))
        with patch(WHICH, side_effect=only_installed("mytool")):
            assert resolver.pick("mytool").command == "mytool"

    def test_rewrite(self):
        """The leading executable is replaced by the fallback."""
        resolver = FallbackResolver()
        with patch(WHICH, side_effect=only_installed("podman")):
            assert resolver.rewrite(["docker", "ps", "-a"], "docker") == ["podman", "ps", "-a"]

    def test_rewrite_keeps_other_argv(self):
        """Argv not starting with the tool's command is left alone."""
        resolver = FallbackResolver()
        with patch(WHICH, side_effect=only_installed("podman")):
            assert resolver.rewrite(["sudo", "docker", "ps"], "docker") == ["sudo", "docker", "ps"]

    def test_rewrite_unavailable(self):
        """Rewrite returns None when nothing is installed."""
        resolver = FallbackResolver()
        with patch(WHICH, return_value=None):
            assert resolver.rewrite(["docker", "ps"], "docker") is None
