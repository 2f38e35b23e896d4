"""Fragment discovery and load ordering."""

import heapq
import logging
from pathlib import Path
from typing import Optional

import yaml

from profilekit.config import ProfileConfig
from profilekit.fragments.models import Fragment, FragmentError


logger = logging.getLogger(__name__)

BUILTIN_DIR = Path(__file__).parent / "data"
FRAGMENT_SUFFIXES = (".yaml", ".yml")


class FragmentDependencyError(Exception):
    """Raised for a missing fragment dependency or a dependency cycle."""

    def __init__(self, message: str, fragments: Optional[list[str]] = None):
        super().__init__(message)
        self.fragments = fragments or []


def load_fragment(path: Path) -> Fragment:
    """Parse one fragment file.

    Args:
        path: Path to a YAML fragment document

    Returns:
        The parsed Fragment

    Raises:
        FragmentError: The file is not valid YAML or not a valid fragment.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise FragmentError(f"invalid YAML: {e}", path)

    return Fragment.from_dict(data or {}, source=path)


def _fragment_files(directory: Path) -> list[Path]:
    if not directory or not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix in FRAGMENT_SUFFIXES
    )


class FragmentLoader:
    """Finds fragments and decides the order they load in.

    Example:
        loader = FragmentLoader(config)
        for fragment in loader.load():
            ...
    """

    def __init__(
        self,
        config: Optional[ProfileConfig] = None,
        builtin_dir: Optional[Path] = BUILTIN_DIR,
    ):
        self.config = config or ProfileConfig()
        self.builtin_dir = builtin_dir

    def directories(self) -> list[Path]:
        """Fragment directories, later ones override earlier ones."""
        dirs = []
        if self.config.enable_builtin_fragments and self.builtin_dir is not None:
            dirs.append(self.builtin_dir)
        if self.config.fragments_dir is not None:
            dirs.append(self.config.fragments_dir)
        return dirs

    def discover(self) -> list[Fragment]:
        """Read every fragment file.

        A user fragment with the same name as a bundled one replaces it.
        """
        found: dict[str, Fragment] = {}
        for directory in self.directories():
            for path in _fragment_files(directory):
                fragment = load_fragment(path)
                key = fragment.name.lower()
                if key in found:
                    logger.info(f"Fragment '{fragment.name}' overridden by {path}")
                found[key] = fragment
        logger.debug(f"Discovered {len(found)} fragments")
        return list(found.values())

    def _drop_disabled(self, fragments: list[Fragment]) -> list[Fragment]:
        disabled = {
            f.name.lower() for f in fragments
            if not f.enabled or self.config.is_fragment_disabled(f.name)
        }
        known = {f.name.lower() for f in fragments}
        active = {f.name.lower(): f for f in fragments if f.name.lower() not in disabled}

        # Dependents of disabled fragments are dropped, transitively
        changed = True
        while changed:
            changed = False
            for key, fragment in list(active.items()):
                deps = {d.lower() for d in fragment.depends_on}
                blocked = deps & (known - set(active))
                if blocked:
                    logger.warning(
                        f"Skipping fragment '{fragment.name}': depends on disabled "
                        f"{', '.join(sorted(blocked))}"
                    )
                    del active[key]
                    changed = True

        return list(active.values())

    def resolve_order(self, fragments: list[Fragment]) -> list[Fragment]:
        """Order fragments so dependencies load first.

        Among fragments whose dependencies are satisfied, lower tiers load
        first, then names alphabetically.

        Raises:
            FragmentDependencyError: A dependency is missing or cyclic.
        """
        fragments = self._drop_disabled(fragments)
        by_name = {f.name.lower(): f for f in fragments}

        for fragment in fragments:
            for dep in fragment.depends_on:
                if dep.lower() not in by_name:
                    raise FragmentDependencyError(
                        f"Fragment '{fragment.name}' depends on unknown fragment '{dep}'",
                        [fragment.name],
                    )

        remaining = {
            key: {d.lower() for d in f.depends_on} for key, f in by_name.items()
        }
        dependents: dict[str, list[str]] = {key: [] for key in by_name}
        for key, deps in remaining.items():
            for dep in deps:
                dependents[dep].append(key)

        def sort_key(key: str) -> tuple:
            fragment = by_name[key]
            return (fragment.tier.rank, key)

        ready = [sort_key(key) for key, deps in remaining.items() if not deps]
        heapq.heapify(ready)

        ordered = []
        while ready:
            _, key = heapq.heappop(ready)
            ordered.append(by_name[key])
            for dependent in dependents[key]:
                remaining[dependent].discard(key)
                if not remaining[dependent]:
                    heapq.heappush(ready, sort_key(dependent))

        if len(ordered) != len(by_name):
            placed = {f.name.lower() for f in ordered}
            cyclic = sorted(by_name[k].name for k in by_name if k not in placed)
            raise FragmentDependencyError(
                f"Dependency cycle between fragments: {', '.join(cyclic)}",
                cyclic,
            )

        return ordered

    def load(self) -> list[Fragment]:
        """Discover fragments and return them in load order."""
        return self.resolve_order(self.discover())
