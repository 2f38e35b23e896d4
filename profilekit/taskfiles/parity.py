"""Task parity across task-runner files.

Keeps Makefile, justfile, Taskfile and package.json offering the same tasks,
and generates the stanzas a file is missing.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import yaml

from profilekit.taskfiles.models import TaskDefinition, TaskSource
from profilekit.taskfiles.parsers import detect_source, parse_task_file


logger = logging.getLogger(__name__)

DEFAULT_IGNORE = ("default",)
UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_-]+")


def recipe_name(name: str) -> str:
    """``name`` as a valid Makefile target and just recipe name.

    Runs of other characters become ``-`` (``test:unit`` gives ``test-unit``)
    and a name not starting with a letter gets a ``task-`` prefix.
    """
    safe = UNSAFE_NAME_RE.sub("-", name).strip("-") or "task"
    return safe if safe[0].isalpha() else f"task-{safe}"


def task_key(name: str) -> str:
    """Identity of a task across runners."""
    return recipe_name(name).lower()


@dataclass
class ParityReport:
    """Which tasks each file lacks."""

    sources: list[str] = field(default_factory=list)
    tasks: list[str] = field(default_factory=list)
    missing: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_complete(self) -> bool:
        return not any(self.missing.values())

    @property
    def missing_count(self) -> int:
        return sum(len(names) for names in self.missing.values())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "sources": list(self.sources),
            "tasks": list(self.tasks),
            "missing": {k: list(v) for k, v in self.missing.items()},
            "complete": self.is_complete,
        }


def check_parity(
    task_sets: dict[str, list[TaskDefinition]],
    ignore: Iterable[str] = DEFAULT_IGNORE,
) -> ParityReport:
    """Compare task names across sources.

    Names match case-insensitively and after ``recipe_name``, so the
    ``test-unit`` target generated for a ``test:unit`` script counts as it.

    Args:
        task_sets: Source label (usually the file name) to its tasks
        ignore: Task names exempt from parity

    Returns:
        ParityReport listing, per source, the tasks others define and it lacks
    """
    ignored = {task_key(name) for name in ignore}
    display_names: dict[str, str] = {}
    present: dict[str, set[str]] = {}

    for source, tasks in task_sets.items():
        names = set()
        for task in tasks:
            key = task_key(task.name)
            if key in ignored:
                continue
            display_names.setdefault(key, task.name)
            names.add(key)
        present[source] = names

    all_keys = sorted(display_names)
    report = ParityReport(
        sources=list(task_sets),
        tasks=[display_names[k] for k in all_keys],
    )
    for source, names in present.items():
        report.missing[source] = [display_names[k] for k in all_keys if k not in names]

    return report


def missing_definitions(
    task_sets: dict[str, list[TaskDefinition]],
    report: ParityReport,
) -> dict[str, list[TaskDefinition]]:
    """Reference definitions for every missing task, per source.

    The reference is the task as defined by the first source that has it.
    """
    lookup: dict[str, TaskDefinition] = {}
    for tasks in task_sets.values():
        for task in tasks:
            lookup.setdefault(task_key(task.name), task)

    return {
        source: [lookup[task_key(name)] for name in names]
        for source, names in report.missing.items()
        if names
    }


def _commands_for(task: TaskDefinition) -> list[str]:
    if task.commands:
        return list(task.commands)
    return [task.source.invocation(task.name)]


def render_missing(tasks: list[TaskDefinition], target: TaskSource) -> str:
    """Render Makefile or justfile stanzas for ``tasks``.

    Names are rewritten with ``recipe_name``; delegated commands keep the
    original name.

    Raises:
        ValueError: ``target`` is a structured format (Taskfile, package.json).
    """
    blocks = []
    for task in tasks:
        commands = _commands_for(task)
        description = task.description or task.name
        name = recipe_name(task.name)
        if name != task.name:
            logger.debug(f"Writing task {task.name!r} as {name!r}")
        if target == TaskSource.MAKE:
            lines = [f".PHONY: {name}", f"{name}: ## {description}"]
            lines.extend(f"\t{command}" for command in commands)
        elif target == TaskSource.JUST:
            lines = [f"# {description}", f"{name}:"]
            lines.extend(f"    {command}" for command in commands)
        else:
            raise ValueError(f"{target.value} files are updated structurally, not rendered")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n" if blocks else ""


def apply_missing(path: Path, tasks: list[TaskDefinition]) -> int:
    """Add ``tasks`` to a task file in its own format.

    Returns:
        Number of tasks added
    """
    if not tasks:
        return 0

    target = detect_source(path)

    if target in (TaskSource.MAKE, TaskSource.JUST):
        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        separator = "" if not existing or existing.endswith("\n\n") else (
            "\n" if existing.endswith("\n") else "\n\n"
        )
        path.write_text(existing + separator + render_missing(tasks, target), encoding="utf-8")

    elif target == TaskSource.TASK:
        data = {}
        if path.exists():
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        data.setdefault("version", "3")
        task_map = data.setdefault("tasks", {})
        for task in tasks:
            entry = {"desc": task.description or task.name, "cmds": _commands_for(task)}
            if task.dependencies:
                entry["deps"] = list(task.dependencies)
            task_map[task.name] = entry
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False)

    elif target == TaskSource.NPM:
        data = {}
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
        scripts = data.setdefault("scripts", {})
        for task in tasks:
            scripts[task.name] = " && ".join(_commands_for(task))
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    logger.info(f"Added {len(tasks)} tasks to {path}")
    return len(tasks)


def check_files(
    paths: list[Path],
    ignore: Iterable[str] = DEFAULT_IGNORE,
) -> tuple[ParityReport, dict[str, list[TaskDefinition]]]:
    """Parse task files and compare them, keyed by file name."""
    task_sets = {path.name: parse_task_file(path) for path in paths}
    return check_parity(task_sets, ignore=ignore), task_sets


def generate_parity(
    paths: list[Path],
    ignore: Iterable[str] = DEFAULT_IGNORE,
    dry_run: bool = False,
) -> dict[str, int]:
    """Bring all files to parity by adding what each one lacks.

    Returns:
        File name to number of tasks added (or that would be added)
    """
    report, task_sets = check_files(paths, ignore=ignore)
    additions = missing_definitions(task_sets, report)
    by_name = {path.name: path for path in paths}

    added = {}
    for source, tasks in additions.items():
        if dry_run:
            added[source] = len(tasks)
        else:
            added[source] = apply_missing(by_name[source], tasks)
    return added

