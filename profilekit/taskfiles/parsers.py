"""Line-scanning parsers for Makefile, justfile, Taskfile and package.json."""

import json
import logging
import re
from pathlib import Path
from typing import Union

import yaml

from profilekit.taskfiles.models import TaskDefinition, TaskSource


logger = logging.getLogger(__name__)

MAKE_TARGET_RE = re.compile(r"^([A-Za-z0-9_][A-Za-z0-9_.\-/]*)\s*:(?![:=])\s*(.*)$")
JUST_RECIPE_RE = re.compile(r"^(@)?([A-Za-z_][A-Za-z0-9_-]*)((?:\s+[^:]*?)?)\s*:(?!=)\s*(.*)$")
JUST_ASSIGNMENT_RE = re.compile(r"^(?:export\s+)?[A-Za-z_][A-Za-z0-9_-]*\s*:=")
JUST_KEYWORDS = ("set", "alias", "export", "import", "mod")
IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*")

TASK_FILE_NAMES = (
    "Makefile",
    "GNUmakefile",
    "makefile",
    "justfile",
    "Justfile",
    ".justfile",
    "Taskfile.yml",
    "Taskfile.yaml",
    "taskfile.yml",
    "taskfile.yaml",
    "package.json",
)


class TaskFileError(Exception):
    """Raised when a task file cannot be parsed."""


def _read(source: Union[str, Path]) -> str:
    if isinstance(source, Path):
        return source.read_text(encoding="utf-8")
    return source


def parse_makefile(source: Union[str, Path]) -> list[TaskDefinition]:
    """Parse make targets.

    ``target: deps ## description`` lines start a target; tab-indented lines
    that follow are its recipe. Dot targets (``.PHONY``) and variable
    assignments are skipped.

    Args:
        source: File path or file contents
    """
    tasks: list[TaskDefinition] = []
    seen: dict[str, TaskDefinition] = {}
    current = None

    for line in _read(source).splitlines():
        if line.startswith("\t"):
            if current is not None and line.strip():
                current.commands.append(line.strip())
            continue

        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        match = MAKE_TARGET_RE.match(stripped)
        if not match:
            current = None
            continue

        name, rest = match.group(1), match.group(2)
        prerequisites, _, description = rest.partition("##")
        dependencies = [d for d in prerequisites.split() if d != "|"]

        if name in seen:
            # Extra prerequisites for an existing target
            current = seen[name]
            current.dependencies.extend(d for d in dependencies if d not in current.dependencies)
            if description.strip() and not current.description:
                current.description = description.strip()
            continue

        current = TaskDefinition(
            name=name,
            description=description.strip(),
            dependencies=dependencies,
            source=TaskSource.MAKE,
        )
        seen[name] = current
        tasks.append(current)

    return tasks


def parse_justfile(source: Union[str, Path]) -> list[TaskDefinition]:
    """Parse just recipes.

    A ``# comment`` line directly above a recipe header is its description.
    Settings, aliases, exports, assignments and ``[attribute]`` lines are
    skipped, as are private recipes (leading underscore or ``[private]``).

    Args:
        source: File path or file contents
    """
    tasks: list[TaskDefinition] = []
    current = None
    pending_comment = ""
    pending_private = False
    expect_header = True
    indented_body = False

    for line in _read(source).splitlines():
        stripped = line.strip()

        if not stripped:
            pending_comment = ""
            expect_header = True
            continue

        if line[0] in " \t":
            if current is not None:
                current.commands.append(stripped)
                indented_body = True
            continue

        if stripped.startswith("#"):
            pending_comment = stripped.lstrip("#").strip()
            expect_header = True
            current = None
            continue

        if stripped.startswith("["):
            if "private" in stripped:
                pending_private = True
            expect_header = True
            continue

        first_word = stripped.split()[0]
        if first_word in JUST_KEYWORDS or JUST_ASSIGNMENT_RE.match(stripped):
            pending_comment = ""
            pending_private = False
            current = None
            continue

        # Unindented bodies only continue a recipe whose body started flush
        flat_body = current is not None and not expect_header and not indented_body
        match = JUST_RECIPE_RE.match(stripped)
        if match and not flat_body:
            name = match.group(2)
            dependencies = IDENTIFIER_RE.findall(match.group(4).split("#")[0])
            if name.startswith("_") or pending_private:
                current = None
            else:
                current = TaskDefinition(
                    name=name,
                    description=pending_comment,
                    dependencies=dependencies,
                    source=TaskSource.JUST,
                )
                tasks.append(current)
            pending_comment = ""
            pending_private = False
            expect_header = False
            indented_body = False
            continue

        if flat_body:
            current.commands.append(stripped)

    return tasks


def _taskfile_command(entry) -> str:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        if "cmd" in entry:
            return str(entry["cmd"])
        if "task" in entry:
            return f"task {entry['task']}"
    return str(entry)


def parse_taskfile(source: Union[str, Path]) -> list[TaskDefinition]:
    """Parse a Taskfile (go-task) YAML document.

    Args:
        source: File path or file contents

    Raises:
        TaskFileError: Invalid YAML or no ``tasks`` mapping.
    """
    try:
        data = yaml.safe_load(_read(source)) or {}
    except yaml.YAMLError as e:
        raise TaskFileError(f"Invalid Taskfile YAML: {e}")

    if not isinstance(data, dict):
        raise TaskFileError("Taskfile must be a mapping")
    task_map = data.get("tasks") or {}
    if not isinstance(task_map, dict):
        raise TaskFileError("Taskfile 'tasks' must be a mapping")

    tasks = []
    for name, body in task_map.items():
        name = str(name)
        if isinstance(body, str):
            tasks.append(TaskDefinition(name=name, commands=[body], source=TaskSource.TASK))
            continue
        if isinstance(body, list):
            tasks.append(TaskDefinition(
                name=name,
                commands=[_taskfile_command(c) for c in body],
                source=TaskSource.TASK,
            ))
            continue
        if not isinstance(body, dict):
            tasks.append(TaskDefinition(name=name, source=TaskSource.TASK))
            continue
        if body.get("internal"):
            continue

        description = body.get("desc") or ""
        if not description and body.get("summary"):
            description = str(body["summary"]).strip().splitlines()[0]

        commands = [_taskfile_command(c) for c in body.get("cmds") or []]
        if body.get("cmd"):
            commands.insert(0, _taskfile_command(body["cmd"]))

        dependencies = []
        for dep in body.get("deps") or []:
            if isinstance(dep, dict):
                dep = dep.get("task", "")
            if dep:
                dependencies.append(str(dep))

        tasks.append(TaskDefinition(
            name=name,
            description=str(description).strip(),
            commands=commands,
            dependencies=dependencies,
            source=TaskSource.TASK,
        ))

    return tasks


def parse_package_json(source: Union[str, Path]) -> list[TaskDefinition]:
    """Parse the ``scripts`` of a package.json.

    Raises:
        TaskFileError: Invalid JSON.
    """
    try:
        data = json.loads(_read(source))
    except json.JSONDecodeError as e:
        raise TaskFileError(f"Invalid package.json: {e}")

    if not isinstance(data, dict):
        raise TaskFileError("package.json must be an object")
    scripts = data.get("scripts") or {}
    if not isinstance(scripts, dict):
        raise TaskFileError("package.json 'scripts' must be an object")

    return [
        TaskDefinition(name=name, commands=[str(command)], source=TaskSource.NPM)
        for name, command in scripts.items()
    ]


def detect_source(path: Path) -> TaskSource:
    """Which runner a file belongs to, by file name.

    Raises:
        TaskFileError: Unrecognised file name.
    """
    name = path.name
    lower = name.lower()
    if lower in ("makefile", "gnumakefile") or path.suffix == ".mk":
        return TaskSource.MAKE
    if lower in ("justfile", ".justfile"):
        return TaskSource.JUST
    if lower.startswith("taskfile") and path.suffix in (".yml", ".yaml"):
        return TaskSource.TASK
    if lower == "package.json":
        return TaskSource.NPM
    raise TaskFileError(f"Unrecognised task file: {name}")


PARSERS = {
    TaskSource.MAKE: parse_makefile,
    TaskSource.JUST: parse_justfile,
    TaskSource.TASK: parse_taskfile,
    TaskSource.NPM: parse_package_json,
}


def parse_task_file(path: Path) -> list[TaskDefinition]:
    """Parse any supported task file by its name."""
    source = detect_source(path)
    tasks = PARSERS[source](path)
    logger.debug(f"Parsed {len(tasks)} tasks from {path}")
    return tasks


def discover_task_files(root: Path) -> list[Path]:
    """Task files present directly in ``root``, one per runner."""
    found = []
    runners = set()
    for name in TASK_FILE_NAMES:
        path = root / name
        if not path.is_file():
            continue
        source = detect_source(path)
        if source in runners:
            continue
        runners.add(source)
        found.append(path)
    return found
