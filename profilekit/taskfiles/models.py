"""Data models for task-runner files."""

from dataclasses import dataclass, field
from enum import Enum


class TaskSource(str, Enum):
    """Task runner a definition came from."""

    MAKE = "make"
    JUST = "just"
    TASK = "task"
    NPM = "npm"

    def invocation(self, name: str) -> str:
        """Shell command that runs task ``name`` with this runner."""
        if self == TaskSource.NPM:
            return f"npm run {name}"
        return f"{self.value} {name}"


@dataclass
class TaskDefinition:
    """One task/target/recipe/script."""

    name: str
    description: str = ""
    commands: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    source: TaskSource = TaskSource.MAKE

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "commands": list(self.commands),
            "dependencies": list(self.dependencies),
            "source": self.source.value,
        }
