"""Scaffolding for new user fragments."""

import json
import logging
import re
from pathlib import Path
from typing import Optional

import yaml

from .models import Fragment, FragmentError, FragmentTier


logger = logging.getLogger(__name__)

FRAGMENT_NAME_RE = re.compile(r"^[a-z][a-z0-9_-]*$")


def render_fragment_template(
    name: str,
    description: str = "",
    tier: FragmentTier = FragmentTier.STANDARD,
    depends_on: Optional[list[str]] = None,
    tool: str = "git",
) -> str:
    """YAML text for a new fragment with one example command.

    Raises:
        FragmentError: ``name`` is not a lowercase identifier.
    """
    if not FRAGMENT_NAME_RE.match(name):
        raise FragmentError(
            f"invalid fragment name '{name}': use lowercase letters, digits, '-' and '_'"
        )

    description = description or f"{name} helpers"
    depends_on = ["core"] if depends_on is None else depends_on

    lines = [
        f"# {name}: profilekit fragment",
        "#",
        "# Commands forward their arguments to the tool; \"{args}\" marks where",
        "# they go, otherwise they are appended. Tools are only probed the first",
        "# time one of their commands runs.",
        f"name: {name}",
        f"description: {json.dumps(description)}",
        f"tier: {FragmentTier(tier).value}",
        f"depends_on: {json.dumps(list(depends_on))}",
        "",
        "# Tools the bundled catalogue does not know yet:",
        "# tools:",
        "#   - name: mytool",
        "#     category: utility",
        "#     alternatives: [othertool]",
        "#     install:",
        "#       linux: apt install mytool",
        "",
        "commands:",
        f"  - name: {name}-example",
        f"    tool: {tool}",
        f"    template: [{tool}, --version, \"{{args}}\"]",
        "    aliases: []",
        f"    description: Example command from the {name} fragment",
        "",
    ]
    return "\n".join(lines)


def new_fragment(
    directory: Path,
    name: str,
    description: str = "",
    tier: FragmentTier = FragmentTier.STANDARD,
    depends_on: Optional[list[str]] = None,
    tool: str = "git",
    force: bool = False,
) -> Path:
    """Write a new fragment file into ``directory``.

    Args:
        directory: User fragments directory
        name: Fragment name, also the file stem
        description: One-line description
        tier: Load tier
        depends_on: Fragments to load first (defaults to ``core``)
        tool: Tool the example command wraps
        force: Overwrite an existing file

    Returns:
        Path of the written file

    Raises:
        FragmentError: Invalid name or the file already exists.
    """
    text = render_fragment_template(name, description, tier, depends_on, tool)
    path = Path(directory) / f"{name}.yaml"
    if path.exists() and not force:
        raise FragmentError("fragment file already exists (use --force to overwrite)", path)

    # The rendered document must load like any other fragment
    Fragment.from_dict(yaml.safe_load(text), source=path)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logger.info(f"Created fragment {name} at {path}")
    return path
