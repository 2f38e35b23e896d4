"""Rich console display helpers for profilekit.

Provides formatted output using Rich library for tool reports, command
tables, task parity and metric summaries.
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from profilekit import __version__


console = Console()


STATUS_STYLES = {
    "available": ("✓", "green"),
    "not_found": ("✗", "red"),
    "error": ("⚠", "yellow"),
    "unknown": ("?", "dim"),
}

TREND_COLORS = {
    "improving": "green",
    "degrading": "red",
    "stable": "cyan",
    "insufficient_data": "dim",
}


def print_banner() -> None:
    """Shown when profilekit runs without a command."""
    console.print(
        Panel.fit(
            "[bold cyan]profilekit[/bold cyan]\n"
            f"Lazy shell profile fragments and tool wrappers (v{__version__})",
            border_style="cyan",
        )
    )


def print_error(message: str, title: str = "Error") -> None:
    """Show ``message`` in a red panel titled ``title``."""
    console.print(
        Panel(
            f"[red]{message}[/red]",
            title=f"[bold red]{title}[/bold red]",
            border_style="red"
        )
    )


def print_success(message: str) -> None:
    """Green check line."""
    console.print(f"[green]✓[/green] {message}")


def print_warning(message: str) -> None:
    """Yellow warning line."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    """Blue info line."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_tool_table(tools: list[dict], title: str = "Tools") -> None:
    """Display tools with their probe status.

    Args:
        tools: Dicts with keys name, category, status, version, command
        title: Table title
    """
    if not tools:
        print_info("No tools registered.")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Tool", style="bold")
    table.add_column("Category", style="dim")
    table.add_column("Command")
    table.add_column("Status", width=16)
    table.add_column("Version", style="dim")

    for tool in tools:
        status = tool.get("status", "unknown")
        icon, color = STATUS_STYLES.get(status, ("?", "white"))
        table.add_row(
            tool.get("name", ""),
            tool.get("category", ""),
            tool.get("command", ""),
            f"[{color}]{icon} {status.replace('_', ' ')}[/{color}]",
            tool.get("version", "") or "",
        )

    console.print(table)


def print_command_table(commands: list[dict], title: str = "Commands") -> None:
    """Display registered wrapper commands.

    Args:
        commands: Dicts with keys name, aliases, tool, fragment, description
        title: Table title
    """
    if not commands:
        print_info("No commands registered.")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Command", style="cyan")
    table.add_column("Aliases")
    table.add_column("Tool", style="bold")
    table.add_column("Fragment", style="dim")
    table.add_column("Description")

    for command in commands:
        table.add_row(
            command.get("name", ""),
            ", ".join(command.get("aliases", [])),
            command.get("tool", ""),
            command.get("fragment", ""),
            command.get("description", ""),
        )

    console.print(table)


def print_duplicate_table(duplicates: list[dict]) -> None:
    """Display names defined by more than one command or alias."""
    if not duplicates:
        print_success("No duplicate command or alias names.")
        return

    table = Table(title="Duplicate Names", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("Defined by")
    table.add_column("Runs", style="bold")

    for duplicate in duplicates:
        defined_by = [
            f"{d['kind']} {d['command']} ({d['fragment']})"
            for d in duplicate.get("definitions", [])
        ]
        table.add_row(
            duplicate.get("name", ""),
            "\n".join(defined_by),
            duplicate.get("resolves_to", ""),
        )

    console.print(table)


def print_fragment_table(fragments: list[dict]) -> None:
    """Display fragments in load order."""
    table = Table(title="Fragments", show_header=True, header_style="bold cyan")
    table.add_column("#", width=3, justify="right")
    table.add_column("Fragment", style="bold")
    table.add_column("Tier")
    table.add_column("Depends On", style="dim")
    table.add_column("Commands", justify="right")
    table.add_column("Load (ms)", justify="right")

    for i, fragment in enumerate(fragments, 1):
        load_ms = fragment.get("load_ms")
        table.add_row(
            str(i),
            fragment.get("name", ""),
            fragment.get("tier", ""),
            ", ".join(fragment.get("depends_on", [])),
            str(fragment.get("commands", 0)),
            f"{load_ms:.2f}" if load_ms is not None else "-",
        )

    console.print(table)


def print_parity_report(report_data: dict) -> None:
    """Display a task parity report.

    Args:
        report_data: ParityReport.to_dict() output
    """
    sources = report_data.get("sources", [])
    missing = report_data.get("missing", {})

    table = Table(title="Task Parity", show_header=True, header_style="bold cyan")
    table.add_column("Task", style="bold")
    for source in sources:
        table.add_column(source, justify="center")

    for name in report_data.get("tasks", []):
        row = [name]
        for source in sources:
            if name in missing.get(source, []):
                row.append("[red]✗[/red]")
            else:
                row.append("[green]✓[/green]")
        table.add_row(*row)

    console.print(table)


def print_task_table(tasks: list[dict], title: str = "Tasks") -> None:
    """Display parsed task-runner tasks.

    Args:
        tasks: TaskDefinition.to_dict() outputs
        title: Table title
    """
    if not tasks:
        print_info("No tasks found.")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Task", style="bold")
    table.add_column("Runner", style="dim")
    table.add_column("Depends On", style="dim")
    table.add_column("Description")

    for task in tasks:
        table.add_row(
            task.get("name", ""),
            task.get("source", ""),
            ", ".join(task.get("dependencies", [])),
            task.get("description", ""),
        )

    console.print(table)


def print_parallel_results(results: list[dict]) -> None:
    """Display the outcome of a parallel run."""
    table = Table(title="Parallel Run", show_header=True, header_style="bold cyan")
    table.add_column("#", width=3, justify="right")
    table.add_column("Command", style="bold")
    table.add_column("Result", width=12)
    table.add_column("Time (s)", justify="right")

    for result in results:
        if result.get("timed_out"):
            outcome = "[yellow]timed out[/yellow]"
        elif result.get("success"):
            outcome = "[green]✓ ok[/green]"
        else:
            outcome = f"[red]✗ {result.get('error') or 'failed'}[/red]"
        table.add_row(
            str(result.get("index", 0) + 1),
            str(result.get("item", "")),
            outcome,
            f"{result.get('duration', 0.0):.2f}",
        )

    console.print(table)


def print_help_issues(issues: list[dict]) -> None:
    """Display documentation gaps."""
    table = Table(title="Help Coverage", show_header=True, header_style="bold cyan")
    table.add_column("Fragment", style="dim")
    table.add_column("Kind")
    table.add_column("Name", style="bold")
    table.add_column("Problem", style="yellow")

    for issue in issues:
        table.add_row(
            issue.get("fragment", ""),
            issue.get("kind", ""),
            issue.get("name", ""),
            issue.get("message", ""),
        )

    console.print(table)


def print_summary_table(title: str, summary: dict, unit: str = "") -> None:
    """Display a metric summary as a two-column table."""
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Statistic", style="bold")
    table.add_column("Value", justify="right")

    for key, value in summary.items():
        if isinstance(value, float):
            table.add_row(key, f"{value:.3f}{unit}")
        else:
            table.add_row(key, str(value))

    console.print(table)


def print_trend(metric: str, trend: dict) -> None:
    """Display a detected trend."""
    direction = trend.get("direction", "insufficient_data")
    color = TREND_COLORS.get(direction, "white")
    console.print(
        f"[bold]{metric}[/bold]: [{color}]{direction.replace('_', ' ')}[/{color}] "
        f"(slope {trend.get('slope', 0.0):.4f}, change {trend.get('change_percent', 0.0):+.1f}%)"
    )


def print_key_values(title: str, values: dict) -> None:
    """Display key/value pairs inside a panel."""
    lines = [f"[bold]{key}:[/bold] [cyan]{value}[/cyan]" for key, value in values.items()]
    console.print(Panel("\n".join(lines), title=f"[bold]{title}[/bold]", border_style="blue"))


def confirm(message: str, default: bool = True) -> bool:
    """Ask a yes/no question; Enter picks ``default``."""
    from rich.prompt import Confirm
    return Confirm.ask(message, default=default)


def print_spinner_context(message: str):
    """``with`` block showing ``message`` beside a spinner until it exits."""
    return console.status(message, spinner="dots")
