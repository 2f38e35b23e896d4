"""Command-line interface for profilekit using Typer."""

import asyncio
import shlex
import sys
import time
from pathlib import Path
from typing import Optional

import typer
import yaml

from profilekit import __version__
from profilekit.config import ProfileConfig
from profilekit.core.executor import CommandExecutor
from profilekit.docs import check_help, write_docs
from profilekit.fragments import (
    FragmentDependencyError,
    FragmentError,
    FragmentTier,
    new_fragment,
)
from profilekit.metrics import (
    benchmark_startup,
    collect_code_metrics,
    compare_to_baseline,
    EXPORT_FORMATS,
    detect_trend,
    export_snapshots,
    load_baseline,
    save_baseline,
)
from profilekit.parallel import invoke_parallel
from profilekit.session import ProfileSession, ToolUnavailableError, UnknownCommandError
from profilekit.taskfiles import (
    TaskFileError,
    check_files,
    discover_task_files,
    generate_parity,
    parse_task_file,
)
from profilekit.tools import ToolCategory
from profilekit.utils import display
from profilekit.utils.log import setup_logging

app = typer.Typer(
    name="profilekit",
    help="Lazy shell profile fragments and tool wrappers",
    add_completion=False,
)

DB_ACTIONS = ("init", "health", "repair", "statistics", "optimize", "backup")
CODE_SERIES = "code"
STARTUP_SERIES = "startup"


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        display.console.print(f"profilekit version {__version__}")
        raise typer.Exit()


def _load_config() -> ProfileConfig:
    try:
        return ProfileConfig.load_from_file(ProfileConfig().config_path)
    except (ValueError, yaml.YAMLError) as e:
        display.print_error(str(e), title="Configuration Error")
        raise typer.Exit(code=1)


def _load_session(config: ProfileConfig, dry_run: bool = False) -> ProfileSession:
    session = ProfileSession(config, executor=CommandExecutor(dry_run=dry_run))
    try:
        session.load()
    except (FragmentError, FragmentDependencyError) as e:
        display.print_error(str(e), title="Fragment Error")
        raise typer.Exit(code=1)
    return session


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging"
    ),
):
    """profilekit - Lazy shell profile fragments and tool wrappers."""
    level = ProfileConfig().effective_debug_level()
    if debug:
        level = max(level, 2)
    setup_logging(level)

    if ctx.invoked_subcommand is None:
        display.print_banner()
        display.print_info("Run 'profilekit --help' to see the available commands.")


@app.command(name="tools")
def tools_command(
    detect: bool = typer.Option(
        False,
        "--detect",
        help="Run every tool to read its version"
    ),
    category: Optional[str] = typer.Option(
        None,
        "--category",
        "-c",
        help="Only show one category (e.g. container, security)"
    ),
):
    """Show registered tools and whether they are installed.

    Examples:
        profilekit tools
        profilekit tools --category container
        profilekit tools --detect
    """
    config = _load_config()
    session = _load_session(config)
    detector = session.detector

    wanted = None
    if category:
        try:
            wanted = ToolCategory(category.lower())
        except ValueError:
            choices = ", ".join(c.value for c in ToolCategory)
            display.print_error(f"Invalid category: {category}. Choose from: {choices}")
            raise typer.Exit(code=1)

    if detect:
        with display.print_spinner_context("Detecting tools..."):
            detected = asyncio.run(detector.detect_all(force=True))
    else:
        detected = []
        for tool in session.registry.get_all():
            detector.resolve(tool.name)
            detected.append(detector.get(tool.name))

    rows = [
        d.to_dict() for d in detected
        if d is not None and (wanted is None or d.info.category == wanted)
    ]
    rows.sort(key=lambda r: (r["category"], r["name"]))
    display.print_tool_table(rows)

    available = sum(1 for r in rows if r["status"] == "available")
    display.print_info(f"{available}/{len(rows)} tools available")


@app.command(name="which")
def which_command(
    name: str = typer.Argument(..., help="Command or alias"),
):
    """Show what a command or alias runs.

    Examples:
        profilekit which dps
        profilekit which pods
    """
    config = _load_config()
    session = _load_session(config)

    try:
        command = session.resolve_command(name)
    except UnknownCommandError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)

    details = {
        "Command": command.name,
        "Fragment": command.fragment,
        "Tool": command.tool,
        "Template": " ".join(command.template),
    }
    if command.aliases:
        details["Aliases"] = ", ".join(command.aliases)

    try:
        details["Runs"] = " ".join(session.build_argv(command.name))
    except ToolUnavailableError as e:
        display.print_key_values(command.name, details)
        display.print_warning(str(e))
        raise typer.Exit(code=1)

    display.print_key_values(command.name, details)


@app.command(
    name="run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_command(
    name: str = typer.Argument(..., help="Command or alias to run"),
    args: Optional[list[str]] = typer.Argument(None, help="Arguments passed to the tool"),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Print the command instead of running it"
    ),
    timeout: Optional[int] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Seconds before the tool is killed"
    ),
):
    """Run a wrapper command, forwarding arguments to its tool.

    Examples:
        profilekit run dps -a
        profilekit run pods -- -n kube-system
        profilekit run gs --dry-run
    """
    config = _load_config()
    session = _load_session(config, dry_run=dry_run)

    try:
        result = session.invoke(name, args or [], timeout=timeout, capture_output=dry_run)
    except UnknownCommandError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)
    except ToolUnavailableError as e:
        display.print_error(str(e), title="Tool Unavailable")
        raise typer.Exit(code=1)

    if dry_run:
        display.console.print(result.stdout, markup=False, highlight=False)
        return

    if not result.success:
        if result.error_message:
            display.print_error(result.error_message)
        raise typer.Exit(code=result.return_code or 1)


@app.command(name="fragments")
def fragments_command(
    commands: bool = typer.Option(
        False,
        "--commands",
        help="Also list every registered command"
    ),
):
    """Show loaded fragments in load order.

    Examples:
        profilekit fragments
        profilekit fragments --commands
    """
    config = _load_config()
    session = _load_session(config)

    rows = []
    for fragment in session.fragments:
        row = fragment.to_dict()
        row["commands"] = len(fragment.commands)
        row["load_ms"] = session.load_times.get(fragment.name, 0.0) * 1000.0
        rows.append(row)
    display.print_fragment_table(rows)

    if commands:
        display.print_command_table([c.to_dict() for c in session.commands()])


@app.command(name="duplicates")
def duplicates_command():
    """Find command and alias names defined more than once.

    Only one definition of a name survives registration; the others are
    hidden. Exits with status 1 when any duplicates are found.

    Examples:
        profilekit duplicates
    """
    config = _load_config()
    session = _load_session(config)

    duplicates = session.find_duplicates()
    display.print_duplicate_table([d.to_dict() for d in duplicates])
    if duplicates:
        raise typer.Exit(code=1)


@app.command(name="new-fragment")
def new_fragment_command(
    name: str = typer.Argument(
        ...,
        help="Fragment name (lowercase, also the file name)"
    ),
    description: str = typer.Option(
        "",
        "--description", "-d",
        help="One-line description"
    ),
    tier: str = typer.Option(
        FragmentTier.STANDARD.value,
        "--tier", "-t",
        help="core, essential, standard or optional"
    ),
    depends_on: Optional[list[str]] = typer.Option(
        None,
        "--depends-on",
        help="Fragment to load first (repeatable, defaults to core)"
    ),
    tool: str = typer.Option(
        "git",
        "--tool",
        help="Tool the example command wraps"
    ),
    directory: Optional[Path] = typer.Option(
        None,
        "--dir",
        help="Target directory (defaults to the user fragments directory)"
    ),
    force: bool = typer.Option(
        False,
        "--force", "-f",
        help="Overwrite an existing fragment file"
    ),
):
    """Create a new fragment from a template.

    Examples:
        profilekit new-fragment rust --tool cargo
        profilekit new-fragment work -d "Work helpers" --tier optional --depends-on containers
    """
    try:
        tier_value = FragmentTier(tier.lower())
    except ValueError:
        valid = ", ".join(t.value for t in FragmentTier)
        display.print_error(f"Invalid tier: {tier}. Choose from: {valid}")
        raise typer.Exit(code=1)

    config = _load_config()
    try:
        path = new_fragment(
            directory or config.fragments_dir,
            name,
            description=description,
            tier=tier_value,
            depends_on=depends_on or None,
            tool=tool,
            force=force,
        )
    except FragmentError as e:
        display.print_error(str(e), title="Fragment Error")
        raise typer.Exit(code=1)

    display.print_success(f"Created fragment {name}: {path}")


@app.command(name="wrappers")
def wrappers_command(
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Directory for the scripts (defaults to 'bin' next to the config file)"
    ),
    platform: str = typer.Option(
        "windows" if sys.platform.startswith("win") else "posix",
        "--platform",
        help="posix (sh scripts) or windows (.cmd files)"
    ),
    aliases: bool = typer.Option(
        False,
        "--aliases",
        help="Also write a script for every alias"
    ),
    force: bool = typer.Option(
        False,
        "--force", "-f",
        help="Overwrite files not written by profilekit"
    ),
):
    """Generate standalone scripts for every fragment command.

    Each script runs 'profilekit run NAME' with its arguments, so commands
    work without loading a profile.

    Examples:
        profilekit wrappers --output ~/.local/bin
        profilekit wrappers --platform windows --aliases
    """
    from profilekit.wrappers import WRAPPER_PLATFORMS, write_command_wrappers

    if platform not in WRAPPER_PLATFORMS:
        display.print_error(
            f"Invalid platform: {platform}. Choose from: {', '.join(WRAPPER_PLATFORMS)}"
        )
        raise typer.Exit(code=1)

    config = _load_config()
    session = _load_session(config)
    directory = output or config.config_path.parent / "bin"

    written, skipped = write_command_wrappers(
        session.commands(), directory, platform, include_aliases=aliases, force=force
    )
    for name in skipped:
        display.print_warning(f"Skipped {name}")
    display.print_success(f"Wrote {len(written)} wrappers to {directory}")


@app.command(name="tasks")
def tasks_command(
    root: Path = typer.Argument(
        Path("."),
        help="Directory holding the task files"
    ),
    parity: bool = typer.Option(
        False,
        "--parity",
        help="Check that every task file offers the same tasks"
    ),
    generate: bool = typer.Option(
        False,
        "--generate",
        help="Add missing tasks so every file reaches parity"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="With --generate, only report what would be added"
    ),
):
    """Parse Makefile, justfile, Taskfile and package.json tasks.

    Examples:
        profilekit tasks
        profilekit tasks --parity
        profilekit tasks --generate --dry-run
    """
    paths = discover_task_files(root)
    if not paths:
        display.print_info(f"No task files found in {root}")
        return

    try:
        if generate:
            added = generate_parity(paths, dry_run=dry_run)
            if not added:
                display.print_success("Task files already at parity")
                return
            verb = "Would add" if dry_run else "Added"
            for file_name, count in added.items():
                display.print_success(f"{verb} {count} tasks to {file_name}")
            return

        if parity:
            report, _ = check_files(paths)
            display.print_parity_report(report.to_dict())
            if not report.is_complete:
                display.print_warning(f"{report.missing_count} tasks missing across files")
                raise typer.Exit(code=1)
            display.print_success("All task files at parity")
            return

        for path in paths:
            tasks = parse_task_file(path)
            display.print_task_table([t.to_dict() for t in tasks], title=path.name)
    except TaskFileError as e:
        display.print_error(str(e), title="Task File Error")
        raise typer.Exit(code=1)


@app.command(name="cache")
def cache_command(
    clear: bool = typer.Option(
        False,
        "--clear",
        help="Drop all persisted probes"
    ),
    build: bool = typer.Option(
        False,
        "--build",
        help="Probe every registered tool and persist the results"
    ),
    validate: bool = typer.Option(
        False,
        "--validate",
        help="List persisted probes older than the cache ttl"
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Clear without asking"
    ),
):
    """Manage the persisted tool probe cache.

    Examples:
        profilekit cache
        profilekit cache --build
        profilekit cache --clear
    """
    from profilekit.storage import ProbeCache

    config = _load_config()
    cache = ProbeCache(config)

    if clear:
        if not yes and not display.confirm("Drop all cached tool probes?", default=False):
            display.print_info("Cancelled")
            return
        removed = cache.clear()
        display.print_success(f"Removed {removed} cached probes")
        return

    if build:
        session = ProfileSession(config)
        session.load()
        with display.print_spinner_context("Probing tools..."):
            detected = asyncio.run(session.detector.detect_all(force=True))
        display.print_success(f"Cached {len(detected)} tool probes")
        return

    if validate:
        stale = cache.stale_entries()
        if not stale:
            display.print_success("No stale probes")
            return
        for probe in stale:
            display.print_warning(f"{probe.tool}: checked {probe.checked_at.isoformat()}")
        display.print_info("Run 'profilekit cache --build' to refresh")
        raise typer.Exit(code=1)

    rows = [
        {
            "name": probe.tool,
            "command": probe.command,
            "status": probe.status,
            "version": probe.version,
        }
        for probe in cache.entries()
    ]
    display.print_tool_table(rows, title="Cached Probes")


@app.command(name="db")
def db_command(
    action: str = typer.Argument(
        ...,
        help="init, health, repair, statistics, optimize or backup"
    ),
    destination: Optional[Path] = typer.Option(
        None,
        "--dest",
        help="Backup directory"
    ),
):
    """Maintain the profilekit database.

    Examples:
        profilekit db init
        profilekit db health
        profilekit db repair
        profilekit db backup --dest ./backups
    """
    from profilekit.storage import maintenance

    if action not in DB_ACTIONS:
        display.print_error(f"Invalid action: {action}. Choose from: {', '.join(DB_ACTIONS)}")
        raise typer.Exit(code=1)

    config = _load_config()

    if action == "init":
        info = maintenance.initialize_database(config)
        display.print_success(f"Database ready: {info['path']} ({', '.join(info['tables'])})")

    elif action == "health":
        health = maintenance.database_health(config)
        if not health["healthy"]:
            display.print_error(
                "\n".join(health["messages"]) + "\n\nRun 'profilekit db repair' to fix it.",
                title="Integrity Check Failed"
            )
            raise typer.Exit(code=1)
        display.print_success(f"Database healthy: {config.db_path}")

    elif action == "repair":
        result = maintenance.repair_database(config)
        if result["action"] == "none":
            display.print_success(f"Database healthy, nothing to repair: {config.db_path}")
        elif result["action"] == "recreated":
            display.print_warning(
                f"Database recreated; the damaged file was moved to {result['moved_to']}"
            )
        else:
            display.print_success(f"Database {result['action']}: {config.db_path}")

    elif action == "statistics":
        stats = maintenance.database_statistics(config)
        values = {"Path": stats["path"], "Size (bytes)": stats["size_bytes"]}
        values.update(stats["tables"])
        display.print_key_values("Database Statistics", values)

    elif action == "optimize":
        sizes = maintenance.optimize_database(config)
        display.print_success(
            f"Optimized database: {sizes['size_before']} -> {sizes['size_after']} bytes"
        )

    else:
        try:
            target = maintenance.backup_database(destination, config)
        except FileNotFoundError as e:
            display.print_error(str(e))
            raise typer.Exit(code=1)
        display.print_success(f"Backup written to {target}")


@app.command(name="metrics")
def metrics_command(
    snapshot: bool = typer.Option(
        False,
        "--snapshot",
        help="Collect code metrics and store a snapshot"
    ),
    trend: Optional[str] = typer.Option(
        None,
        "--trend",
        help="Metric key to analyse across snapshots"
    ),
    series: str = typer.Option(
        CODE_SERIES,
        "--series",
        help="Snapshot series (code or startup)"
    ),
    limit: int = typer.Option(
        50,
        "--limit",
        "-n",
        help="Number of snapshots considered"
    ),
):
    """Collect code metrics and analyse trends.

    Examples:
        profilekit metrics --snapshot
        profilekit metrics --trend commands
        profilekit metrics --series startup --trend mean
    """
    from profilekit.storage import get_db_session
    from profilekit.storage.snapshots import get_snapshots, metric_series, save_snapshot

    config = _load_config()
    db = get_db_session(config)
    try:
        if snapshot:
            started = time.perf_counter()
            session = _load_session(config)
            values = collect_code_metrics(session)
            save_snapshot(CODE_SERIES, values, time.perf_counter() - started, session=db)
            display.print_key_values("Code Metrics", values)
            display.print_success("Snapshot stored")
            return

        if trend:
            points = metric_series(series, trend, limit=limit, session=db)
            result = detect_trend(points)
            display.print_trend(trend, result.to_dict())
            return

        latest = get_snapshots(series, limit=1, session=db)
        if not latest:
            display.print_info(f"No '{series}' snapshots yet. Run with --snapshot.")
            return
        display.print_key_values(
            f"{series} ({latest[0].created_at:%Y-%m-%d %H:%M})", latest[0].metrics or {}
        )
    finally:
        db.close()


@app.command(name="export-metrics")
def export_metrics_command(
    output: Path = typer.Argument(
        ...,
        help="Output file (.json or .csv)"
    ),
    series: Optional[str] = typer.Option(
        None,
        "--series",
        help="Only export one snapshot series (code or startup)"
    ),
    limit: int = typer.Option(
        1000,
        "--limit",
        "-n",
        help="Maximum number of snapshots exported"
    ),
    fmt: Optional[str] = typer.Option(
        None,
        "--format",
        help="json or csv (defaults to the file extension)"
    ),
):
    """Export stored metric snapshots.

    Examples:
        profilekit export-metrics metrics.json
        profilekit export-metrics startup.csv --series startup
    """
    from profilekit.storage import get_db_session
    from profilekit.storage.snapshots import get_snapshots

    if fmt and fmt.lower() not in EXPORT_FORMATS:
        display.print_error(f"Invalid format: {fmt}. Choose from: {', '.join(EXPORT_FORMATS)}")
        raise typer.Exit(code=1)

    config = _load_config()
    db = get_db_session(config)
    try:
        snapshots = [s.to_dict() for s in get_snapshots(series, limit=limit, session=db)]
    finally:
        db.close()

    try:
        count = export_snapshots(snapshots, output, fmt)
    except ValueError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)
    display.print_success(f"Exported {count} snapshots to {output}")


@app.command(name="benchmark")
def benchmark_command(
    iterations: int = typer.Option(
        5,
        "--iterations",
        "-i",
        help="Number of session loads"
    ),
    update_baseline: bool = typer.Option(
        False,
        "--update-baseline",
        help="Store this run as the new baseline"
    ),
):
    """Benchmark session startup and compare with the baseline.

    Examples:
        profilekit benchmark
        profilekit benchmark --iterations 20 --update-baseline
    """
    from profilekit.storage import get_db_session
    from profilekit.storage.snapshots import save_snapshot

    config = _load_config()

    try:
        with display.print_spinner_context("Benchmarking startup..."):
            result = benchmark_startup(config, iterations=iterations)
    except ValueError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)
    except (FragmentError, FragmentDependencyError) as e:
        display.print_error(str(e), title="Fragment Error")
        raise typer.Exit(code=1)

    summary = result.summary
    display.print_summary_table("Startup (ms)", summary.to_dict(), unit="ms")

    db = get_db_session(config)
    try:
        save_snapshot(STARTUP_SERIES, summary.to_dict(), sum(result.samples) / 1000.0, session=db)
    finally:
        db.close()

    if update_baseline:
        save_baseline(result, config.baseline_path)
        display.print_success(f"Baseline updated: {config.baseline_path}")
        return

    baseline = load_baseline(config.baseline_path)
    if baseline is None:
        display.print_info("No baseline yet. Run with --update-baseline to create one.")
        return

    regressed, ratio = compare_to_baseline(result, baseline, config.regression_threshold)
    if regressed:
        display.print_error(
            f"Startup regressed: {ratio:.2f}x the baseline mean "
            f"(threshold {1 + config.regression_threshold:.2f}x)",
            title="Regression"
        )
        raise typer.Exit(code=1)
    display.print_success(f"Startup at {ratio:.2f}x the baseline mean")


@app.command(name="docs")
def docs_command(
    output: Path = typer.Option(
        Path("docs/fragments"),
        "--output",
        "-o",
        help="Directory for generated Markdown"
    ),
    check: bool = typer.Option(
        False,
        "--check",
        help="Only report missing descriptions"
    ),
):
    """Generate fragment documentation.

    Examples:
        profilekit docs
        profilekit docs --output site/reference
        profilekit docs --check
    """
    config = _load_config()
    session = _load_session(config)

    if check:
        issues = check_help(session.fragments, session.registry)
        if not issues:
            display.print_success("Every fragment, command and tool is documented")
            return
        display.print_help_issues([i.to_dict() for i in issues])
        raise typer.Exit(code=1)

    written = write_docs(session.fragments, output, session.registry)
    display.print_success(f"Wrote {len(written)} files to {output}")


@app.command(name="parallel")
def parallel_command(
    commands: list[str] = typer.Argument(
        ...,
        help="Commands to run, each quoted with its arguments"
    ),
    throttle: Optional[int] = typer.Option(
        None,
        "--throttle",
        help="Maximum concurrent commands"
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Overall seconds to wait"
    ),
):
    """Run several wrapper commands concurrently.

    Examples:
        profilekit parallel "gs" "dps -a" "kgp -A"
        profilekit parallel "scan-fs ." "scan-secrets" --throttle 2
    """
    config = _load_config()
    session = _load_session(config)

    argvs = []
    try:
        for line in commands:
            parts = shlex.split(line)
            if not parts:
                continue
            argvs.append((line, session.build_argv(parts[0], parts[1:])))
    except UnknownCommandError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)
    except ToolUnavailableError as e:
        display.print_error(str(e), title="Tool Unavailable")
        raise typer.Exit(code=1)

    def run(entry):
        result = session.executor.execute_sync(entry[1])
        if not result.success:
            raise RuntimeError(result.error_message or f"exit code {result.return_code}")
        return result

    try:
        results = invoke_parallel(
            run,
            argvs,
            throttle_limit=throttle or config.throttle_limit,
            timeout=timeout,
        )
    except ValueError as e:
        display.print_error(str(e))
        raise typer.Exit(code=1)

    rows = []
    for result in results:
        row = result.to_dict()
        row["item"] = result.item[0]
        rows.append(row)
    display.print_parallel_results(rows)

    if not all(r.success for r in results):
        raise typer.Exit(code=1)


@app.command(name="config")
def config_command(
    show: bool = typer.Option(
        False,
        "--show",
        help="Show current configuration"
    ),
    init: bool = typer.Option(
        False,
        "--init",
        help="Write the current configuration to the config file"
    ),
):
    """Manage profilekit configuration.

    Examples:
        profilekit config --show
        profilekit config --init
    """
    config = _load_config()

    if show:
        values = config.model_dump()
        for key, value in values.items():
            if isinstance(value, Path):
                values[key] = str(value)
        display.print_key_values("Configuration", values)
        return

    if init:
        config.save_to_file()
        display.print_success(f"Configuration written to {config.config_path}")
        return

    display.print_info("Use --show to view configuration or --init to write the config file")


if __name__ == "__main__":
    app()
