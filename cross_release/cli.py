"""Thin CLI wrapper for cross_release.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from cross_release import __version__
from cross_release.config import Settings, get_settings, print_settings_json
from cross_release.errors import ConfigurationError, CrossReleaseError
from cross_release.matrix.schema import MatrixSchema
from cross_release.types import Artifact

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="cross-release",
    help="cross-release - build and package a Rust tool for a matrix of targets",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"cross-release version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """cross-release - build and package a Rust tool for a matrix of targets."""
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print("[red]Invalid XREL_* configuration:[/red]")
        console.print(str(e), markup=False, highlight=False)
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    configure_logging("DEBUG" if verbose else settings.log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print_json(print_settings_json(settings))
    else:
        target_dir_display = (
            str(settings.target_dir) if settings.target_dir else "(<manifest dir>/target)"
        )
        timeout_display = (
            str(settings.job_timeout) if settings.job_timeout else "(no limit)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Cache directory:     {settings.cache_dir}")
        console.print(f"  Dist directory:      {settings.dist_dir}")
        console.print(f"  Log directory:       {settings.log_dir}")
        console.print(f"  Target directory:    {target_dir_display}")
        console.print(f"  Cargo home:          {settings.cargo_home}")
        console.print(f"  Database URL:        {settings.db_url}")
        console.print()
        console.print("[bold]Build:[/bold]")
        console.print(f"  Tool name:           {settings.tool_name}")
        console.print(f"  Builder:             {settings.builder}")
        console.print(f"  Cross:               {settings.cross_git}@{settings.cross_rev}")
        console.print(f"  Update toolchain:    {settings.update_toolchain}")
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Concurrency:[/bold]")
        console.print(f"  Max parallel jobs:   {settings.max_parallel_jobs}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Job timeout:         {timeout_display}")
        console.print(f"  Provision timeout:   {settings.provision_timeout}")


def _resolve_matrix(
    matrix_file: Path | None,
    targets: list[str] | None,
    host_os: str,
) -> MatrixSchema:
    """Select the matrix from a file, --target flags, or the built-in default."""
    from cross_release.matrix.defaults import default_matrix
    from cross_release.matrix.io import load_matrix, matrix_from_triples

    if matrix_file is not None:
        matrix = load_matrix(matrix_file)
        if targets:
            unknown = sorted(set(targets) - set(matrix.triples))
            if unknown:
                raise ConfigurationError(
                    f"Target(s) not in {matrix_file}: {', '.join(unknown)}"
                )
            matrix = MatrixSchema(
                targets=[t for t in matrix.targets if t.triple in targets]
            )
        return matrix
    if targets:
        return matrix_from_triples(targets, host_os=host_os)
    return default_matrix()


def _filter_this_host(matrix: MatrixSchema, settings: Settings) -> MatrixSchema:
    from cross_release.toolchain.host import detect_host_os

    host = detect_host_os(settings.host_os)
    kept = [t for t in matrix.targets if t.os_family == host]
    if not kept:
        raise ConfigurationError(f"No targets in the matrix build on a {host.value} host")
    return MatrixSchema(targets=kept)


def _log_handoff(artifact: Artifact) -> None:
    logger.info("Artifact ready: %s -> %s", artifact.name, artifact.path)


@app.command()
def run(
    manifest: Annotated[
        Path,
        typer.Argument(help="Path to the project's Cargo.toml"),
    ] = Path("Cargo.toml"),
    matrix_file: Annotated[
        Path | None,
        typer.Option("--matrix", "-m", help="Matrix file (YAML or JSON)"),
    ] = None,
    targets: Annotated[
        list[str] | None,
        typer.Option("--target", "-t", help="Target triple (can be repeated)"),
    ] = None,
    host_os: Annotated[
        str,
        typer.Option("--host-os", help="Host label for --target triples"),
    ] = "ubuntu-latest",
    this_host: Annotated[
        bool,
        typer.Option("--this-host", help="Only build targets this host can build"),
    ] = False,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Disable the dependency cache for all targets"),
    ] = False,
    jobs: Annotated[
        int | None,
        typer.Option("--jobs", "-j", min=1, help="Maximum parallel jobs"),
    ] = None,
    timeout: Annotated[
        int | None,
        typer.Option("--timeout", min=1, help="Per-job build timeout in seconds"),
    ] = None,
    tool_name: Annotated[
        str | None,
        typer.Option("--tool-name", help="Binary name produced by the build"),
    ] = None,
    dist_dir: Annotated[
        Path | None,
        typer.Option("--dist-dir", help="Directory for packaged binaries"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build the tool for every target in the matrix.

    Exits 0 only if every target succeeded, 1 if any target failed and 2 if
    the matrix or manifest is invalid.
    """
    from cross_release.builds.orchestrator import run_matrix
    from cross_release.db import open_database

    overrides: dict[str, Any] = {}
    if jobs is not None:
        overrides["max_parallel_jobs"] = jobs
    if timeout is not None:
        overrides["job_timeout"] = timeout
    if tool_name is not None:
        overrides["tool_name"] = tool_name
    if dist_dir is not None:
        overrides["dist_dir"] = dist_dir
    settings = get_settings().model_copy(update=overrides)

    try:
        matrix = _resolve_matrix(matrix_file, targets, host_os)
        if this_host:
            matrix = _filter_this_host(matrix, settings)
        if no_cache:
            matrix = MatrixSchema(
                targets=[t.model_copy(update={"use_cache": False}) for t in matrix.targets]
            )

        if not manifest.is_file():
            raise ConfigurationError(f"Manifest not found: {manifest}")
        factory = open_database(settings.db_url)

        if not json_output:
            console.print(
                f"[blue]Building {settings.tool_name} for "
                f"{len(matrix.targets)} target(s)...[/blue]"
            )
        result = run_matrix(
            matrix,
            manifest,
            settings=settings,
            upload=_log_handoff,
            session_factory=factory,
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None

    if json_output:
        console.print_json(json.dumps(result.to_dict()))
    else:
        console.print()
        console.print(f"[bold]Run {result.run_id} Results:[/bold]")
        for r in result.results.values():
            if r.succeeded:
                hit_marker = " (cache hit)" if r.cache_hit else ""
                console.print(f"  [green]✓ {r.triple}{hit_marker}[/green]")
                if r.artifact:
                    console.print(f"      {r.artifact.name} -> {r.artifact.path}")
            else:
                console.print(f"  [red]✗ {r.triple} ({r.error_code})[/red]")
                if r.diagnostic:
                    for line in r.diagnostic.splitlines():
                        console.print(f"      {line}", markup=False, highlight=False)
        console.print()
        succeeded = len(result.results) - len(result.failed)
        console.print(f"  Succeeded: {succeeded}/{len(result.results)}")

    if not result.succeeded:
        raise typer.Exit(code=EXIT_FAILED)


matrix_app = typer.Typer(help="Inspect target matrices")
app.add_typer(matrix_app, name="matrix")


@matrix_app.command("show")
def matrix_show(
    matrix_file: Annotated[
        Path | None,
        typer.Option("--matrix", "-m", help="Matrix file (default: built-in matrix)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the targets of a matrix."""
    from cross_release.matrix.io import matrix_to_json_string

    try:
        matrix = _resolve_matrix(matrix_file, None, "ubuntu-latest")
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None

    if json_output:
        console.print_json(matrix_to_json_string(matrix))
        return

    console.print(f"[bold]{len(matrix.targets)} target(s):[/bold]")
    for t in matrix.targets:
        cache_marker = "" if t.use_cache else " [yellow](no cache)[/yellow]"
        console.print(f"  [green]{t.triple}[/green] on {t.host_os}{cache_marker}")


@matrix_app.command("validate")
def matrix_validate(
    path: Annotated[Path, typer.Argument(help="Matrix file to validate")],
) -> None:
    """Validate a matrix file."""
    from cross_release.matrix.io import load_matrix

    try:
        matrix = load_matrix(path)
    except ConfigurationError as e:
        console.print(f"[red]Invalid: {e}[/red]")
        raise typer.Exit(code=EXIT_CONFIG_ERROR) from None
    console.print(f"[green]Valid matrix with {len(matrix.targets)} target(s)[/green]")


toolchain_app = typer.Typer(help="Manage the host Rust toolchain")
app.add_typer(toolchain_app, name="toolchain")


@toolchain_app.command("ensure")
def toolchain_ensure(
    triple: Annotated[str, typer.Argument(help="Target triple")],
    host_os: Annotated[
        str,
        typer.Option("--host-os", help="Host label the target requires"),
    ] = "ubuntu-latest",
) -> None:
    """Install the toolchain components needed for a target."""
    from cross_release.toolchain.provisioner import ToolchainProvisioner

    provisioner = ToolchainProvisioner(get_settings())
    try:
        provisioner.ensure(triple, host_os)
    except CrossReleaseError as e:
        console.print(f"[red]{e.code}: {e}[/red]")
        raise typer.Exit(code=EXIT_FAILED) from None
    console.print(
        f"[green]Toolchain ready for {triple} "
        f"(builder: {provisioner.select_builder(triple)})[/green]"
    )


cache_app = typer.Typer(help="Inspect the dependency cache")
app.add_typer(cache_app, name="cache")


@cache_app.command("list")
def cache_list(
    triple: Annotated[
        str | None,
        typer.Option("--triple", "-t", help="Filter by target triple"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List dependency cache entries."""
    from cross_release.cache.store import DependencyCache

    entries = DependencyCache(get_settings()).list_entries(triple=triple)

    if json_output:
        output = [
            {
                "key": e.key,
                "triple": e.triple,
                "path": str(e.path),
                "size_bytes": e.size_bytes,
                "sha256": e.sha256,
                "created_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in entries
        ]
        console.print_json(json.dumps(output))
        return

    if not entries:
        console.print("[yellow]No cache entries found[/yellow]")
        return
    console.print(f"[bold]Found {len(entries)} cache entr{'y' if len(entries) == 1 else 'ies'}:[/bold]")
    for e in entries:
        console.print(f"  [green]{e.triple}[/green] {e.key[:23]}  {e.size_bytes} bytes")


runs_app = typer.Typer(help="Inspect past runs")
app.add_typer(runs_app, name="runs")


@runs_app.command("list")
def runs_list(
    run_id: Annotated[
        str | None,
        typer.Option("--run", "-r", help="Filter by run ID"),
    ] = None,
    triple: Annotated[
        str | None,
        typer.Option("--triple", "-t", help="Filter by target triple"),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="Filter by status (succeeded/failed)"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 100,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List recorded job results."""
    from cross_release.builds.orchestrator import list_job_records
    from cross_release.db import open_database
    from cross_release.types import JobStatus

    status_filter: JobStatus | None = None
    if status:
        try:
            status_filter = JobStatus(status)
        except ValueError:
            console.print(f"[red]Invalid status: {status}[/red]")
            raise typer.Exit(code=EXIT_FAILED) from None

    factory = open_database(get_settings().db_url)

    with factory() as session:
        records = list_job_records(
            session,
            run_id=run_id,
            triple=triple,
            status=status_filter,
            limit=limit,
        )

    if json_output:
        output = [
            {
                "id": r.id,
                "run_id": r.run_id,
                "triple": r.triple,
                "status": r.status,
                "error_type": r.error_type,
                "artifact_name": r.artifact_name,
                "artifact_path": r.artifact_path,
                "cache_hit": r.cache_hit,
                "finished_at": r.finished_at.isoformat() if r.finished_at else None,
            }
            for r in records
        ]
        console.print_json(json.dumps(output))
        return

    if not records:
        console.print("[yellow]No job records found[/yellow]")
        return
    console.print(f"[bold]Found {len(records)} job record(s):[/bold]")
    for r in records:
        color = "green" if r.is_succeeded() else "red"
        detail = r.artifact_name if r.is_succeeded() else r.error_type
        console.print(f"  {r.run_id}  [{color}]{r.status:<9}[/{color}] {r.triple}  {detail}")


__all__ = ["app"]
