# src/codesweep/cli.py
"""
codesweep Command Line Interface (CLI).

The default command runs the cleanup orchestrator over the current directory.
It is a dry run unless ``--apply`` is given; a real run snapshots the project
first and checkpoints every step, so a failure can be undone with
``codesweep rollback``.

Usage
-----
    # Preview every step (no changes, no backup)
    $ codesweep

    # Apply, skipping two steps
    $ codesweep --apply --skip "Manage Assets,Organize Scripts"

    # Undo the last protected run
    $ codesweep rollback

    # Drive the backup store by hand
    $ codesweep backup create
    $ codesweep backup checkpoint "Manual edit" -f package.json
    $ codesweep backup rollback "Manual edit"
    $ codesweep backup info
    $ codesweep backup cleanup --keep
"""

from __future__ import annotations

import json
import signal
import sys
import traceback
from types import FrameType
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel

from codesweep.backup.store import BackupStore
from codesweep.core.contracts import DEFAULT_LOG_FILE, RunOptions
from codesweep.core.errors import BackupError, CodesweepError
from codesweep.pipeline.orchestrator import Orchestrator

# Ensure CODESWEEP_* overrides from .env are visible before settings load
load_dotenv()

app = typer.Typer(
    help="codesweep: checkpointed cleanup of an Expo / TypeScript project.",
    rich_markup_mode="markdown",
)
backup_app = typer.Typer(help="Create, inspect and restore backups directly.")
app.add_typer(backup_app, name="backup")

console = Console()


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _install_signal_handlers(orchestrator: Orchestrator) -> dict[int, Any]:
    """Close the run log and exit 1 on SIGINT/SIGTERM; no rollback is attempted."""
    messages = {
        signal.SIGINT: "Cleanup interrupted by user",
        signal.SIGTERM: "Cleanup terminated",
    }

    def handler(signum: int, _frame: FrameType | None) -> None:
        orchestrator.log.warning(messages.get(signum, "Cleanup interrupted"))
        orchestrator.close()
        sys.exit(1)

    previous: dict[int, Any] = {}
    for sig in messages:
        previous[sig] = signal.signal(sig, handler)
    return previous


def _restore_signal_handlers(previous: dict[int, Any]) -> None:
    for sig, old in previous.items():
        signal.signal(sig, old)


def _load_store() -> BackupStore:
    try:
        return BackupStore.load_latest()
    except BackupError as e:
        console.print(f"[bold red]No backup to work on:[/bold red] {e}")
        raise typer.Exit(code=1) from e


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.callback(invoke_without_command=True)  # type: ignore[misc]
def main(
    ctx: typer.Context,
    apply: Annotated[
        bool,
        typer.Option("--apply", help="Execute the changes (default is a dry run)."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Echo log payloads and show tracebacks."),
    ] = False,
    skip: Annotated[
        str,
        typer.Option("--skip", help="Comma-separated step names to skip."),
    ] = "",
    log: Annotated[
        str,
        typer.Option("--log", help="Path of the JSON-lines run log."),
    ] = DEFAULT_LOG_FILE,
    backup: Annotated[
        bool,
        typer.Option("--backup/--no-backup", help="Snapshot and checkpoint a real run."),
    ] = True,
    git: Annotated[
        bool,
        typer.Option("--git/--no-git", help="Prefer git for backups when in a repository."),
    ] = True,
) -> None:
    """
    Run the cleanup pipeline over the current directory.

    Exit code 0 when every required step succeeded, 1 otherwise.
    """
    if ctx.invoked_subcommand is not None:
        return

    options = RunOptions(
        dry_run=not apply,
        verbose=verbose,
        skip_steps=skip,
        log_file=log,
        use_backup=backup,
        use_git=git,
    )
    mode = "[yellow]DRY RUN[/yellow]" if options.dry_run else "[red]APPLY[/red]"
    console.print(
        Panel.fit(
            f"[bold cyan]codesweep[/bold cyan]\nMode: {mode}   Backup: {options.use_backup}",
            border_style="cyan",
        )
    )

    try:
        orchestrator = Orchestrator(options, console=console)
        previous = _install_signal_handlers(orchestrator)
        try:
            outcome = orchestrator.run()
        finally:
            _restore_signal_handlers(previous)
    except Exception as e:
        console.print(f"\n[bold red]Cleanup Error:[/bold red] {e}")
        if verbose:
            traceback.print_exc()
        raise typer.Exit(code=1) from e

    if not outcome.success:
        raise typer.Exit(code=1)


@app.command()  # type: ignore[misc]
def rollback() -> None:
    """Restore the project to the snapshot of the most recent protected run."""
    store = _load_store()
    try:
        record = store.rollback_to_initial()
    except BackupError as e:
        console.print(f"[bold red]Rollback failed:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]Rolled back to initial state[/bold green] ({store.id})")
    _print_json(record.to_json_dict())


@backup_app.command("create")  # type: ignore[misc]
def backup_create(
    git: Annotated[
        bool,
        typer.Option("--git/--no-git", help="Prefer a git branch snapshot."),
    ] = True,
) -> None:
    """Take a new snapshot of the current directory."""
    try:
        snapshot = BackupStore(use_git=git).create_snapshot()
    except BackupError as e:
        console.print(f"[bold red]Backup failed:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    console.print(
        f"[bold green]Backup created[/bold green] ({snapshot.method}: {snapshot.locator})"
    )
    _print_json(snapshot.to_json_dict())


@backup_app.command("checkpoint")  # type: ignore[misc]
def backup_checkpoint(
    name: Annotated[str, typer.Argument(help="Step name the checkpoint belongs to.")],
    files: Annotated[
        list[str] | None,
        typer.Option("--file", "-f", help="Path to protect (repeatable, filesystem mode)."),
    ] = None,
) -> None:
    """Add a checkpoint to the latest backup."""
    store = _load_store()
    checkpoint = store.create_checkpoint(name, files or [])
    if not checkpoint.success:
        console.print(f"[bold red]Checkpoint failed:[/bold red] {checkpoint.error}")
        raise typer.Exit(code=1)
    console.print(f"[bold green]Checkpoint created for:[/bold green] {name}")
    _print_json(checkpoint.to_json_dict())


@backup_app.command("rollback")  # type: ignore[misc]
def backup_rollback(
    name: Annotated[str, typer.Argument(help="Checkpoint name, or 'initial'.")],
) -> None:
    """Roll back to a named checkpoint (or to the initial snapshot)."""
    store = _load_store()
    try:
        if name == "initial":
            record = store.rollback_to_initial()
        else:
            record = store.rollback_to_checkpoint(name)
    except CodesweepError as e:
        console.print(f"[bold red]Rollback failed:[/bold red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]Rolled back to:[/bold green] {name}")
    _print_json(record.to_json_dict())


@backup_app.command("info")  # type: ignore[misc]
def backup_info() -> None:
    """Show the latest backup."""
    store = _load_store()
    console.print("[bold]Backup information[/bold]")
    _print_json(store.info())


@backup_app.command("cleanup")  # type: ignore[misc]
def backup_cleanup(
    keep: Annotated[
        bool,
        typer.Option("--keep", help="Write the manifest but keep the backup itself."),
    ] = False,
) -> None:
    """Remove the latest backup and write its final manifest."""
    store = _load_store()
    manifest_path = store.cleanup(keep_backup=keep)
    console.print(f"[bold green]Backup cleaned up[/bold green]; manifest: {manifest_path}")


if __name__ == "__main__":
    app()
