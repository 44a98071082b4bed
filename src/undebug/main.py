"""undebug CLI - strip a debugging module's imports and calls from JS/TS sources."""
import difflib
import sys
from pathlib import Path
from typing import Dict, List, Optional

import click
import typer
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.syntax import Syntax
from rich.table import Table

from undebug.analyzer.parser import LanguageParser
from undebug.config import Config, __version__, get_config
from undebug.reaper.backup import BackupStore
from undebug.reaper.debug_remover import DebugRemover, TransformResult
from undebug.utils.logger import configure_logging
from undebug.utils.safe_console import SafeConsole

app = typer.Typer(
    name="undebug",
    help="Remove every import and use of a debugging module from JavaScript/TypeScript sources",
    add_completion=False
)
console = SafeConsole()
err_console = SafeConsole(stderr=True)

EXCLUDED_DIRS = {
    'node_modules', '.git', 'dist', 'build', 'coverage',
    'venv', '.venv', 'env', '.virtualenv', '__pycache__',
}


def discover_files(paths: List[Path], backup_dir: Path) -> List[Path]:
    """Collect supported source files under the given paths.

    Explicitly named files are taken as they are; directories are walked,
    skipping dependency, build and backup directories.

    Args:
        paths: Files and directories given on the command line
        backup_dir: Backup directory to skip

    Returns:
        Sorted, de-duplicated list of files
    """
    excluded = EXCLUDED_DIRS | {backup_dir.name}
    found = set()

    for path in paths:
        if path.is_file():
            found.add(path)
            continue

        for file_path in path.rglob('*'):
            if not file_path.is_file():
                continue
            relative_parts = file_path.relative_to(path).parts
            if any(part in excluded for part in relative_parts):
                continue
            if LanguageParser.language_for(file_path):
                found.add(file_path)

    return sorted(found)


def _load_config(target: Optional[str]) -> Config:
    try:
        return Config(target_module=target) if target is not None else get_config()
    except ValueError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)


def _print_diff(file_path: Path, before: str, after: str):
    diff = "".join(difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{file_path}",
        tofile=f"b/{file_path}",
    ))
    if diff:
        console.print(Syntax(diff, "diff", theme="ansi_dark", background_color="default"))


def _version_callback(value: bool):
    if value:
        console.print(f"undebug {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """undebug - remove a debugging module from JavaScript/TypeScript sources."""
    configure_logging(verbose, console=err_console)


@app.command()
def strip(
    paths: List[Path] = typer.Argument(..., help="Files or directories to transform"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Module to remove (default: debug)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would change without writing"),
    check: bool = typer.Option(False, "--check", help="Write nothing; exit 1 if any file would change"),
    show_diff: bool = typer.Option(False, "--diff", help="Print unified diffs of the changes"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not keep copies of rewritten files"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
):
    """Strip the target module's imports, requires and uses in place."""
    config = _load_config(target)

    for path in paths:
        if not path.exists():
            err_console.print(f"[bold red]Error:[/bold red] Path does not exist: {escape(str(path))}")
            raise typer.Exit(1)

    backup_dir = Path(config.backup_path)
    files = discover_files(paths, backup_dir)
    if not files:
        console.print("[yellow]No JavaScript/TypeScript files found.[/yellow]")
        return

    remover = DebugRemover(config.target_module)
    originals: Dict[Path, str] = {}
    results: Dict[Path, TransformResult] = {}
    unreadable: List[Path] = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=err_console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Removing '{escape(config.target_module)}'...", total=len(files))
        for file_path in files:
            try:
                originals[file_path] = file_path.read_text(encoding='utf-8')
            except (OSError, UnicodeDecodeError) as e:
                err_console.print(f"[yellow]Skipping {escape(str(file_path))}: {escape(str(e))}[/yellow]")
                unreadable.append(file_path)
            else:
                results.update(remover.remove_batch({file_path: originals[file_path]}))
            progress.advance(task)

    changed = [p for p, r in results.items() if r.changed]

    table = Table(title=f"Uses of '{escape(config.target_module)}'")
    table.add_column("File", style="cyan", no_wrap=False)
    table.add_column("Statements", justify="right", style="magenta")
    table.add_column("Items", justify="right", style="magenta")
    table.add_column("Replaced", justify="right", style="yellow")
    table.add_column("Status", style="green")

    for file_path, result in results.items():
        if result.skipped:
            status = f"[yellow]skipped ({result.skipped})[/yellow]"
        elif result.changed:
            status = "changed"
        else:
            status = "[dim]clean[/dim]"
        table.add_row(
            escape(str(file_path)),
            str(result.stats.statements_removed),
            str(result.stats.items_removed),
            str(result.stats.replacements),
            status,
        )

    if changed or show_diff:
        console.print(table)

    if show_diff:
        for file_path in changed:
            _print_diff(file_path, originals[file_path], results[file_path].code)

    console.print(f"\n[bold]{len(changed)}[/bold] of {len(files)} file(s) would change."
                  if dry_run or check else
                  f"\n[bold]{len(changed)}[/bold] of {len(files)} file(s) to change.")

    if check:
        if changed or unreadable:
            raise typer.Exit(1)
        return

    if dry_run or not changed:
        if unreadable:
            raise typer.Exit(1)
        return

    if not yes and not typer.confirm(f"Rewrite {len(changed)} file(s)?"):
        console.print("[yellow]Aborted.[/yellow]")
        raise typer.Exit(1)

    store = None if no_backup else BackupStore(backup_dir)
    failures = 0
    for file_path in changed:
        try:
            backup_id = store.backup(file_path) if store else None
            file_path.write_text(results[file_path].code, encoding='utf-8')
        except OSError as e:
            err_console.print(f"[bold red]Failed to write {escape(str(file_path))}:[/bold red] {escape(str(e))}")
            failures += 1
            continue
        suffix = f" [dim](backup {backup_id})[/dim]" if backup_id else ""
        console.print(f"[green]✓[/green] {escape(str(file_path))}{suffix}")

    if failures or unreadable:
        raise typer.Exit(1)


@app.command()
def show(
    file: str = typer.Argument(..., help="File to transform, or '-' for stdin"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Module to remove (default: debug)"),
    language: Optional[str] = typer.Option(
        None, "--language", "-l",
        help="Grammar to parse with (default: from the file extension, javascript for stdin)",
        click_type=click.Choice(["javascript", "typescript", "tsx"], case_sensitive=False),
    ),
):
    """Print the transformed source of one file without writing it."""
    config = _load_config(target)

    if file == "-":
        source = sys.stdin.read()
        language = language or "javascript"
    else:
        path = Path(file)
        if not path.is_file():
            err_console.print(f"[bold red]Error:[/bold red] File does not exist: {escape(file)}")
            raise typer.Exit(1)
        language = language or LanguageParser.language_for(path)
        if not language:
            err_console.print(f"[bold red]Error:[/bold red] Unsupported file type: {escape(file)}")
            raise typer.Exit(1)
        source = path.read_text(encoding='utf-8')

    result = DebugRemover(config.target_module).transform_source(source, language.lower())
    if result.skipped:
        err_console.print(f"[yellow]Left unchanged: {result.skipped}[/yellow]")

    # Raw output so the result can be piped
    sys.stdout.write(result.code)


@app.command()
def restore(
    backup_ids: Optional[List[str]] = typer.Argument(None, help="Backup IDs to restore (default: all pending)"),
    list_only: bool = typer.Option(False, "--list", help="List backups instead of restoring"),
):
    """Restore rewritten files from their backups."""
    store = BackupStore(get_config().backup_path)

    if list_only:
        table = Table(title=f"Backups in {escape(str(store.backup_dir))}")
        table.add_column("ID", style="cyan")
        table.add_column("File", no_wrap=False)
        table.add_column("Created", style="dim")
        table.add_column("Restored", style="green")
        for record in store.manifest.get_all_backups():
            table.add_row(
                record["id"],
                escape(record["original_path"]),
                record["created_at"],
                "yes" if record.get("restored") else "no",
            )
        console.print(table)
        info = store.get_backup_info()
        console.print(f"{info['pending_count']} pending, {info['restored_count']} restored")
        return

    if not backup_ids:
        backup_ids = [r["id"] for r in store.manifest.get_pending_backups()]
        if not backup_ids:
            console.print("[dim]Nothing to restore.[/dim]")
            return

    try:
        store.restore_all(backup_ids)
    except IOError as e:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Restored {len(backup_ids)} file(s)[/green]")


if __name__ == "__main__":
    app()
