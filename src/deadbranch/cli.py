"""Command line interface for deadbranch."""

import os
import shlex
import shutil
import subprocess
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer
from click.shell_completion import get_completion_class

from deadbranch import __version__, ui
from deadbranch.backups import (
    DEFAULT_KEEP,
    backup_stats,
    delete_backups,
    list_all_backups,
    list_repo_backups,
    select_backups_to_prune,
)
from deadbranch.branch import BranchFilter, load_branches, partition
from deadbranch.clean import CleanOptions, CleanOrchestrator
from deadbranch.config import Config, config_path, repo_name_for
from deadbranch.exceptions import (
    BackupWriteError,
    BranchExistsError,
    BranchNotInBackupError,
    CommitNotFoundError,
    ConfigError,
    DeadbranchError,
    NoBackupsFoundError,
    NotARepositoryError,
)
from deadbranch.git import GitRepo
from deadbranch.logging_config import get_logger, setup_logging
from deadbranch.restore import restore_branch

logger = get_logger(__name__)

app = typer.Typer(help="Clean up stale git branches safely.", add_completion=False, no_args_is_help=True)
config_app = typer.Typer(help="View and change configuration.", no_args_is_help=True)
backup_app = typer.Typer(help="Manage branch backups.", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(backup_app, name="backup")

FALLBACK_EDITORS = ("nano", "vim", "vi")


class Shell(str, Enum):
    """Shells a completion script can be generated for."""

    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"deadbranch {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show informational log messages")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Show debug log messages and write a log file")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """Clean up stale git branches safely."""
    setup_logging(verbose=verbose, debug=debug)


def render_error(err: DeadbranchError) -> None:
    """Print an error with recovery hints for the kinds that have them."""
    ui.error(str(err))
    if isinstance(err, BranchExistsError):
        ui.hint("Use --force to overwrite the existing branch")
        ui.hint("Use --as <new-name> to restore under a different name")
    elif isinstance(err, CommitNotFoundError):
        ui.hint("Try an older backup with --from <backup-file>")
    elif isinstance(err, BranchNotInBackupError):
        ui.display_restore_failure_details(err.available, err.skipped, err.path)
    elif isinstance(err, NoBackupsFoundError):
        ui.hint("Backups are created automatically by 'deadbranch clean'")
    elif isinstance(err, BackupWriteError):
        if err.deleted_before:
            count = err.deleted_before
            ui.hint(f"No remote branches were deleted; {count} local {ui.branch_word(count)} already deleted")
            if err.earlier_backup:
                ui.hint(f"Local backup: {err.earlier_backup}")
        else:
            ui.hint("No branches were deleted")


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Turn deadbranch errors into an error message and exit code 1."""
    try:
        yield
    except DeadbranchError as err:
        logger.debug("Command failed", exc_info=True)
        render_error(err)
        raise typer.Exit(code=1) from err


def get_repo() -> tuple[GitRepo, str]:
    """Get the repository in the working directory and its backup name."""
    cwd = Path.cwd()
    repo = GitRepo(cwd)
    if not repo.is_repository():
        render_error(NotARepositoryError(cwd))
        raise typer.Exit(code=1)
    return repo, repo_name_for(cwd)


def load_config() -> Config:
    with exit_on_error():
        return Config.load()


def check_scope(local: bool, remote: bool) -> None:
    if local and remote:
        raise typer.BadParameter("--local and --remote cannot be used together")


@app.command("list")
def list_branches(
    days: Annotated[Optional[int], typer.Option("--days", "-d", min=0, help="Minimum age in days")] = None,
    local: Annotated[bool, typer.Option("--local", help="Only local branches")] = False,
    remote: Annotated[bool, typer.Option("--remote", help="Only remote branches")] = False,
    merged: Annotated[bool, typer.Option("--merged", help="Only merged branches")] = False,
) -> None:
    """List stale branches."""
    check_scope(local, remote)
    repo, _ = get_repo()
    config = load_config()

    branch_filter = BranchFilter(
        min_age_days=config.default_days if days is None else days,
        local_only=local,
        remote_only=remote,
        merged_only=merged,
        protected=config.protected,
        exclude_patterns=config.exclude_patterns,
    )
    with exit_on_error():
        default_branch = config.default_branch or repo.default_branch()
        branches = branch_filter.apply(load_branches(repo, default_branch))

    if not branches:
        ui.display_branches([], "")
        return

    local_branches, remote_branches = partition(branches)
    if local_branches:
        ui.display_branches(local_branches, "Local Branches:")
    if remote_branches:
        ui.display_branches(remote_branches, "Remote Branches:")

    merged_count = sum(1 for b in branches if b.is_merged)
    ui.console.print()
    ui.console.print(
        f"[dim]{len(branches)} stale {ui.branch_word(len(branches))} older than "
        f"{branch_filter.min_age_days} days ({merged_count} merged)[/dim]"
    )


@app.command()
def clean(
    days: Annotated[Optional[int], typer.Option("--days", "-d", min=0, help="Minimum age in days")] = None,
    merged: Annotated[bool, typer.Option("--merged", help="Only merged branches")] = False,
    force: Annotated[bool, typer.Option("--force", "-f", help="Also delete unmerged branches")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show what would be deleted")] = False,
    local: Annotated[bool, typer.Option("--local", help="Only local branches")] = False,
    remote: Annotated[bool, typer.Option("--remote", help="Only remote branches")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompts")] = False,
) -> None:
    """Delete stale branches, writing a backup before each phase."""
    check_scope(local, remote)
    repo, repo_name = get_repo()
    config = load_config()

    options = CleanOptions(
        min_age_days=config.default_days if days is None else days,
        merged=merged,
        force=force,
        dry_run=dry_run,
        local_only=local,
        remote_only=remote,
        skip_confirm=yes,
    )
    with exit_on_error():
        CleanOrchestrator(repo, config, repo_name, Path.cwd()).run(options)


@config_app.command("show")
def config_show() -> None:
    """Show the current configuration."""
    ui.display_config(load_config(), config_path())


@config_app.command("set")
def config_set(
    key: Annotated[str, typer.Argument(help="Key such as default-days or branches.protected")],
    values: Annotated[list[str], typer.Argument(help="One or more values")],
) -> None:
    """Set a configuration value."""
    config = load_config()
    with exit_on_error():
        config.set(key, values)
        config.save()
    ui.success(f"Set {key} = {', '.join(values)}")


def find_editor() -> Optional[str]:
    """Pick the editor command: $EDITOR, then $VISUAL, then a common editor on PATH."""
    for variable in ("EDITOR", "VISUAL"):
        editor = os.environ.get(variable, "").strip()
        if editor:
            return editor
    return next((name for name in FALLBACK_EDITORS if shutil.which(name)), None)


@config_app.command("edit")
def config_edit() -> None:
    """Open the configuration file in an editor."""
    load_config()
    path = config_path()
    editor = find_editor()
    if editor is None:
        ui.error("No editor found. Set $EDITOR or $VISUAL")
        raise typer.Exit(code=1)

    try:
        completed = subprocess.run([*shlex.split(editor), str(path)], check=False)
    except OSError as err:
        ui.error(f"Could not start editor '{editor}': {err}")
        raise typer.Exit(code=1) from err
    if completed.returncode != 0:
        ui.error(f"Editor exited with code {completed.returncode}")
        raise typer.Exit(code=1)

    try:
        Config.load(path)
    except ConfigError as err:
        ui.warning(f"The edited configuration is invalid: {err}")
        raise typer.Exit(code=1) from err
    ui.success(f"Configuration saved to {path}")


@config_app.command("reset")
def config_reset(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Restore the default configuration."""
    if not yes and not ui.confirm("Reset configuration to defaults?"):
        ui.info("Cancelled.")
        return
    with exit_on_error():
        Config.reset()
    ui.success(f"Configuration reset to defaults ({config_path()})")


def resolve_repo_option(current: bool, repo: Optional[str], required: bool) -> Optional[str]:
    """Turn --current/--repo into a repository name."""
    if current and repo:
        raise typer.BadParameter("--current and --repo cannot be used together")
    if current:
        return get_repo()[1]
    if required and not repo:
        raise typer.BadParameter("Specify --current or --repo <name>")
    return repo


@backup_app.command("list")
def backup_list(
    current: Annotated[bool, typer.Option("--current", help="Backups of the current repository")] = False,
    repo: Annotated[Optional[str], typer.Option("--repo", help="Backups of the named repository")] = None,
) -> None:
    """List backups of all repositories or of one."""
    repo_name = resolve_repo_option(current, repo, required=False)
    if repo_name is None:
        all_backups = list_all_backups()
        if not all_backups:
            ui.info("No backups found.")
            return
        ui.display_all_backups(all_backups)
        return

    backups = list_repo_backups(repo_name)
    if not backups:
        ui.info(f"No backups found for repository '{repo_name}'.")
        return
    ui.display_repo_backups(repo_name, backups)


@backup_app.command("restore")
def backup_restore(
    branch: Annotated[str, typer.Argument(help="Branch name as recorded in the backup")],
    from_backup: Annotated[
        Optional[str], typer.Option("--from", help="Backup file name or path (defaults to the newest)")
    ] = None,
    as_name: Annotated[Optional[str], typer.Option("--as", help="Restore under a different name")] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing branch")] = False,
) -> None:
    """Restore a deleted branch from a backup."""
    repo, repo_name = get_repo()
    with exit_on_error():
        result = restore_branch(repo, repo_name, branch, manifest=from_backup, as_name=as_name, force=force)

    ui.success(f"Restored branch '{result.restored_name}' at commit {result.commit_sha[:8]}")
    if result.restored_name != result.original_name:
        ui.hint(f"Backed up as '{result.original_name}'")
    if result.overwrote_existing:
        ui.warning(f"Overwrote existing branch '{result.restored_name}'")
    if result.backup_path:
        ui.hint(f"From: {result.backup_path}")


@backup_app.command("stats")
def backup_stats_command() -> None:
    """Show backup counts and disk usage."""
    stats = backup_stats()
    if not stats:
        ui.info("No backups found.")
        return
    ui.display_stats(stats)


@backup_app.command("clean")
def backup_clean(
    current: Annotated[bool, typer.Option("--current", help="Clean backups of the current repository")] = False,
    repo: Annotated[Optional[str], typer.Option("--repo", help="Clean backups of the named repository")] = None,
    keep: Annotated[int, typer.Option("--keep", min=0, help="Number of newest backups to keep")] = DEFAULT_KEEP,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Show what would be deleted")] = False,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete old backups, keeping the newest ones."""
    repo_name = resolve_repo_option(current, repo, required=True)
    candidates = select_backups_to_prune(repo_name, keep)
    if not candidates:
        ui.info(f"Nothing to clean for '{repo_name}' (keeping newest {keep}).")
        return

    ui.display_prune_candidates(repo_name, candidates, keep)
    if dry_run:
        ui.console.print()
        ui.console.print("[bold yellow]\\[DRY RUN] No backups will be deleted.[/bold yellow]")
        return

    count = len(candidates)
    if not yes:
        ui.console.print()
        if not ui.confirm(f"Delete {count} {ui.pluralize(count, 'backup', 'backups')}?"):
            ui.info("Cancelled.")
            return

    result = delete_backups(candidates)
    deleted = len(result.deleted)
    ui.console.print()
    ui.success(
        f"Deleted {deleted} {ui.pluralize(deleted, 'backup', 'backups')}, freed {ui.format_size(result.bytes_freed)}"
    )
    for info, reason in result.failed:
        ui.warning(f"Could not delete {info.filename}: {reason}")
    for info in result.skipped:
        ui.warning(f"Skipped {info.filename}: size could not be read")
    if result.failed:
        raise typer.Exit(code=1)


@app.command()
def completions(shell: Annotated[Shell, typer.Argument(help="Shell to generate completions for")]) -> None:
    """Print a shell completion script."""
    complete_class = get_completion_class(shell.value)
    if complete_class is None:
        ui.error(f"Unsupported shell: {shell.value}")
        raise typer.Exit(code=1)
    command = typer.main.get_command(app)
    script = complete_class(command, {}, "deadbranch", "_DEADBRANCH_COMPLETE").source()
    typer.echo(script)


if __name__ == "__main__":
    app()
