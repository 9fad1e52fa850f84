"""Terminal output: tables, messages and confirmation prompts."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from deadbranch.backups import BackupInfo, RepoBackupStats
from deadbranch.branch import Branch
from deadbranch.config import Config
from deadbranch.manifest import BackupEntry, SkippedLine

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def pluralize(count: int, singular: str, plural: str) -> str:
    """Pick the singular or plural word for a count."""
    return singular if count == 1 else plural


def branch_word(count: int) -> str:
    return pluralize(count, "branch", "branches")


def format_size(size: int) -> str:
    """Format a byte count as B, KB or MB."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def info(message: str) -> None:
    console.print(f"[bold blue]ℹ[/bold blue] {escape(message)}")


def success(message: str) -> None:
    console.print(f"[bold green]✓[/bold green] {escape(message)}")


def warning(message: str) -> None:
    console.print(f"[bold yellow]⚠[/bold yellow] {escape(message)}")


def error(message: str) -> None:
    err_console.print(f"[bold red]✗[/bold red] {escape(message)}")


def hint(message: str) -> None:
    console.print(f"  [dim]↪ {escape(message)}[/dim]")


def _read_line(prompt: str) -> str:
    try:
        return console.input(prompt)
    except EOFError:
        return ""


def confirm(prompt: str, default: bool = False) -> bool:
    """Ask a yes/no question."""
    choices = "[Y/n]" if default else "[y/N]"
    answer = _read_line(f"{prompt} {escape(choices)} ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def create_branch_table(title: str) -> Table:
    """Create a table with the standard branch columns."""
    table = Table(title=title, show_header=True, header_style="bold", title_style="bold", title_justify="left")
    table.add_column("Branch", style="cyan", no_wrap=True)
    table.add_column("Age", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Type", justify="center")
    table.add_column("Last Commit", style="dim")
    return table


def display_branches(branches: Sequence[Branch], title: str) -> None:
    """Display a list of branches in a table."""
    if not branches:
        console.print("[dim]No stale branches found.[/dim]")
        return

    table = create_branch_table(title)
    for branch in branches:
        status = "[green]merged[/green]" if branch.is_merged else "[yellow]unmerged[/yellow]"
        kind = "[blue]remote[/blue]" if branch.is_remote else "[cyan]local[/cyan]"
        table.add_row(
            escape(branch.name),
            branch.format_age(),
            status,
            kind,
            branch.last_commit_date.strftime("%Y-%m-%d"),
        )
    console.print()
    console.print(table)


def confirm_local_deletion(branches: Sequence[Branch]) -> bool:
    """Ask for confirmation to delete local branches."""
    total = len(branches)
    merged = sum(1 for b in branches if b.is_merged)
    unmerged = total - merged
    if unmerged:
        summary = f"Delete {total} local {branch_word(total)} ({merged} merged, {unmerged} unmerged)?"
    else:
        summary = f"Delete {total} local {branch_word(total)} (all merged)?"
    console.print()
    return confirm(f"[bold]{summary}[/bold]")


def prompt_remote_confirmation(branches: Sequence[Branch], expected: str) -> str:
    """Warn about remote deletion and read the typed confirmation phrase."""
    words = branch_word(len(branches))
    console.print()
    console.print(f"[bold yellow]⚠  WARNING: You are about to delete remote {words}![/bold yellow]")
    console.print()
    console.print("This action:")
    console.print("  • [red]Cannot be undone[/red] easily")
    console.print("  • Will [red]affect[/red] all team members")
    console.print(f"  • Removes {words} from origin [red]permanently[/red]")
    console.print()
    console.print(f'To confirm, type exactly: [yellow]"{escape(expected)}"[/yellow]')
    console.print()
    return _read_line("Type confirmation: ")


def print_dry_run(commands: Sequence[str]) -> None:
    """Print the commands a clean would run."""
    console.print()
    console.print("[bold yellow]\\[DRY RUN] No branches will be deleted.[/bold yellow]")
    console.print()
    console.print("Commands that would run:")
    for command in commands:
        console.print(f"  [dim]{escape(command)}[/dim]", soft_wrap=True)
    console.print()
    info("No branches were actually deleted.")


def display_config(config: Config, path: Path) -> None:
    """Display configuration in a table."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Section", style="yellow")
    table.add_column("Setting")
    table.add_column("Value", style="cyan")

    table.add_row("general", "default_days", str(config.default_days))
    table.add_row("branches", "default_branch", escape(config.default_branch or "(auto-detect)"))
    table.add_row("branches", "protected", escape(", ".join(config.protected) or "(none)"))
    table.add_row("branches", "exclude_patterns", escape(", ".join(config.exclude_patterns) or "(none)"))

    console.print()
    console.print("[bold]Configuration:[/bold]")
    console.print(table)
    console.print(f"[dim]Config file: {escape(str(path))}[/dim]", soft_wrap=True)


def display_repo_backups(repo_name: str, backups: Sequence[BackupInfo]) -> None:
    """Display the backups of one repository."""
    now = datetime.now(timezone.utc)
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Backup", no_wrap=True)
    table.add_column("Age", style="cyan")
    table.add_column("Branches", style="yellow", justify="right")

    for index, backup in enumerate(backups, start=1):
        table.add_row(str(index), backup.filename, backup.format_age(now), str(backup.branch_count))

    console.print()
    console.print(f"[bold]Backups for '{escape(repo_name)}':[/bold]")
    console.print(table)
    console.print()
    console.print("[dim]To restore a branch:[/dim]")
    console.print("  [dim]deadbranch backup restore <branch-name>[/dim]")
    console.print("  [dim]deadbranch backup restore <branch-name> --from <backup-file>[/dim]")


def display_all_backups(all_backups: Mapping[str, Sequence[BackupInfo]]) -> None:
    """Display a per-repository summary of all backups."""
    now = datetime.now(timezone.utc)
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Repository", style="yellow", no_wrap=True)
    table.add_column("Backups", justify="right")
    table.add_column("Latest", style="cyan")
    table.add_column("Oldest", style="dim")

    total = 0
    for index, (repo_name, backups) in enumerate(sorted(all_backups.items()), start=1):
        total += len(backups)
        table.add_row(
            str(index),
            escape(repo_name),
            str(len(backups)),
            backups[0].format_age(now),
            backups[-1].format_age(now),
        )

    repos = len(all_backups)
    console.print()
    console.print("[bold]All backups:[/bold]")
    console.print(table)
    console.print(
        f"\n[dim]Total:[/dim] {total} {pluralize(total, 'backup', 'backups')} "
        f"across {repos} {pluralize(repos, 'repository', 'repositories')}"
    )
    console.print()
    console.print("[dim]To see details for a repository:[/dim]")
    console.print("  [dim]deadbranch backup list --repo <name>[/dim]")
    console.print("  [dim]deadbranch backup list --current  (for current repo)[/dim]")


def display_stats(stats: Sequence[RepoBackupStats]) -> None:
    """Display backup count and disk usage per repository."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Repository", style="yellow", no_wrap=True)
    table.add_column("Backups", justify="right")
    table.add_column("Size", style="cyan", justify="right")

    for entry in stats:
        table.add_row(escape(entry.repo_name), str(entry.count), format_size(entry.total_bytes))

    total_count = sum(entry.count for entry in stats)
    total_bytes = sum(entry.total_bytes for entry in stats)
    console.print()
    console.print("[bold]Backup storage:[/bold]")
    console.print(table)
    console.print(
        f"\n[dim]Total:[/dim] {total_count} {pluralize(total_count, 'backup', 'backups')}, {format_size(total_bytes)}"
    )


def display_prune_candidates(repo_name: str, backups: Sequence[BackupInfo], keep: int) -> None:
    """Display the backups a retention cleanup would delete."""
    now = datetime.now(timezone.utc)
    table = Table(show_header=True, header_style="bold")
    table.add_column("Backup", no_wrap=True)
    table.add_column("Age", style="cyan")
    table.add_column("Branches", style="yellow", justify="right")
    table.add_column("Size", justify="right")

    for backup in backups:
        size = format_size(backup.size_bytes) if backup.size_known else "?"
        table.add_row(backup.filename, backup.format_age(now), str(backup.branch_count), size)

    count = len(backups)
    console.print()
    console.print(
        f"[bold]{count} {pluralize(count, 'backup', 'backups')} to delete for '{escape(repo_name)}' "
        f"(keeping newest {keep}):[/bold]"
    )
    console.print(table)


def display_restore_failure_details(
    available: Sequence[BackupEntry], skipped: Sequence[SkippedLine], backup_path: Optional[Path]
) -> None:
    """Show what a manifest does contain after a restore miss."""
    if backup_path:
        console.print(f"[dim]Backup: {escape(str(backup_path))}[/dim]", soft_wrap=True)
    if available:
        console.print()
        console.print("Available branches in this backup:")
        for entry in available:
            console.print(f"  [cyan]{escape(entry.name)}[/cyan] [dim]{escape(entry.commit_sha[:8])}[/dim]")
    else:
        console.print("[dim]This backup contains no restorable branches.[/dim]")
    if skipped:
        console.print()
        console.print(f"[yellow]{len(skipped)} {pluralize(len(skipped), 'line', 'lines')} could not be parsed:[/yellow]")
        for line in skipped:
            console.print(f"  [dim]line {line.line_number}:[/dim] {escape(line.content)}", soft_wrap=True)
