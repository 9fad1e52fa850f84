"""Two-phase deletion of stale branches.

Local branches are handled first, then remote ones. Each phase shows its
branches, asks for its own confirmation and writes its own backup
manifest before the first deletion. A phase whose manifest cannot be
written deletes nothing.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from deadbranch import ui
from deadbranch.branch import Branch, BranchFilter, load_branches, partition
from deadbranch.config import Config
from deadbranch.exceptions import BackupWriteError, GitError
from deadbranch.git import REMOTE_NAME, Gateway
from deadbranch.logging_config import get_logger
from deadbranch.manifest import write_backup

logger = get_logger(__name__)

LocalConfirm = Callable[[Sequence[Branch]], bool]
RemotePrompt = Callable[[Sequence[Branch], str], str]


class Phase(Enum):
    """Deletion phase."""

    LOCAL = "local"
    REMOTE = "remote"


@dataclass
class CleanOptions:
    """Options of a clean run."""

    min_age_days: int
    merged: bool = False
    force: bool = False
    dry_run: bool = False
    local_only: bool = False
    remote_only: bool = False
    skip_confirm: bool = False


@dataclass
class DeletionOutcome:
    """Result of deleting one branch."""

    branch: Branch
    error: Optional[GitError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class PhaseResult:
    """What happened in one deletion phase."""

    phase: Phase
    branches: list[Branch]
    confirmed: bool = False
    backup_path: Optional[Path] = None
    outcomes: list[DeletionOutcome] = field(default_factory=list)

    @property
    def deleted(self) -> list[Branch]:
        return [o.branch for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[DeletionOutcome]:
        return [o for o in self.outcomes if not o.ok]


@dataclass
class CleanReport:
    """Summary of a clean run."""

    local: Optional[PhaseResult] = None
    remote: Optional[PhaseResult] = None
    dry_run_commands: list[str] = field(default_factory=list)


def remote_confirmation_phrase(count: int) -> str:
    """Exact phrase a user must type to delete remote branches."""
    return f"delete {count} remote {ui.branch_word(count)}"


def use_force_flag(branch: Branch, force: bool) -> bool:
    """Whether a local branch is deleted with -D instead of -d."""
    return force or not branch.is_merged


def dry_run_commands(local: Sequence[Branch], remote: Sequence[Branch], force: bool) -> list[str]:
    """Shell commands a clean would run, in order."""
    commands = []
    for branch in local:
        flag = "-D" if use_force_flag(branch, force) else "-d"
        commands.append(f"git branch {flag} {branch.name}")
    for branch in remote:
        commands.append(f"git push {REMOTE_NAME} --delete {branch.short_name}")
    return commands


def build_filter(config: Config, options: CleanOptions) -> BranchFilter:
    """Build the candidate filter; without force only merged branches qualify."""
    return BranchFilter(
        min_age_days=options.min_age_days,
        local_only=options.local_only,
        remote_only=options.remote_only,
        merged_only=options.merged or not options.force,
        protected=list(config.protected),
        exclude_patterns=list(config.exclude_patterns),
    )


class CleanOrchestrator:
    """Runs the clean flow against a gateway."""

    def __init__(
        self,
        gateway: Gateway,
        config: Config,
        repo_name: str,
        cwd: Path,
        confirm_local: LocalConfirm = ui.confirm_local_deletion,
        prompt_remote: RemotePrompt = ui.prompt_remote_confirmation,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            gateway: Git gateway
            config: Loaded configuration
            repo_name: Repository name manifests are filed under
            cwd: Working directory recorded in manifests
            confirm_local: Yes/no prompt for the local phase
            prompt_remote: Prompt returning the text typed for the remote phase
        """
        self.gateway = gateway
        self.config = config
        self.repo_name = repo_name
        self.cwd = cwd
        self.confirm_local = confirm_local
        self.prompt_remote = prompt_remote

    def default_branch(self) -> str:
        return self.config.default_branch or self.gateway.default_branch()

    def select(self, options: CleanOptions) -> tuple[list[Branch], list[Branch]]:
        """Enumerate and filter branches into local and remote candidates.

        Raises:
            GitError: If enumeration fails
        """
        branches = load_branches(self.gateway, self.default_branch())
        return partition(build_filter(self.config, options).apply(branches))

    def run(self, options: CleanOptions) -> CleanReport:
        """Run the clean flow.

        Raises:
            GitError: If enumeration fails
            BackupWriteError: If a phase's manifest cannot be written
        """
        local, remote = self.select(options)
        report = CleanReport()

        if not local and not remote:
            ui.info("No branches to delete.")
            return report

        if options.dry_run:
            if local:
                ui.display_branches(local, f"Local {ui.branch_word(len(local)).capitalize()} to Delete:")
            if remote:
                ui.display_branches(remote, f"Remote {ui.branch_word(len(remote)).capitalize()} to Delete:")
            report.dry_run_commands = dry_run_commands(local, remote, options.force)
            ui.print_dry_run(report.dry_run_commands)
            return report

        if local:
            report.local = self._local_phase(local, options)

        if remote:
            if local:
                ui.console.print()
                ui.console.rule(style="dim")
            try:
                report.remote = self._remote_phase(remote, options)
            except BackupWriteError as err:
                if report.local:
                    err.deleted_before = len(report.local.deleted)
                    err.earlier_backup = report.local.backup_path
                raise

        return report

    def _local_phase(self, branches: list[Branch], options: CleanOptions) -> PhaseResult:
        result = PhaseResult(Phase.LOCAL, branches)
        ui.display_branches(branches, f"Local {ui.branch_word(len(branches)).capitalize()} to Delete:")

        result.confirmed = options.skip_confirm or self.confirm_local(branches)
        if not result.confirmed:
            ui.console.print()
            ui.info("Skipped local branch deletion.")
            return result

        result.backup_path = write_backup(self.gateway, branches, self.repo_name, self.cwd)
        ui.console.print()
        ui.console.print(f"Deleting local {ui.branch_word(len(branches))}...")
        for branch in branches:
            result.outcomes.append(
                self._delete(branch, lambda b: self.gateway.delete_local(b.name, use_force_flag(b, options.force)))
            )
        self._summarize(result)
        return result

    def _remote_phase(self, branches: list[Branch], options: CleanOptions) -> PhaseResult:
        result = PhaseResult(Phase.REMOTE, branches)

        with ui.console.status("Fetching remote to ensure data is up to date..."):
            try:
                self.gateway.fetch_and_prune()
                fetch_error = None
            except GitError as err:
                fetch_error = err
        if fetch_error is None:
            ui.success("Remote data is up to date")
        else:
            logger.warning("fetch --prune failed: %s", fetch_error)
            ui.warning("Could not fetch remote")
            ui.warning(f"  {fetch_error}")
            ui.warning("  Remote branch data may be stale.")

        ui.display_branches(branches, f"Remote {ui.branch_word(len(branches)).capitalize()} to Delete:")

        if options.skip_confirm:
            result.confirmed = True
        else:
            expected = remote_confirmation_phrase(len(branches))
            result.confirmed = self.prompt_remote(branches, expected).strip() == expected
        if not result.confirmed:
            ui.console.print()
            ui.info("Skipped remote branch deletion.")
            return result

        result.backup_path = write_backup(self.gateway, branches, self.repo_name, self.cwd)
        ui.console.print()
        ui.console.print(f"Deleting remote {ui.branch_word(len(branches))}...")
        for branch in branches:
            result.outcomes.append(self._delete(branch, lambda b: self.gateway.delete_remote(b.name)))
        self._summarize(result)
        return result

    def _delete(self, branch: Branch, action: Callable[[Branch], None]) -> DeletionOutcome:
        try:
            action(branch)
        except GitError as err:
            logger.info("Failed to delete %s: %s", branch.name, err)
            ui.console.print(f"  [red]✗[/red] {ui.escape(branch.name)} [dim]({ui.escape(str(err))})[/dim]")
            return DeletionOutcome(branch, err)
        ui.console.print(f"  [green]✓[/green] {ui.escape(branch.name)}")
        return DeletionOutcome(branch)

    def _summarize(self, result: PhaseResult) -> None:
        deleted = len(result.deleted)
        failed = len(result.failed)
        words = ui.branch_word(deleted)
        ui.console.print()
        if failed:
            ui.warning(f"Deleted {deleted} {result.phase.value} {words}, {failed} failed")
        else:
            ui.success(f"Deleted {deleted} {result.phase.value} {words}")
        if result.backup_path:
            ui.hint(f"Backup: {result.backup_path}")
