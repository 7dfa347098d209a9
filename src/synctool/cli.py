import argparse
import logging
import sys
from enum import Enum
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import daemon, repair, service, shutdown
from .config import Config
from .constants import APP_NAME, LOG_FILE
from .errors import ErrorKind, ToolkitError
from .git_wrapper import GitCommandError, GitRepo
from .scheduler import SchedulerBackend, TriggerManager, get_scheduler
from .sync import SyncStatus, synchronize_configured
from .system import SystemStrategy, require_admin

logger = logging.getLogger(APP_NAME)
console = Console()


class ExecutionMode(Enum):
    INTERACTIVE = "interactive"
    STARTUP = "startup"


class MenuAction(Enum):
    """Every selectable entry of the interactive menu."""

    SYNC = "1"
    TOGGLE_UPDATE = "2"
    STATUS = "3"
    REPAIR = "4"
    TOGGLE_SHUTDOWN = "5"
    QUIT = "q"

    @classmethod
    def parse(cls, choice: str) -> "MenuAction | None":
        """Maps operator input to an action, or None for an invalid selection."""
        key = choice.strip().lower()
        for action in cls:
            if action.value == key:
                return action
        return None


class InteractiveSession:
    """The operator-facing menu loop.

    A failing action is logged, shown, and acknowledged; the loop then
    redraws the menu. Only Quit ends the session.

    Attributes:
        config (Config): The merged configuration.
        config_path (Path | None): An explicit config file, forwarded to the
            startup trigger so unattended runs use the same settings.
    """

    def __init__(
        self,
        config: Config,
        config_path: Path | None = None,
        backend: SchedulerBackend | None = None,
        strategy: SystemStrategy | None = None,
    ):
        self.config = config
        self.config_path = config_path
        self._backend = backend
        self._strategy = strategy

    @property
    def manager(self) -> TriggerManager:
        if self._backend is None:
            self._backend = get_scheduler()
        return TriggerManager(self._backend)

    def _trigger_state(self, name: str) -> bool | None:
        """Returns whether a trigger is enabled, or None if the scheduler is unusable."""
        try:
            return self.manager.is_enabled(name)
        except (ToolkitError, ValueError) as e:
            logger.debug(f"Scheduler query for '{name}' failed: {e}")
            return None

    def render_menu(self) -> None:
        update_on = self._trigger_state(self.config.tasks.update_task_name)
        shutdown_on = self._trigger_state(self.config.tasks.shutdown_task_name)

        def toggle_label(state: bool | None, subject: str) -> str:
            if state is None:
                return f"Toggle {subject} [dim](unavailable)[/dim]"
            return f"{'Disable' if state else 'Enable'} {subject}"

        menu = Text.from_markup(
            f"[bold cyan]1[/bold cyan]  Synchronize toolkit now\n"
            f"[bold cyan]2[/bold cyan]  {toggle_label(update_on, 'update at startup')}\n"
            f"[bold cyan]3[/bold cyan]  Show status\n"
            f"[bold cyan]4[/bold cyan]  Repair system files (DISM + SFC)\n"
            f"[bold cyan]5[/bold cyan]  {toggle_label(shutdown_on, 'scheduled shutdown')}\n"
            f"[bold cyan]Q[/bold cyan]  Quit"
        )
        console.print(Panel(menu, title="IGP Toolkit Maintenance", expand=False))

    def run(self) -> int:
        """Runs the menu loop until the operator quits.

        Returns:
            int: The process exit code (always 0).

        Raises:
            ToolkitError: PRIVILEGE_REQUIRED when not elevated.
        """
        require_admin(self._strategy)

        while True:
            self.render_menu()
            action = MenuAction.parse(console.input("Select an option: "))
            if action is None:
                console.print("[yellow]Invalid selection. Try again.[/yellow]")
                continue
            if action is MenuAction.QUIT:
                logger.info("Session ended by operator.")
                return 0

            try:
                self.dispatch(action)
            except ToolkitError as e:
                logger.error(f"{action.name} FAILED [{e.kind.value}]: {e}")
                self._report_failure(e.kind.value, str(e))
            except Exception as e:
                logger.exception(f"{action.name} FAILED [unexpected]")
                self._report_failure("unexpected error", str(e))

    def _report_failure(self, title: str, message: str) -> None:
        console.print(
            Panel(
                message,
                title=f"[bold red]{title}[/bold red]",
                border_style="red",
                expand=False,
            )
        )
        console.input("Press Enter to continue...")

    def dispatch(self, action: MenuAction) -> None:
        if action is MenuAction.SYNC:
            self.sync_now()
        elif action is MenuAction.TOGGLE_UPDATE:
            self.toggle_update()
        elif action is MenuAction.STATUS:
            self.show_status()
        elif action is MenuAction.REPAIR:
            self.repair_system()
        elif action is MenuAction.TOGGLE_SHUTDOWN:
            self.toggle_shutdown()
        elif action is MenuAction.QUIT:
            return
        else:
            raise ValueError(f"Unhandled menu action: {action}")

    def sync_now(self) -> None:
        with console.status("[bold blue]Synchronizing toolkit...", spinner="dots"):
            result = synchronize_configured(self.config, suppress_prompts=True)

        if result.status is SyncStatus.SKIPPED:
            logger.warning("OFFLINE: Remote unreachable. Sync skipped.")
            console.print("[bold yellow]Offline:[/bold yellow] Sync skipped.")
        else:
            console.print(
                f"[bold green]SUCCESS:[/bold green] Toolkit {result.action.value} "
                f"at [cyan]{(result.head or '')[:10]}[/cyan]."
            )

    def toggle_update(self) -> None:
        enabled = service.toggle(self.manager, self.config, self.config_path)
        if enabled:
            console.print(
                f"[bold green]Enabled:[/bold green] '{self.config.tasks.update_task_name}' "
                "runs at every startup."
            )
        else:
            console.print(
                f"[bold yellow]Removed:[/bold yellow] '{self.config.tasks.update_task_name}'."
            )

    def toggle_shutdown(self) -> None:
        enabled = shutdown.toggle_shutdown(self.manager, self.config)
        if enabled:
            console.print(
                f"[bold green]Scheduled:[/bold green] shutdown daily at "
                f"{self.config.tasks.shutdown_time}."
            )
        else:
            console.print("[bold yellow]Disabled:[/bold yellow] scheduled shutdown.")

    def repair_system(self) -> None:
        console.print("Running DISM and SFC. This can take 30 minutes or more.")
        steps = repair.run_repair()
        for step in steps:
            console.print(f"   [green]✔ {step.name}[/green] (exit code {step.exit_code})")
        if any(step.reboot_required for step in steps):
            console.print("[bold yellow]Restart the computer to finish repairs.[/bold yellow]")

    def show_status(self) -> None:
        """Displays the working copy and scheduled trigger state."""
        repo_conf = self.config.repository
        target = Path(repo_conf.target_dir)

        repo_content = Text()
        repo_content.append("Remote:      ", style="bold")
        repo_content.append(f"{repo_conf.remote_url} ({repo_conf.branch})\n")
        repo_content.append("Target:      ", style="bold")
        repo_content.append(f"{target}\n")

        if not (target / ".git").exists():
            repo_content.append("State:       ", style="bold")
            repo_content.append("Not cloned", style="yellow")
        else:
            try:
                repo = GitRepo(target)
                head = repo.rev_parse("HEAD") or "unknown"
                pending = len(repo.status_porcelain())
                repo_content.append(f"Branch:      {repo.current_branch()}\n")
                repo_content.append(f"HEAD:        {head[:10]}\n")
                repo_content.append(
                    f"Last Commit: {repo.get_last_commit_time()}\n", style="dim"
                )
                repo_content.append(f"Origin:      {repo.remote_url() or '-'}\n")
                repo_content.append(
                    f"Local edits: {pending} files",
                    style="yellow" if pending else "green",
                )
            except (GitCommandError, ValueError) as e:
                logger.debug(f"Failed to read repository state for {target}: {e}")
                repo_content.append(f"Unable to read repository: {e}", style="bold red")

        console.print(Panel(repo_content, title="Repository Status", expand=False))

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Task", style="cyan")
        table.add_column("State")
        table.add_column("Fires", style="dim")
        for name in (
            self.config.tasks.update_task_name,
            self.config.tasks.shutdown_task_name,
        ):
            try:
                trigger = self.manager.query(name)
            except (ToolkitError, ValueError) as e:
                table.add_row(name, "[red]Unavailable[/red]", str(e))
                continue
            if trigger is None:
                table.add_row(name, "[dim]Not registered[/dim]", "-")
            elif trigger.enabled:
                table.add_row(name, "[green]Enabled[/green]", trigger.firing.describe())
            else:
                table.add_row(name, "[yellow]Disabled[/yellow]", trigger.firing.describe())
        console.print(table)
        console.print(f"[dim]Log file: {LOG_FILE}[/dim]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Keep the IGP toolkit up to date and run workstation maintenance.",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in ExecutionMode],
        default=ExecutionMode.INTERACTIVE.value,
        help="interactive menu (default) or one unattended startup update",
    )
    parser.add_argument("--repo-url", help="Remote repository URL")
    parser.add_argument("--branch", help="Branch to track")
    parser.add_argument("--target-dir", type=Path, help="Local working copy path")
    parser.add_argument("--config", type=Path, help="Configuration file (TOML)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parses arguments and dispatches to the selected execution mode.

    Returns:
        int: The process exit code.
    """
    args = build_parser().parse_args(argv)
    mode = ExecutionMode(args.mode)

    config = Config.load(args.config).with_overrides(
        remote_url=args.repo_url,
        branch=args.branch,
        target_dir=args.target_dir,
    )
    daemon.setup_logging(mode is ExecutionMode.INTERACTIVE, config)

    if mode is ExecutionMode.STARTUP:
        return daemon.run_startup(config)

    config_path = args.config.resolve() if args.config else None
    try:
        return InteractiveSession(config, config_path=config_path).run()
    except ToolkitError as e:
        if e.kind is not ErrorKind.PRIVILEGE_REQUIRED:
            raise
        logger.critical(f"FATAL: {e}")
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        return 1
    except (KeyboardInterrupt, EOFError):
        console.print("\nStopped.", style="dim")
        return 0


def entrypoint() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    entrypoint()
