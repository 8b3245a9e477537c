"""Command line interface for olecharms."""

from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape

from .core.definitions import Definitions
from .core.environment import Environment
from .core.features import FeatureManager, run_due_tasks
from .core.install import InstallManager
from .core.logging import setup_logging_from_env
from .core.menu import ActionKind, MenuState, options, title, transition
from .core.report import RunReport
from .core.scheduler import Crontab
from .core.settings import ConfigRecord, ConfigStore, MigrationError
from .core.sshkey import USAGE as SSHKEY_USAGE
from .core.sshkey import SshKeyManager
from .core.status import StatusReporter

console = Console()


class CommandGroup(click.Group):
    """Group that treats an unknown command as an error with exit status 1."""

    def resolve_command(
        self, ctx: click.Context, args: List[str]
    ) -> Tuple[Optional[str], Optional[click.Command], List[str]]:
        cmd_name = args[0] if args else ""
        if cmd_name and not cmd_name.startswith("-") and self.get_command(ctx, cmd_name) is None:
            console.print(f"[red][-][/red] Unknown command: {escape(cmd_name)}")
            console.print()
            click.echo(ctx.get_help())
            ctx.exit(1)
        return super().resolve_command(ctx, args)


def _environment(ctx: click.Context) -> Environment:
    return ctx.obj["env"]


def _crontab(ctx: click.Context) -> Crontab:
    return ctx.obj.get("crontab") or Crontab()


def _load_definitions(ctx: click.Context, report: Optional[RunReport] = None) -> Definitions:
    """Load packages.yaml or end the current command with status 1."""
    env = _environment(ctx)
    definitions = Definitions()
    try:
        loaded = definitions.load(env.definitions_file)
    except ValueError as e:
        console.print(
            f"[red][-][/red] Invalid definitions in {escape(str(env.definitions_file))}: "
            f"{escape(str(e))}"
        )
        loaded = False
    if not loaded:
        ctx.exit(1)

    for problem in definitions.validate():
        if report is not None:
            report.warn(f"packages.yaml: {problem}")
        else:
            console.print(f"[yellow][!][/yellow] packages.yaml: {escape(problem)}")
    return definitions


def _read_settings(env: Environment) -> Optional[ConfigRecord]:
    """Read settings for reporting without writing anything back."""
    store = ConfigStore(env.settings_file)
    try:
        if store.exists():
            return store.read_and_migrate()
        return store.bootstrap(env)
    except MigrationError as e:
        console.print(f"[yellow][!][/yellow] {escape(str(e))}")
        return None


@click.group(
    cls=CommandGroup,
    invoke_without_command=True,
    no_args_is_help=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """olecharms - environment management for vim, fonts and shell helpers.

    Main commands:

      install   Full install: packages, vim dirs, pathogen, plugins, vimrc, fonts

      update    Pull latest changes for repo, plugins, pathogen, and fonts

      check     Report installed/missing dependencies and plugin status

      status    Show what's installed with version info

      config    Turn optional shell features on or off

      help      Show this help message

    Edit packages.yaml to add/remove system packages, vim plugins, font
    families, and post-install commands.
    """
    setup_logging_from_env()
    ctx.ensure_object(dict)
    if "env" not in ctx.obj:
        ctx.obj["env"] = Environment.detect()

    if ctx.invoked_subcommand is None:
        console.print("[red][-][/red] No command specified")
        console.print()
        click.echo(ctx.get_help())
        ctx.exit(1)


@cli.command()
@click.pass_context
def install(ctx: click.Context) -> None:
    """Full install: packages, vim dirs, pathogen, plugins, vimrc, fonts.

    Example:

      # First-time setup
      olecharms install
    """
    report = RunReport(console=console)
    definitions = _load_definitions(ctx, report)
    InstallManager(_environment(ctx), definitions, report, crontab=_crontab(ctx)).install()


@cli.command()
@click.pass_context
def update(ctx: click.Context) -> None:
    """Pull latest changes for repo, plugins, pathogen, and fonts.

    Example:

      # Update everything
      olecharms update
    """
    report = RunReport(console=console)
    definitions = _load_definitions(ctx, report)
    InstallManager(_environment(ctx), definitions, report, crontab=_crontab(ctx)).update()


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Report installed/missing dependencies and plugin status."""
    env = _environment(ctx)
    definitions = _load_definitions(ctx)
    StatusReporter(env, definitions, _read_settings(env), console=console).check()


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show what's installed with version info."""
    env = _environment(ctx)
    definitions = _load_definitions(ctx)
    StatusReporter(env, definitions, _read_settings(env), console=console).status()


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Turn optional shell features on or off.

    Shows a menu of features (shell commands loader, prompt theme, swap file
    and archive cleaners) and where the cleaners are scheduled from.
    """
    env = _environment(ctx)
    crontab = _crontab(ctx)
    store = ConfigStore(env.settings_file)
    try:
        store.load(env, crontab)
    except MigrationError as e:
        console.print(f"[red][-][/red] {escape(str(e))}")
        ctx.exit(1)

    report = RunReport(console=console)
    manager = FeatureManager(env, store, report, crontab)

    state = MenuState()
    while True:
        console.print()
        console.print(f"[bold]{escape(title(state))}[/bold]")
        choices = options(state, store.record)
        for key, label in choices:
            console.print(f"  [cyan]{key}[/cyan]) {escape(label)}")

        choice = click.prompt("Choice", default="", show_default=False)
        state, action = transition(state, choice)

        if action.kind is ActionKind.QUIT:
            break
        if action.kind is ActionKind.INVALID:
            valid = ", ".join(key for key, _ in choices)
            console.print(
                f"[yellow][!][/yellow] Invalid choice {escape(repr(action.value))}; "
                f"pick one of {valid}"
            )
        elif action.kind is ActionKind.ENABLE and action.feature is not None:
            manager.enable(action.feature)
        elif action.kind is ActionKind.DISABLE and action.feature is not None:
            manager.disable(action.feature)
        elif action.kind is ActionKind.SCHEDULE and action.value is not None:
            manager.set_schedule(action.value)

    if report.errors:
        console.print(f"[yellow][!][/yellow] {report.errors} error(s). Review output above.")


@cli.command(name="help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Show this help message."""
    parent = ctx.parent or ctx
    click.echo(parent.get_help())


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def sshkey(ctx: click.Context, args: Tuple[str, ...]) -> None:
    """Manage and switch between named SSH key pairs.

    \b
      olecharms sshkey add NAME PRIVATE_KEY_FILE PUBLIC_KEY_FILE
      olecharms sshkey NAME
      olecharms sshkey list
    """
    env = _environment(ctx)
    manager = SshKeyManager(env.home / ".ssh", console=console)
    command = args[0] if args else "help"

    if command == "help":
        console.print(SSHKEY_USAGE, markup=False)
        return
    if command == "list":
        for name in manager.list():
            console.print(name, markup=False)
        return
    if command == "add":
        if len(args) != 4:
            console.print(
                "switchsshkey: add requires exactly 3 arguments", style="red", markup=False
            )
            console.print(SSHKEY_USAGE, markup=False)
            ctx.exit(1)
        ok = manager.add(args[1], Path(args[2]), Path(args[3]))
    else:
        ok = manager.switch(command)
    if not ok:
        ctx.exit(1)


@cli.command(hidden=True)
@click.pass_context
def tick(ctx: click.Context) -> None:
    """Run due maintenance cleaners (called from the shell hook)."""
    env = _environment(ctx)
    store = ConfigStore(env.settings_file)
    if not store.exists():
        return
    try:
        record = store.read_and_migrate()
    except MigrationError:
        return
    run_due_tasks(env, record)


def main() -> None:
    """Entry point for the olecharms CLI."""
    cli()


if __name__ == "__main__":
    main()
