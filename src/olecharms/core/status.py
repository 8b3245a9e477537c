"""Read-only ``check`` and ``status`` reports."""

from __future__ import annotations

import shutil
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import rcfile
from .definitions import Definitions
from .environment import VIM_SUBDIRS, Environment
from .features import CLEANERS, FEATURES, SCHEDULE_KEY, Feature
from .install import VIMRC_MARKER
from .repository import GitRepository
from .scheduler import TaskStore
from .settings import ConfigRecord

OK = "[green]✓[/green]"
PARTIAL = "[yellow]~[/yellow]"
MISSING = "[red]✗[/red]"


def _format_last_run(stamp: int) -> str:
    if not stamp:
        return "never"
    try:
        return datetime.fromtimestamp(stamp).strftime("%Y-%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return f"invalid timestamp ({stamp})"


class StatusReporter:
    """Prints what is installed without changing anything."""

    def __init__(
        self,
        env: Environment,
        definitions: Definitions,
        record: Optional[ConfigRecord] = None,
        console: Optional[Console] = None,
    ):
        self.env = env
        self.definitions = definitions
        self.record = record
        self.console = console or Console()

    def _table(self, title: str, *columns: str) -> Table:
        table = Table(title=title, title_justify="left", show_header=False, box=None)
        table.add_column("", width=2)
        for column in columns:
            table.add_column(column)
        return table

    def check(self) -> None:
        self.console.print("[bold]olecharms check[/bold]\n")
        self.console.print(self.commands_table())
        self.console.print(self.vim_dirs_table())
        self.console.print(self.pathogen_table(versions=False))
        self.console.print(self.plugins_table(versions=False))
        self.console.print(self.vimrc_table())
        self.console.print(self.fonts_table())
        if self.record is not None:
            self.console.print(self.features_table(self.record))

    def status(self) -> None:
        self.console.print("[bold]olecharms status[/bold]\n")
        env = self.env
        self.console.print(f"[blue]OS:[/blue] {env.os_name} ({env.package_manager or 'none'})")
        self.console.print(f"[blue]Repo:[/blue] {escape(str(env.repo_dir))}")
        self.console.print(f"[blue]Vim dir:[/blue] {escape(str(env.vim_dir))}")
        self.console.print(f"[blue]Font dir:[/blue] {escape(str(env.font_dir))}")

        repo = GitRepository(env.repo_dir)
        if repo.is_checkout():
            try:
                rev, _ = repo.last_commit()
                self.console.print(f"[blue]Repo commit:[/blue] {escape(rev)}")
            except RuntimeError:
                pass

        self.console.print()
        self.console.print(self.plugins_table(versions=True))
        self.console.print(self.pathogen_table(versions=True))
        if self.record is not None:
            self.console.print(self.features_table(self.record))
            self.console.print(self.tasks_table())

    def commands_table(self) -> Table:
        table = self._table("System commands:", "command", "location")
        for command in self.definitions.check_commands:
            location = shutil.which(command)
            if location:
                table.add_row(OK, command, f"({escape(location)})")
            else:
                table.add_row(MISSING, command, "(not found)")
        return table

    def vim_dirs_table(self) -> Table:
        table = self._table("Vim directories:", "directory", "state")
        for name in VIM_SUBDIRS:
            path = self.env.vim_dir / name
            if path.is_dir():
                table.add_row(OK, escape(str(path)), "")
            else:
                table.add_row(MISSING, escape(str(path)), "(missing)")
        return table

    def pathogen_table(self, versions: bool) -> Table:
        table = self._table("Pathogen:", "state")
        installed = (self.env.vim_dir / "autoload" / "pathogen.vim").is_file()
        staging = GitRepository(self.env.pathogen_staging)
        if versions and staging.is_checkout():
            try:
                rev, _ = staging.last_commit()
                table.add_row(OK, escape(rev))
                return table
            except RuntimeError:
                pass
        if installed:
            label = "installed (bundled copy)" if versions else "pathogen.vim installed"
            table.add_row(PARTIAL if versions else OK, label)
        else:
            table.add_row(MISSING, "not installed" if versions else "pathogen.vim not found")
        return table

    def plugins_table(self, versions: bool) -> Table:
        table = self._table("Installed plugins:" if versions else "Vim plugins:", "plugin", "state")
        for plugin in self.definitions.vim_plugins:
            name = plugin["name"]
            repo = GitRepository(self.env.bundle_dir / name)
            if repo.is_checkout():
                detail = "(git repo)"
                if versions:
                    try:
                        rev, date = repo.last_commit()
                        detail = f"{rev}  ({date})"
                    except RuntimeError:
                        pass
                table.add_row(OK, escape(name), escape(detail))
            elif repo.path.is_dir():
                if versions:
                    detail = "(bundled copy, no version info)"
                else:
                    detail = "(present but not a git repo)"
                table.add_row(PARTIAL, escape(name), detail)
            else:
                table.add_row(MISSING, escape(name), "(not installed)")
        return table

    def vimrc_table(self) -> Table:
        table = self._table("Vimrc:", "state")
        vimrc = self.env.vimrc
        if rcfile.has_marker(VIMRC_MARKER, vimrc) and rcfile.has_line(
            f"source {self.env.managed_vimrc}", vimrc
        ):
            table.add_row(OK, f"source line present in {escape(str(vimrc))}")
        else:
            table.add_row(MISSING, f"source line not found in {escape(str(vimrc))}")
        return table

    def fonts_table(self) -> Table:
        table = self._table("Fonts:", "family", "state")
        font_dir = self.env.font_dir
        for family in self.definitions.font_families:
            count = len(list(font_dir.glob(f"*{family}*"))) if font_dir.is_dir() else 0
            if count:
                table.add_row(OK, escape(family), f"({count} files in {escape(str(font_dir))})")
            else:
                table.add_row(MISSING, escape(family), f"(not found in {escape(str(font_dir))})")
        return table

    def features_table(self, record: ConfigRecord) -> Table:
        table = self._table("Features:", "feature", "state")
        for feature in Feature:
            enabled = record.get_bool(feature.key)
            table.add_row(
                OK if enabled else MISSING, FEATURES[feature].label, "on" if enabled else "off"
            )
        table.add_row("", "Cleaner schedule", record.get(SCHEDULE_KEY, "shell"))
        return table

    def tasks_table(self) -> Table:
        table = self._table("Scheduled cleaners:", "task", "last run")
        store = TaskStore(self.env.task_dir)
        for feature in CLEANERS:
            table.add_row("", feature.value, _format_last_run(store.last_run(feature.value)))
        return table
