"""Named SSH key pairs that can be swapped into ``id_ed25519``."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional

from rich.console import Console

USAGE = """Usage:
  olecharms sshkey add <name> <private_key_file> <public_key_file>
  olecharms sshkey <name>
  olecharms sshkey list
  olecharms sshkey help"""

PRIVATE_SUFFIX = ".privatekey"
PUBLIC_SUFFIX = ".pubkey"


def _first_line(path: Path) -> str:
    with open(path, "r", errors="replace") as f:
        return f.readline().strip()


def _readable(path: Path) -> bool:
    try:
        with open(path, "rb"):
            return True
    except OSError:
        return False


class SshKeyManager:
    """Stores key pairs as ``<name>.privatekey``/``<name>.pubkey`` in ``~/.ssh``."""

    def __init__(self, ssh_dir: Path, console: Optional[Console] = None):
        self.ssh_dir = Path(ssh_dir)
        self.console = console or Console()

    def _fail(self, message: str, usage: bool = False) -> bool:
        self.console.print(f"switchsshkey: {message}", style="red", markup=False)
        if usage:
            self.console.print(USAGE, markup=False)
        return False

    def list(self) -> List[str]:
        """Return the names of stored key pairs."""
        if not self.ssh_dir.is_dir():
            return []
        return sorted(
            p.name[: -len(PUBLIC_SUFFIX)]
            for p in self.ssh_dir.glob(f"*{PUBLIC_SUFFIX}")
            if p.is_file()
        )

    def add(self, name: str, private_key_file: Path, public_key_file: Path) -> bool:
        """Store a key pair under ``name``."""
        if not name or "/" in name or name.startswith("."):
            return self._fail(f"invalid key pair name: {name!r}", usage=True)
        if not _readable(private_key_file):
            return self._fail(f"cannot read private key file: {private_key_file}")
        if not _readable(public_key_file):
            return self._fail(f"cannot read public key file: {public_key_file}")

        if _first_line(private_key_file).startswith("ssh-") or _first_line(
            public_key_file
        ).startswith("-----BEGIN"):
            return self._fail(
                "it looks like the private and public key arguments may be swapped", usage=True
            )

        private_target = self.ssh_dir / f"{name}{PRIVATE_SUFFIX}"
        public_target = self.ssh_dir / f"{name}{PUBLIC_SUFFIX}"
        if private_target.exists() or public_target.exists():
            return self._fail(f"key pair '{name}' already exists")

        self.ssh_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        shutil.copyfile(private_key_file, private_target)
        shutil.copyfile(public_key_file, public_target)
        private_target.chmod(0o600)
        public_target.chmod(0o644)
        self.console.print(f"switchsshkey: added key pair '{name}'", markup=False)
        return True

    def switch(self, name: str) -> bool:
        """Copy the stored pair ``name`` onto ``id_ed25519``."""
        private_source = self.ssh_dir / f"{name}{PRIVATE_SUFFIX}"
        public_source = self.ssh_dir / f"{name}{PUBLIC_SUFFIX}"
        if not private_source.is_file() or not public_source.is_file():
            self._fail(f"key pair '{name}' not found")
            self.console.print("Run 'olecharms sshkey list' to see available keys", markup=False)
            return False

        private_target = self.ssh_dir / "id_ed25519"
        public_target = self.ssh_dir / "id_ed25519.pub"
        shutil.copyfile(private_source, private_target)
        shutil.copyfile(public_source, public_target)
        private_target.chmod(0o600)
        public_target.chmod(0o644)
        self.console.print(f"switchsshkey: switched to '{name}'", markup=False)
        return True
