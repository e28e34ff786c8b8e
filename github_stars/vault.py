"""File access used by the store and by the unstarred cleanup."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

LOGGER = logging.getLogger(__name__)


class VaultAdapter(Protocol):
    """Minimal document-store interface consumed by the core."""

    def exists(self, path: str) -> bool: ...

    def read_binary(self, path: str) -> bytes: ...

    def write_binary(self, path: str, data: bytes) -> None: ...

    def get_or_create_folder(self, path: str) -> str: ...

    def remove_file(self, path: str) -> bool: ...


class FileSystemVault:
    """:class:`VaultAdapter` backed by a directory on the local disk.

    Paths are vault-relative and use ``/`` as separator.
    """

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if target != self._root and self._root not in target.parents:
            raise ValueError(f"Path escapes the vault: {path}")
        return target

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def read_binary(self, path: str) -> bytes:
        return self.resolve(path).read_bytes()

    def write_binary(self, path: str, data: bytes) -> None:
        """Write ``data`` through a temporary sibling and atomically swap it in."""

        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_or_create_folder(self, path: str) -> str:
        folder = self.resolve(path)
        if not folder.is_dir():
            LOGGER.debug("Creating folder %s", folder)
            folder.mkdir(parents=True, exist_ok=True)
        return path

    def remove_file(self, path: str) -> bool:
        """Delete ``path``; returns ``False`` when there was nothing to delete."""

        target = self.resolve(path)
        if not target.is_file():
            return False
        target.unlink()
        return True


__all__ = ["FileSystemVault", "VaultAdapter"]
