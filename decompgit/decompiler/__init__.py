"""
Decompilation drivers for decompgit.

A driver turns one game version into a directory of formatted source
files. It must be deterministic for a given version and toolchain
version; changing `toolchain_version` forces every commit to be
rebuilt.
"""

from pathlib import Path
from typing import Protocol

from ..domain.version import GameVersion
from .gradle import GradleDecompiler


class DecompilationDriver(Protocol):
    """Interface the repository writer decompiles through."""

    @property
    def toolchain_version(self) -> str:
        """Identifies everything that influences the produced sources."""
        ...

    def decompile(self, version: GameVersion) -> Path:
        """
        Decompile a version.

        Returns:
            Directory whose contents become the version's commit

        Raises:
            DecompilationFailedError: If decompilation fails
        """
        ...


__all__ = [
    'DecompilationDriver',
    'GradleDecompiler',
]
