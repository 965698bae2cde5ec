"""
File store infrastructure for decompgit.

Provides JSON file persistence with:
- Atomic writes (write to temp, then rename)
- Automatic parent directory creation

Used for the version manifest cache under the state directory.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


class FileStore:
    """
    JSON document persisted with atomic writes.

    Example:
        store = FileStore(Path(".cache/version_manifest.json"))
        store.write({"versions": [...]})
        data = store.read()
    """

    def __init__(self, path: Path):
        """
        Initialize FileStore.

        Args:
            path: Path to JSON file
        """
        self.path = Path(path).expanduser().resolve()

    def _write_atomic(self, data: Any) -> None:
        """Write data atomically using temp file and rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temp file in same directory
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write('\n')

            os.replace(temp_path, self.path)

        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Optional[Any]:
        """
        Read the stored document.

        Returns:
            Parsed JSON, or None if the file is missing or unreadable
        """
        try:
            with open(self.path, 'r') as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Error reading {self.path}: {e}")
            return None

    def write(self, data: Any) -> None:
        """
        Replace the stored document.

        Args:
            data: JSON-serializable data
        """
        self._write_atomic(data)
