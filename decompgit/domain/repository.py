"""
Repository state domain objects for decompgit.

The git repository is read once at the start of every run and turned
into a RepositorySnapshot. Nothing here is persisted on its own: the
next run re-derives it from tags, commits and sentinel markers.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .version import GameVersion

# File committed at the root of every version commit
SENTINEL_FILENAME = ".decompgit.json"

# Bumped whenever the layout of version commits changes
CURRENT_FORMAT_VERSION = 1

_INVALID_REF_CHARS = re.compile(r'[\x00-\x20\x7f~^:?*\[\\]+')


def tag_name_for(identifier: str) -> str:
    """
    Git tag name for a version identifier.

    Identifiers that are already valid ref names are used unchanged.
    Anything git would reject is replaced with underscores, e.g.
    "1.14 Pre-Release 1" -> "1.14_Pre-Release_1".
    """
    name = _INVALID_REF_CHARS.sub('_', identifier.strip())
    while '..' in name:
        name = name.replace('..', '_.')
    name = name.replace('@{', '_{')
    if name.startswith(('.', '-')):
        name = '_' + name[1:]
    if name.endswith('.lock'):
        name = name[:-len('.lock')] + '_lock'
    if name.endswith('.'):
        name = name[:-1] + '_'
    if not name or name == '@':
        name = '_'
    return name


@dataclass(frozen=True)
class SentinelMarker:
    """
    Tool bookkeeping committed alongside each version.

    Attributes:
        format_version: Layout version of the commit (CURRENT_FORMAT_VERSION)
        toolchain_version: Decompiler toolchain that produced the sources
        version: Version identifier the commit holds
        kind: Release kind value
        release_time: ISO 8601 release time
    """

    format_version: int
    toolchain_version: str
    version: str
    kind: str = ""
    release_time: str = ""

    @classmethod
    def for_version(cls, version: GameVersion, toolchain_version: str) -> 'SentinelMarker':
        return cls(
            format_version=CURRENT_FORMAT_VERSION,
            toolchain_version=toolchain_version,
            version=version.identifier,
            kind=version.kind.value,
            release_time=version.release_time.isoformat(),
        )

    @classmethod
    def from_json(cls, text: str) -> 'SentinelMarker':
        """
        Parse the committed marker file.

        Raises:
            ValueError: If the content is not a valid marker
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid sentinel marker: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Invalid sentinel marker: not an object")
        try:
            return cls(
                format_version=int(data['format_version']),
                toolchain_version=str(data.get('toolchain_version', '')),
                version=str(data['version']),
                kind=str(data.get('kind', '')),
                release_time=str(data.get('release_time', '')),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid sentinel marker: {e}") from e

    def to_json(self) -> str:
        data = {
            'format_version': self.format_version,
            'toolchain_version': self.toolchain_version,
            'version': self.version,
            'kind': self.kind,
            'release_time': self.release_time,
        }
        return json.dumps(data, indent=2, sort_keys=True) + '\n'

    def is_current(self, toolchain_version: str) -> bool:
        """True if the commit was produced by this format and toolchain."""
        return (
            self.format_version == CURRENT_FORMAT_VERSION
            and self.toolchain_version == toolchain_version
        )


@dataclass(frozen=True)
class RepositoryEntry:
    """
    A version already materialized in the repository.

    Attributes:
        version: Version identifier (from the sentinel marker)
        tag: Tag name pointing at the commit
        commit: Commit id the tag resolves to
        position: Index of the commit on the primary branch, oldest first
        current: False if the commit was built by another format or toolchain
    """

    version: str
    tag: str
    commit: str
    position: int
    current: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'tag': self.tag,
            'commit': self.commit,
            'position': self.position,
            'current': self.current,
        }


@dataclass(frozen=True)
class RepositorySnapshot:
    """
    The repository as found at the start of a run.

    Attributes:
        path: Repository path
        fresh: True if no repository exists yet
        branch: Primary branch name
        tip: Commit the primary branch points to, None if unborn
        entries: Version entries in branch order, oldest first
    """

    path: str
    fresh: bool = False
    branch: str = "main"
    tip: Optional[str] = None
    entries: Tuple[RepositoryEntry, ...] = field(default_factory=tuple)

    @property
    def identifiers(self) -> List[str]:
        return [e.version for e in self.entries]

    def get(self, identifier: str) -> Optional[RepositoryEntry]:
        for entry in self.entries:
            if entry.version == identifier:
                return entry
        return None

    @property
    def newest(self) -> Optional[RepositoryEntry]:
        return self.entries[-1] if self.entries else None
