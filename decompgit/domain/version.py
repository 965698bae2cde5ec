"""
Game version domain objects for decompgit.

Versions come from the version manifest and are immutable facts:
- GameVersion: one released build with its kind and release time
- VersionSet: versions ordered by release time, unique by identifier
- TargetPolicy: the configured range and snapshot inclusion flag
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


class ReleaseKind(Enum):
    """Release channel of a game version."""
    RELEASE = "release"
    SNAPSHOT = "snapshot"
    OLD_BETA = "old_beta"
    OLD_ALPHA = "old_alpha"

    @classmethod
    def parse(cls, value: str) -> 'ReleaseKind':
        """Parse a manifest `type` value. Unknown kinds count as snapshots."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.SNAPSHOT


def parse_release_time(value: str) -> datetime:
    """
    Parse an ISO 8601 release time, keeping its timezone.

    Raises:
        ValueError: If the value is not ISO 8601 or has no UTC offset
    """
    parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        raise ValueError(f"Release time {value!r} has no UTC offset")
    return parsed


@dataclass(frozen=True)
class GameVersion:
    """
    A released build of the game.

    Attributes:
        identifier: Version id as listed in the manifest (e.g. "1.17.1")
        kind: Release channel
        release_time: When the version was released, used for ordering
    """

    identifier: str
    kind: ReleaseKind
    release_time: datetime

    @classmethod
    def from_manifest(cls, data: Dict[str, Any]) -> 'GameVersion':
        """
        Create from a version manifest entry.

        Raises:
            KeyError: If `id` or `releaseTime` is missing
            ValueError: If `releaseTime` is not ISO 8601 with a UTC offset
        """
        return cls(
            identifier=data['id'],
            kind=ReleaseKind.parse(data.get('type', 'snapshot')),
            release_time=parse_release_time(data['releaseTime']),
        )

    @property
    def sort_key(self) -> Tuple[datetime, str]:
        """Release time first, identifier breaks ties."""
        return (self.release_time, self.identifier)

    @property
    def is_release(self) -> bool:
        return self.kind == ReleaseKind.RELEASE

    @property
    def is_april_fools(self) -> bool:
        """True for versions released on April 1st."""
        return self.release_time.month == 4 and self.release_time.day == 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.identifier,
            'kind': self.kind.value,
            'release_time': self.release_time.isoformat(),
        }

    def __str__(self) -> str:
        return self.identifier


class VersionSet:
    """
    Versions in ascending (release time, identifier) order.

    Duplicate identifiers are dropped, keeping the first occurrence
    from the input.
    """

    def __init__(self, versions: Iterable[GameVersion] = ()):
        unique: Dict[str, GameVersion] = {}
        for version in versions:
            unique.setdefault(version.identifier, version)
        self._versions: Tuple[GameVersion, ...] = tuple(
            sorted(unique.values(), key=lambda v: v.sort_key)
        )
        self._by_id = {v.identifier: v for v in self._versions}

    @property
    def identifiers(self) -> List[str]:
        """Identifiers in order."""
        return [v.identifier for v in self._versions]

    def get(self, identifier: str) -> Optional[GameVersion]:
        return self._by_id.get(identifier)

    def filter(self, predicate) -> 'VersionSet':
        """Return the versions satisfying predicate, order preserved."""
        return VersionSet(v for v in self._versions if predicate(v))

    def __iter__(self) -> Iterator[GameVersion]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def __getitem__(self, index: int) -> GameVersion:
        return self._versions[index]

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._by_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionSet):
            return NotImplemented
        return self._versions == other._versions

    def __repr__(self) -> str:
        return f"VersionSet({self.identifiers!r})"


@dataclass(frozen=True)
class TargetPolicy:
    """The configured version range and inclusion flags."""

    min_version: str
    max_version: str
    include_snapshots: bool = False
    exclude_april_fools: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'min_version': self.min_version,
            'max_version': self.max_version,
            'include_snapshots': self.include_snapshots,
            'exclude_april_fools': self.exclude_april_fools,
        }
