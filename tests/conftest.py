"""Shared fixtures: a small version catalog and a fake decompiler."""

import shutil
from datetime import datetime, timezone
from pathlib import Path

import pytest

from decompgit.domain.repository import RepositoryEntry, RepositorySnapshot
from decompgit.domain.version import GameVersion, ReleaseKind, VersionSet
from decompgit.exit_codes import DecompilationFailedError


def make_version(identifier, when, kind=ReleaseKind.RELEASE):
    """GameVersion released at `when` ("YYYY-MM-DD" or "YYYY-MM-DDTHH:MM")."""
    return GameVersion(
        identifier=identifier,
        kind=kind,
        release_time=datetime.fromisoformat(when).replace(tzinfo=timezone.utc),
    )


def make_snapshot(identifiers, stale=(), path="/repo"):
    """Snapshot whose branch holds `identifiers` in order, with fake commit ids."""
    entries = tuple(
        RepositoryEntry(
            version=identifier,
            tag=identifier,
            commit=f"{i:040x}",
            position=i,
            current=identifier not in stale,
        )
        for i, identifier in enumerate(identifiers)
    )
    return RepositorySnapshot(
        path=path,
        fresh=False,
        tip=entries[-1].commit if entries else None,
        entries=entries,
    )


class FakeDriver:
    """Writes a tiny source tree per version; fails for versions in `fail_on`."""

    def __init__(self, work_area, toolchain_version="fake-toolchain-1"):
        self.work_area = Path(work_area)
        self.toolchain_version = toolchain_version
        self.fail_on = set()
        self.calls = []

    def decompile(self, version):
        self.calls.append(version.identifier)
        if version.identifier in self.fail_on:
            raise DecompilationFailedError(version.identifier, "simulated failure")

        output = self.work_area / "output"
        shutil.rmtree(output, ignore_errors=True)
        (output / "src" / "net" / "game").mkdir(parents=True)
        (output / "src" / "net" / "game" / "Game.java").write_text(
            f"package net.game;\n\n// {version.identifier}\nclass Game {{}}\n"
        )
        (output / "src" / "net" / "game" / f"V{len(self.calls)}.java").write_text("class V {}\n")
        (output / "libraries.txt").write_text("com.example:lib:1.0\n")
        return output


@pytest.fixture
def catalog():
    """Releases 1.0 to 1.5, two snapshots and an April Fools snapshot."""
    return VersionSet([
        make_version("1.0", "2020-01-01"),
        make_version("1.1", "2020-02-01"),
        make_version("20w06a", "2020-02-05", ReleaseKind.SNAPSHOT),
        make_version("1.2", "2020-03-01"),
        make_version("20w14infinite", "2020-04-01T12:00", ReleaseKind.SNAPSHOT),
        make_version("1.3", "2020-05-01"),
        make_version("20w20a", "2020-05-15", ReleaseKind.SNAPSHOT),
        make_version("1.4", "2020-06-01"),
        make_version("1.5", "2020-07-01"),
    ])


@pytest.fixture
def fake_driver(tmp_path):
    return FakeDriver(tmp_path / "decompilationWorkArea")


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
