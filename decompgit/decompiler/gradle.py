"""
Gradle decompilation driver for decompgit.

Runs Fabric Loom (Vineflower decompiler, official mappings layered with
Parchment) in a throwaway Gradle project inside the work area. Gradle
itself is downloaded once into the work area.

Work area layout:
    decompilationWorkArea/
        settings.gradle.kts, build.gradle.kts, gradle.properties
        gradle-install/<gradle version>/bin/gradle
        output/src/...          decompiled sources
        output/libraries.txt    client and server libraries
"""

import logging
import os
import shutil
import stat
import subprocess
import sys
import tempfile
import zipfile
from importlib import resources
from pathlib import Path
from typing import List, Optional

import requests

from ..domain.version import GameVersion, VersionSet
from ..exit_codes import DecompilationFailedError
from .parchment import PARCHMENT_VERSIONS, index_parchment_versions

logger = logging.getLogger(__name__)

LOOM_VERSION = "1.10.5"

# Bumped any time the committed tree layout or build script changes
OUTPUT_LAYOUT_VERSION = 3

OUTPUT_DIRNAME = "output"
GRADLE_INSTALL_DIRNAME = "gradle-install"
GRADLE_DOWNLOAD_URL = "https://services.gradle.org/distributions/gradle-{version}-bin.zip"

GRADLE_TASKS = ["unpackSourcesIntoKnownDir", "exportLibraries"]

# Lines of Gradle output logged when a build fails
FAILURE_LOG_LINES = 40


class GradleDecompiler:
    """
    Decompiles versions with Gradle and Fabric Loom.

    Example:
        driver = GradleDecompiler(Path("decompilationWorkArea"), catalog)
        sources = driver.decompile(catalog.get("1.21"))
    """

    def __init__(
        self,
        work_area: Path,
        catalog: VersionSet,
        gradle_version: str = "8.12",
        timeout: Optional[int] = None,
        stop_daemon: bool = True,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize GradleDecompiler.

        Args:
            work_area: Scratch directory shared by all decompilations
            catalog: Every known version, used to pick Parchment mappings
            gradle_version: Gradle distribution to install
            timeout: Seconds before a single decompilation is aborted
            stop_daemon: Stop a running Gradle daemon before the first build
            session: HTTP session for the Gradle download
        """
        self.work_area = Path(work_area)
        self.gradle_version = gradle_version
        self.timeout = timeout
        self.stop_daemon = stop_daemon
        self.session = session or requests.Session()
        self._parchment = index_parchment_versions(catalog)
        self._daemon_stopped = False

    @property
    def toolchain_version(self) -> str:
        newest_parchment = list(PARCHMENT_VERSIONS.values())[-1]
        return (
            f"loom-{LOOM_VERSION}+gradle-{self.gradle_version}"
            f"+parchment-{newest_parchment}+layout-{OUTPUT_LAYOUT_VERSION}"
        )

    @property
    def output_dir(self) -> Path:
        return self.work_area / OUTPUT_DIRNAME

    def decompile(self, version: GameVersion) -> Path:
        """
        Decompile a version into the output directory.

        Raises:
            DecompilationFailedError: If Gradle cannot be installed, the
                build fails or times out, or it produces no sources
        """
        self.work_area.mkdir(parents=True, exist_ok=True)
        gradle = self._ensure_gradle(version)
        self.write_build_files(version)

        shutil.rmtree(self.output_dir, ignore_errors=True)

        if self.stop_daemon and not self._daemon_stopped:
            self._run_gradle(gradle, ["--stop"], version)
            self._daemon_stopped = True

        logger.info(f"Decompiling {version.identifier}...")
        self._run_gradle(
            gradle,
            ["--stacktrace", "--parallel", "--configuration-cache"] + GRADLE_TASKS,
            version,
        )

        if not (self.output_dir / "src").is_dir():
            raise DecompilationFailedError(version.identifier, "Gradle produced no decompiled sources")
        return self.output_dir

    def parchment_for(self, version: GameVersion) -> Optional[str]:
        """Parchment game version used for a version, if any."""
        return self._parchment.get(version.identifier)

    def write_build_files(self, version: GameVersion) -> None:
        """Write the Gradle project that decompiles `version`."""
        templates = resources.files("decompgit.decompiler").joinpath("templates")
        settings = templates.joinpath("settings.gradle.kts").read_text()
        build = (
            templates.joinpath("build.gradle.kts").read_text()
            .replace("@LOOM_VERSION@", LOOM_VERSION)
            .replace("@OUTPUT_DIR@", OUTPUT_DIRNAME)
        )

        parchment_mc = self.parchment_for(version)
        properties = "\n".join([
            "org.gradle.jvmargs=-Xmx4G",
            f"minecraft_version={version.identifier}",
            f"parchment_mc_version={parchment_mc or ''}",
            f"parchment_version={PARCHMENT_VERSIONS[parchment_mc] if parchment_mc else ''}",
            "",
        ])

        (self.work_area / "settings.gradle.kts").write_text(settings)
        (self.work_area / "build.gradle.kts").write_text(build)
        (self.work_area / "gradle.properties").write_text(properties)

    def _run_gradle(self, gradle: Path, args: List[str], version: GameVersion) -> None:
        try:
            result = subprocess.run(
                [str(gradle)] + args,
                cwd=self.work_area,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise DecompilationFailedError(
                version.identifier, f"gradle {' '.join(args)} timed out after {self.timeout} seconds"
            ) from e
        except OSError as e:
            raise DecompilationFailedError(version.identifier, f"cannot run {gradle}: {e}") from e

        output = (result.stdout or "") + (result.stderr or "")
        if result.returncode != 0:
            tail = output.strip().splitlines()[-FAILURE_LOG_LINES:]
            for line in tail:
                logger.error(f"gradle: {line}")
            raise DecompilationFailedError(
                version.identifier, f"gradle {' '.join(args)} exited with code {result.returncode}"
            )
        for line in output.strip().splitlines():
            logger.debug(f"gradle: {line}")

    def _gradle_dir(self) -> Path:
        return (self.work_area / GRADLE_INSTALL_DIRNAME / self.gradle_version).absolute()

    def _gradle_executable(self) -> Path:
        name = "gradle.bat" if sys.platform == "win32" else "gradle"
        return self._gradle_dir() / "bin" / name

    def _ensure_gradle(self, version: GameVersion) -> Path:
        """Download and unpack Gradle unless it is already installed."""
        executable = self._gradle_executable()
        if executable.exists():
            logger.debug(f"Found Gradle executable at {executable}")
            return executable

        try:
            self._install_gradle()
        except (requests.RequestException, zipfile.BadZipFile, OSError) as e:
            raise DecompilationFailedError(
                version.identifier, f"cannot install Gradle {self.gradle_version}: {e}"
            ) from e

        if not executable.exists():
            raise DecompilationFailedError(
                version.identifier, f"Gradle executable not found after extraction: {executable}"
            )
        executable.chmod(executable.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return executable

    def _install_gradle(self) -> None:
        gradle_dir = self._gradle_dir()
        url = GRADLE_DOWNLOAD_URL.format(version=self.gradle_version)
        logger.info(f"Downloading Gradle {self.gradle_version}...")

        gradle_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryFile() as archive:
            with self.session.get(url, stream=True, timeout=60) as response:
                response.raise_for_status()
                for chunk in response.iter_content(chunk_size=1 << 20):
                    archive.write(chunk)
            archive.seek(0)
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(gradle_dir)

        if self._gradle_executable().exists():
            return

        # Distributions unpack into a single gradle-<version>/ directory
        contents = list(gradle_dir.iterdir())
        if len(contents) != 1 or not contents[0].is_dir():
            raise OSError(f"Unexpected Gradle archive layout in {gradle_dir}: {[p.name for p in contents]}")
        nested = contents[0]
        for entry in nested.iterdir():
            os.replace(entry, gradle_dir / entry.name)
        nested.rmdir()
