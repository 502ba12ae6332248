# maven.py
from __future__ import annotations

import logging
import re
import shlex
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .config import Settings
from .process import run_logged

logger = logging.getLogger(__name__)

_VERSION_LIKE = re.compile(r"^\d+\.\d+\S*$")

SDKMAN_INIT = 'export SDKMAN_DIR="$HOME/.sdkman" && source "$SDKMAN_DIR/bin/sdkman-init.sh"'


class MavenInvoker:
    """
    Builds `mvn` command lines and runs them with log capture.

    When a task names a Java version the command runs through SDKMAN in a
    bash shell. Installing the JDK is best-effort (`|| true`); if the
    switch itself fails, the mvn command is not reached and the build
    fails with SDKMAN's exit code.
    """

    def __init__(self, settings: Settings, *, custom_version: bool = False):
        self.settings = settings
        self.custom_version = custom_version

    # ------------------------------------------------------------------
    # Command lines
    # ------------------------------------------------------------------

    def common_args(self) -> List[str]:
        args = ["-B"]
        if self.settings.quiet_downloads:
            args.append("--no-transfer-progress")
        if self.custom_version:
            settings_xml = self.settings.settings_xml or Path.cwd() / "settings.xml"
            if settings_xml.exists():
                args += ["--settings", str(settings_xml.resolve())]
        return args

    def command(self, args: Sequence[str], java_version: Optional[str] = None) -> List[str]:
        mvn = ["mvn", *args]
        if not java_version:
            return mvn
        jv = shlex.quote(java_version)
        script = " && ".join(
            [
                SDKMAN_INIT,
                f"(yes | sdk install java {jv} || true)",
                f"sdk use java {jv}",
                shlex.join(mvn),
            ]
        )
        return ["bash", "-c", script]

    def verify_args(self, *, use_addons_repo: bool = False, extra_args: Sequence[str] = ()) -> List[str]:
        args = ["clean", "verify", *self.common_args()]
        if use_addons_repo:
            args.append("-Pvaadin-addons")
        args += list(extra_args)
        return args

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(
        self,
        build_path: Path,
        log_file: Path,
        args: Sequence[str],
        *,
        java_version: Optional[str] = None,
        echo: Optional[Callable[[str], None]] = None,
    ) -> int:
        cmd = self.command(args, java_version)
        logger.debug("mvn in %s: %s", build_path, shlex.join(cmd))
        return run_logged(
            cmd,
            cwd=build_path,
            log_file=log_file,
            timeout=self.settings.timeout_seconds,
            echo=echo,
        )

    def set_version(
        self,
        build_path: Path,
        log_file: Path,
        version: str,
        *,
        java_version: Optional[str] = None,
    ) -> Tuple[int, int]:
        """
        Point the build descriptor at `version`.

        Two independent rewrites: the version property, and the BOM
        artifact version for poms that reference it directly. Either may
        fail; the build that follows decides.
        """
        common = self.common_args()
        prop_rc = self.run(
            build_path,
            log_file,
            [
                "versions:set-property",
                f"-Dproperty={self.settings.version_property}",
                f"-DnewVersion={version}",
                "-DgenerateBackupPoms=false",
                *common,
            ],
            java_version=java_version,
        )
        bom_rc = self.run(
            build_path,
            log_file,
            [
                "versions:set",
                f"-DnewVersion={version}",
                f"-DartifactId={self.settings.bom_artifact}",
                "-DgenerateBackupPoms=false",
                *common,
            ],
            java_version=java_version,
        )
        if prop_rc != 0 and bom_rc != 0:
            logger.info("version rewrite in %s failed both ways (%s, %s)", build_path, prop_rc, bom_rc)
        return prop_rc, bom_rc

    def verify(
        self,
        build_path: Path,
        log_file: Path,
        *,
        java_version: Optional[str] = None,
        use_addons_repo: bool = False,
        extra_args: Sequence[str] = (),
        echo: Optional[Callable[[str], None]] = None,
    ) -> int:
        args = self.verify_args(use_addons_repo=use_addons_repo, extra_args=extra_args)
        return self.run(build_path, log_file, args, java_version=java_version, echo=echo)

    def detect_version(self, build_path: Path, *, java_version: Optional[str] = None) -> Optional[str]:
        """The project's own framework version, or None if it cannot be read."""
        args = [
            "help:evaluate",
            f"-Dexpression={self.settings.version_property}",
            "-q",
            "-DforceStdout",
        ]
        with tempfile.TemporaryDirectory(prefix="ecobuild-") as tmp:
            out_file = Path(tmp) / "version.log"
            try:
                rc = self.run(build_path, out_file, args, java_version=java_version)
                output = out_file.read_text(encoding="utf-8", errors="replace").strip()
            except OSError as e:
                logger.debug("version detection in %s failed: %s", build_path, e)
                return None
        if rc != 0:
            return None
        # the last line is the value; anything before it is tool noise
        last = output.splitlines()[-1].strip() if output else ""
        return last if _VERSION_LIKE.match(last) else None

    def generate_archetype(self, work_path: Path, log_file: Path, artifact_id: str) -> int:
        args = [
            "archetype:generate",
            "-B",
            f"-DarchetypeGroupId={self.settings.archetype_group}",
            f"-DarchetypeArtifactId={self.settings.archetype_artifact}",
            "-DarchetypeVersion=LATEST",
            "-DgroupId=com.example",
            f"-DartifactId={artifact_id}",
            "-Dversion=1.0-SNAPSHOT",
            *self.common_args(),
        ]
        return self.run(work_path, log_file, args)
