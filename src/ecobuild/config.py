# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Mapping, Optional

MAVEN_CENTRAL_METADATA = "https://repo1.maven.org/maven2/com/vaadin/vaadin-bom/maven-metadata.xml"
FALLBACK_VERSION = "25.0.5"

ENV_PREFIX = "ECOBUILD_"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    """Run configuration. Defaults < ECOBUILD_* environment < CLI flags."""
    work_dir: Path = Path("work")
    timeout_minutes: float = 2.0
    build_threads: int = 1
    quiet_downloads: bool = False
    tail_lines: int = 10
    line_width: int = 100
    refresh_interval: float = 1.0
    triage: bool = True
    known_issues_in_failed_list: bool = True
    issue_repo: str = "mstahv/vaadin-ecosystem-build"
    version_property: str = "vaadin.version"
    bom_artifact: str = "vaadin-bom"
    archetype_group: str = "com.vaadin"
    archetype_artifact: str = "vaadin-archetype-application"
    metadata_url: str = MAVEN_CENTRAL_METADATA
    fallback_version: str = FALLBACK_VERSION
    settings_xml: Optional[Path] = field(default=None)

    def __post_init__(self) -> None:
        if self.build_threads < 1:
            raise ValueError("build_threads must be >= 1")
        if self.timeout_minutes <= 0:
            raise ValueError("timeout_minutes must be > 0")
        if self.tail_lines < 1:
            raise ValueError("tail_lines must be >= 1")
        if self.line_width < 10:
            raise ValueError("line_width must be >= 10")

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_minutes * 60

    def output_dir(self, version: str) -> Path:
        """Version-specific directory for logs and reports."""
        return self.work_dir / version

    def with_overrides(self, **overrides) -> Settings:
        """Return a copy, skipping overrides whose value is None."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            name = ENV_PREFIX + f.name.upper()
            if name not in env:
                continue
            raw = env[name]
            default = getattr(cls, f.name, None)
            try:
                if f.name in ("work_dir", "settings_xml"):
                    values[f.name] = Path(raw) if raw else None
                elif isinstance(default, bool):
                    values[f.name] = _parse_bool(name, raw)
                elif isinstance(default, int):
                    values[f.name] = int(raw)
                elif isinstance(default, float):
                    values[f.name] = float(raw)
                else:
                    values[f.name] = raw
            except ValueError as e:
                raise ValueError(f"Invalid value for {name}: {raw!r} ({e})") from e
        return cls(**values)
