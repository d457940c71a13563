# logview/config.py
"""Server configuration.

Loaded from an optional YAML file, then overridden by the environment:

    LOGVIEW_ALLOWED_ROOTS   colon-separated list of directories that
                            requested log files must live under

Every path is canonicalized with os.path.realpath() before comparison.
"""
from __future__ import annotations
import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

ALLOWED_ROOTS_VAR = "LOGVIEW_ALLOWED_ROOTS"


class PathNotAllowed(Exception):
    """Raised when a requested log file lies outside every allowed root."""
    pass


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 9000
    log_files: list[Path] = []
    log_dirs: list[Path] = []
    # Empty means any readable file may be requested
    allowed_roots: list[Path] = []
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {v!r}")
        return level

    @classmethod
    def from_yaml(cls, path: Path) -> ServerConfig:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def with_environment(self) -> ServerConfig:
        raw = os.environ.get(ALLOWED_ROOTS_VAR)
        if not raw:
            return self
        roots = [Path(p) for p in raw.split(":") if p]
        return self.model_copy(update={"allowed_roots": roots})

    def list_log_files(self) -> list[str]:
        """Return the configured log files plus every *.log in log_dirs."""
        found = {os.path.realpath(p) for p in self.log_files}
        for log_dir in self.log_dirs:
            found.update(
                os.path.realpath(p) for p in Path(log_dir).glob("*.log") if p.is_file()
            )
        return sorted(found)

    def check_allowed(self, log_file: Path) -> str:
        """Canonicalize log_file and confirm it lives under an allowed root.

        Returns the canonical path on success; raises PathNotAllowed otherwise.
        """
        canonical = os.path.realpath(log_file)
        if not self.allowed_roots:
            return canonical
        for root in self.allowed_roots:
            canonical_root = os.path.realpath(root)
            if canonical == canonical_root or canonical.startswith(canonical_root + os.sep):
                return canonical
        raise PathNotAllowed(
            f"Path {str(log_file)!r} resolves to {canonical!r}, which is outside "
            f"the allowed roots {[str(r) for r in self.allowed_roots]}"
        )


def load_config(path: Path | None = None) -> ServerConfig:
    config = ServerConfig.from_yaml(path) if path else ServerConfig()
    return config.with_environment()
