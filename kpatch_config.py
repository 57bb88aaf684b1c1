"""
kpatch_config.py - Run configuration for krakpatch.
Settings come from the environment (optionally seeded from a .env file) and are
carried explicitly through every component as a PatcherConfig value.
"""

import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

VERBOSITY_SILENT = 0
VERBOSITY_ERRORS = 1
VERBOSITY_PROGRESS = 2

CLASS_SUFFIX = ".class"
TEXT_SUFFIX = ".j"
ARCHIVE_EXTENSIONS = (".jar", ".zip")

DEFAULT_KRAK_MODE = "--roundtrip"
DEFAULT_DIFF_OPTS = "-rNu"


def load_env():
    """Load environment variables from .env file."""
    try:
        from dotenv import load_dotenv
    except ImportError:
        return  # dotenv not available, skip

    # Try current directory first, then script directory
    script_dir = Path(__file__).parent
    env_paths = [
        Path.cwd() / ".env",  # Current working directory
        script_dir / ".env"   # krakpatch script directory
    ]

    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            break


def _parse_verbosity(raw: Optional[str]) -> int:
    try:
        level = int(raw) if raw is not None else VERBOSITY_SILENT
    except ValueError:
        return VERBOSITY_SILENT
    return max(VERBOSITY_SILENT, min(level, VERBOSITY_PROGRESS))


@dataclass(frozen=True)
class PatcherConfig:
    verbosity: int = VERBOSITY_SILENT
    krak_mode: List[str] = field(default_factory=lambda: shlex.split(DEFAULT_KRAK_MODE))
    diff_opts: List[str] = field(default_factory=lambda: shlex.split(DEFAULT_DIFF_OPTS))
    krak_command: str = "krak2"
    diff_command: str = "diff"
    patch_command: str = "patch"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PatcherConfig":
        """
        Builds a configuration from environment-style overrides.
        Unset variables keep their documented defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            verbosity=_parse_verbosity(env.get("VERBOSITY")),
            krak_mode=shlex.split(env.get("KRAK_MODE") or DEFAULT_KRAK_MODE),
            diff_opts=shlex.split(env.get("DIFF_OPTS") or DEFAULT_DIFF_OPTS),
            krak_command=env.get("KRAK") or "krak2",
            diff_command=env.get("DIFF") or "diff",
            patch_command=env.get("PATCH") or "patch",
        )

    @property
    def shows_errors(self) -> bool:
        return self.verbosity >= VERBOSITY_ERRORS

    @property
    def shows_progress(self) -> bool:
        return self.verbosity >= VERBOSITY_PROGRESS


def log_message(config: PatcherConfig, source: str, message: str, is_error: bool = False):
    """Writes a narration line to stderr when the configured verbosity allows it."""
    if (is_error and config.shows_errors) or config.shows_progress:
        level = "ERROR" if is_error else "INFO"
        print(f"{source} ({level}): {message}", file=sys.stderr)
