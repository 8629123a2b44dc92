"""
Configuration for sensitivity runs.

SensitivityConfig carries the defaults an engine uses when a call
does not override them. configure_logging wires the root logger
from the same settings.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .conventions import BumpFlags, BumpType
from .errors import ConfigurationError


DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class SensitivityConfig:
    """
    Defaults for a sensitivity engine.

    Attributes:
        up_bump: Up bump size in bump units
        down_bump: Down bump size in bump units
        bump_type: How tenors are grouped into bumps
        flags: Bump semantics
        scaled_delta: Divide deltas by the actual bump sizes
        cache: Keep shifted curve ordinates cached after the run
        max_workers: Thread pool size for semi-analytic runs (None = serial)
        log_level: Level used by configure_logging
    """
    up_bump: float = 4.0
    down_bump: float = 4.0
    bump_type: BumpType = BumpType.PARALLEL
    flags: BumpFlags = BumpFlags.NONE
    scaled_delta: bool = True
    cache: bool = True
    max_workers: Optional[int] = None
    log_level: str = "INFO"

    def __post_init__(self):
        """Normalize enums and validate sizes."""
        self.bump_type = BumpType.from_string(self.bump_type)
        self.flags = BumpFlags.from_string(self.flags)
        if self.up_bump < 0 or self.down_bump < 0:
            raise ConfigurationError(
                f"Bump sizes must be non-negative: up={self.up_bump}, down={self.down_bump}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be positive: {self.max_workers}")
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ConfigurationError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "SensitivityConfig":
        """Build a config from plain values, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})


def configure_logging(
    config: Optional[SensitivityConfig] = None,
    fmt: str = DEFAULT_LOG_FORMAT,
    datefmt: str = DEFAULT_DATE_FORMAT
) -> None:
    """
    Configure the root logger for command-line and notebook use.

    Args:
        config: Source of the log level (default config when None)
        fmt: Log record format
        datefmt: Timestamp format
    """
    config = config or SensitivityConfig()
    logging.basicConfig(
        level=config.log_level.upper(),
        format=fmt,
        datefmt=datefmt,
        force=True,
    )


__all__ = [
    "SensitivityConfig",
    "configure_logging",
    "DEFAULT_LOG_FORMAT",
]
