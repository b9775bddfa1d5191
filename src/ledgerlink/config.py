"""Configuration for ledgerlink.

Every tunable lives here. Values come from the dataclass defaults and can be
overridden through ``LEDGERLINK_*`` environment variables with
``Settings.from_env()``.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional


class ConfigError(Exception):
    """Raised when a configuration value cannot be used."""


@dataclass
class ResolverConfig:
    """Account reference resolution settings."""

    # Minimum similarity (0-100) for a fuzzy match; below it the ref is missing
    fuzzy_floor: int = 60
    # Fuzzy matches strictly above this are mapped without asking
    auto_accept_confidence: int = 90
    # How many alternative accounts to offer per ref
    similar_limit: int = 5
    max_ref_length: int = 255


@dataclass
class MatchingConfig:
    """Bill / invoice matching settings."""

    # Candidates scoring below this are never surfaced
    min_score: int = 40


@dataclass
class ImportConfig:
    """Import loop settings."""

    # Receives the offsetting line of each imported row
    clearing_account_number: str = "9999"
    clearing_account_name: str = "GL Import Clearing"


@dataclass
class Settings:
    """Top-level settings object."""

    database_path: Optional[str] = None
    log_level: str = "WARNING"
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    importing: ImportConfig = field(default_factory=ImportConfig)

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If a value is out of range
        """
        resolver = self.resolver
        for name in ("fuzzy_floor", "auto_accept_confidence"):
            value = getattr(resolver, name)
            if not 0 <= value <= 100:
                raise ConfigError(f"{name} must be between 0 and 100, got {value}")
        if resolver.similar_limit < 0:
            raise ConfigError("similar_limit must not be negative")
        if resolver.max_ref_length <= 0:
            raise ConfigError("max_ref_length must be positive")
        if not 0 <= self.matching.min_score <= 100:
            raise ConfigError(
                f"min_score must be between 0 and 100, got {self.matching.min_score}"
            )
        if not self.importing.clearing_account_name.strip():
            raise ConfigError("clearing_account_name must not be empty")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Validated Settings

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        settings = cls()
        settings.database_path = env.get("LEDGERLINK_DB_PATH") or None
        settings.log_level = env.get("LEDGERLINK_LOG_LEVEL", settings.log_level).upper()

        int_fields = {
            "LEDGERLINK_FUZZY_FLOOR": (settings.resolver, "fuzzy_floor"),
            "LEDGERLINK_AUTO_ACCEPT_CONFIDENCE": (settings.resolver, "auto_accept_confidence"),
            "LEDGERLINK_SIMILAR_LIMIT": (settings.resolver, "similar_limit"),
            "LEDGERLINK_MATCH_MIN_SCORE": (settings.matching, "min_score"),
        }
        for var, (target, attr) in int_fields.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                setattr(target, attr, int(raw))
            except ValueError:
                raise ConfigError(f"{var} must be an integer, got '{raw}'")

        if env.get("LEDGERLINK_CLEARING_ACCOUNT_NUMBER"):
            settings.importing.clearing_account_number = env["LEDGERLINK_CLEARING_ACCOUNT_NUMBER"]
        if env.get("LEDGERLINK_CLEARING_ACCOUNT_NAME"):
            settings.importing.clearing_account_name = env["LEDGERLINK_CLEARING_ACCOUNT_NAME"]

        settings.validate()
        return settings


def default_database_path() -> str:
    """Return ~/.ledgerlink/ledgerlink.db, creating the directory."""
    db_dir = Path.home() / ".ledgerlink"
    db_dir.mkdir(exist_ok=True)
    return str(db_dir / "ledgerlink.db")
