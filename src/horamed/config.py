"""HoraMed configuration loading and validation.

Reads horamed.toml from a config directory, resolves ``${VAR}`` references
from the environment, and returns a validated HoraMedConfig dataclass.
"""

from __future__ import annotations

import enum
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

CONFIG_FILENAME = "horamed.toml"

# Pattern matching ${VAR_NAME}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DB_SCHEMA_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    """Raised when horamed.toml is missing, malformed, or invalid."""


class WeekStart(enum.StrEnum):
    """First day of the calendar week used for weekly XP."""

    SUNDAY = "sunday"
    MONDAY = "monday"

    @property
    def weekday(self) -> int:
        """``datetime.weekday()`` value of this day."""
        return 6 if self is WeekStart.SUNDAY else 0


class PerfectDayWindow(enum.StrEnum):
    """Which date decides whether a perfect-day bonus counts toward weekly/monthly XP.

    ``EVALUATION_DATE`` compares the moment of evaluation against the window
    start, so every perfect day in the 30-day scan lands in both sums.
    ``BONUS_DAY`` compares the perfect day itself.
    """

    EVALUATION_DATE = "evaluation_date"
    BONUS_DAY = "bonus_day"


@dataclass
class LoggingConfig:
    """Logging configuration from [horamed.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class ProgressionConfig:
    """Calendar settings from [horamed.progression].

    Day, week and month boundaries for XP windows, perfect days and streaks
    are computed at local midnight in ``timezone``.
    """

    timezone: str = "UTC"
    week_starts_on: WeekStart = WeekStart.SUNDAY
    perfect_day_window: PerfectDayWindow = PerfectDayWindow.EVALUATION_DATE

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass
class HoraMedConfig:
    """Parsed and validated configuration."""

    name: str = "horamed"
    db_name: str = "horamed"
    db_schema: str | None = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    progression: ProgressionConfig = field(default_factory=ProgressionConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings; other leaf values pass through unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s*, reporting every missing name at once."""
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_choice(raw: Any, enum_cls: type[enum.StrEnum], path: str) -> Any:
    if not isinstance(raw, str):
        raise ConfigError(f"{path} must be a string")
    try:
        return enum_cls(raw.strip().lower())
    except ValueError as exc:
        choices = ", ".join(repr(c.value) for c in enum_cls)
        raise ConfigError(f"Invalid {path}: {raw!r}. Expected one of: {choices}.") from exc


def _parse_progression(section: Any) -> ProgressionConfig:
    """Parse the optional [horamed.progression] sub-section."""
    if not isinstance(section, dict):
        raise ConfigError("horamed.progression must be a TOML table")

    timezone = section.get("timezone", "UTC")
    if not isinstance(timezone, str) or not timezone.strip():
        raise ConfigError("horamed.progression.timezone must be a non-empty string")
    timezone = timezone.strip()
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown horamed.progression.timezone: {timezone!r}") from exc

    week_starts_on = _parse_choice(
        section.get("week_starts_on", WeekStart.SUNDAY.value),
        WeekStart,
        "horamed.progression.week_starts_on",
    )
    perfect_day_window = _parse_choice(
        section.get("perfect_day_window", PerfectDayWindow.EVALUATION_DATE.value),
        PerfectDayWindow,
        "horamed.progression.perfect_day_window",
    )
    return ProgressionConfig(
        timezone=timezone,
        week_starts_on=week_starts_on,
        perfect_day_window=perfect_day_window,
    )


def load_config(config_dir: Path) -> HoraMedConfig:
    """Load and validate a horamed.toml from *config_dir*.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or lacks required fields.
    """
    toml_path = Path(config_dir) / CONFIG_FILENAME

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    data = resolve_env_vars(data)

    # --- [horamed] section (required) ---
    section = data.get("horamed")
    if not isinstance(section, dict):
        raise ConfigError("Missing [horamed] section in config")

    name = section.get("name", "horamed")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("horamed.name must be a non-empty string")
    name = name.strip()

    # --- [horamed.db] ---
    db_section = section.get("db", {})
    db_name = str(db_section.get("name", name)).strip()
    if not db_name:
        raise ConfigError("horamed.db.name must be a non-empty string")

    db_schema: str | None = None
    db_schema_raw = db_section.get("schema")
    if db_schema_raw is not None:
        if not isinstance(db_schema_raw, str):
            raise ConfigError("horamed.db.schema must be a string when set")
        normalized_schema = db_schema_raw.strip()
        if _DB_SCHEMA_PATTERN.fullmatch(normalized_schema) is None:
            raise ConfigError(
                f"Invalid horamed.db.schema: {db_schema_raw!r}. "
                "Expected a valid SQL identifier-style value."
            )
        db_schema = normalized_schema

    # --- [horamed.logging] ---
    logging_section = section.get("logging", {})
    log_level = str(logging_section.get("level", "INFO")).upper()
    log_format = str(logging_section.get("format", "text")).lower()
    if log_format not in ("text", "json"):
        raise ConfigError(
            f"Invalid horamed.logging.format: {log_format!r}. Expected 'text' or 'json'."
        )
    logging_config = LoggingConfig(
        level=log_level,
        format=log_format,
        log_root=logging_section.get("log_root"),
    )

    # --- [horamed.progression] ---
    progression = _parse_progression(section.get("progression", {}))

    return HoraMedConfig(
        name=name,
        db_name=db_name,
        db_schema=db_schema,
        logging=logging_config,
        progression=progression,
    )
