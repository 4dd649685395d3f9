from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = ".tubelist"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("telemetry_enabled",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{TUBELIST_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration.

    Every option is read from a `TUBELIST_*` environment variable (or `.env`)
    and documented here together with its default.
    """

    model_config = SettingsConfigDict(
        env_prefix="TUBELIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for local state and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level. The log file always records DEBUG and above.",
    )

    # YouTube Data API.
    youtube_api_key: str | None = Field(
        default=None,
        description="API key for the YouTube Data API v3.",
    )

    # Channel cache and fetching.
    channel_cache_ttl_seconds: int = Field(
        default=86_400,
        ge=0,
        description="Age after which a cached channel video list is refreshed from the API.",
    )
    fetch_max_pages: int = Field(
        default=200,
        ge=1,
        description="Maximum search pages walked per channel before the fetch stops.",
    )
    fetch_deadline_seconds: float = Field(
        default=120.0,
        ge=1.0,
        description="Wall-clock budget for fetching one channel's videos.",
    )
    fetch_batch_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Video IDs per videos.list call (capped by YouTube API).",
    )
    aggregator_max_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Channels looked up concurrently when building a feed. 1 keeps lookups sequential.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=False,
        description="Emit structured telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="Telemetry sink when telemetry is enabled.",
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("TUBELIST_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("TUBELIST_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return "INFO"
        return value.strip().upper()

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _validate_api_configuration(*, youtube_api_key: str | None) -> None:
    errors: list[str] = []

    if youtube_api_key is None:
        errors.append("TUBELIST_YOUTUBE_API_KEY is required to fetch channel videos.")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid runtime configuration:\n{bullets}")


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name)) for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings(*, validate_api_key: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    settings = _resolve_path_fields(settings)

    if validate_api_key:
        _validate_api_configuration(youtube_api_key=settings.youtube_api_key)

    return settings
