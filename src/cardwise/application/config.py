from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from cardwise.domain.constants import (
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_MAX_REVIEWS_PER_DAY,
    DEFAULT_NEW_CARDS_PER_DAY,
    DEFAULT_SCHEDULER_ENABLED,
    DEFAULT_TIMEBOX_MINUTES,
    MAX_DESIRED_RETENTION,
    MIN_DESIRED_RETENTION,
    SETTINGS_FILE,
)


class StudySettings(BaseModel):
    """
    User-editable study settings.

    Passed explicitly into every scheduler and queue call. Serialized with
    camelCase keys (``model_dump(by_alias=True)``) to match the stored record.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    scheduler_enabled: bool = DEFAULT_SCHEDULER_ENABLED
    desired_retention: float = Field(
        default=DEFAULT_DESIRED_RETENTION,
        ge=MIN_DESIRED_RETENTION,
        le=MAX_DESIRED_RETENTION,
    )
    new_cards_per_day: int = Field(default=DEFAULT_NEW_CARDS_PER_DAY, gt=0)
    max_reviews_per_day: int = Field(default=DEFAULT_MAX_REVIEWS_PER_DAY, gt=0)
    # Advisory session length; only the interactive CLI session honors it.
    timebox_minutes: int = Field(default=DEFAULT_TIMEBOX_MINUTES, gt=0)

    def merged(self, changes: Mapping[str, Any]) -> "StudySettings":
        """
        Return a copy with ``changes`` applied and re-validated.

        Keys may be field names, camelCase aliases, or the legacy ``fsrsEnabled``.
        Unknown keys are ignored.
        """
        data = self.model_dump()
        for key, value in changes.items():
            name = _FIELD_FOR_KEY.get(key)
            if name is not None and value is not None:
                data[name] = value
        return StudySettings.model_validate(data)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


_FIELD_FOR_KEY: dict[str, str] = {name: name for name in StudySettings.model_fields}
_FIELD_FOR_KEY.update({to_camel(name): name for name in StudySettings.model_fields})
_FIELD_FOR_KEY["fsrsEnabled"] = "scheduler_enabled"


def _config_files() -> list[Path]:
    return [
        Path.home() / ".config/cardwise/config.toml",
        Path.home() / ".cardwise.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for cardwise.
    Supports loading from:
    1. Manual overrides (CLI)
    2. Environment variables (CARDWISE_*, nested with CARDWISE_STUDY__*)
    3. Config file (~/.config/cardwise/config.toml or ~/.cardwise.toml)
    """

    model_config = SettingsConfigDict(
        env_prefix="CARDWISE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/cardwise/flashcards"
    )
    settings_file: Path | None = None
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/cardwise/logs")

    # Server
    host: str = "127.0.0.1"
    port: int = 8777

    verbose: int = 1

    # Defaults used until the user saves their own study settings
    study: StudySettings = Field(default_factory=StudySettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Find the first existing file
        toml_file = None
        for f in _config_files():
            if f.exists():
                toml_file = f
                break

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_dir", "log_dir", mode="before")
    @classmethod
    def resolve_dir(cls, v: Any) -> Any:
        if v is None:
            return v
        return Path(v).expanduser().resolve()

    @field_validator("settings_file", mode="before")
    @classmethod
    def resolve_settings_file(cls, v: Any) -> Path | None:
        if v:
            return Path(v).expanduser().resolve()
        return None

    @property
    def settings_path(self) -> Path:
        return self.settings_file or self.data_dir / SETTINGS_FILE


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/cardwise/config.toml (if exists)
    3. Environment variables (CARDWISE_*)
    4. cli_overrides (passed from Typer); None values are dropped
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
