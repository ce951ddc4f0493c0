from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from flashdeck.domain.constants import DEFAULT_MASTERY_THRESHOLD, DEFAULT_SAVE_RETRIES


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/flashdeck/config.toml",
        Path.home() / ".flashdeck.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for flashdeck.
    Supports loading from:
    1. Config file (~/.config/flashdeck/config.toml or ~/.flashdeck.toml)
    2. Environment variables (FLASHDECK_*)
    3. Manual overrides (CLI / server)
    Later sources win.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHDECK_",
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(default_factory=lambda: Path("data"), validate_default=True)
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/flashdeck/logs")

    # Study
    mastery_threshold: int = Field(default=DEFAULT_MASTERY_THRESHOLD, ge=1)
    save_retries: int = Field(default=DEFAULT_SAVE_RETRIES, ge=0)

    # Server
    host: str = "127.0.0.1"
    port: int = 3000

    verbose: int = Field(default=0, ge=0)

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

        # First existing file only
        toml_file = next((f for f in config_files() if f.exists()), None)

        # Sources listed first take precedence.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/flashdeck/config.toml (if exists)
    3. Environment variables (FLASHDECK_*)
    4. cli_overrides; None values are ignored so unset CLI options fall through
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
