from __future__ import annotations

import logging
import platform
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ARM_MACHINES = ('arm64', 'aarch64', 'armv7l', 'armv8l', 'arm')


def is_arm_host() -> bool:
    return platform.machine().strip().lower() in ARM_MACHINES


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    app_name: str = 'Table PDF Export'
    environment: str = Field(
        default='development',
        validation_alias=AliasChoices('TABLEPDF_ENV', 'APP_ENV', 'NODE_ENV', 'ENVIRONMENT'),
    )
    log_level: str = Field(default='INFO', validation_alias=AliasChoices('LOG_LEVEL', 'TABLEPDF_LOG_LEVEL'))

    # HTTP surface
    server_host: str = '0.0.0.0'
    server_port: int = Field(default=5000, validation_alias=AliasChoices('TABLEPDF_PORT', 'PORT'))

    default_filename: str = 'table-export'
    temp_dir: Path | None = None

    # Backends are tried native -> browser -> external
    native_backend_enabled: bool = True
    browser_backend_enabled: bool = True
    external_backend_enabled: bool = True

    # Fonts
    font_family: str = 'Vazirmatn'
    font_dir: Path = Field(default=Path('./fonts'))
    font_cache_dir: Path = Field(default=Path('./.cache/fonts'))
    # Base64 payloads (data URI prefix tolerated)
    font_embedded_regular: str | None = None
    font_embedded_bold: str | None = None

    # Headless browser backend
    browser_executable_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            'BROWSER_EXECUTABLE_PATH',
            'PUPPETEER_EXECUTABLE_PATH',
            'CHROME_BIN',
        ),
    )
    browser_load_timeout_seconds: float = 20.0
    browser_render_timeout_seconds: float = 30.0
    browser_recycle_probability: float = 0.05
    # None -> 10 on ARM hosts, 20 otherwise
    browser_cache_size: int | None = None

    # External converter backend
    external_command: str = Field(
        default='wkhtmltopdf',
        validation_alias=AliasChoices('WKHTMLTOPDF_BIN', 'EXTERNAL_COMMAND'),
    )
    external_timeout_seconds: float = 60.0

    min_column_width: float = 50.0

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in ('production', 'prod')

    def resolved_browser_cache_size(self) -> int:
        if self.browser_cache_size is not None and self.browser_cache_size > 0:
            return self.browser_cache_size
        return 10 if is_arm_host() else 20


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | None = None) -> None:
    token = str(level or get_settings().log_level or 'INFO').strip().upper()
    logging.basicConfig(level=getattr(logging, token, logging.INFO), format=LOG_FORMAT)
