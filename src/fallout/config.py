import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import constants
from .io.fs import DiskFileSystem, FileSystem
from .utils.util import user_cache_dir, user_config_dir
from .exceptions import (
    ConfigFileMissingError,
    ConfigParsingError,
    ConfigValidationError,
    PathNotFoundError,
)

logger = logging.getLogger(__name__)


def _default_jobs() -> int:
    return os.cpu_count() or 1


class SettingsModel(BaseModel):
    """
        Class Config-Validation Model describe the settings file
    """
    # Cache root, the user cache directory by default
    cache_dir: Optional[str] = None
    # Parallel grep jobs
    jobs: int = Field(default_factory=_default_jobs, ge=1)
    # When to colorize grep output
    color_mode: Literal["auto", "never", "always"] = "auto"
    # Palette in query,match,path,separator order
    colors: str = constants.DEFAULT_COLORS
    # Default lines of grep context
    context_before: int = Field(default=0, ge=0)
    context_after: int = Field(default=0, ge=0)
    # Default age limit of `clean`, in days
    clean_days: int = Field(default=constants.DEFAULT_CLEAN_DAYS, ge=0)
    # Per-module log levels, {"grep": "DEBUG"}
    log_levels: Dict[str, str] = Field(default_factory=dict)
    model_config = ConfigDict(extra="forbid")

    @field_validator("colors")
    @classmethod
    def check_colors(cls, value: str) -> str:
        """Palette letters are a-h, uppercase for bright"""
        check_palette(value)
        return value


def check_palette(value: str) -> None:
    if not value:
        raise ValueError("empty color palette")
    for c in value:
        if c.lower() not in constants.COLOR_LETTERS:
            raise ValueError(f"unknown color '{c}' in palette '{value}', want letters a-h or A-H")


class Settings:
    """
    Loads and validates the settings file using Pydantic models.
    It is the sole gatekeeper for configuration.
    """
    def __init__(self, config_path: Optional[str] = None, fs: Optional[FileSystem] = None):
        self.fs = fs or DiskFileSystem()
        self.path, explicit = self._locate(config_path)
        raw_data = self._load_raw_config(explicit)

        try:
            self.model = SettingsModel.model_validate(raw_data)
            logger.debug(f"Settings validated: {self.model.model_dump_json()}")
        except ValidationError as e:
            raise ConfigValidationError(f"Configuration validation failed:\n{e}")

    @staticmethod
    def _locate(config_path: Optional[str]) -> Tuple[Path, bool]:
        """Settings file to read, and whether the user asked for it by name"""
        if config_path:
            return Path(config_path), True
        env = os.environ.get(constants.CONFIG_ENV)
        if env:
            return Path(env), True
        return user_config_dir() / constants.CONFIG_SUBDIR / constants.CONFIG_FILENAME, False

    def _load_raw_config(self, explicit: bool) -> Dict[str, Any]:
        try:
            content = self.fs.read_text(self.path)
        except PathNotFoundError:
            if explicit:
                raise ConfigFileMissingError(f"Configuration file not found at: {self.path}")
            logger.debug(f"No settings file at '{self.path}', using defaults.")
            return {}

        logger.debug(f"Loading settings from '{self.path}'...")
        try:
            config_data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigParsingError(f"Error parsing YAML file: {e}")
        if config_data is None:
            return {}
        if not isinstance(config_data, dict):
            raise ConfigParsingError("Configuration file must be a YAML document containing a dictionary.")
        return config_data

    @property
    def cache_dir(self) -> Path:
        if self.model.cache_dir:
            return Path(self.model.cache_dir).expanduser()
        return user_cache_dir() / constants.CACHE_SUBDIR

    @property
    def jobs(self) -> int:
        return self.model.jobs

    @property
    def color_mode(self) -> str:
        return self.model.color_mode

    @property
    def colors(self) -> str:
        env = os.environ.get(constants.COLORS_ENV)
        if env:
            try:
                check_palette(env)
                return env
            except ValueError as e:
                logger.warning(f"Ignoring ${constants.COLORS_ENV}: {e}")
        return self.model.colors

    @property
    def context_before(self) -> int:
        return self.model.context_before

    @property
    def context_after(self) -> int:
        return self.model.context_after

    @property
    def clean_days(self) -> int:
        return self.model.clean_days

    @property
    def log_levels(self) -> Dict[str, str]:
        return dict(self.model.log_levels)
