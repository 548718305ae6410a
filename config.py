import json
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from errors import ConfigError

__version__ = "1.0.0"


class Settings(BaseSettings):
    # Portal Configuration
    PORTAL_CONFIG_FILE: str = "~/.portal-client.json"
    PORTAL_MODE: str = "production"
    PORTAL_API_PATH: str = "/api"
    PORTAL_API_TIMEOUT: int = 30

    # Logging
    LOG_LEVEL: str = "WARNING"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()


class ModeConfig(BaseModel):
    """One credential block of the config file, or a set of explicit overrides."""
    hostname: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    insecure: Optional[bool] = None

class PortalConfigFile(BaseModel):
    modes: Dict[str, ModeConfig] = {}

class ConnectionSettings(BaseModel):
    hostname: str
    username: str
    password: str
    insecure: bool = False


def load_config_file(path: Optional[str] = None) -> PortalConfigFile:
    """
    Load the mode-keyed credential file.

    A missing file is treated as an empty configuration so that everything
    can still be supplied on the command line.
    """
    config_path = Path(path or settings.PORTAL_CONFIG_FILE).expanduser()
    if not config_path.is_file():
        return PortalConfigFile()

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
        return PortalConfigFile.model_validate(raw)
    except (OSError, ValueError) as e:
        # PydanticValidationError is a ValueError subclass
        raise ConfigError(f"Could not read config file {config_path}: {e}")


def resolve_connection(
    config_file: PortalConfigFile,
    mode: str,
    overrides: Optional[ModeConfig] = None
) -> ConnectionSettings:
    """
    Select the credential block for ``mode`` and merge explicit overrides on top.

    Override fields that are None leave the file value in place.
    """
    merged = config_file.modes.get(mode, ModeConfig()).model_dump()
    if overrides:
        for field, value in overrides.model_dump().items():
            if value is not None:
                merged[field] = value

    missing = [f for f in ("hostname", "username", "password") if not merged.get(f)]
    if missing:
        raise ConfigError(
            f"Missing {', '.join(missing)} for mode '{mode}' "
            "(set them in the config file or on the command line)"
        )

    if merged.get("insecure") is None:
        merged["insecure"] = False

    try:
        return ConnectionSettings.model_validate(merged)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid settings for mode '{mode}': {e}")
