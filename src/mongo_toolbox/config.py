from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mongo_toolbox.exceptions import ConfigurationError

DEFAULT_MAX_CONCURRENCY = 64


class EnvConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MTOOLBOX_", case_sensitive=False)

    mongodb_uri: Optional[str] = None
    default_db: Optional[str] = None
    max_concurrency: Optional[int] = None
    log_level: Optional[str] = None


class FileConfig(BaseModel):
    mongodb_uri: Optional[str] = None
    default_db: Optional[str] = None
    max_concurrency: Optional[int] = None
    log_level: Optional[str] = None


class RuntimeConfig(BaseModel):
    mongodb_uri: str = Field(..., description="MongoDB connection string")
    default_db: str = Field(..., description="Default database")
    max_concurrency: int = Field(DEFAULT_MAX_CONCURRENCY, ge=1, description="Concurrent writes per operation")
    log_level: str = "INFO"


DEFAULT_CONFIG_PATH = Path.cwd() / ".mtoolbox.yml"
LOCAL_CONFIG_PATH = Path.cwd() / ".mtoolbox.local.yml"


def load_file_config(path: Path = DEFAULT_CONFIG_PATH) -> FileConfig:
    if not path.exists():
        return FileConfig()

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping.")
    return FileConfig(**data)


def load_runtime_config(path: Path = DEFAULT_CONFIG_PATH) -> RuntimeConfig:
    """Load configuration with priority: env vars > local file > main file."""
    file_config = load_file_config(path)

    # Local override file sits next to the main one and is gitignored
    local_path = path.parent / ".mtoolbox.local.yml" if path != DEFAULT_CONFIG_PATH else LOCAL_CONFIG_PATH
    local_config = load_file_config(local_path)

    env_config = EnvConfig()

    mongodb_uri = env_config.mongodb_uri or local_config.mongodb_uri or file_config.mongodb_uri
    default_db = env_config.default_db or local_config.default_db or file_config.default_db
    max_concurrency = DEFAULT_MAX_CONCURRENCY
    for candidate in (env_config.max_concurrency, local_config.max_concurrency, file_config.max_concurrency):
        if candidate is not None:
            max_concurrency = candidate
            break
    log_level = env_config.log_level or local_config.log_level or file_config.log_level or "INFO"

    if not mongodb_uri:
        raise ConfigurationError("Missing MongoDB URI. Set in .mtoolbox.yml, .mtoolbox.local.yml, or MTOOLBOX_MONGODB_URI.")
    if not default_db:
        raise ConfigurationError("Missing default DB. Set in .mtoolbox.yml, .mtoolbox.local.yml, or MTOOLBOX_DEFAULT_DB.")
    if max_concurrency < 1:
        raise ConfigurationError("max_concurrency must be at least 1.")

    return RuntimeConfig(
        mongodb_uri=mongodb_uri,
        default_db=default_db,
        max_concurrency=max_concurrency,
        log_level=log_level.upper(),
    )


def write_default_config(path: Path = DEFAULT_CONFIG_PATH) -> Path:
    if path.exists():
        return path

    content = {
        "mongodb_uri": "mongodb://localhost:27017",
        "default_db": "myapp",
        "max_concurrency": DEFAULT_MAX_CONCURRENCY,
        "log_level": "INFO",
    }
    path.write_text(yaml.safe_dump(content, sort_keys=False))
    return path
