"""
Service configuration.

Settings are resolved as: defaults -> YAML file named by ANALYZER_CONFIG ->
environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from badminton_domain.errors import ConfigurationError


LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'

# Environment variable -> Settings field
ENV_FIELDS = {
    "HOST": "host",
    "PORT": "port",
    "DATA_DIR": "data_dir",
    "ALLOWED_ORIGINS": "allowed_origins",
    "PUBLIC_BASE_URL": "public_base_url",
    "MAX_UPLOAD_MB": "max_upload_mb",
    "ANALYSIS_ENGINE": "analysis_engine",
    "ANALYSIS_DELAY_S": "analysis_delay_s",
    "ANALYSIS_TIMEOUT_S": "analysis_timeout_s",
    "ANALYSIS_FAILURE_RATE": "analysis_failure_rate",
    "ANALYSIS_ENGINE_URL": "analysis_engine_url",
    "WORKER_COUNT": "worker_count",
    "MAX_CONCURRENT_ANALYSES": "max_concurrent_analyses",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    """Runtime configuration for the analyzer API."""
    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(3000, ge=1, le=65535, description="Listen port")
    data_dir: Path = Field(Path("data"), description="Root for uploads and the record store")
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"], description="CORS origins")
    public_base_url: str = Field("http://localhost:3000", description="Base URL used to build videoUrl")
    max_upload_mb: int = Field(100, gt=0, description="Upload size ceiling in MiB")

    analysis_engine: Literal["simulated", "mock", "remote"] = "simulated"
    analysis_delay_s: float = Field(5.0, ge=0.0, description="Delay before a simulated result resolves")
    analysis_timeout_s: float = Field(60.0, gt=0.0, description="Upper bound for one analysis")
    analysis_failure_rate: float = Field(0.0, ge=0.0, le=1.0, description="Simulated failure injection")
    analysis_engine_url: Optional[str] = Field(None, description="Endpoint of the remote engine")

    worker_count: int = Field(1, ge=0, description="Queue workers; 0 leaves uploads pending")
    max_concurrent_analyses: int = Field(4, ge=1)
    log_level: str = "INFO"

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("public_base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level

    @model_validator(mode="after")
    def _check_remote(self) -> "Settings":
        if self.analysis_engine == "remote" and not self.analysis_engine_url:
            raise ValueError("analysis_engine_url is required for the remote engine")
        return self

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def upload_dir(self) -> Path:
        return self.data_dir / "uploads"


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read config file {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **overrides: Any
) -> Settings:
    """
    Build Settings from YAML, environment and explicit overrides.

    Args:
        config_path: YAML file; defaults to $ANALYZER_CONFIG when set
        environ: Environment mapping (defaults to os.environ)
        overrides: Field values that win over everything else
    """
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    if config_path is None and environ.get("ANALYZER_CONFIG"):
        config_path = Path(environ["ANALYZER_CONFIG"])
    if config_path is not None:
        values.update(_read_yaml(Path(config_path)))

    for env_name, field_name in ENV_FIELDS.items():
        if env_name in environ and environ[env_name] != "":
            values[field_name] = environ[env_name]

    values.update(overrides)

    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the service process."""
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_analyzer", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._analyzer = True
        root.addHandler(handler)
