"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from turnstream.log import get_logger

logger = get_logger(__name__)


class ModelConfig(BaseModel):
    backend: Literal["openai", "anthropic"] = "openai"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 2048
    streaming: bool = True
    max_retries: int = 3
    timeout: int = 120


class AgentConfig(BaseModel):
    max_iterations: int = 10
    system_template: Optional[str] = None  # None uses the built-in structured-chat template
    human_template: str = "{input}"
    tools: list[str] = Field(default_factory=lambda: ["search"])


class SearchToolConfig(BaseModel):
    api_key: Optional[str] = None
    endpoint: str = "https://api.bing.microsoft.com/v7.0/search"
    max_results: int = 5
    timeout: float = 10.0


class ToolsConfig(BaseModel):
    search: SearchToolConfig = Field(default_factory=SearchToolConfig)


class StorageConfig(BaseModel):
    db_path: str = "./data/turnstream.db"
    index_retries: int = 3
    retry_backoff: float = 0.2


class StreamConfig(BaseModel):
    mode: Literal["answer", "raw"] = "answer"
    queue_size: int = 256
    error_sentinel: Optional[str] = None


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=list)


class AuthConfig(BaseModel):
    # bearer token -> user id
    api_keys: dict[str, str] = Field(default_factory=dict)

    @field_validator("api_keys")
    @classmethod
    def drop_unresolved_keys(cls, value: dict[str, str]) -> dict[str, str]:
        """Blank keys and ${VAR} placeholders left by unset variables never authenticate."""
        kept = {}
        for key, user_id in value.items():
            if not key.strip() or "${" in key:
                logger.warning("auth_key_dropped", user_id=user_id, reason="unresolved or empty key")
                continue
            kept[key] = user_id
        return kept


class AppConfig(BaseModel):
    log_level: str = "INFO"
    json_logs: bool = False
    data_dir: str = "./data"
    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _apply_env_fallbacks(config: AppConfig) -> AppConfig:
    """Fill credentials left unset in YAML from the conventional environment variables."""
    if not config.model.api_key:
        env_name = "ANTHROPIC_API_KEY" if config.model.backend == "anthropic" else "OPENAI_API_KEY"
        config.model.api_key = os.environ.get(env_name)
    if not config.model.base_url and config.model.backend == "openai":
        config.model.base_url = os.environ.get("OPENAI_BASE_URL")
    if os.environ.get("LLM_MODEL") and "model" not in config.model.model_fields_set:
        config.model.model = os.environ["LLM_MODEL"]
    if not config.tools.search.api_key:
        config.tools.search.api_key = os.environ.get("BINGSERP_API_KEY")
    return config


def parse_config(raw_text: str) -> AppConfig:
    """Validate configuration from YAML text, interpolating env vars."""
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(raw_data.get("data_dir", "./data"))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return _apply_env_fallbacks(AppConfig(**data))


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    return parse_config(config_file.read_text(encoding="utf-8"))
