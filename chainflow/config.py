from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import DEFAULT_BACKOFF_MS, DEFAULT_JOB_RETRIES, DEFAULT_QUEUE_NAME


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class QueueConfig(BaseModel):
    """Job queue name and the retry policy applied at enqueue time."""

    name: str = DEFAULT_QUEUE_NAME
    retries: int = DEFAULT_JOB_RETRIES
    backoff_strategy: Literal["fixed", "exponential"] = "fixed"
    backoff_ms: int = DEFAULT_BACKOFF_MS


class ModelClientConfig(BaseModel):
    """Which collaborator answers agent steps."""

    backend: Literal["echo", "pydantic_ai"] = "echo"
    delay_seconds: float = 0.0


class ChainflowConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    queue: QueueConfig = QueueConfig()
    model_client: ModelClientConfig = ModelClientConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> ChainflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CHAINFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CHAINFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ChainflowConfig(**data)
    else:
        config = ChainflowConfig()

    env_db_url = os.getenv("CHAINFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url

    redis_conf = config.transport.redis
    if os.getenv("REDIS_HOST"):
        redis_conf.host = os.environ["REDIS_HOST"]
    if os.getenv("REDIS_PORT"):
        redis_conf.port = int(os.environ["REDIS_PORT"])
    if os.getenv("REDIS_DB"):
        redis_conf.db = int(os.environ["REDIS_DB"])
    return config
