import uuid
from dataclasses import dataclass
from typing import Any

from chat_agent.infrastructure.platform_manager import get_parameters

# Constants that don't change
DEFAULT_COMPLETION_BASE_URL = "https://dashscope-intl.aliyuncs.com/compatible-mode/v1"
DEFAULT_COMPLETION_MODEL = "qwen3-max"
MEMORY_STORE_URL = "memory://"
REDIS_NAMESPACE = "chat:agent"
SESSION_TITLE_MAX_LENGTH = 50
MAX_ROUNDS = 6


@dataclass
class AgentSettings:
    """Agent configuration settings loaded from the parameter store."""

    # Completion service
    completion_api_key: str
    completion_base_url: str
    completion_model: str

    # Storage and records
    redis_url: str
    records_api_url: str
    records_api_key: str

    # Engine tuning
    max_rounds: int = MAX_ROUNDS
    relay_chunk_size: int = 30
    completion_timeout: float = 60.0
    tool_timeout: float = 15.0
    max_attempts: int = 1  # Only rate-limited (429) calls are ever re-sent
    parallel_tool_calls: bool = True

    # Logging
    log_level: str = "INFO"
    logs_dir: str | None = None


def _as_int(value: str | None, default: int) -> int:
    return int(value) if value else default


def _as_float(value: str | None, default: float) -> float:
    return float(value) if value else default


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Singleton configuration manager for the chat agent."""

    _instance = None
    _settings = None

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def get_settings(self) -> AgentSettings:
        """Get agent settings, loading from the parameter store if not already cached."""
        if self._settings is None:
            self._settings = self._load_settings()
        return self._settings

    def reset(self) -> None:
        """Drop cached settings so the next access reloads them."""
        self._settings = None

    def _load_settings(self) -> AgentSettings:
        """Load settings from the parameter store (environment variables)."""
        # Load secrets
        secrets = get_parameters(["completion_api_key", "records_api_key"])

        # Load plain parameters
        params = get_parameters(
            [
                "completion_base_url",
                "completion_model",
                "redis_url",
                "records_api_url",
                "max_rounds",
                "relay_chunk_size",
                "completion_timeout",
                "tool_timeout",
                "max_attempts",
                "parallel_tool_calls",
                "log_level",
                "logs_dir",
            ]
        )

        settings = AgentSettings(
            completion_api_key=secrets["completion_api_key"] or "",
            completion_base_url=params["completion_base_url"] or DEFAULT_COMPLETION_BASE_URL,
            completion_model=params["completion_model"] or DEFAULT_COMPLETION_MODEL,
            redis_url=params["redis_url"] or "",
            records_api_url=params["records_api_url"] or "",
            records_api_key=secrets["records_api_key"] or "",
            max_rounds=_as_int(params["max_rounds"], MAX_ROUNDS),
            relay_chunk_size=_as_int(params["relay_chunk_size"], 30),
            completion_timeout=_as_float(params["completion_timeout"], 60.0),
            tool_timeout=_as_float(params["tool_timeout"], 15.0),
            max_attempts=_as_int(params["max_attempts"], 1),
            parallel_tool_calls=_as_bool(params["parallel_tool_calls"], True),
            log_level=params["log_level"] or "INFO",
            logs_dir=params["logs_dir"] or None,
        )

        # Validate settings
        self._validate_settings(settings)

        return settings

    def _validate_settings(self, settings: AgentSettings) -> None:
        """Validate that all required settings have valid values."""
        required_fields = [
            "completion_api_key",
            "completion_base_url",
            "completion_model",
            "redis_url",
            "records_api_url",
        ]
        for field in required_fields:
            if not getattr(settings, field):
                raise ValueError(f"Configuration value is invalid: {field.upper()}")

        if settings.max_rounds < 1:
            raise ValueError("Configuration value is invalid: MAX_ROUNDS")
        if settings.relay_chunk_size < 1:
            raise ValueError("Configuration value is invalid: RELAY_CHUNK_SIZE")


# Create singleton instance
config = Config()


# Convenience functions
def get_settings() -> AgentSettings:
    """Get agent settings from the singleton config."""
    return config.get_settings()


def reset_settings() -> None:
    config.reset()


def generate_session_id() -> str:
    return str(uuid.uuid4())


def __getattr__(name: str) -> Any:
    """Provide upper-case constant access to settings (e.g. `config.REDIS_URL`)."""
    field = name.lower()
    if name.isupper() and field in AgentSettings.__dataclass_fields__:
        return getattr(get_settings(), field)

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
