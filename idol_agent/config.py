import os
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, TypeVar

from dotenv import load_dotenv

from idol_agent.lib.errors import ConfigurationError
from idol_agent.lib.logger import configure_logger

logger = configure_logger(__name__)

load_dotenv()

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
PRIVATE_KEY_PATTERN = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")

N = TypeVar("N", int, float)

# Numeric settings that failed to parse at import, reported by Config.validate()
INVALID_SETTINGS: Dict[str, str] = {}


def env_number(
    name: str,
    default: str,
    cast: Callable[[str], N],
    invalid: Dict[str, str] = INVALID_SETTINGS,
) -> N:
    """Read a numeric setting, recording a malformed value instead of raising."""
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        invalid[name] = raw
        return cast(default)


@dataclass
class RegistryConfig:
    """Configuration for the on-chain project registry."""

    address: str = os.getenv("PROJECT_REGISTRY_ADDRESS", "")
    private_key: str = os.getenv("PRIVATE_KEY", "")
    rpc_url: str = os.getenv("MONAD_RPC_URL", "")
    read_timeout_seconds: float = env_number("IDOL_READ_TIMEOUT_SECONDS", "30", float)
    submit_timeout_seconds: float = env_number(
        "IDOL_SUBMIT_TIMEOUT_SECONDS", "30", float
    )
    receipt_timeout_seconds: float = env_number(
        "IDOL_RECEIPT_TIMEOUT_SECONDS", "120", float
    )


@dataclass
class EvaluationConfig:
    """Configuration for the external evaluation service."""

    api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    api_url: str = os.getenv(
        "ANTHROPIC_API_URL", "https://api.anthropic.com/v1/messages"
    )
    api_version: str = os.getenv("ANTHROPIC_API_VERSION", "2023-06-01")
    model: str = os.getenv("IDOL_EVALUATION_MODEL", "claude-sonnet-4-20250514")
    max_tokens: int = env_number("IDOL_EVALUATION_MAX_TOKENS", "1000", int)
    timeout_seconds: float = env_number("IDOL_EVALUATION_TIMEOUT_SECONDS", "60", float)
    strict_breakdown: bool = (
        os.getenv("IDOL_STRICT_BREAKDOWN", "false").lower() == "true"
    )


@dataclass
class SchedulerConfig:
    # project_score_reconciler job
    project_score_reconciler_enabled: bool = (
        os.getenv("IDOL_PROJECT_SCORE_RECONCILER_ENABLED", "true").lower() == "true"
    )
    project_score_reconciler_interval_seconds: int = env_number(
        "IDOL_PROJECT_SCORE_RECONCILER_INTERVAL_SECONDS", "10", int
    )

    # pause between evaluations in one-shot mode
    evaluate_all_delay_seconds: float = env_number(
        "IDOL_EVALUATE_ALL_DELAY_SECONDS", "2", float
    )


@dataclass
class Config:
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    invalid_settings: Dict[str, str] = field(
        default_factory=lambda: dict(INVALID_SETTINGS)
    )

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from the environment."""
        config = cls()
        logger.debug("Configuration loaded")
        return config

    def validate(self) -> None:
        """Check that everything the agent needs at startup is present.

        Raises:
            ConfigurationError: if a required value is missing or malformed
        """
        required = {
            "PROJECT_REGISTRY_ADDRESS": self.registry.address,
            "PRIVATE_KEY": self.registry.private_key,
            "MONAD_RPC_URL": self.registry.rpc_url,
            "ANTHROPIC_API_KEY": self.evaluation.api_key,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )

        if self.invalid_settings:
            settings = ", ".join(
                f"{name}={value!r}" for name, value in self.invalid_settings.items()
            )
            raise ConfigurationError(f"Settings are not valid numbers: {settings}")

        if not ADDRESS_PATTERN.match(self.registry.address):
            raise ConfigurationError(
                f"PROJECT_REGISTRY_ADDRESS is not a valid address: {self.registry.address}"
            )

        if not PRIVATE_KEY_PATTERN.match(self.registry.private_key):
            raise ConfigurationError("PRIVATE_KEY is not a 32-byte hex key")

        if self.scheduler.project_score_reconciler_interval_seconds <= 0:
            raise ConfigurationError("Polling interval must be a positive number of seconds")

        logger.info(
            "Configuration validated",
            extra={
                "registry": self.registry.address,
                "rpc_url": self.registry.rpc_url,
                "model": self.evaluation.model,
                "event_type": "config_validated",
            },
        )


# Global configuration instance
config = Config.load()
