"""
Dashboard settings read from the process environment (and `.env`).

Everything is validated when first loaded, so a bad weight or port fails at
startup instead of mid-request. The relay holds no credentials: it forwards
the caller's bearer token.
"""

import os
from functools import lru_cache
from typing import Any, Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from healthdash.domain.models import ScoringWeights
from healthdash.domain.thresholds import ThresholdTable

load_dotenv()

DEFAULT_UPSTREAM_URL = "https://api.deepseek.com/v1/chat/completions"


class RelayConfig(BaseModel):
    """Upstream chat-completion endpoint the /api/chat route forwards to."""

    upstream_url: str = Field(default=DEFAULT_UPSTREAM_URL, description="Chat completion URL")
    default_model: str = Field(default="deepseek-chat", description="Model used by the widget")
    timeout_seconds: float = Field(default=60.0, gt=0.0, description="Upstream request timeout")

    @field_validator("upstream_url")
    def validate_upstream_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("upstream_url must be an http(s) URL")
        return v


class APIConfig(BaseModel):
    """Where the dashboard API listens and which origins may call it."""

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=3000, gt=0, lt=65536, description="API server port")
    reload: bool = Field(default=False, description="Enable auto-reload for development")

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Allowed origins for CORS"
    )
    static_dir: str | None = Field(
        default=None, description="Directory served at / for the dashboard's static files"
    )


class LoggingConfig(BaseModel):
    """structlog output: level, renderer and optional log file."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")

    enable_file_logging: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(default="./logs/healthdash.log", description="Path to log file")


class ScoringConfig(BaseModel):
    """Weights and threshold tables used by the assessment service."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    thresholds: ThresholdTable = Field(default_factory=ThresholdTable)


class AppConfig(BaseModel):
    """Relay, API, logging and scoring settings in one validated tree."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    relay: RelayConfig = Field(default_factory=RelayConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
    v = val.strip().lower()
    if v in {"dev", "development"}:
        return "development"
    if v in {"stage", "staging"}:
        return "staging"
    return "production"


def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
    v = val.strip().upper()
    return cast(
        Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
    )


def _parse_bool(val: str | None, default: bool) -> bool:
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


def _weights_from_env() -> ScoringWeights:
    defaults = ScoringWeights()
    return ScoringWeights(
        blood_pressure_stability=float(
            os.getenv("SCORING_WEIGHT_BLOOD_PRESSURE_STABILITY", defaults.blood_pressure_stability)
        ),
        blood_oxygen_perfusion=float(
            os.getenv("SCORING_WEIGHT_BLOOD_OXYGEN_PERFUSION", defaults.blood_oxygen_perfusion)
        ),
        temperature_pulse_synergy=float(
            os.getenv(
                "SCORING_WEIGHT_TEMPERATURE_PULSE_SYNERGY", defaults.temperature_pulse_synergy
            )
        ),
    )


def load_config_from_env() -> AppConfig:
    """Build an `AppConfig` from `RELAY_*`, `API_*`, `LOG_*` and `SCORING_WEIGHT_*` env vars."""
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    relay_config = RelayConfig(
        upstream_url=os.getenv("RELAY_UPSTREAM_URL", DEFAULT_UPSTREAM_URL),
        default_model=os.getenv("RELAY_DEFAULT_MODEL", "deepseek-chat"),
        timeout_seconds=float(os.getenv("RELAY_TIMEOUT_SECONDS", "60.0")),
    )

    api_config = APIConfig(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "3000")),
        reload=_parse_bool(os.getenv("API_RELOAD"), debug),
        allowed_origins=[
            origin.strip()
            for origin in os.getenv("API_ALLOWED_ORIGINS", "*").split(",")
            if origin.strip()
        ],
        static_dir=os.getenv("API_STATIC_DIR") or None,
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
        enable_file_logging=_parse_bool(os.getenv("LOG_TO_FILE"), False),
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        relay=relay_config,
        api=api_config,
        logging=logging_config,
        scoring=ScoringConfig(weights=_weights_from_env()),
    )


@lru_cache
def get_config() -> AppConfig:
    """Process-wide config; call `get_config.cache_clear()` after changing the environment."""
    return load_config_from_env()


def validate_config() -> None:
    """Load the config once and report where the relay points."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
        print(f"Chat relay upstream: {config.relay.upstream_url}")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


def get_relay_settings() -> dict[str, Any]:
    """Relay settings in the shape the chat widget and relay client consume."""
    config = get_config()
    return {
        "upstream_url": config.relay.upstream_url,
        "model": config.relay.default_model,
        "timeout_seconds": config.relay.timeout_seconds,
    }


def print_config_summary() -> None:
    """Dump the effective settings to stdout."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug: {config.debug}")
    print(f"Logging: {config.logging.level} ({config.logging.format})")

    print("\nCHAT RELAY")
    print(f"Upstream: {config.relay.upstream_url}")
    print(f"Default Model: {config.relay.default_model}")
    print(f"Timeout: {config.relay.timeout_seconds}s")

    print("\nSCORING WEIGHTS")
    weights = config.scoring.weights
    print(f"Blood Pressure Stability: {weights.blood_pressure_stability:.2f}")
    print(f"Blood Oxygen Perfusion: {weights.blood_oxygen_perfusion:.2f}")
    print(f"Temperature-Pulse Synergy: {weights.temperature_pulse_synergy:.2f}")

    print("\nAPI CONFIGURATION")
    print(f"Listening on: {config.api.host}:{config.api.port}")
    print(f"Auto-reload: {config.api.reload}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
