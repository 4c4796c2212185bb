"""Environment configuration for Lambda functions."""
import os
from dataclasses import dataclass

from .exceptions import ConfigurationError

PROVIDERS = ("claude", "mistral")
MODES = ("normal", "light", "critical")

DEFAULT_BEDROCK_MODEL_ID = "mistral.mistral-small-2402-v1:0"


def _float_env(key: str, default: str) -> float:
    raw = os.environ.get(key, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{key} must be a number, got {raw!r}", config_key=key
        ) from None


def _int_env(key: str, default: str) -> int:
    raw = os.environ.get(key, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{key} must be an integer, got {raw!r}", config_key=key
        ) from None


def read_mode_override() -> str | None:
    """Read the MODE override from the environment.

    Returns:
        Mode name, or None when no override is set

    Raises:
        ConfigurationError: If MODE names an unknown mode
    """
    raw = os.environ.get("MODE", "").strip().lower()
    if not raw:
        return None
    if raw not in MODES:
        raise ConfigurationError(
            f"MODE must be one of {', '.join(MODES)}, got {raw!r}",
            config_key="MODE",
        )
    return raw


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    environment: str
    log_level: str
    model_provider: str
    bedrock_model_id: str
    bedrock_region: str
    monthly_budget_usd: float
    input_price_per_m: float
    output_price_per_m: float
    global_max_active: int
    jwt_secret: str | None
    jwt_audience: str | None
    force_demo: bool
    cache_ttl_seconds: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        provider = os.environ.get("MODEL_PROVIDER", "claude").strip().lower()
        if provider not in PROVIDERS:
            raise ConfigurationError(
                f"MODEL_PROVIDER must be one of {', '.join(PROVIDERS)}, got {provider!r}",
                config_key="MODEL_PROVIDER",
            )

        budget = _float_env("BUDGET_MONTH_USD", "20")
        if budget <= 0:
            raise ConfigurationError(
                "BUDGET_MONTH_USD must be > 0", config_key="BUDGET_MONTH_USD"
            )

        global_max_active = _int_env("GLOBAL_MAX_ACTIVE", "3")
        if global_max_active < 1:
            raise ConfigurationError(
                "GLOBAL_MAX_ACTIVE must be >= 1", config_key="GLOBAL_MAX_ACTIVE"
            )

        return cls(
            environment=os.environ.get("ENVIRONMENT", "dev"),
            log_level=os.environ.get("POWERTOOLS_LOG_LEVEL", "INFO"),
            model_provider=provider,
            bedrock_model_id=os.environ.get("BEDROCK_MODEL_ID", DEFAULT_BEDROCK_MODEL_ID),
            bedrock_region=os.environ.get("BEDROCK_REGION", "us-east-1"),
            monthly_budget_usd=budget,
            input_price_per_m=_float_env("PRICE_INPUT_PER_M", "0.30"),
            output_price_per_m=_float_env("PRICE_OUTPUT_PER_M", "2.50"),
            global_max_active=global_max_active,
            jwt_secret=os.environ.get("JWT_SECRET") or None,
            jwt_audience=os.environ.get("JWT_AUDIENCE", "authenticated") or None,
            force_demo=os.environ.get("FORCE_DEMO", "").strip() == "1",
            cache_ttl_seconds=_int_env("CACHE_TTL_SECONDS", "86400"),
        )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"


def get_config() -> Config:
    """Get cached configuration instance.

    Returns:
        Config instance (cached after first call)
    """
    if not hasattr(get_config, "_config"):
        get_config._config = Config.from_env()
    return get_config._config
