"""
Configuration settings for the VirtuLab guide engine.

This module handles all configuration settings including the guide model
credentials, the model cascade, apparatus tick rates, the thermal policy of
the simulated apparatus and logging.
"""

import logging
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings
from functools import lru_cache


class HeaterPolicy(BaseModel):
    """Thermal policy for the Bunsen burner."""

    ambient_c: float = Field(default=25.0, description="Room temperature the flame cools back to")
    min_c: float = Field(default=-10.0, description="Lowest reachable temperature")
    max_c: float = Field(default=800.0, description="Highest reachable temperature")
    base_temps: List[float] = Field(
        default=[300.0, 450.0, 600.0, 750.0],
        description="Base flame temperature per air-hole level (Close, Slightly, Half, Fully)"
    )
    margin: float = Field(default=50.0, description="Added to the base temperature to form the ceiling")
    rate_base: float = Field(default=1.0, description="Warm-up increment per tick with the air hole closed")
    rate_per_level: float = Field(default=0.2, description="Extra warm-up increment per air-hole level")
    cooling_step: float = Field(default=0.5, description="Cooling decrement per tick while unlit")
    clamp_to_ceiling: bool = Field(
        default=False,
        description=(
            "Drop a lit flame straight to a lowered ceiling when the air hole is closed down; "
            "by default it holds its temperature until the burner is turned off"
        )
    )

    @model_validator(mode="after")
    def validate_policy(self):
        """Validate that the ceilings rise with the air-hole level and stay in range."""
        if len(self.base_temps) != 4:
            raise ValueError("Heater policy needs exactly four base temperatures")
        if any(b >= a for a, b in zip(self.base_temps[1:], self.base_temps)):
            raise ValueError("Heater base temperatures must increase with the air-hole level")
        if self.base_temps[-1] + self.margin > self.max_c:
            raise ValueError("Hottest flame ceiling exceeds the heater maximum")
        if not self.min_c <= self.ambient_c <= self.max_c:
            raise ValueError("Ambient temperature must lie within the heater range")
        if self.cooling_step <= 0 or self.rate_base <= 0 or self.rate_per_level < 0:
            raise ValueError("Heater rates must be positive")
        return self


# Samples the thermometer can be placed in; every one needs a target
THERMOMETER_SAMPLES = ("ice", "room", "warm", "body", "hot")


class ThermometerPolicy(BaseModel):
    """Convergence policy for the laboratory thermometer."""

    min_c: float = Field(default=-10.0, description="Lowest mark on the scale")
    max_c: float = Field(default=110.0, description="Highest mark on the scale")
    start_c: float = Field(default=25.0, description="Reading when the practical opens")
    gain: float = Field(default=0.08, description="Fraction of the remaining gap covered per tick")
    min_step: float = Field(default=0.15, description="Smallest move per tick")
    max_step: float = Field(default=1.2, description="Largest move per tick")
    snap_threshold: float = Field(default=0.2, description="Gap under which the reading snaps to the target")
    sample_targets: Dict[str, float] = Field(
        default={
            "ice": 0.0,
            "room": 25.0,
            "warm": 45.0,
            "body": 37.0,
            "hot": 90.0,
        },
        description="Target temperature of each sample"
    )

    @model_validator(mode="after")
    def validate_policy(self):
        """Validate that steps are ordered and targets lie on the scale."""
        if not 0 < self.min_step <= self.max_step:
            raise ValueError("Thermometer steps must satisfy 0 < min_step <= max_step")
        if self.min_step > self.snap_threshold:
            raise ValueError("Thermometer min_step must not exceed the snap threshold")
        missing = [s for s in THERMOMETER_SAMPLES if s not in self.sample_targets]
        if missing:
            raise ValueError(f"Thermometer policy has no target for samples: {', '.join(missing)}")
        if self.start_c < self.min_c or self.start_c > self.max_c:
            raise ValueError("Thermometer start reading is off the scale")
        for sample_id, target in self.sample_targets.items():
            if not self.min_c <= target <= self.max_c:
                raise ValueError(f"Target for sample '{sample_id}' is off the thermometer scale")
        return self


class Settings(BaseSettings):
    """
    Application settings with environment variable support.
    """

    # OpenAI API Configuration
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key for the remote lab guide"
    )
    guide_models: str = Field(
        default="gpt-4.1,gpt-4.1-mini,gpt-4o-mini",
        description="Comma separated model cascade tried in order"
    )
    guide_max_tokens: int = Field(
        default=600,
        description="Maximum tokens for guide responses"
    )
    guide_temperature: float = Field(
        default=0.6,
        description="Temperature setting for guide responses (0.0-2.0)"
    )
    guide_timeout: float = Field(
        default=20.0,
        description="Timeout for a single guide model call (seconds)"
    )
    guide_history_turns: int = Field(
        default=4,
        description="Number of recent conversation turns included in the prompt"
    )

    # Apparatus Configuration
    heater_tick_interval: float = Field(
        default=0.4,
        description="Seconds between Bunsen burner ticks"
    )
    thermometer_tick_interval: float = Field(
        default=0.25,
        description="Seconds between thermometer ticks"
    )
    balance_tick_interval: float = Field(
        default=0.9,
        description="Seconds between beam balance ticks"
    )
    max_weights_per_pan: int = Field(
        default=50,
        description="Maximum number of standard masses on one pan"
    )
    heater: HeaterPolicy = Field(default_factory=HeaterPolicy)
    thermometer: ThermometerPolicy = Field(default_factory=ThermometerPolicy)

    # Session Configuration
    completion_reward: int = Field(
        default=500,
        description="Reward passed to the profile store when a practical is finished"
    )
    session_idle_timeout: float = Field(
        default=1800.0,
        description="Seconds without activity before an abandoned lab session is ended"
    )
    session_cleanup_interval: float = Field(
        default=60.0,
        description="Seconds between sweeps for abandoned lab sessions"
    )

    # FastAPI Configuration
    app_name: str = Field(
        default="VirtuLab Guide API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # API Configuration
    api_host: str = Field(
        default="localhost",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )

    # CORS Configuration
    cors_origins: str = Field(
        default="*",
        description="CORS origins (configure for production)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./virtulab.db",
        description="SQLAlchemy URL for the completion store"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    @field_validator('guide_temperature')
    def validate_temperature(cls, v):
        """Validate guide temperature is within valid range."""
        if not 0.0 <= v <= 2.0:
            raise ValueError('Guide temperature must be between 0.0 and 2.0')
        return v

    @field_validator('guide_max_tokens', 'guide_history_turns', 'max_weights_per_pan')
    def validate_positive_int(cls, v):
        """Validate counts are positive."""
        if v <= 0:
            raise ValueError('Value must be positive')
        return v

    @field_validator(
        'guide_timeout',
        'heater_tick_interval',
        'thermometer_tick_interval',
        'balance_tick_interval',
        'session_idle_timeout',
        'session_cleanup_interval'
    )
    def validate_positive_seconds(cls, v):
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError('Durations must be positive')
        return v

    @field_validator('guide_models')
    def validate_guide_models(cls, v):
        """Validate at least one model is configured."""
        if not [m for m in v.split(",") if m.strip()]:
            raise ValueError('At least one guide model must be configured')
        return v

    @field_validator('log_level')
    def validate_log_level(cls, v):
        """Validate log level is valid."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()

    def get_guide_models(self) -> List[str]:
        """Return the model cascade in attempt order."""
        return [m.strip() for m in self.guide_models.split(",") if m.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "extra": "ignore"
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def validate_required_settings() -> list[str]:
    """
    Validate that required settings are configured.

    Returns:
        List of missing required settings
    """
    missing = []
    settings = get_settings()

    # The remote guide is the only consumer of the key
    if not settings.openai_api_key:
        missing.append("OpenAI API key (OPENAI_API_KEY environment variable)")

    return missing


def get_guide_config(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Get guide model configuration for ChatOpenAI initialization.

    Args:
        settings: Settings to read; defaults to the cached instance

    Returns:
        Dictionary with configuration parameters shared by every cascade model
    """
    settings = settings or get_settings()
    return {
        "temperature": settings.guide_temperature,
        "max_tokens": settings.guide_max_tokens,
        "timeout": settings.guide_timeout,
        "max_retries": 0,
        "api_key": settings.openai_api_key
    }


def initialize_logging() -> None:
    """Initialize logging configuration based on settings."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler('virtulab.log') if not settings.debug else logging.NullHandler()
        ]
    )

    # Set specific loggers
    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('openai').setLevel(logging.WARNING)

    if settings.debug:
        logging.getLogger('agents').setLevel(logging.DEBUG)


def get_system_info() -> Dict[str, Any]:
    """
    Get system configuration information for debugging.

    Returns:
        Dictionary with system configuration details
    """
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "app_version": settings.app_version,
        "guide_models": settings.get_guide_models(),
        "guide_timeout": settings.guide_timeout,
        "guide_history_turns": settings.guide_history_turns,
        "heater_tick_interval": settings.heater_tick_interval,
        "thermometer_tick_interval": settings.thermometer_tick_interval,
        "balance_tick_interval": settings.balance_tick_interval,
        "completion_reward": settings.completion_reward,
        "debug": settings.debug,
        "log_level": settings.log_level,
        "api_host": settings.api_host,
        "api_port": settings.api_port,
        "has_openai_key": bool(settings.openai_api_key)
    }
