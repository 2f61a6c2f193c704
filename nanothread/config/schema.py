"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from nanothread.errors import ConfigurationError

DEFAULT_COOLDOWN_SECONDS = 2.5
DEFAULT_INTERJECTION_RATE = 100
MIN_INTERJECTION_RATE = 50


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CooldownConfig(Base):
    """Per-scope cooldown behaviour."""
    use_cooldown: bool = True
    cooldown_time: float = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=0)  # Seconds
    per_user_cooldown: bool = True  # False: one cooldown shared by the whole scope


class RateConfig(Base):
    """
    Rate controls for one scope.

    Serialized as ``{"cooldown": {...}, "interjectionRate": N}``. The
    properties give the flat view the rate gate works with.
    """
    cooldown: CooldownConfig = Field(default_factory=CooldownConfig)
    interjection_rate: int = Field(default=DEFAULT_INTERJECTION_RATE, ge=MIN_INTERJECTION_RATE)  # 1 in N

    @property
    def cooldown_enabled(self) -> bool:
        return self.cooldown.use_cooldown

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown.cooldown_time

    @property
    def per_identity_cooldown(self) -> bool:
        return self.cooldown.per_user_cooldown

    @property
    def interjection_denominator(self) -> int:
        return self.interjection_rate


class PersonaConfig(Base):
    """Persona text injected at the top of every prompt."""
    clone_user_id: str = ""
    base_description: str = ""
    markdown_guide: str = ""


class Settings(BaseSettings):
    """
    Process-wide settings read from the environment (and ``.env``).

    Every variable is prefixed with ``NANOTHREAD_``, e.g.
    ``NANOTHREAD_ENCRYPTION_KEY_BASE``.
    """
    encryption_key_base: str = ""  # Required: secret the storage key is derived from
    model_api_key: str = ""  # Required: language-model provider credential
    model_api_base: str | None = None
    model: str = "openai/gpt-4o"
    fine_tuned_model_name: str = ""
    use_fine_tuned_model: bool = False
    use_persona: bool = True
    tenor_api_key: str = ""  # Optional: Tenor GIF resolution
    giphy_api_key: str = ""  # Optional: Giphy GIF resolution
    data_dir: Path = Path("data")
    persona_file: Path = Path("persona.json")
    clone_user_id: str = ""
    max_memory_entries: int = 50
    memory_budget_chars: int = 1000
    thread_message_limit: int = 10
    http_timeout_seconds: float = 15.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="NANOTHREAD_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def active_model(self) -> str:
        """The model to call: the fine-tuned one when enabled."""
        if self.use_fine_tuned_model and self.fine_tuned_model_name:
            return self.fine_tuned_model_name
        return self.model

    @property
    def scope_config_file(self) -> Path:
        return self.data_dir / "guildConfigs.json"

    def require_secrets(self) -> "Settings":
        """
        Fail fast when a required secret is missing.

        Raises:
            ConfigurationError: A required variable is unset or empty.
        """
        missing = [
            name for name, value in (
                ("NANOTHREAD_ENCRYPTION_KEY_BASE", self.encryption_key_base),
                ("NANOTHREAD_MODEL_API_KEY", self.model_api_key),
            )
            if not value
        ]
        if self.use_fine_tuned_model and not self.fine_tuned_model_name:
            missing.append("NANOTHREAD_FINE_TUNED_MODEL_NAME")
        if missing:
            raise ConfigurationError(f"Missing required environment variable(s): {', '.join(missing)}")
        return self
