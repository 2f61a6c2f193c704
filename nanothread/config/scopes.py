"""Per-scope rate configuration, persisted as one JSON document.

The file maps scope id to ``{"cooldown": {"useCooldown", "cooldownTime",
"perUserCooldown"}, "interjectionRate"}``. Scopes without an entry, and
entries with missing fields, get the defaults.
"""

import json
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from nanothread.config.schema import MIN_INTERJECTION_RATE, CooldownConfig, RateConfig
from nanothread.errors import InvalidOptionError
from nanothread.utils.helpers import atomic_write_text


class ScopeConfigStore:
    """
    In-memory cache of per-scope ``RateConfig`` backed by a JSON file.

    Entries are created lazily on the first configuration write.
    """

    def __init__(self, path: Path, default: Optional[RateConfig] = None):
        self.path = Path(path)
        self.default = default or RateConfig()
        self._configs: dict[str, RateConfig] = {}

    def get(self, scope: Optional[str]) -> RateConfig:
        """Effective config for a scope; the default when there is none."""
        if scope is None:
            return self.default
        return self._configs.get(scope, self.default)

    def has(self, scope: str) -> bool:
        return scope in self._configs

    def load(self) -> None:
        """Read the file into the cache. Problems are logged and defaults kept."""
        if not self.path.exists():
            logger.warning(f"No scope config file at {self.path}; using default settings")
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load scope configs from {self.path}: {e}")
            return

        for scope, data in raw.items():
            try:
                self._configs[scope] = RateConfig.model_validate(data)
            except ValidationError as e:
                logger.warning(f"Ignoring invalid config for scope {scope}: {e}")
        logger.info(f"Loaded {len(self._configs)} scope configuration(s)")

    def save(self) -> None:
        """Write the cache back to disk. Failures are logged, not raised."""
        data = {scope: cfg.model_dump(by_alias=True) for scope, cfg in self._configs.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            atomic_write_text(self.path, json.dumps(data, indent=2))
        except OSError as e:
            logger.error(f"Failed to save scope configs to {self.path}: {e}")
            return
        logger.debug(f"Saved {len(data)} scope configuration(s) to {self.path}")

    def _entry(self, scope: str) -> RateConfig:
        if scope not in self._configs:
            self._configs[scope] = self.default.model_copy(deep=True)
        return self._configs[scope]

    def set_cooldown(self, scope: str, seconds: float, per_identity: Optional[bool] = None) -> RateConfig:
        """
        Enable the cooldown for a scope with the given duration.

        Args:
            scope: Scope id.
            seconds: Cooldown length, must be >= 0.
            per_identity: Separate cooldown per user; keeps the default when None.

        Raises:
            InvalidOptionError: ``seconds`` is negative.
        """
        if seconds < 0:
            logger.debug(f"Rejected cooldown={seconds} for scope {scope}")
            raise InvalidOptionError("Cooldown time must be zero or positive.")
        entry = self._entry(scope)
        entry.cooldown = CooldownConfig(
            use_cooldown=True,
            cooldown_time=seconds,
            per_user_cooldown=self.default.per_identity_cooldown if per_identity is None else per_identity,
        )
        self.save()
        logger.info(f"Cooldown updated for scope {scope}: time={seconds}s, per_identity={entry.per_identity_cooldown}")
        return entry

    def disable_cooldown(self, scope: str) -> RateConfig:
        entry = self._entry(scope)
        entry.cooldown = entry.cooldown.model_copy(update={"use_cooldown": False})
        self.save()
        logger.info(f"Cooldown disabled for scope {scope}")
        return entry

    def reset_cooldown(self, scope: str) -> RateConfig:
        entry = self._entry(scope)
        entry.cooldown = self.default.cooldown.model_copy()
        self.save()
        logger.info(f"Cooldown reset to defaults for scope {scope}")
        return entry

    def set_interjection_rate(self, scope: str, denominator: int) -> RateConfig:
        """
        Set the "1 in N" chance of an unsolicited reply.

        Raises:
            InvalidOptionError: ``denominator`` is below the minimum of 50.
        """
        if denominator < MIN_INTERJECTION_RATE:
            logger.debug(f"Rejected interjection rate={denominator} for scope {scope}")
            raise InvalidOptionError(
                f"Rate must be at least {MIN_INTERJECTION_RATE} (i.e. a 1 in {MIN_INTERJECTION_RATE} chance)."
            )
        entry = self._entry(scope)
        entry.interjection_rate = denominator
        self.save()
        logger.info(f"Interjection rate for scope {scope} set to 1 in {denominator}")
        return entry
