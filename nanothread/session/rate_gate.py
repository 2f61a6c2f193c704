"""Reply admission control: cooldowns and random interjections.

The two controls are independent. The cooldown stops one admitted
conversation from flooding; the interjection draw stops the agent from
dominating a channel it was not addressed in. An unsolicited reply has to
pass both.
"""

import random
from typing import Optional

from loguru import logger

from nanothread.config.scopes import ScopeConfigStore
from nanothread.utils.timers import Clock, DelayedTask


class RateGate:
    """
    Per-scope cooldown timers and interjection sampling.

    ``scope`` here is the guild/server id, or None for direct messages.
    """

    def __init__(
        self,
        configs: ScopeConfigStore,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self.configs = configs
        self.clock = clock
        self.rng = rng or random.Random()
        self._active: dict[str, DelayedTask] = {}

    def cooldown_key(self, scope: Optional[str], identity: str) -> str:
        """Identity when cooldowns are per identity or there is no scope, else the scope."""
        cfg = self.configs.get(scope)
        key = identity if scope is None or cfg.per_identity_cooldown else scope
        logger.debug(f"Computed cooldown key={key}")
        return key

    def is_active(self, key: str) -> bool:
        task = self._active.get(key)
        return task is not None and task.pending

    def admit(self, scope: Optional[str], identity: str) -> bool:
        """False while a cooldown for this context is running."""
        cfg = self.configs.get(scope)
        if not cfg.cooldown_enabled:
            return True
        key = self.cooldown_key(scope, identity)
        active = self.is_active(key)
        logger.debug(f"Cooldown for {key} active: {active}")
        return not active

    def arm(self, scope: Optional[str], identity: str) -> None:
        """Start the cooldown timer unless disabled or already running."""
        cfg = self.configs.get(scope)
        if not cfg.cooldown_enabled:
            return
        key = self.cooldown_key(scope, identity)
        if self.is_active(key):
            return
        task = DelayedTask(
            cfg.cooldown_seconds,
            lambda: self._expire(key),
            clock=self.clock,
            name=f"cooldown:{key}",
        )
        self._active[key] = task
        task.start()
        logger.debug(f"Started cooldown for {key} ({cfg.cooldown_seconds}s)")

    def try_acquire(self, scope: Optional[str], identity: str) -> bool:
        """
        ``admit`` and ``arm`` as one step.

        There is no suspension point between the check and the arm, so two
        messages for the same key cannot both be admitted.
        """
        if not self.admit(scope, identity):
            return False
        self.arm(scope, identity)
        return True

    def _expire(self, key: str) -> None:
        self._active.pop(key, None)
        logger.debug(f"Cleared cooldown for {key}")

    def interjection_chance(self, scope: Optional[str]) -> float:
        rate = self.configs.get(scope).interjection_denominator
        return 1 / rate

    def should_interject(self, scope: Optional[str]) -> bool:
        """One draw with probability ``1 / interjection_denominator``."""
        chance = self.interjection_chance(scope)
        hit = self.rng.random() < chance
        logger.debug(f"Interjection draw for scope {scope} (chance {chance:.4f}): {hit}")
        return hit
