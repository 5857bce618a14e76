"""Daily usage accounting and Free-tier limit enforcement."""

from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Callable

from gemchat.config import QuotaConfig
from gemchat.core.models import UserSettings
from gemchat.core.types import Tier, UsageKind
from gemchat.log import get_logger

logger = get_logger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class QuotaLedger:
    """Checks and debits the per-user daily counters held in UserSettings.

    Only the Free tier has enforced limits. Tokens are estimated from text
    length rather than counted: a prompt is charged ``ceil(len * ratio)`` as
    soon as the send is accepted, and a successful text reply adds a flat
    ``ceil(reply_token_estimate_chars * ratio)`` regardless of its length.
    Nothing is refunded when a generation fails.
    """

    def __init__(self, config: QuotaConfig, today: Callable[[], date] = _utc_today):
        self._config = config
        self._today = today

    def default_settings(self) -> UserSettings:
        settings = UserSettings(usage_day=self._today())
        self.apply_limits(settings)
        return settings

    def apply_limits(self, settings: UserSettings) -> None:
        settings.daily_image_limit = self._config.free_daily_image_limit
        settings.daily_token_limit = self._config.free_daily_token_limit

    def roll_over(self, settings: UserSettings) -> bool:
        """Zero the counters if they belong to an earlier UTC day.

        Returns True when a reset happened.
        """
        if self._config.reset_policy == "never":
            return False
        today = self._today()
        if settings.usage_day is None:
            settings.usage_day = today
            return False
        if settings.usage_day == today:
            return False
        logger.info(
            "quota_reset",
            previous_day=settings.usage_day.isoformat(),
            tokens=settings.daily_token_usage,
            images=settings.daily_image_count,
        )
        settings.usage_day = today
        settings.daily_token_usage = 0
        settings.daily_image_count = 0
        return True

    def check(self, kind: UsageKind, settings: UserSettings) -> bool:
        """Return True if a request of ``kind`` may proceed. Never mutates counters."""
        self.roll_over(settings)
        if settings.tier != Tier.FREE:
            return True
        if kind == UsageKind.IMAGE:
            allowed = settings.daily_image_count < settings.daily_image_limit
        else:
            allowed = settings.daily_token_usage < settings.daily_token_limit
        if not allowed:
            logger.info(
                "quota_rejected",
                kind=kind.value,
                tokens=settings.daily_token_usage,
                images=settings.daily_image_count,
            )
        return allowed

    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) * self._config.prompt_token_ratio)

    @property
    def reply_charge(self) -> int:
        return math.ceil(self._config.reply_token_estimate_chars * self._config.prompt_token_ratio)

    def debit_prompt(self, settings: UserSettings, text: str) -> int:
        self.roll_over(settings)
        cost = self.estimate_tokens(text)
        settings.daily_token_usage += cost
        return cost

    def debit_reply(self, settings: UserSettings) -> int:
        self.roll_over(settings)
        cost = self.reply_charge
        settings.daily_token_usage += cost
        return cost

    def debit_image(self, settings: UserSettings) -> None:
        self.roll_over(settings)
        settings.daily_image_count += 1
