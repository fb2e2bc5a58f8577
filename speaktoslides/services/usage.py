"""Usage limits for deck generation.

Signed-in callers are unlimited. Anonymous callers get
``usage.anonymous_deck_limit`` decks per IP address.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from speaktoslides.config.settings import UsageSettings
from speaktoslides.services.persistence import PersistenceGateway

logger = logging.getLogger(__name__)

LIMIT_REACHED_MESSAGE = "Free tier limit reached. Sign in to create more decks."


@dataclass(frozen=True)
class UsageDecision:
    allowed: bool
    reason: Optional[str] = None


class UsagePolicy:
    def __init__(self, gateway: PersistenceGateway, settings: UsageSettings):
        self.gateway = gateway
        self.settings = settings

    def _decide(self, user_id: Optional[str], ip_address: Optional[str], prior: int) -> UsageDecision:
        if user_id or not ip_address:
            return UsageDecision(allowed=True)

        if prior >= self.settings.anonymous_deck_limit:
            logger.info(
                "Anonymous usage limit reached",
                extra={"ip_address": ip_address, "prior": prior},
            )
            return UsageDecision(allowed=False, reason=LIMIT_REACHED_MESSAGE)
        return UsageDecision(allowed=True)

    def check(self, user_id: Optional[str], ip_address: Optional[str]) -> UsageDecision:
        """Decide whether a generation may start, without recording it."""
        if user_id or not ip_address:
            return UsageDecision(allowed=True)
        return self._decide(user_id, ip_address, self.gateway.count_usage(user_id, ip_address))

    def record(self, user_id: Optional[str], ip_address: Optional[str]) -> None:
        """Record a generation that produced a deck."""
        self.gateway.record_usage(user_id, ip_address)

    def check_and_record(self, user_id: Optional[str], ip_address: Optional[str]) -> UsageDecision:
        """Record a generation attempt and decide whether it may proceed."""
        prior = self.gateway.record_usage_and_count_prior(user_id, ip_address)
        return self._decide(user_id, ip_address, prior)
