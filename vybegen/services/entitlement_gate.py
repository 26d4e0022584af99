"""Subscription tier tracking and free-quota gating."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Protocol, Set

from vybegen.services.errors import BillingError
from vybegen.services.preferences import PreferenceStore

logger = logging.getLogger(__name__)

TIER_KEY = "subscription_tier"
REMAINING_KEY = "generations_remaining"
DEFAULT_FREE_GENERATIONS = 3


class SubscriptionTier(str, Enum):
    """Purchasable subscription levels."""

    FREE = "free"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"

    @property
    def title(self) -> str:
        return _TIER_DETAILS[self][0]

    @property
    def price(self) -> str:
        return _TIER_DETAILS[self][1]

    @property
    def description(self) -> str:
        return _TIER_DETAILS[self][2]

    @property
    def product_id(self) -> str:
        return _TIER_DETAILS[self][3]

    @property
    def is_paid(self) -> bool:
        return self is not SubscriptionTier.FREE


_TIER_DETAILS = {
    SubscriptionTier.FREE: ("Free Trial", "Free", "Free image generations to try the app", ""),
    SubscriptionTier.MONTHLY: (
        "Monthly Premium",
        "$4.99/month",
        "Unlimited generations, cancel anytime",
        "com.shockstyle.monthly",
    ),
    SubscriptionTier.YEARLY: (
        "Yearly Premium",
        "$39.99/year",
        "Unlimited generations, best value",
        "com.shockstyle.yearly",
    ),
    SubscriptionTier.LIFETIME: (
        "Lifetime Access",
        "$79.99",
        "Unlimited generations forever",
        "com.shockstyle.lifetime",
    ),
}


class BillingProvider(Protocol):
    """External store/billing integration consumed by the gate."""

    async def purchase(self, tier: SubscriptionTier) -> SubscriptionTier:
        ...

    async def restore(self) -> Optional[SubscriptionTier]:
        ...


class SimulatedBilling:
    """Billing stand-in that grants every purchase after a short delay."""

    def __init__(self, delay: float = 2.0, restorable: Optional[SubscriptionTier] = None) -> None:
        self.delay = delay
        self.restorable = restorable

    async def purchase(self, tier: SubscriptionTier) -> SubscriptionTier:
        await asyncio.sleep(self.delay)
        return tier

    async def restore(self) -> Optional[SubscriptionTier]:
        await asyncio.sleep(self.delay)
        return self.restorable


class EntitlementGate:
    """Single source of truth for whether a generation may proceed."""

    def __init__(
        self,
        preferences: PreferenceStore,
        billing: Optional[BillingProvider] = None,
        free_generations: int = DEFAULT_FREE_GENERATIONS,
    ) -> None:
        self.preferences = preferences
        self.billing = billing or SimulatedBilling()
        self.free_generations = max(0, free_generations)
        self.purchase_in_progress = False
        self.error_message: Optional[str] = None
        self._consumed_tokens: Set[str] = set()
        self._reservations: Set[str] = set()
        self.tier = self._load_tier()
        self.generations_remaining = self._load_remaining()

    # Persistence ---------------------------------------------------------
    def _load_tier(self) -> SubscriptionTier:
        raw = self.preferences.get(TIER_KEY, SubscriptionTier.FREE.value)
        try:
            return SubscriptionTier(raw)
        except ValueError:
            logger.warning("Unknown persisted subscription tier %r; using free", raw)
            return SubscriptionTier.FREE

    def _load_remaining(self) -> int:
        raw = self.preferences.get(REMAINING_KEY, self.free_generations)
        try:
            return max(0, int(raw))
        except (TypeError, ValueError):
            logger.warning("Invalid persisted free generation count %r", raw)
            return self.free_generations

    def _persist(self) -> None:
        try:
            self.preferences.set(TIER_KEY, self.tier.value)
            self.preferences.set(REMAINING_KEY, self.generations_remaining)
        except OSError as exc:
            logger.error("Failed to persist entitlement state: %s", exc)

    # Queries -------------------------------------------------------------
    @property
    def is_subscribed(self) -> bool:
        return self.tier.is_paid

    @property
    def reserved_generations(self) -> int:
        return len(self._reservations)

    def can_generate(self) -> bool:
        """Paid tiers always pass; the free tier needs an unreserved unit."""
        if self.tier.is_paid:
            return True
        return self.generations_remaining - len(self._reservations) > 0

    # Mutations -----------------------------------------------------------
    def reserve(self, token: str) -> bool:
        """Hold one unit of free quota for an in-flight generation.

        Returns False when nothing is left to hold. A reservation ends with
        ``consume_one_free_generation(token)`` on success or ``release(token)``
        otherwise. Paid tiers hold nothing.
        """
        if token in self._reservations:
            return True
        if not self.can_generate():
            return False
        if not self.tier.is_paid:
            self._reservations.add(token)
        return True

    def release(self, token: str) -> None:
        self._reservations.discard(token)

    def consume_one_free_generation(self, token: Optional[str] = None) -> bool:
        """Use one unit of free quota.

        Paid tiers and an exhausted quota are no-ops. A ``token`` that was
        already consumed is ignored, so each generation is charged at most once.
        """
        if token is not None:
            self._reservations.discard(token)
            if token in self._consumed_tokens:
                return False
        if self.tier.is_paid or self.generations_remaining <= 0:
            return False
        self.generations_remaining -= 1
        if token is not None:
            self._consumed_tokens.add(token)
        self._persist()
        logger.info("Free generation used; %d remaining", self.generations_remaining)
        return True

    async def purchase(self, tier: SubscriptionTier) -> bool:
        """Buy ``tier`` through the billing provider. Returns success."""
        if not tier.is_paid:
            return False

        self.purchase_in_progress = True
        self.error_message = None
        try:
            granted = await self.billing.purchase(tier)
        except BillingError as exc:
            self.error_message = f"Purchase failed: {exc}"
            logger.warning("Purchase of %s failed: %s", tier.value, exc)
            return False
        finally:
            self.purchase_in_progress = False

        self.tier = SubscriptionTier(granted)
        self._persist()
        logger.info("Subscription updated to %s", self.tier.value)
        return True

    async def restore(self) -> bool:
        """Restore a previous purchase. Returns whether a paid tier was found."""
        self.purchase_in_progress = True
        self.error_message = None
        try:
            restored = await self.billing.restore()
        except BillingError as exc:
            self.error_message = f"Restore failed: {exc}"
            logger.warning("Restore failed: %s", exc)
            return False
        finally:
            self.purchase_in_progress = False

        if restored is None or not SubscriptionTier(restored).is_paid:
            self.error_message = "No previous purchases found."
            return False
        self.tier = SubscriptionTier(restored)
        self._persist()
        return True

    def reset(self) -> None:
        """Return to the free tier with a fresh quota."""
        self.tier = SubscriptionTier.FREE
        self.generations_remaining = self.free_generations
        self.error_message = None
        self._consumed_tokens.clear()
        self._reservations.clear()
        self._persist()
