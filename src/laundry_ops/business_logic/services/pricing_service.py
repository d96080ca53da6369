"""
Pricing Service - Order prices, add-ons and cancellation refunds.

All amounts are integer cents. Per-pound orders are billed by weight at
the standard or member rate; bag orders at a flat price plus an
overweight fee. Every total is floored at the minimum order amount.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from ...domain.entities import Order
from ...domain.enums import BagSize, PricingModel
from ...domain.errors import ValidationError
from ...domain.value_objects import OrderIntake, PriceQuote

STANDARD_RATE_CENTS = 225
MEMBER_RATE_CENTS = 175
MINIMUM_ORDER_CENTS = 3500

BAG_PRICE_CENTS: dict[BagSize, int] = {
    BagSize.SMALL: 3500,
    BagSize.MEDIUM: 5500,
    BagSize.LARGE: 8500,
}
BAG_WEIGHT_LIMIT_LB: dict[BagSize, int] = {
    BagSize.SMALL: 20,
    BagSize.MEDIUM: 35,
    BagSize.LARGE: 50,
}
OVERWEIGHT_FEE_CENTS = 500
OVERWEIGHT_INCREMENT_LB = 5

ADDON_CATALOG: dict[str, int] = {
    "hang_dry": 300,
    "scent_free": 0,
    "stain_treatment": 500,
    "rush": 1000,
}

CANCELLATION_FEE_CENTS = 1000
FULL_REFUND_NOTICE = timedelta(hours=6)


@dataclass(frozen=True)
class RefundDecision:
    """How much of an order's total goes back to the customer on cancel."""
    refund_cents: int
    retained_cents: int
    reason: str

    @property
    def is_full_refund(self) -> bool:
        return self.retained_cents == 0


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PricingService:
    """
    Computes quotes and refunds.

    Stateless apart from its rate table; safe to share between threads.
    """

    def __init__(
        self,
        minimum_order_cents: int = MINIMUM_ORDER_CENTS,
        currency: str = "usd",
        standard_rate_cents: int = STANDARD_RATE_CENTS,
        member_rate_cents: int = MEMBER_RATE_CENTS,
        addon_catalog: dict[str, int] | None = None,
    ):
        self._minimum = minimum_order_cents
        self._currency = currency
        self._standard_rate = standard_rate_cents
        self._member_rate = member_rate_cents
        self._addons = dict(ADDON_CATALOG if addon_catalog is None else addon_catalog)

    @property
    def minimum_order_cents(self) -> int:
        return self._minimum

    def rate_for(self, is_member: bool) -> int:
        return self._member_rate if is_member else self._standard_rate

    def addon_total(self, addons: tuple[str, ...]) -> int:
        """
        Sum add-on prices.

        Raises:
            ValidationError: An add-on is not in the catalog
        """
        unknown = [name for name in addons if name not in self._addons]
        if unknown:
            raise ValidationError(
                f"Unknown add-on(s): {', '.join(unknown)}",
                details={"unknown_addons": unknown, "available": sorted(self._addons)},
            )
        return sum(self._addons[name] for name in addons)

    def overweight_fee(self, bag_size: BagSize, weight_lb: float) -> int:
        """
        Fee for a bag over its weight limit: a flat fee per started increment.

        Examples:
            >>> PricingService().overweight_fee(BagSize.SMALL, 26)
            1000
        """
        overage = weight_lb - BAG_WEIGHT_LIMIT_LB[bag_size]
        if overage <= 0:
            return 0
        return math.ceil(overage / OVERWEIGHT_INCREMENT_LB) * OVERWEIGHT_FEE_CENTS

    def quote_intake(self, intake: OrderIntake) -> PriceQuote:
        """
        Estimate an order's price at intake.

        Uses, in order of preference: the declared weight, the caller's
        estimated amount, the bag price, the minimum order.
        """
        addon_cents = self.addon_total(intake.addons)
        rate = self.rate_for(intake.is_member)
        overweight = 0
        bag_size = intake.pricing_model.bag_size()

        if intake.has_declared_weight():
            if bag_size is not None:
                overweight = self.overweight_fee(bag_size, intake.declared_weight_lb)
                subtotal = BAG_PRICE_CENTS[bag_size] + overweight
            else:
                subtotal = _round_half_up(intake.declared_weight_lb * rate)
        elif intake.estimated_amount_cents is not None:
            subtotal = intake.estimated_amount_cents
        elif bag_size is not None:
            subtotal = BAG_PRICE_CENTS[bag_size]
        else:
            subtotal = self._minimum

        return self._quote(subtotal, addon_cents, rate if bag_size is None else None, overweight)

    def quote_measured(
        self,
        pricing_model: PricingModel,
        weight_lb: float,
        addons: tuple[str, ...] = (),
        is_member: bool = False,
    ) -> PriceQuote:
        """
        Price an order from its measured weight (pickup and delivery).

        Raises:
            ValidationError: weight is not positive, or unknown add-on
        """
        if weight_lb is None or weight_lb <= 0:
            raise ValidationError("Measured weight must be greater than 0")

        addon_cents = self.addon_total(addons)
        bag_size = pricing_model.bag_size()
        if bag_size is not None:
            overweight = self.overweight_fee(bag_size, weight_lb)
            return self._quote(BAG_PRICE_CENTS[bag_size] + overweight, addon_cents, None, overweight)

        rate = self.rate_for(is_member)
        return self._quote(_round_half_up(weight_lb * rate), addon_cents, rate, 0)

    def quote_order(self, order: Order, weight_lb: float) -> PriceQuote:
        return self.quote_measured(order.pricing_model, weight_lb, order.addons, order.is_member)

    def cancellation_refund(
        self,
        order: Order,
        now: datetime,
        window_start: datetime,
        by_admin: bool = False,
    ) -> RefundDecision:
        """
        Decide the refund for a cancellation.

        Args:
            order: Order as it was before cancelling
            now: Cancellation time
            window_start: Start of the order's pickup window
            by_admin: Admin cancellations always refund in full

        Returns:
            RefundDecision with refund and retained amounts
        """
        total = order.total_cents

        if by_admin:
            return RefundDecision(total, 0, "Full refund (cancelled by admin)")

        if not order.status.is_before_pickup():
            refund = total // 2
            return RefundDecision(refund, total - refund, "50% refund (already picked up)")

        notice = window_start - now
        if notice >= FULL_REFUND_NOTICE:
            return RefundDecision(total, 0, "Full refund (cancelled 6+ hours before pickup)")
        if notice > timedelta(0):
            refund = max(total - CANCELLATION_FEE_CENTS, 0)
            return RefundDecision(refund, total - refund, "Refund minus cancellation fee (within 6 hours of pickup)")

        refund = total // 2
        return RefundDecision(refund, total - refund, "50% refund (cancelled after pickup window started)")

    def _quote(self, subtotal: int, addon_cents: int, rate: int | None, overweight: int) -> PriceQuote:
        raw_total = subtotal + addon_cents
        total = max(raw_total, self._minimum)
        return PriceQuote(
            subtotal_cents=subtotal,
            addon_cents=addon_cents,
            total_cents=total,
            minimum_applied=total > raw_total,
            rate_per_lb_cents=rate,
            overweight_fee_cents=overweight,
            currency=self._currency,
        )
