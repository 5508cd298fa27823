from __future__ import annotations

import dataclasses
import hashlib
import json
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional, Tuple

import remote.crud as crud
from core.cart import CartState
from core.mutation import MutationExecutor, MutationResult, Notice
from core.pricing import compute_breakdown, to_money
from core.session import SessionContext
from remote.models import Order, OrderItem, ShippingAddress
from utils.logger import get_logger

_logger = get_logger(__name__)

CONTINUE_SHOPPING_ENTRY = "catalog"
SUBMIT_KEY = ("order", "submit")


class CheckoutStep(IntEnum):
    SHIPPING = 1
    PAYMENT = 2
    REVIEW = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class OrderPayload:
    """Everything sent to create an order, captured from one cart snapshot."""

    shipping: ShippingAddress
    items: Tuple[OrderItem, ...]
    total: Decimal

    def fingerprint(self) -> str:
        body = {
            "shipping": dataclasses.asdict(self.shipping),
            "items": [[i.pid, i.qty, str(i.uprice)] for i in self.items],
            "total": str(self.total),
        }
        return hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()


class CheckoutFlow:
    """
    Shipping -> Payment (mock, nothing is charged) -> Review.

    Only submission from Review talks to the service. A failed submission
    leaves the flow in Review with the address intact. Each distinct payload
    gets one idempotency key, so repeating Place Order after an ambiguous
    failure returns the order already created instead of a second one.
    """

    def __init__(self, context: SessionContext, cart: CartState, executor: MutationExecutor):
        self._context = context
        self._cart = cart
        self._executor = executor
        self.step = CheckoutStep.SHIPPING
        self.address = ShippingAddress()
        self.placed_order: Optional[Order] = None
        self._attempt: Optional[Tuple[str, str]] = None  # (fingerprint, idempotency key)

    # ---- gates ----

    def entry_redirect(self) -> Optional[str]:
        """Where to send the user instead of showing checkout, if anywhere."""
        if not self._context.is_authenticated:
            return self._context.sign_in_entry
        if self._cart.is_empty:
            return CONTINUE_SHOPPING_ENTRY
        return None

    def update_address(self, **changes: str) -> ShippingAddress:
        self.address = dataclasses.replace(self.address, **changes)
        return self.address

    def missing_fields(self) -> List[str]:
        return self.address.missing_fields()

    def is_shipping_valid(self) -> bool:
        return self.address.is_complete()

    @property
    def is_submitting(self) -> bool:
        return self._executor.is_pending(SUBMIT_KEY)

    @property
    def is_complete(self) -> bool:
        return self.placed_order is not None

    def can_submit(self) -> bool:
        return (
            self.step == CheckoutStep.REVIEW
            and not self.is_complete
            and not self.is_submitting
            and not self._cart.is_empty
            and self.is_shipping_valid()
        )

    # ---- transitions ----

    def advance(self) -> CheckoutStep:
        if self.step == CheckoutStep.SHIPPING:
            if not self.is_shipping_valid():
                self._executor.reject(
                    "Please fill in all required fields.", title="Missing information"
                )
                return self.step
            self.step = CheckoutStep.PAYMENT
        elif self.step == CheckoutStep.PAYMENT:
            self.step = CheckoutStep.REVIEW
        return self.step

    def back(self) -> CheckoutStep:
        if self.step > CheckoutStep.SHIPPING and not self.is_complete:
            self.step = CheckoutStep(self.step - 1)
        return self.step

    # ---- submission ----

    def build_order_payload(self) -> OrderPayload:
        """Lines and total as the cart stands right now."""
        items = self._cart.snapshot.items
        return OrderPayload(
            shipping=self.address,
            items=tuple(
                OrderItem(pid=item.pid, qty=item.qty, uprice=to_money(item.product.price))
                for item in items
            ),
            total=compute_breakdown(items).total,
        )

    def _idempotency_key(self, payload: OrderPayload) -> str:
        fingerprint = payload.fingerprint()
        if self._attempt is None or self._attempt[0] != fingerprint:
            self._attempt = (fingerprint, uuid.uuid4().hex)
        return self._attempt[1]

    async def submit(self) -> MutationResult[Order]:
        if self.is_submitting or self.is_complete:
            return MutationResult.rejected()
        if self._cart.is_empty:
            return self._executor.reject("Your cart is empty.", title="Nothing to order")
        if not self.is_shipping_valid():
            return self._executor.reject(
                "Please fill in all required fields.", title="Missing information"
            )
        if self.step != CheckoutStep.REVIEW:
            return MutationResult.rejected()

        payload = self.build_order_payload()
        key = self._idempotency_key(payload)
        _logger.info(f"Submitting order with {len(payload.items)} lines, key {key}")

        result = await self._executor.run(
            SUBMIT_KEY,
            lambda: crud.create_order(
                self._context.session,
                payload.shipping,
                list(payload.items),
                payload.total,
                idempotency_key=key,
            ),
            failure_notice="Failed to place order. Please try again.",
            invalidate=self._cart.load,
            success_notice=lambda order: Notice(
                "Order placed successfully!",
                f"Your order #{order.ono} has been placed and is being processed.",
            ),
        )
        if result:
            self.placed_order = result.value
        return result
