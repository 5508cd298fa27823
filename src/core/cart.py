from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import remote.crud as crud
from core.mutation import MutationExecutor, MutationResult, Notice
from core.pricing import PricingBreakdown, compute_breakdown, item_count
from core.session import SessionContext
from remote.errors import NotFoundError, RemoteError
from remote.models import CartLineItem, Product
from utils.logger import get_logger

_logger = get_logger(__name__)

REMOVED_NOTICE = Notice("Item removed", "Product has been removed from your cart.")


@dataclass(frozen=True)
class CartSnapshot:
    """Cart rows as last fetched. Replaced wholesale, never patched."""

    items: Tuple[CartLineItem, ...] = ()
    fetched_at: Optional[datetime] = None

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def find(self, line_id: int) -> Optional[CartLineItem]:
        for item in self.items:
            if item.line_id == line_id:
                return item
        return None

    def find_product(self, pid: int) -> Optional[CartLineItem]:
        for item in self.items:
            if item.pid == pid:
                return item
        return None

    @property
    def item_count(self) -> int:
        return item_count(self.items)

    @property
    def breakdown(self) -> PricingBreakdown:
        return compute_breakdown(self.items)


CartListener = Callable[[CartSnapshot], None]


class CartState:
    """
    Local view of the remote cart.

    The snapshot is written only by `load()`, which every successful mutation
    triggers. Item count and prices are derived from the snapshot on each
    access.
    """

    def __init__(self, context: SessionContext, executor: MutationExecutor):
        self._context = context
        self._executor = executor
        self._snapshot = CartSnapshot()
        self._views = 0
        self._load_seq = 0
        self._applied_seq = 0
        self._listeners: List[CartListener] = []

    # ---- read side ----

    @property
    def snapshot(self) -> CartSnapshot:
        return self._snapshot

    @property
    def item_count(self) -> int:
        return self._snapshot.item_count

    @property
    def breakdown(self) -> PricingBreakdown:
        return self._snapshot.breakdown

    @property
    def is_empty(self) -> bool:
        return not self._snapshot.items

    def is_pending(self, line_id: int) -> bool:
        return self._executor.is_pending(("cart", line_id))

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    # ---- views ----

    def attach(self) -> None:
        """A view showing cart data became visible."""
        self._views += 1

    def detach(self) -> None:
        self._views = max(self._views - 1, 0)

    @property
    def is_active(self) -> bool:
        return self._views > 0

    # ---- sync ----

    def _replace(self, snapshot: CartSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    def reset(self) -> None:
        """Forget the cached cart, e.g. after sign out."""
        self._load_seq += 1
        self._applied_seq = self._load_seq
        self._replace(CartSnapshot())

    async def load(self) -> bool:
        """
        Fetch the cart for the current identity. Skipped when signed out or
        when no cart view is attached. A response older than one already
        applied is dropped. Returns False only when the fetch failed.
        """
        if not self._context.is_authenticated or not self.is_active:
            return True
        self._load_seq += 1
        seq = self._load_seq
        try:
            items = await crud.list_cart(self._context.session)
        except RemoteError as e:
            self._executor.guard.handle(e, "Failed to load your cart. Please try again.")
            return False
        if seq > self._applied_seq:
            self._applied_seq = seq
            self._replace(CartSnapshot(items=tuple(items), fetched_at=datetime.now()))
        else:
            _logger.debug(f"Dropped stale cart load #{seq}")
        return True

    # ---- mutations ----

    async def set_quantity(self, line_id: int, qty: int) -> MutationResult:
        """
        Set a line item's quantity. Below 1 is a removal, never an update.
        Requests for the same line item are applied one at a time.
        """
        if qty < 1:
            return await self.remove(line_id)
        return await self._executor.run(
            ("cart", line_id),
            lambda: crud.update_cart_quantity(self._context.session, line_id, qty),
            failure_notice="Failed to update quantity. Please try again.",
            invalidate=self.load,
        )

    async def _step(self, line_id: int, delta: int) -> MutationResult:
        # the new quantity is read once the line's lock is held, so queued
        # steps each build on the snapshot reloaded by the one before
        if self._snapshot.find(line_id) is None:
            return MutationResult.rejected()
        session = self._context.session

        async def call() -> Optional[int]:
            item = self._snapshot.find(line_id)
            if item is None:
                raise NotFoundError("Cart item not found")
            qty = item.qty + delta
            if qty < 1:
                await crud.remove_from_cart(session, line_id)
                return None
            await crud.update_cart_quantity(session, line_id, qty)
            return qty

        return await self._executor.run(
            ("cart", line_id),
            call,
            failure_notice="Failed to update quantity. Please try again.",
            invalidate=self.load,
            success_notice=lambda qty: REMOVED_NOTICE if qty is None else None,
        )

    async def increment(self, line_id: int) -> MutationResult:
        return await self._step(line_id, 1)

    async def decrement(self, line_id: int) -> MutationResult:
        return await self._step(line_id, -1)

    async def remove(self, line_id: int) -> MutationResult:
        return await self._executor.run(
            ("cart", line_id),
            lambda: crud.remove_from_cart(self._context.session, line_id),
            failure_notice="Failed to remove item. Please try again.",
            invalidate=self.load,
            success_notice=REMOVED_NOTICE,
        )

    async def add(self, product: Product, qty: int = 1) -> MutationResult:
        if not self._context.is_authenticated:
            self._executor.guard.prompt_sign_in("Please sign in to add items to your cart.")
            return MutationResult.rejected()
        if not product.is_active:
            return self._executor.reject(
                "This product is no longer available.", title="Unavailable"
            )
        if product.stock_count <= 0:
            return self._executor.reject(
                "This product is currently out of stock.", title="Out of stock"
            )
        if qty < 1:
            return self._executor.reject("Quantity must be at least 1.", title="Invalid quantity")
        return await self._executor.run(
            ("cart-add", product.pid),
            lambda: crud.add_to_cart(self._context.session, product.pid, qty),
            failure_notice="Failed to add product to cart. Please try again.",
            invalidate=self.load,
            success_notice=Notice("Added to cart", f"{product.name} has been added to your cart."),
        )
