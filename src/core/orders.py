from __future__ import annotations

from typing import Tuple

import remote.crud as crud
from core.auth_guard import AuthGuard
from core.session import SessionContext
from remote.errors import RemoteError
from remote.models import Order


class OrderHistory:
    """Orders of the signed-in user, newest first."""

    def __init__(self, context: SessionContext, guard: AuthGuard):
        self._context = context
        self._guard = guard
        self.orders: Tuple[Order, ...] = ()

    async def load(self) -> Tuple[Order, ...]:
        if not self._context.is_authenticated:
            self.orders = ()
            return self.orders
        try:
            self.orders = tuple(await crud.list_orders(self._context.session))
        except RemoteError as e:
            self._guard.handle(e, "Failed to load your orders. Please try again.")
        return self.orders

    def find(self, ono: int):
        for order in self.orders:
            if order.ono == ono:
                return order
        return None
