import unittest
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import fakes  # noqa: F401  (puts src/ on sys.path)
from core.auth_guard import AuthGuard
from core.cart import CartState
from core.checkout import CONTINUE_SHOPPING_ENTRY, CheckoutFlow, CheckoutStep
from core.mutation import MutationExecutor
from core.session import SIGN_IN_ENTRY, SessionContext
from fakes import FakeHost, make_line, signed_in
from remote.errors import ServiceUnavailableError
from remote.models import Order, OrderStatus

ADDRESS = dict(
    first_name="Alice",
    last_name="Smith",
    email="alice@example.com",
    address="1 Main St",
    city="Springfield",
    zip_code="12345",
    country="US",
)


def _order(ono=123456, total="64.78"):
    return Order(
        ono=ono,
        uid=1001,
        status=OrderStatus.PENDING,
        total_amount=Decimal(total),
        shipping_address=None,
        created_at=datetime(2025, 1, 1, 12, 0),
    )


class CheckoutFlowTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.host = FakeHost()
        self.context = signed_in(SessionContext())
        self.executor = MutationExecutor(AuthGuard(self.host), self.host)
        self.cart = CartState(self.context, self.executor)
        self.cart.attach()
        self.lines = [make_line(1, pid=5, qty=2, price="29.99")]
        with patch("remote.crud.list_cart", new=AsyncMock(return_value=self.lines)):
            await self.cart.load()
        self.flow = CheckoutFlow(self.context, self.cart, self.executor)

    async def _to_review(self):
        self.flow.update_address(**ADDRESS)
        self.assertEqual(self.flow.advance(), CheckoutStep.PAYMENT)
        self.assertEqual(self.flow.advance(), CheckoutStep.REVIEW)

    # ---------- entry and steps ----------

    def test_entry_redirects(self):
        self.assertIsNone(self.flow.entry_redirect())

        self.cart.reset()
        self.assertEqual(self.flow.entry_redirect(), CONTINUE_SHOPPING_ENTRY)

        self.context.forget()
        self.assertEqual(self.flow.entry_redirect(), SIGN_IN_ENTRY)

    def test_shipping_blocks_on_blank_fields(self):
        self.flow.update_address(**dict(ADDRESS, city="   "))
        self.assertFalse(self.flow.is_shipping_valid())
        self.assertEqual(self.flow.missing_fields(), ["city"])

        self.assertEqual(self.flow.advance(), CheckoutStep.SHIPPING)
        self.assertEqual(self.host.messages, ["Please fill in all required fields."])

        self.flow.update_address(city="Springfield")
        self.assertEqual(self.flow.advance(), CheckoutStep.PAYMENT)

    def test_back_never_goes_before_shipping(self):
        self.flow.update_address(**ADDRESS)
        self.flow.advance()
        self.assertEqual(self.flow.back(), CheckoutStep.SHIPPING)
        self.assertEqual(self.flow.back(), CheckoutStep.SHIPPING)

    def test_payload_comes_from_current_cart(self):
        self.flow.update_address(**ADDRESS)
        payload = self.flow.build_order_payload()
        self.assertEqual(len(payload.items), 1)
        self.assertEqual(payload.items[0].pid, 5)
        self.assertEqual(payload.items[0].qty, 2)
        self.assertEqual(payload.items[0].uprice, Decimal("29.99"))
        self.assertEqual(payload.total, Decimal("64.78"))

    # ---------- submission ----------

    async def test_submit_only_from_review(self):
        create = AsyncMock()
        self.flow.update_address(**ADDRESS)
        with patch("remote.crud.create_order", new=create):
            result = await self.flow.submit()
        self.assertFalse(result)
        create.assert_not_awaited()

    async def test_submit_blocked_on_empty_cart(self):
        await self._to_review()
        self.cart.reset()
        create = AsyncMock()
        with patch("remote.crud.create_order", new=create):
            result = await self.flow.submit()
        self.assertFalse(result)
        create.assert_not_awaited()
        self.assertFalse(self.flow.can_submit())

    async def test_successful_submit_reloads_cart(self):
        await self._to_review()
        self.assertTrue(self.flow.can_submit())
        create = AsyncMock(return_value=_order())
        with patch("remote.crud.create_order", new=create), patch(
            "remote.crud.list_cart", new=AsyncMock(return_value=[])
        ):
            result = await self.flow.submit()

        self.assertTrue(result)
        self.assertTrue(self.flow.is_complete)
        self.assertEqual(self.flow.placed_order.ono, 123456)
        self.assertTrue(self.cart.is_empty)

        args, kwargs = create.await_args
        self.assertEqual(args[0], self.context.session)
        self.assertEqual(args[1].city, "Springfield")
        self.assertEqual(args[3], Decimal("64.78"))
        self.assertTrue(kwargs["idempotency_key"])
        self.assertIn("Your order #123456 has been placed and is being processed.", self.host.messages)

        # a placed order is never submitted twice
        self.assertFalse(await self.flow.submit())
        create.assert_awaited_once()

    async def test_failed_submit_stays_in_review_and_reuses_key(self):
        await self._to_review()
        create = AsyncMock(side_effect=ServiceUnavailableError("timeout"))
        list_cart = AsyncMock(return_value=self.lines)
        with patch("remote.crud.create_order", new=create), patch(
            "remote.crud.list_cart", new=list_cart
        ):
            first = await self.flow.submit()
            self.assertFalse(first)
            self.assertEqual(self.flow.step, CheckoutStep.REVIEW)
            self.assertEqual(self.flow.address.city, "Springfield")
            self.assertFalse(self.flow.is_complete)
            self.assertTrue(self.flow.can_submit())

            create.side_effect = None
            create.return_value = _order()
            second = await self.flow.submit()

        self.assertTrue(second)
        first_key = create.await_args_list[0].kwargs["idempotency_key"]
        second_key = create.await_args_list[1].kwargs["idempotency_key"]
        self.assertEqual(first_key, second_key)
        self.assertIn("Failed to place order. Please try again.", self.host.messages)

    async def test_changed_payload_gets_new_key(self):
        await self._to_review()
        create = AsyncMock(side_effect=ServiceUnavailableError("timeout"))
        with patch("remote.crud.create_order", new=create):
            await self.flow.submit()
            self.flow.update_address(city="Shelbyville")
            await self.flow.submit()

        first_key = create.await_args_list[0].kwargs["idempotency_key"]
        second_key = create.await_args_list[1].kwargs["idempotency_key"]
        self.assertNotEqual(first_key, second_key)


if __name__ == "__main__":
    unittest.main()
