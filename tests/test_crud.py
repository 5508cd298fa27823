import os
import tempfile
import unittest
from decimal import Decimal

import fakes  # noqa: F401  (puts src/ on sys.path)
from remote import crud
from remote import database as db_database
from remote.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from remote.models import OrderItem, OrderStatus, ProductDraft, Session, ShippingAddress

SHIPPING = ShippingAddress(
    first_name="Alice",
    last_name="Shopper",
    email="alice@example.com",
    address="1 Main St",
    city="Springfield",
    zip_code="12345",
)


class CrudTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        self._orig_path = db_database.DB_PATH
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    async def asyncSetUp(self):
        self.session = await crud.login(1001, "pw")
        self.admin = await crud.login(9001, "admin")

    def tearDown(self):
        db_database.DB_PATH = self._orig_path
        db_database._initialized = False
        self.temp_dir.cleanup()

    async def _stock(self, pid: int) -> int:
        return (await crud.get_product(pid)).stock_count

    # ---------- Auth & sessions ----------

    async def test_register_login_and_identity(self):
        self.assertFalse(await crud.email_available("alice@example.com"))
        self.assertTrue(await crud.email_available("new@example.com"))

        uid = await crud.register_customer("Charlie", "charlie@example.com", "pw")
        self.assertIsInstance(uid, int)
        self.assertIsNone(await crud.login(uid, "wrong"))

        session = await crud.login(uid, "pw")
        self.assertEqual(session.uid, uid)
        identity = await crud.get_identity(session)
        self.assertEqual(identity.name, "Charlie")
        self.assertFalse(identity.is_admin)

        self.assertTrue((await crud.get_identity(self.admin)).is_admin)

    async def test_ended_or_forged_session_is_unauthorized(self):
        await crud.end_session(self.session)
        with self.assertRaises(UnauthorizedError) as ctx:
            await crud.list_cart(self.session)
        self.assertEqual(ctx.exception.status, 401)

        with self.assertRaises(UnauthorizedError):
            await crud.list_cart(Session(uid=1001, token="forged"))
        with self.assertRaises(UnauthorizedError):
            await crud.list_orders(None)

    # ---------- Catalog ----------

    async def test_list_products_filters(self):
        active = await crud.list_products()
        self.assertNotIn(8, [p.pid for p in active])
        everything = await crud.list_products(include_inactive=True)
        self.assertIn(8, [p.pid for p in everything])

        home = await crud.list_products("home")
        self.assertEqual({p.category for p in home}, {"home"})

        mug = await crud.get_product(5)
        self.assertEqual(mug.price, Decimal("29.99"))
        self.assertIsNone(await crud.get_product(424242))

        reviews = await crud.list_reviews(1)
        self.assertEqual([r.author for r in reviews], ["Bob Shopper", "Alice Shopper"])

    async def test_admin_product_lifecycle(self):
        draft = ProductDraft(name="Desk Lamp", price=Decimal("24.50"), category="home", stock_count=3)
        with self.assertRaises(ForbiddenError):
            await crud.create_product(self.session, draft)

        created = await crud.create_product(self.admin, draft)
        self.assertEqual(created.price, Decimal("24.50"))
        self.assertIsNone(created.brand)

        updated = await crud.update_product(
            self.admin, created.pid, ProductDraft(name="Desk Lamp", price=Decimal("19.00"), category="home")
        )
        self.assertEqual(updated.price, Decimal("19.00"))

        await crud.delete_product(self.admin, created.pid)
        self.assertIsNone(await crud.get_product(created.pid))
        with self.assertRaises(NotFoundError):
            await crud.delete_product(self.admin, created.pid)

    # ---------- Cart ----------

    async def test_add_merges_and_caps_at_stock(self):
        line_id = await crud.add_to_cart(self.session, 2, 3)
        again = await crud.add_to_cart(self.session, 2, 10)
        self.assertEqual(line_id, again)

        cart = await crud.list_cart(self.session)
        self.assertEqual(len(cart), 1)
        self.assertEqual(cart[0].qty, 8)  # stock of product 2
        self.assertEqual(cart[0].product.name, "Smart Watch")

    async def test_add_rejections(self):
        with self.assertRaises(BadRequestError):
            await crud.add_to_cart(self.session, 6)  # out of stock
        with self.assertRaises(NotFoundError):
            await crud.add_to_cart(self.session, 8)  # inactive
        with self.assertRaises(BadRequestError):
            await crud.add_to_cart(self.session, 1, 0)

    async def test_update_and_remove_lines(self):
        line_id = await crud.add_to_cart(self.session, 5, 1)
        await crud.update_cart_quantity(self.session, line_id, 4)
        self.assertEqual((await crud.list_cart(self.session))[0].qty, 4)

        with self.assertRaises(BadRequestError):
            await crud.update_cart_quantity(self.session, line_id, 0)
        with self.assertRaises(BadRequestError):
            await crud.update_cart_quantity(self.session, line_id, 1000)

        # another user cannot touch this line
        bob = await crud.login(1002, "pw")
        with self.assertRaises(NotFoundError):
            await crud.remove_from_cart(bob, line_id)

        await crud.remove_from_cart(self.session, line_id)
        self.assertEqual(await crud.list_cart(self.session), [])
        with self.assertRaises(NotFoundError):
            await crud.remove_from_cart(self.session, line_id)

    # ---------- Orders ----------

    async def test_create_order_decrements_stock_and_empties_cart(self):
        await crud.add_to_cart(self.session, 5, 2)
        items = [OrderItem(pid=5, qty=2, uprice=Decimal("29.99"))]

        order = await crud.create_order(self.session, SHIPPING, items, Decimal("64.78"))
        self.assertEqual(order.status, OrderStatus.PENDING)
        self.assertEqual(order.total_amount, Decimal("64.78"))
        self.assertEqual(order.shipping_address, SHIPPING)
        self.assertEqual(len(order.lines), 1)
        self.assertEqual(order.lines[0].line_total, Decimal("59.98"))

        self.assertEqual(await self._stock(5), 58)
        self.assertEqual(await crud.list_cart(self.session), [])

        orders = await crud.list_orders(self.session)
        self.assertEqual([o.ono for o in orders], [order.ono])

    async def test_create_order_idempotency(self):
        items = [OrderItem(pid=4, qty=1, uprice=Decimal("10.00"))]
        first = await crud.create_order(
            self.session, SHIPPING, items, Decimal("20.79"), idempotency_key="k-1"
        )
        replay = await crud.create_order(
            self.session, SHIPPING, items, Decimal("20.79"), idempotency_key="k-1"
        )
        self.assertEqual(first.ono, replay.ono)
        self.assertEqual(await self._stock(4), 119)
        self.assertEqual(len(await crud.list_orders(self.session)), 1)

        with self.assertRaises(ConflictError):
            await crud.create_order(
                self.session, SHIPPING, items * 2, Decimal("31.58"), idempotency_key="k-1"
            )

    async def test_create_order_rolls_back_on_short_stock(self):
        items = [
            OrderItem(pid=5, qty=1, uprice=Decimal("29.99")),
            OrderItem(pid=2, qty=99, uprice=Decimal("199.00")),
        ]
        with self.assertRaises(BadRequestError):
            await crud.create_order(self.session, SHIPPING, items, Decimal("1.00"))
        self.assertEqual(await self._stock(5), 60)
        self.assertEqual(await crud.list_orders(self.session), [])

    async def test_create_order_validation(self):
        with self.assertRaises(BadRequestError):
            await crud.create_order(self.session, SHIPPING, [], Decimal("0"))
        with self.assertRaises(BadRequestError):
            await crud.create_order(
                self.session,
                ShippingAddress(first_name="Alice"),
                [OrderItem(pid=4, qty=1, uprice=Decimal("10.00"))],
                Decimal("20.79"),
            )


if __name__ == "__main__":
    unittest.main()
