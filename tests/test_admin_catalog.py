import unittest
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import fakes  # noqa: F401  (puts src/ on sys.path)
from core.auth_guard import LOGGED_OUT_NOTICE, AuthGuard
from core.catalog import (
    AdminCatalogEditor,
    CatalogState,
    FormError,
    ProductForm,
    sort_products,
)
from core.mutation import MutationExecutor
from core.session import SessionContext
from fakes import FakeHost, make_product, signed_in
from remote.errors import UnauthorizedError


def _form(**overrides) -> ProductForm:
    values = dict(name="Desk Lamp", price="24.5", category="home")
    values.update(overrides)
    return ProductForm(**values)


class ProductFormTestCase(unittest.TestCase):
    def test_blank_optionals_become_none(self):
        draft = _form(brand="  ", description="", original_price=" ", image_url="").to_draft()
        self.assertEqual(draft.name, "Desk Lamp")
        self.assertEqual(draft.price, Decimal("24.50"))
        self.assertIsNone(draft.brand)
        self.assertIsNone(draft.description)
        self.assertIsNone(draft.original_price)
        self.assertIsNone(draft.image_url)
        self.assertEqual(draft.stock_count, 0)

    def test_required_fields(self):
        form = _form(name=" ", price="")
        self.assertFalse(form.is_valid())
        self.assertEqual(form.missing_fields(), ["name", "price"])
        with self.assertRaises(FormError) as ctx:
            form.to_draft()
        self.assertEqual(ctx.exception.field, "name")

    def test_invalid_values(self):
        for overrides, field in [
            (dict(price="abc"), "price"),
            (dict(price="-1"), "price"),
            (dict(price="1e30"), "price"),
            (dict(price="5000000"), "price"),
            (dict(original_price="1e30"), "original_price"),
            (dict(stock="2.5"), "stock"),
            (dict(category="toys"), "category"),
        ]:
            with self.subTest(field=field, overrides=overrides):
                with self.assertRaises(FormError) as ctx:
                    _form(**overrides).to_draft()
                self.assertEqual(ctx.exception.field, field)

    def test_from_product_round_trips_fields(self):
        product = make_product(pid=3, price="59.50", stock=40, brand="Northwind",
                               original_price=Decimal("79.00"))
        draft = ProductForm.from_product(product).to_draft()
        self.assertEqual(draft.price, Decimal("59.50"))
        self.assertEqual(draft.original_price, Decimal("79.00"))
        self.assertEqual(draft.stock_count, 40)
        self.assertEqual(draft.brand, "Northwind")

    def test_sorting(self):
        products = [
            make_product(1, price="5.00", rating=Decimal("3.0")),
            make_product(2, price="1.00", rating=Decimal("4.5")),
            make_product(3, price="9.00", rating=Decimal("4.0")),
        ]
        self.assertEqual([p.pid for p in sort_products(products, "price-low")], [2, 1, 3])
        self.assertEqual([p.pid for p in sort_products(products, "price-high")], [3, 1, 2])
        self.assertEqual([p.pid for p in sort_products(products, "rating")], [2, 3, 1])
        self.assertEqual([p.pid for p in sort_products(products, "featured")], [1, 2, 3])


class AdminCatalogEditorTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.host = FakeHost()
        self.context = signed_in(SessionContext(), uid=9001, is_admin=True)
        self.executor = MutationExecutor(AuthGuard(self.host), self.host)
        self.catalog = CatalogState(self.context, self.executor, include_inactive=True)
        self.admin = AdminCatalogEditor(self.context, self.catalog, self.executor)

    async def test_non_admin_is_rejected(self):
        signed_in(self.context, uid=1001, is_admin=False)
        create = AsyncMock()
        delete = AsyncMock()
        confirm = AsyncMock(return_value=True)
        with patch("remote.crud.create_product", new=create), patch(
            "remote.crud.delete_product", new=delete
        ):
            saved = await self.admin.save(_form())
            deleted = await self.admin.delete(1, confirm)

        self.assertFalse(saved)
        self.assertFalse(deleted)
        create.assert_not_awaited()
        delete.assert_not_awaited()
        confirm.assert_not_awaited()
        self.assertEqual(self.host.messages, ["Admin access required.", "Admin access required."])

    async def test_create_reloads_catalog(self):
        created = make_product(pid=9, name="Desk Lamp")
        list_products = AsyncMock(return_value=[created])
        with patch("remote.crud.create_product", new=AsyncMock(return_value=created)) as create, patch(
            "remote.crud.list_products", new=list_products
        ):
            result = await self.admin.save(_form(brand=""))

        self.assertTrue(result)
        draft = create.await_args.args[1]
        self.assertIsNone(draft.brand)
        # the admin table lists inactive products too
        list_products.assert_awaited_once_with(None, include_inactive=True)
        self.assertEqual(self.catalog.find(9).name, "Desk Lamp")
        self.assertEqual(self.host.messages, ["Product has been successfully created."])

    async def test_update_targets_pid(self):
        update = AsyncMock(return_value=make_product(pid=4))
        with patch("remote.crud.update_product", new=update), patch(
            "remote.crud.list_products", new=AsyncMock(return_value=[])
        ):
            result = await self.admin.save(_form(), pid=4)
        self.assertTrue(result)
        self.assertEqual(update.await_args.args[1], 4)

    async def test_invalid_form_sends_nothing(self):
        create = AsyncMock()
        with patch("remote.crud.create_product", new=create):
            result = await self.admin.save(_form(price="free"))
        self.assertFalse(result)
        create.assert_not_awaited()
        self.assertEqual(self.host.notices[0][0], "Invalid product")

    async def test_declined_delete_sends_nothing(self):
        delete = AsyncMock()
        confirm = AsyncMock(return_value=False)
        with patch("remote.crud.delete_product", new=delete):
            result = await self.admin.delete(3, confirm)

        self.assertFalse(result)
        self.assertFalse(result.dispatched)
        confirm.assert_awaited_once_with("Are you sure you want to delete this product?")
        delete.assert_not_awaited()
        self.assertEqual(self.host.notices, [])

    async def test_confirmed_delete(self):
        delete = AsyncMock(return_value=None)
        with patch("remote.crud.delete_product", new=delete), patch(
            "remote.crud.list_products", new=AsyncMock(return_value=[])
        ):
            result = await self.admin.delete(3, AsyncMock(return_value=True))
        self.assertTrue(result)
        delete.assert_awaited_once_with(self.context.session, 3)
        self.assertEqual(self.host.messages, ["Product has been successfully deleted."])

    async def test_session_loss_on_delete(self):
        with patch(
            "remote.crud.delete_product", new=AsyncMock(side_effect=UnauthorizedError())
        ):
            result = await self.admin.delete(3, AsyncMock(return_value=True))
        self.assertEqual(result.failure, "unauthorized")
        self.assertEqual(self.host.messages, [LOGGED_OUT_NOTICE])

    async def test_shop_catalog_hides_inactive_products_from_admins(self):
        shop = CatalogState(self.context, self.executor)
        list_products = AsyncMock(return_value=[make_product(1)])
        with patch("remote.crud.list_products", new=list_products):
            self.assertTrue(await shop.load("home"))
        list_products.assert_awaited_once_with("home", include_inactive=False)

        # the admin table keeps its own filter
        self.assertIsNone(self.catalog.category)
        self.assertEqual(self.catalog.products, ())

    async def test_inactive_listing_needs_admin(self):
        signed_in(self.context, uid=1001, is_admin=False)
        list_products = AsyncMock(return_value=[])
        with patch("remote.crud.list_products", new=list_products):
            await self.catalog.load(None)
        list_products.assert_awaited_once_with(None, include_inactive=False)

    async def test_failed_reload_skips_success_notice(self):
        created = make_product(pid=9)
        with patch("remote.crud.create_product", new=AsyncMock(return_value=created)), patch(
            "remote.crud.list_products", new=AsyncMock(side_effect=UnauthorizedError())
        ):
            result = await self.admin.save(_form())

        self.assertTrue(result)
        self.assertEqual(self.host.messages, [LOGGED_OUT_NOTICE])

    def test_stats(self):
        self.catalog.products = (
            make_product(1, stock=5, category="home"),
            make_product(2, stock=50, category="fashion", is_active=False),
            make_product(3, stock=10, category="home"),
        )
        stats = self.admin.stats()
        self.assertEqual((stats.total, stats.active, stats.low_stock, stats.categories), (3, 2, 1, 2))


if __name__ == "__main__":
    unittest.main()
