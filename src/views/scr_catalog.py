from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import DataTable, Label, Select

from core.catalog import SORT_KEYS, category_options
from core.pricing import format_money
from utils.messages import CatalogChangedMessage
from views.base_screen import BaseScreen
from views.modal_prod_detail import ProdDetailModal


class CatalogScreen(BaseScreen):
    """
    Product browsing with category filter and sort. Enter (or v) opens the detail
    view, `a` adds one unit of the highlighted product to the cart.
    """

    BINDINGS = [
        Binding("v", "view_product", "View Product", show=True),
        Binding("a", "add_to_cart", "Add to Cart", show=True),
    ]

    def __init__(self):
        super().__init__()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-catalog-filters"):
            yield Select(
                [("All products", "all")]
                + [(label, value) for value, label in category_options().items()],
                value="all",
                allow_blank=False,
                id="select-category",
            )
            yield Select(
                [(label, key) for key, label in SORT_KEYS.items()],
                value="featured",
                allow_blank=False,
                id="select-sort",
            )
        yield DataTable(id="table-products")
        yield Label("", id="label-product-count")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "Stock", "Rating")
        table.focus()

    async def screen_resumed(self) -> None:
        self.load_products()

    @on(Select.Changed, "#select-category")
    def handle_category_change(self, event: Select.Changed) -> None:
        self.load_products()

    @on(Select.Changed, "#select-sort")
    def handle_sort_change(self, event: Select.Changed) -> None:
        self.render_products()

    def on_catalog_changed_message(self, message: CatalogChangedMessage) -> None:
        if message.catalog is self.app.catalog:
            self.render_products()

    @work(exclusive=True, group="catalog")
    async def load_products(self) -> None:
        category = self.query_one("#select-category", Select).value
        await self.app.catalog.load(None if category == "all" else category)
        self.render_products()

    def render_products(self) -> None:
        sort_key = self.query_one("#select-sort", Select).value
        products = self.app.catalog.sorted(sort_key)

        table = self.query_one(DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.pid,
                p.name,
                p.category.capitalize(),
                format_money(p.price),
                p.stock_count if p.in_stock else "Out of stock",
                f"{p.rating} ({p.review_count})",
                key=str(p.pid),
            )
        self.query_one("#label-product-count", Label).update(f"{len(products)} products")

    def _highlighted_pid(self):
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        return int(table.get_row_at(table.cursor_row)[0])

    @on(DataTable.RowSelected)
    def handle_row_selected(self) -> None:
        self.action_view_product()

    @work()
    async def action_view_product(self) -> None:
        pid = self._highlighted_pid()
        if pid is not None:
            await self.app.push_screen_wait(ProdDetailModal(pid))

    @work()
    async def action_add_to_cart(self) -> None:
        pid = self._highlighted_pid()
        product = self.app.catalog.find(pid) if pid is not None else None
        if product is not None:
            await self.app.cart.add(product)
