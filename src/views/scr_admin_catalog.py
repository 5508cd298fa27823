from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Markdown

from core.catalog import LOW_STOCK_THRESHOLD
from core.pricing import format_money
from utils.messages import CatalogChangedMessage
from utils.pure import generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import confirm_with
from views.modal_product_form import ProductFormModal


class AdminCatalogScreen(BaseScreen):
    """
    Admins manage the product catalog: stats on top, all products
    (inactive included) below, with add, edit and delete.
    """

    BINDINGS = [
        Binding("n", "new_product", "New Product", show=True),
        Binding("e", "edit_product", "Edit", show=True),
        Binding("delete", "delete_product", "Delete", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Markdown("", id="md-admin-stats")
            yield DataTable(id="table-admin-products")
        with Horizontal(id="hort-admin-controls"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Add Product", id="btn-new", variant="success")
            yield Button("Edit", id="btn-edit", variant="primary")
            yield Button("Delete", id="btn-delete", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("ID", "Name", "Category", "Price", "Stock", "Status")

    async def screen_resumed(self) -> None:
        if not self.app.admin.is_authorized:
            self.app.notify(
                "You do not have permission to access this page.",
                title="Access Denied",
                severity="error",
            )
            await self.app.switch_mode("catalog")
            return
        self.load_products()

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.load_products()

    def on_catalog_changed_message(self, message: CatalogChangedMessage) -> None:
        if message.catalog is self.app.admin_catalog:
            self.render_products()

    @work(exclusive=True, group="admin-catalog")
    async def load_products(self) -> None:
        # the admin table always covers every category
        await self.app.admin_catalog.load(None)
        self.render_products()

    def render_products(self) -> None:
        stats = self.app.admin.stats()
        self.query_one("#md-admin-stats", Markdown).update(
            generate_markdown_table(
                ["Total Products", "Active", f"Low Stock (<{LOW_STOCK_THRESHOLD})", "Categories"],
                [[stats.total, stats.active, stats.low_stock, stats.categories]],
            )
        )

        table = self.query_one(DataTable)
        cursor = table.cursor_row
        table.clear()
        for p in self.app.admin_catalog.products:
            table.add_row(
                p.pid,
                p.name,
                p.category.capitalize(),
                format_money(p.price),
                p.stock_count,
                "Active" if p.is_active else "Inactive",
                key=str(p.pid),
            )
        if table.row_count:
            table.move_cursor(row=min(cursor, table.row_count - 1))

    def _highlighted_pid(self) -> Optional[int]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        return int(table.get_row_at(table.cursor_row)[0])

    @on(Button.Pressed, "#btn-new")
    @work()
    async def action_new_product(self) -> None:
        await self.app.push_screen_wait(ProductFormModal())

    @on(Button.Pressed, "#btn-edit")
    @on(DataTable.RowSelected)
    @work()
    async def action_edit_product(self) -> None:
        pid = self._highlighted_pid()
        product = self.app.admin_catalog.find(pid) if pid is not None else None
        if product is None:
            self.app.notify("Select a product first.", severity="warning")
            return
        if self.app.admin.is_pending(pid):
            return
        await self.app.push_screen_wait(ProductFormModal(product))

    @on(Button.Pressed, "#btn-delete")
    @work()
    async def action_delete_product(self) -> None:
        pid = self._highlighted_pid()
        if pid is None:
            self.app.notify("Select a product first.", severity="warning")
            return
        if self.app.admin.is_pending(pid):
            return
        await self.app.admin.delete(pid, confirm_with(self.app, tone="error"))
