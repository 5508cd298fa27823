import asyncio
from math import ceil
from typing import Dict, List

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.widgets import Button, DataTable, Label, MarkdownViewer

import remote.crud as crud
from core.pricing import format_money
from remote.errors import RemoteError
from remote.models import Order
from utils.messages import NewOrderMessage
from utils.pure import order_detail_markdown
from views.base_screen import BaseScreen

PAGE_SIZE = 5


class OrdersScreen(BaseScreen):
    """
    Customers can browse their past orders with pagination and view details.

    Layout:
    - Markdown detail view at the top, showing selected order details.
    - Orders table below (newest first), 5 per page with Prev/Next.
    """

    BINDINGS = [
        Binding("left", "page(-1)", "Prev Page", show=True),
        Binding("right", "page(1)", "Next Page", show=True),
    ]

    page_idx = reactive(1)
    page_cnt = reactive(1)

    def __init__(self) -> None:
        super().__init__()
        self._names: Dict[int, str] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("<", id="btn-prev")
            yield Label("1 / 1", id="label-page")
            yield Button(">", id="btn-next")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order No", "Date", "Status", "Items", "Total")

    async def screen_resumed(self) -> None:
        self.load_orders()

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.load_orders()

    def on_new_order_message(self, message: NewOrderMessage) -> None:
        self.load_orders()

    @work(exclusive=True, group="orders")
    async def load_orders(self) -> None:
        orders = await self.app.orders.load()
        self.page_cnt = max(ceil(len(orders) / PAGE_SIZE), 1)
        self.page_idx = 1
        self.render_page()

    def _page(self) -> List[Order]:
        start = (self.page_idx - 1) * PAGE_SIZE
        return list(self.app.orders.orders[start : start + PAGE_SIZE])

    def render_page(self) -> None:
        orders = self._page()
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.ono,
                f"{o.created_at:%Y-%m-%d %H:%M}",
                o.status.value.capitalize(),
                sum(line.qty for line in o.lines),
                format_money(o.total_amount),
            )

        self.query_one("#label-page", Label).update(f"{self.page_idx} / {self.page_cnt}")
        self.query_one("#btn-prev", Button).disabled = self.page_idx <= 1
        self.query_one("#btn-next", Button).disabled = self.page_idx >= self.page_cnt

        if orders:
            table.move_cursor(row=0)
            self.show_detail(orders[0].ono)
        else:
            self.query_one("#md-order-detail", MarkdownViewer).document.update(
                "### No orders yet.\n\nPlaced orders show up here."
            )

    def action_page(self, delta: int) -> None:
        new_idx = max(1, min(self.page_idx + delta, self.page_cnt))
        if new_idx != self.page_idx:
            self.page_idx = new_idx
            self.render_page()

    @on(Button.Pressed, "#btn-prev")
    def handle_prev(self) -> None:
        self.action_page(-1)

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        self.action_page(1)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self, event: DataTable.RowHighlighted) -> None:
        row = event.data_table.get_row_at(event.cursor_row)
        if row:
            self.show_detail(int(row[0]))

    @work(exclusive=True, group="order-detail")
    async def show_detail(self, ono: int) -> None:
        order = self.app.orders.find(ono)
        if order is None:
            return
        await self._resolve_names(order)
        await self.query_one("#md-order-detail", MarkdownViewer).document.update(
            order_detail_markdown(order, self._names)
        )

    async def _resolve_names(self, order: Order) -> None:
        unknown = [line.pid for line in order.lines if line.pid not in self._names]
        for pid in list(unknown):
            product = self.app.catalog.find(pid)
            if product is not None:
                self._names[pid] = product.name
                unknown.remove(pid)
        try:
            products = await asyncio.gather(*(crud.get_product(pid) for pid in unknown))
        except RemoteError:
            return
        for product in products:
            if product is not None:
                self._names[product.pid] = product.name
