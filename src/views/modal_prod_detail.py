from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label, Markdown

import remote.crud as crud
from remote.errors import RemoteError
from remote.models import Product
from utils.pure import product_markdown


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail with reviews, plus ordering.
    Dismisses with True if the cart changed.
    """

    order_qty = reactive(1)

    def __init__(self, pid: int) -> None:
        super().__init__()
        self._pid = pid
        self._prod: Product = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="hort-prod-detail"):
            with VerticalScroll():
                yield Markdown("Loading product...", id="md-prod")
            with Vertical(id="div-order"):
                yield Label("Order Quantity")
                with Horizontal():
                    yield Button("-", id="btn-sub-qty")
                    yield Input(value="1", id="input-order-qty", type="integer")
                    yield Button("+", id="btn-add-qty")
                with Horizontal():
                    yield Button("Go Back", id="btn-quit")
                    yield Button("Add to Cart", id="btn-addcart", variant="primary")

    async def on_mount(self):
        try:
            self._prod = await crud.get_product(self._pid)
        except RemoteError:
            self._prod = None
        if self._prod is None:
            self.notify("Product not found.", severity="error")
            self.dismiss(False)
            return

        reviews = await self.app.catalog.load_reviews(self._pid)
        await self.query_one("#md-prod", Markdown).update(product_markdown(self._prod, reviews))

        stock_cnt = self._prod.stock_count
        if stock_cnt < 1:
            order_btn = self.query_one("#btn-addcart", Button)
            order_btn.label = "Out of Stock"
            order_btn.disabled = True
            order_btn.variant = "warning"

        self.query_one("#input-order-qty", Input).validators = [
            Number(minimum=1, maximum=max(stock_cnt, 1))
        ]

        existing = self.app.cart.snapshot.find_product(self._pid)
        if existing:
            self.query_one("#btn-addcart", Button).label = f"Add More ({existing.qty} in cart)"

        self.query_one("#input-order-qty").focus()
        self.watch_order_qty(self.order_qty)

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def on_input_changed(self, message: Input.Changed) -> None:
        if (
            message.input.id == "input-order-qty"
            and message.input.is_valid
            and message.value
            and self.focused == message.input
        ):
            self.order_qty = int(message.value)

    def watch_order_qty(self, qty: int) -> None:
        if self._prod is None:
            return
        self.query_one("#btn-sub-qty", Button).disabled = qty <= 1
        self.query_one("#btn-add-qty", Button).disabled = qty >= self._prod.stock_count
        input_order_qty = self.query_one("#input-order-qty", Input)
        if input_order_qty.value != str(qty):
            input_order_qty.value = str(qty)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self.order_qty += 1

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self.order_qty = max(self.order_qty - 1, 1)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        btn = self.query_one("#btn-addcart", Button)
        btn.disabled = True
        result = await self.app.cart.add(self._prod, self.order_qty)
        if result:
            self.dismiss(True)
        else:
            btn.disabled = not self._prod.in_stock
