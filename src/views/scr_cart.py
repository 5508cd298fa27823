from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, VerticalScroll
from textual.widgets import Button, Label, Markdown, Rule

from core.pricing import format_money, line_total
from remote.models import CartLineItem
from utils.pure import breakdown_rows, generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal
from views.scr_checkout import CheckoutModal


class CartLineWidget(HorizontalGroup):
    """
    One cart line with quantity controls. Controls stay disabled while a
    mutation for this line is outstanding.
    """

    def __init__(self, item: CartLineItem):
        super().__init__()
        self.item = item

    def compose(self) -> ComposeResult:
        with Container(id="div-cart-item-group"):
            with Container(id="div-item"):
                yield Label(self.item.product.name, id="label-item-name")
                yield Label(format_money(self.item.product.price), id="label-item-price")
                yield Label(format_money(line_total(self.item)), id="label-item-total")
            with Horizontal(id="div-actions"):
                yield Button("-", id="btn-dec")
                yield Label(str(self.item.qty), id="label-item-qty")
                yield Button("+", id="btn-inc")
                yield Button("Remove", id="btn-remove", variant="error")

    def on_mount(self) -> None:
        self.set_busy(self.app.cart.is_pending(self.item.line_id))
        self.query_one("#btn-inc", Button).disabled |= (
            self.item.qty >= self.item.product.stock_count
        )

    def set_busy(self, busy: bool) -> None:
        for button in self.query(Button):
            button.disabled = busy

    @on(Button.Pressed, "#btn-inc")
    @work()
    async def handle_increment(self):
        self.set_busy(True)
        try:
            await self.app.cart.increment(self.item.line_id)
        finally:
            if self.is_attached:
                self.set_busy(False)

    @on(Button.Pressed, "#btn-dec")
    @work()
    async def handle_decrement(self):
        if self.item.qty <= 1:
            # dropping below 1 is a removal, confirm it like one
            self.handle_remove_item()
            return
        self.set_busy(True)
        try:
            await self.app.cart.decrement(self.item.line_id)
        finally:
            if self.is_attached:
                self.set_busy(False)

    @on(Button.Pressed, "#btn-remove")
    @work()
    async def handle_remove_item(self):
        remove_confirmed = await self.app.push_screen_wait(
            DialogModal(
                "Do you really want to remove this item from cart?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        )
        if not remove_confirmed:
            return
        self.set_busy(True)
        try:
            await self.app.cart.remove(self.item.line_id)
        finally:
            if self.is_attached:
                self.set_busy(False)


class CartScreen(BaseScreen):
    """
    Cart lines, price breakdown and the way into checkout.
    Re-renders from every new cart snapshot.
    """

    def __init__(self) -> None:
        super().__init__()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield VerticalScroll(id="vertscroll-content")
        yield Markdown("", id="md-cart-total")
        yield Rule(line_style="dashed")
        with Horizontal(id="hort-buttons"):
            yield Button("Refresh", id="btn-refresh")
            yield Button("Checkout", id="btn-checkout", variant="primary")

    async def on_mount(self):
        self.render_cart(self.app.cart.snapshot)

    def cart_changed(self, snapshot) -> None:
        self.render_cart(snapshot)

    @work(exclusive=True, group="cart-render")
    async def render_cart(self, snapshot):
        content = self.query_one("#vertscroll-content")
        shown = [c.item for c in content.children if isinstance(c, CartLineWidget)]
        if shown != list(snapshot.items):
            await content.remove_children()
            await content.mount_all([CartLineWidget(item) for item in snapshot.items])

        content.set_class(not snapshot.items, "no-items")
        self.query_one("#btn-checkout", Button).disabled = not snapshot.items

        breakdown = snapshot.breakdown
        md = generate_markdown_table(None, breakdown_rows(breakdown), ["l", "r"])
        if not breakdown.free_shipping and snapshot.items:
            md += "\n\nFree shipping on orders over $50.00"
        await self.query_one("#md-cart-total", Markdown).update(md)

    @on(Button.Pressed, "#btn-refresh")
    def handle_refresh(self) -> None:
        self.reload_cart()

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        if self.app.cart.is_empty:
            self.app.notify("Cart is empty.", severity="warning")
            return

        placed = await self.app.push_screen_wait(CheckoutModal())
        if placed:
            await self.app.switch_mode("orders")
