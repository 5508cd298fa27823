from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, ContentSwitcher, Input, Label, Markdown

from core.checkout import CheckoutFlow, CheckoutStep
from core.session import SIGN_IN_ENTRY
from utils.messages import CartChangedMessage, NewOrderMessage
from utils.pure import order_summary_markdown

# (field, label, placeholder)
_ADDRESS_INPUTS = [
    ("first_name", "First Name", "Jane"),
    ("last_name", "Last Name", "Doe"),
    ("email", "Email", "user@example.com"),
    ("address", "Address", "123 Main St"),
    ("city", "City", "Anytown"),
    ("zip_code", "ZIP Code", "00000"),
    ("country", "Country", "US"),
]


class CheckoutModal(ModalScreen[bool]):
    """
    Three step checkout: Shipping, Payment, Review.
    Dismisses with True once an order is placed.
    """

    def __init__(self):
        super().__init__()
        self.flow = CheckoutFlow(self.app.session_context, self.app.cart, self.app.executor)
        self._attached = False

    def compose(self) -> ComposeResult:
        with Vertical(id="div-checkout"):
            yield Label("", id="label-checkout-step")
            with ContentSwitcher(initial="step-shipping", id="switcher-checkout"):
                with VerticalScroll(id="step-shipping"):
                    for name, label, placeholder in _ADDRESS_INPUTS:
                        yield Label(label)
                        yield Input(placeholder=placeholder, id=f"input-{name}")
                with Vertical(id="step-payment"):
                    yield Markdown(
                        "### Payment\n\n"
                        "This is a demo store. No payment is collected and nothing is charged.",
                        id="md-payment",
                    )
                with VerticalScroll(id="step-review"):
                    yield Markdown("", id="md-review")
            with Horizontal(id="hort-checkout-btns"):
                yield Button("Cancel", id="btn-quit")
                yield Button("Back", id="btn-back")
                yield Button("Continue", id="btn-next", variant="primary")
                yield Button("Place Order", id="btn-submit", variant="success")

    def on_mount(self):
        redirect = self.flow.entry_redirect()
        if redirect is not None:
            self.dismiss(False)
            if redirect == SIGN_IN_ENTRY:
                self.app.request_sign_in()
            else:
                self.app.notify("Your cart is empty.", severity="warning")
            return

        # the screen underneath is suspended, so this modal keeps the cart live
        self._attached = True
        self.app.cart.attach()

        identity = self.app.session_context.identity
        if identity is not None:
            self.query_one("#input-email", Input).value = identity.email
            first, _, last = identity.name.partition(" ")
            self.query_one("#input-first_name", Input).value = first
            self.query_one("#input-last_name", Input).value = last
        self.query_one("#input-country", Input).value = self.flow.address.country
        self.query_one("#input-address").focus()
        self.render_step()

    def on_unmount(self) -> None:
        if self._attached:
            self._attached = False
            self.app.cart.detach()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape" and not self.flow.is_submitting:
            self.dismiss(False)

    @on(Input.Changed)
    def handle_address_changed(self, event: Input.Changed) -> None:
        name = event.input.id.removeprefix("input-")
        self.flow.update_address(**{name: event.value.strip()})
        event.input.remove_class("-invalid")

    async def on_cart_changed_message(self, message: CartChangedMessage) -> None:
        if self.flow.step == CheckoutStep.REVIEW:
            await self.render_review()
        self.render_buttons()

    async def render_review(self) -> None:
        cart = self.app.cart
        md = order_summary_markdown(cart.snapshot.items, cart.breakdown)
        md += f"\n\n**Ship To:** {self.flow.address.one_line()}"
        await self.query_one("#md-review", Markdown).update(md)

    def render_buttons(self) -> None:
        step = self.flow.step
        self.query_one("#btn-back", Button).disabled = (
            step == CheckoutStep.SHIPPING or self.flow.is_submitting
        )
        self.query_one("#btn-next", Button).display = step != CheckoutStep.REVIEW
        submit = self.query_one("#btn-submit", Button)
        submit.display = step == CheckoutStep.REVIEW
        submit.disabled = not self.flow.can_submit()
        submit.label = "Placing Order..." if self.flow.is_submitting else "Place Order"
        self.query_one("#btn-quit", Button).disabled = self.flow.is_submitting

    @work(exclusive=True, group="checkout-render")
    async def render_step(self) -> None:
        step = self.flow.step
        self.query_one("#label-checkout-step", Label).update(
            f"Step {int(step)} of {len(CheckoutStep)}: {step.label}"
        )
        self.query_one(ContentSwitcher).current = f"step-{step.name.lower()}"
        if step == CheckoutStep.REVIEW:
            await self.render_review()
        self.render_buttons()

    def _mark_missing(self) -> None:
        for name in self.flow.missing_fields():
            self.query_one(f"#input-{name}", Input).add_class("-invalid")

    @on(Button.Pressed, "#btn-next")
    def handle_next(self) -> None:
        if self.flow.step == CheckoutStep.SHIPPING and not self.flow.is_shipping_valid():
            self._mark_missing()
        self.flow.advance()
        self.render_step()

    @on(Button.Pressed, "#btn-back")
    def handle_back(self) -> None:
        self.flow.back()
        self.render_step()

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True, group="checkout-submit")
    async def handle_submit(self) -> None:
        submit = self.query_one("#btn-submit", Button)
        submit.disabled = True
        submit.label = "Placing Order..."
        self.query_one("#btn-back", Button).disabled = True
        result = await self.flow.submit()
        if result:
            self.app.post_message(NewOrderMessage(result.value.ono))
            self.dismiss(True)
            return
        self.render_buttons()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
