from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from core.auth_guard import AuthGuard
from core.cart import CartState
from core.catalog import AdminCatalogEditor, CatalogState
from core.mutation import MutationExecutor
from core.orders import OrderHistory
from core.session import SessionContext
from remote.errors import RemoteError
from utils.logger import get_logger
from utils.messages import (
    CartChangedMessage,
    CatalogChangedMessage,
    ModeSwitchedMessage,
    NewOrderMessage,
    QuitRequestedMessage,
    UserLoginMessage,
    UserLogoutMessage,
)
from views.scr_admin_catalog import AdminCatalogScreen
from views.scr_cart import CartScreen
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen
from views.scr_orders import OrdersScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "catalog": CatalogScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "admin": AdminCatalogScreen,
    }

    ADMIN_MODES = {"admin": "Manage Products"}
    SHOPPER_MODES = {
        "catalog": "Shop",
        "cart": "Cart",
        "orders": "My Orders",
    }

    CSS_PATH = [
        "views/styles/index.tcss",
        "views/styles/login.tcss",
        "views/styles/catalog.tcss",
        "views/styles/cart.tcss",
        "views/styles/checkout.tcss",
        "views/styles/orders.tcss",
        "views/styles/admin.tcss",
    ]

    session_context: SessionContext

    def __init__(self):
        super().__init__()
        self.session_context = SessionContext()
        self.guard = AuthGuard(self)
        self.executor = MutationExecutor(self.guard, self)
        self.cart = CartState(self.session_context, self.executor)
        self.catalog = CatalogState(self.session_context, self.executor)
        # the admin table filters separately and lists inactive products too
        self.admin_catalog = CatalogState(
            self.session_context, self.executor, include_inactive=True
        )
        self.admin = AdminCatalogEditor(self.session_context, self.admin_catalog, self.executor)
        self.orders = OrderHistory(self.session_context, self.guard)

        self.cart.subscribe(
            lambda snapshot: self.broadcast(lambda: CartChangedMessage(snapshot))
        )
        for catalog in (self.catalog, self.admin_catalog):
            catalog.subscribe(
                lambda _products, c=catalog: self.broadcast(lambda: CatalogChangedMessage(c))
            )

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.main_flow()

    def broadcast(self, make_message) -> None:
        """
        Post a fresh message to every screen on the stack.
        App messages do not travel down to screens on their own.
        """
        for screen in self.screen_stack:
            screen.post_message(make_message())

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    def request_sign_in(self) -> None:
        """Drop the local session and show the sign-in screen."""
        self.session_context.forget()
        self.cart.reset()
        if isinstance(self.screen, LoginScreen):
            return
        self.main_flow()

    def on_user_login_message(self, message: UserLoginMessage) -> None:
        # a new identity never sees the previous user's cart
        self.cart.reset()

    def on_new_order_message(self, message: NewOrderMessage) -> None:
        _logger.info(f"Order {message.ono} placed")

    def on_mode_switched_message(self, message: ModeSwitchedMessage) -> None:
        _logger.debug(f"Mode {message.old_mode} -> {message.new_mode}")

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self):
        try:
            await self.session_context.sign_out()
        except RemoteError as e:
            _logger.warning(f"Ending session failed: {e}")
        self.cart.reset()
        self.notify("Logout successful.")
        self.main_flow()

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        if self.session_context.is_authenticated:
            try:
                await self.session_context.sign_out()
            except RemoteError as e:
                _logger.warning(f"Ending session failed: {e}")
        self.exit()

    @work(exclusive=True, group="main-flow")
    async def main_flow(self):
        await self.push_screen_wait(LoginScreen())
        target = "admin" if self.session_context.is_admin else "catalog"
        self.post_message(ModeSwitchedMessage(self.current_mode, target))
        await self.switch_mode(target)


def run() -> None:
    StorefrontApp().run()


if __name__ == "__main__":
    run()
