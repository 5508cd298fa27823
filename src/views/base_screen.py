from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from core.pricing import item_count
from utils.messages import CartChangedMessage, ModeSwitchedMessage, UserLogoutMessage
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal


class Sidebar(Container):
    init_mode = ""
    _rendered_for = None

    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Label("Cart: 0 items", id="label-cart-badge")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        self.init_mode = self.app.current_mode
        await self.render_identity()

    async def render_identity(self) -> None:
        """User table and menu for whoever is signed in now."""
        ctx = self.app.session_context
        if not ctx.is_authenticated or ctx.identity == self._rendered_for:
            return

        identity = self._rendered_for = ctx.identity
        table_rows = [
            ["User ID", identity.uid],
            ["Name", identity.name],
            ["Role", "Administrator" if identity.is_admin else "Shopper"],
        ]
        md_table_str = generate_markdown_table(None, table_rows, ["l", "l"])
        await self.query_one(Markdown).update(md_table_str)

        modes = dict(self.app.SHOPPER_MODES)
        if identity.is_admin:
            modes.update(self.app.ADMIN_MODES)
        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [ListItem(Label(v), id="list-menu-item-" + k) for k, v in modes.items()]
        )
        self.highlight_item(self.init_mode)
        self.update_badge(self.app.cart.item_count)

    def update_badge(self, count: int) -> None:
        noun = "item" if count == 1 else "items"
        self.query_one("#label-cart-badge", Label).update(f"Cart: {count} {noun}")

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.init_mode)
        if self.app.current_mode != selected_mode:
            self.post_message(ModeSwitchedMessage(self.app.current_mode, selected_mode))
            await self.app.switch_mode(selected_mode)

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self):
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = mode_str in item.id


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.

    While a screen with a sidebar is the current screen it counts as a cart
    view, so cart loads are allowed.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Storefront",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """
        self.app.title = "Storefront"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v):
                self.sub_title = {**self.app.SHOPPER_MODES, **self.app.ADMIN_MODES}.get(
                    k, header_sub_title
                )

        self._show_sidebar = show_sidebar
        self._watching_cart = False

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_screen_resume(self) -> None:
        for sidebar in self.query(Sidebar):
            await sidebar.render_identity()
        if self._show_sidebar and not self._watching_cart:
            self._watching_cart = True
            self.app.cart.attach()
            self.reload_cart()
        await self.screen_resumed()

    def on_screen_suspend(self) -> None:
        if self._watching_cart:
            self._watching_cart = False
            self.app.cart.detach()

    def on_unmount(self) -> None:
        self.on_screen_suspend()

    @work(group="cart-load")
    async def reload_cart(self) -> None:
        await self.app.cart.load()

    def on_cart_changed_message(self, message: CartChangedMessage) -> None:
        for sidebar in self.query(Sidebar):
            sidebar.update_badge(item_count(message.snapshot))
        self.cart_changed(message.snapshot)

    async def screen_resumed(self) -> None:
        """Hook: the screen became current again."""

    def cart_changed(self, snapshot) -> None:
        """Hook: a new cart snapshot arrived."""

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
