from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, TabbedContent, TabPane

import remote.crud as crud
from remote.errors import RemoteError
from utils.logger import get_logger
from utils.messages import UserLoginMessage
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal, QuitDialogModal

_logger = get_logger(__name__)


class LoginScreen(BaseScreen):
    """
    Sign-in entry point. Dismisses once the session context holds a session.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Sign in", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Sign in", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("User ID")
                    yield Input(placeholder="1001", id="input-login-uid", type="integer")
                    yield Label("Password")
                    yield Input(placeholder="*********", password=True, id="input-login-pwd")
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Sign in", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Name")
                    yield Input(placeholder="Jane Doe", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password")
                    yield Input(placeholder="*********", password=True, id="input-reg-pwd")
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-uid").focus()

    def on_key(self, event: Key) -> None:
        if event.key != "enter":
            return
        if self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        elif self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        uid = self.query_one("#input-login-uid", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value.strip()

        if not uid or not pwd:
            self.notify("User ID or password cannot be empty!", severity="error")
            return

        try:
            signed_in = await self.app.session_context.sign_in(int(uid), pwd)
        except RemoteError as e:
            _logger.error(f"Sign in failed: {e}")
            self.notify("Sign in failed. Please try again.", severity="error")
            return

        if signed_in:
            self.notify(f"Hello {self.app.session_context.identity.name}!")
            self.app.post_message(UserLoginMessage())
            self.dismiss()
        else:
            self.notify("Invalid user ID or password.", severity="error")
            input_login_pwd = self.query_one("#input-login-pwd", Input)
            input_login_pwd.value = ""
            input_login_pwd.focus()
            input_login_pwd.add_class("-invalid")

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True)
    async def handle_registration_submit(self) -> None:
        name = self.query_one("#input-reg-name", Input).value.strip()
        email = self.query_one("#input-reg-email", Input).value.strip()
        pwd = self.query_one("#input-reg-pwd", Input).value.strip()

        if not name or not email or not pwd:
            self.notify("Make sure all inputs are filled.", severity="error")
            return

        try:
            if not await crud.email_available(email):
                self.notify("Email already taken.", severity="error")
                return
            uid = await crud.register_customer(name, email, pwd)
        except RemoteError as e:
            _logger.error(f"Registration failed: {e}")
            self.notify("Registration failed. Please try again.", severity="error")
            return

        await self.app.push_screen_wait(DialogModal(f"Registration successful. User ID: {uid}"))

        self.get_child_by_type(TabbedContent).active = "tab-login"
        input_login_uid = self.query_one("#input-login-uid", Input)
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_uid.value = str(uid)
        input_login_pwd.value = pwd
        input_login_pwd.focus()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
