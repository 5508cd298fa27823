from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    broadcasted when the user logs out
    """

    bubble = True


class UserLoginMessage(Message):
    """
    Fired when user logged in, so screens can refresh identity dependent parts
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Posted at App level whenever the cart snapshot is replaced.
    Carries the new snapshot so the badge, cart screen and checkout re-render
    from the same data.
    """

    bubble = True

    def __init__(self, snapshot) -> None:
        super().__init__()
        self.snapshot = snapshot


class CatalogChangedMessage(Message):
    """
    Posted at App level after the product list was reloaded.
    `catalog` is the CatalogState that changed; each screen renders its own.
    """

    bubble = True

    def __init__(self, catalog) -> None:
        super().__init__()
        self.catalog = catalog


class NewOrderMessage(Message):
    """
    Fired when a new order is created.
    Listened to by order history
    """

    bubble = True

    def __init__(self, ono: int) -> None:
        super().__init__()
        self.ono = ono


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
