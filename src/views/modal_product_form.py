from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, Select, TextArea

from core.catalog import ProductForm, category_options
from remote.models import Product

# (field, label, placeholder, input type)
_FIELDS = [
    ("name", "Name *", "Wireless Headphones", "text"),
    ("price", "Price ($) *", "99.99", "number"),
    ("original_price", "Original Price ($)", "leave blank if not discounted", "number"),
    ("brand", "Brand", "Acme", "text"),
    ("stock", "Stock", "0", "integer"),
    ("image_url", "Image URL", "https://...", "text"),
]


class ProductFormModal(ModalScreen[bool]):
    """
    Create a product, or edit one when a product is given.
    Dismisses with True once the save went through.
    """

    def __init__(self, product: Optional[Product] = None):
        super().__init__()
        self._product = product
        self._form = ProductForm.from_product(product) if product else ProductForm()

    def compose(self) -> ComposeResult:
        title = f"Edit Product #{self._product.pid}" if self._product else "Add New Product"
        with Vertical(id="div-product-form"):
            yield Label(title, id="label-form-title")
            with VerticalScroll():
                for name, label, placeholder, kind in _FIELDS:
                    yield Label(label)
                    yield Input(
                        value=getattr(self._form, name),
                        placeholder=placeholder,
                        id=f"input-{name}",
                        type=kind,
                    )
                yield Label("Category *")
                yield Select(
                    [(label, value) for value, label in category_options().items()],
                    value=self._form.category or "electronics",
                    allow_blank=False,
                    id="select-category",
                )
                yield Label("Description")
                yield TextArea(self._form.description, id="textarea-description")
            with Horizontal(id="hort-form-btns"):
                yield Button("Cancel", id="btn-quit")
                yield Button(
                    "Update Product" if self._product else "Create Product",
                    id="btn-save",
                    variant="primary",
                )

    def on_mount(self):
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def _collect(self) -> ProductForm:
        values = {name: self.query_one(f"#input-{name}", Input).value for name, *_ in _FIELDS}
        return ProductForm(
            **values,
            category=str(self.query_one("#select-category", Select).value),
            description=self.query_one("#textarea-description", TextArea).text,
        )

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self) -> None:
        form = self._collect()
        for name in form.missing_fields():
            if name != "category":
                self.query_one(f"#input-{name}", Input).add_class("-invalid")

        btn = self.query_one("#btn-save", Button)
        btn.disabled = True
        result = await self.app.admin.save(
            form, pid=self._product.pid if self._product else None
        )
        if result:
            self.dismiss(True)
        else:
            btn.disabled = False

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
