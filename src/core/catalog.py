from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import remote.crud as crud
from core.mutation import MutationExecutor, MutationResult, Notice
from core.session import SessionContext
from remote.errors import RemoteError
from remote.models import Category, Product, ProductDraft, Review
from utils.logger import get_logger

_logger = get_logger(__name__)

LOW_STOCK_THRESHOLD = 10
MAX_PRICE = Decimal("1000000")

SORT_KEYS = {
    "featured": "Featured",
    "price-low": "Price: Low to High",
    "price-high": "Price: High to Low",
    "rating": "Highest Rated",
    "newest": "Newest",
}


def sort_products(products: List[Product], sort_key: str) -> List[Product]:
    if sort_key == "price-low":
        return sorted(products, key=lambda p: p.price)
    if sort_key == "price-high":
        return sorted(products, key=lambda p: p.price, reverse=True)
    if sort_key == "rating":
        return sorted(products, key=lambda p: p.rating, reverse=True)
    if sort_key == "newest":
        return sorted(products, key=lambda p: p.created_at or datetime.min, reverse=True)
    return list(products)


class CatalogState:
    """
    Product list as last fetched, filtered by category.

    Each view that filters on its own holds its own CatalogState. The shop
    lists active products only; the admin table is built with
    `include_inactive=True`, which takes effect for admins only.
    """

    def __init__(
        self,
        context: SessionContext,
        executor: MutationExecutor,
        include_inactive: bool = False,
    ):
        self._context = context
        self._executor = executor
        self.include_inactive = include_inactive
        self.products: Tuple[Product, ...] = ()
        self.category: Optional[str] = None
        self._listeners: List[Callable[[Tuple[Product, ...]], None]] = []

    def subscribe(self, listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def load(self, category: Optional[str] = ...) -> bool:
        """
        Fetch products. Passing no category keeps the current filter; None
        clears it. Returns False when the fetch failed (already reported).
        """
        if category is not ...:
            self.category = category
        try:
            products = await crud.list_products(
                self.category,
                include_inactive=self.include_inactive and self._context.is_admin,
            )
        except RemoteError as e:
            self._executor.guard.handle(e, "Failed to load products. Please try again.")
            return False
        self.products = tuple(products)
        for listener in list(self._listeners):
            listener(self.products)
        return True

    def sorted(self, sort_key: str = "featured") -> List[Product]:
        return sort_products(list(self.products), sort_key)

    def find(self, pid: int) -> Optional[Product]:
        for product in self.products:
            if product.pid == pid:
                return product
        return None

    async def load_reviews(self, pid: int) -> List[Review]:
        try:
            return await crud.list_reviews(pid)
        except RemoteError as e:
            self._executor.guard.handle(e, "Failed to load reviews.")
            return []


# ---------------------------
# Admin editing
# ---------------------------


class FormError(ValueError):
    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.field = field


@dataclass
class ProductForm:
    """Admin product form, all fields as typed."""

    name: str = ""
    description: str = ""
    price: str = ""
    original_price: str = ""
    image_url: str = ""
    category: str = ""
    brand: str = ""
    stock: str = ""

    REQUIRED = ("name", "price", "category")

    @classmethod
    def from_product(cls, product: Product) -> "ProductForm":
        return cls(
            name=product.name,
            description=product.description or "",
            price=str(product.price),
            original_price=str(product.original_price) if product.original_price else "",
            image_url=product.image_url or "",
            category=product.category,
            brand=product.brand or "",
            stock=str(product.stock_count),
        )

    def missing_fields(self) -> List[str]:
        return [name for name in self.REQUIRED if not getattr(self, name).strip()]

    def is_valid(self) -> bool:
        return not self.missing_fields()

    @staticmethod
    def _money(value: str, field: str) -> Decimal:
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise FormError(f"{field} must be a number", field) from None
        if not amount.is_finite() or amount < 0:
            raise FormError(f"{field} must be zero or more", field)
        if amount > MAX_PRICE:
            raise FormError(f"{field} is out of range", field)
        try:
            return amount.quantize(Decimal("0.01"))
        except InvalidOperation:
            raise FormError(f"{field} is out of range", field) from None

    def to_draft(self) -> ProductDraft:
        """Validate and normalize; blank optional strings become None."""
        missing = self.missing_fields()
        if missing:
            raise FormError(f"Missing required field: {', '.join(missing)}", missing[0])
        category = self.category.strip().lower()
        if category not in {c.value for c in Category}:
            raise FormError(f"Unknown category '{self.category}'", "category")

        stock_text = self.stock.strip()
        try:
            stock = int(stock_text) if stock_text else 0
        except ValueError:
            raise FormError("stock must be a whole number", "stock") from None
        if stock < 0:
            raise FormError("stock must be zero or more", "stock")

        def optional(value: str) -> Optional[str]:
            return value.strip() or None

        original = optional(self.original_price)
        return ProductDraft(
            name=self.name.strip(),
            price=self._money(self.price, "price"),
            category=category,
            description=optional(self.description),
            brand=optional(self.brand),
            original_price=self._money(original, "original_price") if original else None,
            image_url=optional(self.image_url),
            stock_count=stock,
        )


@dataclass(frozen=True)
class CatalogStats:
    total: int
    active: int
    low_stock: int
    categories: int


ConfirmFn = Callable[[str], Awaitable[bool]]


class AdminCatalogEditor:
    """
    Create/update/delete products. Same executor, same failure policy as the
    cart; the reload target is the catalog snapshot.
    """

    def __init__(
        self, context: SessionContext, catalog: CatalogState, executor: MutationExecutor
    ):
        self._context = context
        self._catalog = catalog
        self._executor = executor

    @property
    def is_authorized(self) -> bool:
        return self._context.is_admin

    def is_pending(self, pid: Optional[int] = None) -> bool:
        return self._executor.is_pending(("product", pid if pid is not None else "new"))

    def stats(self) -> CatalogStats:
        products = self._catalog.products
        return CatalogStats(
            total=len(products),
            active=sum(1 for p in products if p.is_active),
            low_stock=sum(1 for p in products if p.stock_count < LOW_STOCK_THRESHOLD),
            categories=len({p.category for p in products}),
        )

    def _deny(self) -> MutationResult:
        return self._executor.reject("Admin access required.", title="Access Denied")

    async def save(self, form: ProductForm, pid: Optional[int] = None) -> MutationResult[Product]:
        """Create when pid is None, otherwise update product pid."""
        if not self.is_authorized:
            return self._deny()
        try:
            draft = form.to_draft()
        except FormError as e:
            return self._executor.reject(str(e), title="Invalid product")

        session = self._context.session
        if pid is None:
            return await self._executor.run(
                ("product", "new"),
                lambda: crud.create_product(session, draft),
                failure_notice="Failed to create product. Please try again.",
                invalidate=self._catalog.load,
                success_notice=Notice("Product created", "Product has been successfully created."),
            )
        return await self._executor.run(
            ("product", pid),
            lambda: crud.update_product(session, pid, draft),
            failure_notice="Failed to update product. Please try again.",
            invalidate=self._catalog.load,
            success_notice=Notice("Product updated", "Product has been successfully updated."),
        )

    async def delete(self, pid: int, confirm: ConfirmFn) -> MutationResult[None]:
        """Nothing is sent unless `confirm` resolves True."""
        if not self.is_authorized:
            return self._deny()
        if not await confirm("Are you sure you want to delete this product?"):
            _logger.debug(f"Delete of product {pid} not confirmed")
            return MutationResult.rejected()
        return await self._executor.run(
            ("product", pid),
            lambda: crud.delete_product(self._context.session, pid),
            failure_notice="Failed to delete product. Please try again.",
            invalidate=self._catalog.load,
            success_notice=Notice("Product deleted", "Product has been successfully deleted."),
        )


def category_options() -> Dict[str, str]:
    return {c.value: c.label for c in Category}
