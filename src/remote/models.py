# provide dataclass models for the storefront service

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple


class Category(str, Enum):
    ELECTRONICS = "electronics"
    FASHION = "fashion"
    HOME = "home"
    ACCESSORIES = "accessories"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class OrderStatus(str, Enum):
    """
    pending -> processing -> shipped -> delivered, or cancelled.
    Transitions happen server side only.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


@dataclass(frozen=True)
class Identity:
    uid: int
    name: str
    email: str
    is_admin: bool = False


@dataclass(frozen=True)
class Session:
    uid: int
    token: str


@dataclass(frozen=True)
class Product:
    pid: int
    name: str
    category: str
    price: Decimal
    stock_count: int
    description: Optional[str] = None
    brand: Optional[str] = None
    original_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    rating: Decimal = Decimal("0.0")
    review_count: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def in_stock(self) -> bool:
        return self.stock_count > 0

    @property
    def discount_pct(self) -> Optional[int]:
        if not self.original_price or self.original_price <= self.price:
            return None
        return int((1 - self.price / self.original_price) * 100)


@dataclass(frozen=True)
class Review:
    rid: int
    pid: int
    uid: int
    author: str
    rating: int
    comment: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class CartLineItem:
    line_id: int
    uid: int
    product: Product  # embedded at read time
    qty: int

    @property
    def pid(self) -> int:
        return self.product.pid


@dataclass(frozen=True)
class ShippingAddress:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    address: str = ""
    city: str = ""
    zip_code: str = ""
    country: str = "US"

    def missing_fields(self) -> List[str]:
        """Names of fields that are empty once trimmed."""
        return [f.name for f in fields(self) if not getattr(self, f.name).strip()]

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def one_line(self) -> str:
        return (
            f"{self.first_name} {self.last_name}, {self.address}, "
            f"{self.city} {self.zip_code}, {self.country}"
        )


@dataclass(frozen=True)
class OrderItem:
    """Line of an order submission; uprice is captured at submission time."""

    pid: int
    qty: int
    uprice: Decimal


@dataclass(frozen=True)
class OrderLine:
    ono: int
    line_no: int
    pid: int
    qty: int
    uprice: Decimal  # unit price at time of order

    @property
    def line_total(self) -> Decimal:
        return self.uprice * self.qty


@dataclass(frozen=True)
class Order:
    ono: int
    uid: int
    status: OrderStatus
    total_amount: Decimal
    shipping_address: ShippingAddress
    created_at: datetime
    lines: Tuple[OrderLine, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ProductDraft:
    """Normalized create/update payload; blank optionals are None."""

    name: str
    price: Decimal
    category: str
    description: Optional[str] = None
    brand: Optional[str] = None
    original_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    stock_count: int = 0
