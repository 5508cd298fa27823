# src/remote/crud.py
"""
Storefront service calls.

Every call that acts for a user takes the caller's Session and raises
UnauthorizedError when the session is unknown or has ended. Failures are
reported as RemoteError subclasses, never as raw database errors.
"""
from __future__ import annotations

import dataclasses
import hashlib
import json
import random
import secrets
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

import aiosqlite

from remote import models
from remote.database import connect
from remote.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

_PRODUCT_COLUMNS = """
    p.pid, p.name, p.description, p.category, p.brand, p.price, p.original_price,
    p.image_url, p.stock_count, p.rating, p.review_count, p.is_active, p.created_at
"""


def _now() -> str:
    return datetime.now().isoformat(sep=" ", timespec="seconds")


def _to_dt(val) -> Optional[datetime]:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(str(val))


def _to_dec(val) -> Optional[Decimal]:
    return Decimal(str(val)) if val is not None else None


def _row_to_product(row) -> models.Product:
    return models.Product(
        pid=row["pid"],
        name=row["name"],
        category=row["category"],
        price=_to_dec(row["price"]),
        stock_count=int(row["stock_count"]),
        description=row["description"],
        brand=row["brand"],
        original_price=_to_dec(row["original_price"]),
        image_url=row["image_url"],
        rating=_to_dec(row["rating"]),
        review_count=int(row["review_count"]),
        is_active=bool(row["is_active"]),
        created_at=_to_dt(row["created_at"]),
    )


async def _authorize(conn: aiosqlite.Connection, session: Optional[models.Session]) -> int:
    """Return the uid owning an active session; raise UnauthorizedError otherwise."""
    if session is None or not session.token:
        raise UnauthorizedError("Unauthorized")
    cur = await conn.execute(
        "SELECT uid FROM sessions WHERE token = ? AND end_time IS NULL;",
        (session.token,),
    )
    row = await cur.fetchone()
    await cur.close()
    if not row or int(row[0]) != session.uid:
        raise UnauthorizedError("Unauthorized")
    return int(row[0])


async def _require_admin(conn: aiosqlite.Connection, session: Optional[models.Session]) -> int:
    uid = await _authorize(conn, session)
    cur = await conn.execute("SELECT is_admin FROM users WHERE uid = ?;", (uid,))
    row = await cur.fetchone()
    await cur.close()
    if not row or not row[0]:
        raise ForbiddenError("Admin access required")
    return uid


# ---------------------------
# Auth & Sessions
# ---------------------------


async def email_available(email: str) -> bool:
    """True if no user already registered with the given email."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT 1 FROM users WHERE email = ? LIMIT 1;", (email,)
        )
        row = await cur.fetchone()
        await cur.close()
        return row is None


async def register_customer(name: str, email: str, pwd: str) -> int:
    """Create a new shopper account and return its uid."""
    async with connect() as conn:
        while True:
            uid = random.randint(1000, 999999)
            cur = await conn.execute("SELECT 1 FROM users WHERE uid = ?;", (uid,))
            exists = await cur.fetchone()
            await cur.close()
            if not exists:
                break
        await conn.execute(
            "INSERT INTO users(uid, pwd, name, email, is_admin) VALUES (?, ?, ?, ?, 0);",
            (uid, pwd, name, email),
        )
        await conn.commit()
    return uid


async def login(uid: int, pwd: str) -> Optional[models.Session]:
    """Open a session if uid/pwd match; otherwise None."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT uid FROM users WHERE uid = ? AND pwd = ?;", (uid, pwd)
        )
        row = await cur.fetchone()
        await cur.close()
        if not row:
            return None
        token = secrets.token_hex(16)
        await conn.execute(
            "INSERT INTO sessions(token, uid, start_time, end_time) VALUES (?, ?, ?, NULL);",
            (token, uid, _now()),
        )
        await conn.commit()
    _logger.debug(f"Session opened for uid {uid}")
    return models.Session(uid=int(row[0]), token=token)


async def end_session(session: models.Session) -> None:
    """Mark the session ended; later calls with it are unauthorized."""
    async with connect() as conn:
        await conn.execute(
            "UPDATE sessions SET end_time = ? WHERE token = ? AND end_time IS NULL;",
            (_now(), session.token),
        )
        await conn.commit()


async def get_identity(session: models.Session) -> models.Identity:
    async with connect() as conn:
        uid = await _authorize(conn, session)
        cur = await conn.execute(
            "SELECT uid, name, email, is_admin FROM users WHERE uid = ?;", (uid,)
        )
        row = await cur.fetchone()
        await cur.close()
    return models.Identity(
        uid=row["uid"], name=row["name"], email=row["email"], is_admin=bool(row["is_admin"])
    )


# ---------------------------
# Catalog
# ---------------------------


async def list_products(
    category: Optional[str] = None, include_inactive: bool = False
) -> List[models.Product]:
    """List products ordered by pid, optionally filtered by category."""
    sql = f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE 1 = 1"
    params: list = []
    if category:
        sql += " AND p.category = ?"
        params.append(category)
    if not include_inactive:
        sql += " AND p.is_active = 1"
    sql += " ORDER BY p.pid;"
    async with connect() as conn:
        cur = await conn.execute(sql, params)
        rows = await cur.fetchall()
        await cur.close()
    return [_row_to_product(row) for row in rows]


async def get_product(pid: int) -> Optional[models.Product]:
    """Fetch a product by pid."""
    async with connect() as conn:
        return await _fetch_product(conn, pid)


async def _fetch_product(conn: aiosqlite.Connection, pid: int) -> Optional[models.Product]:
    cur = await conn.execute(
        f"SELECT {_PRODUCT_COLUMNS} FROM products p WHERE p.pid = ?;", (pid,)
    )
    row = await cur.fetchone()
    await cur.close()
    return _row_to_product(row) if row else None


async def list_reviews(pid: int) -> List[models.Review]:
    """Reviews for a product, newest first, with the author's name."""
    async with connect() as conn:
        cur = await conn.execute(
            """
            SELECT r.rid, r.pid, r.uid, u.name, r.rating, r.comment, r.created_at
            FROM reviews r
                     JOIN users u ON u.uid = r.uid
            WHERE r.pid = ?
            ORDER BY r.created_at DESC;
            """,
            (pid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.Review(
            rid=row[0],
            pid=row[1],
            uid=row[2],
            author=row[3],
            rating=row[4],
            comment=row[5],
            created_at=_to_dt(row[6]),
        )
        for row in rows
    ]


def _draft_params(draft: models.ProductDraft) -> tuple:
    return (
        draft.name,
        draft.description,
        draft.category,
        draft.brand,
        str(draft.price),
        str(draft.original_price) if draft.original_price is not None else None,
        draft.image_url,
        draft.stock_count,
    )


async def create_product(
    session: models.Session, draft: models.ProductDraft
) -> models.Product:
    """Admin only. Insert a product and return it."""
    async with connect() as conn:
        await _require_admin(conn, session)
        cur = await conn.execute(
            """
            INSERT INTO products(name, description, category, brand, price, original_price,
                                 image_url, stock_count, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (*_draft_params(draft), _now()),
        )
        pid = cur.lastrowid
        await cur.close()
        await conn.commit()
        product = await _fetch_product(conn, pid)
    _logger.info(f"Product {pid} created")
    return product


async def update_product(
    session: models.Session, pid: int, draft: models.ProductDraft
) -> models.Product:
    """Admin only. Replace the editable fields of a product."""
    async with connect() as conn:
        await _require_admin(conn, session)
        res = await conn.execute(
            """
            UPDATE products
            SET name = ?, description = ?, category = ?, brand = ?, price = ?,
                original_price = ?, image_url = ?, stock_count = ?
            WHERE pid = ?;
            """,
            (*_draft_params(draft), pid),
        )
        if res.rowcount == 0:
            raise NotFoundError(f"Product {pid} not found")
        await conn.commit()
        product = await _fetch_product(conn, pid)
    _logger.info(f"Product {pid} updated")
    return product


async def delete_product(session: models.Session, pid: int) -> None:
    """Admin only. Cart rows referencing the product go with it."""
    async with connect() as conn:
        await _require_admin(conn, session)
        res = await conn.execute("DELETE FROM products WHERE pid = ?;", (pid,))
        if res.rowcount == 0:
            raise NotFoundError(f"Product {pid} not found")
        await conn.commit()
    _logger.info(f"Product {pid} deleted")


# ---------------------------
# Cart Management
# ---------------------------


async def list_cart(session: models.Session) -> List[models.CartLineItem]:
    """Cart rows of the session's user with product data embedded, by line_id."""
    async with connect() as conn:
        uid = await _authorize(conn, session)
        cur = await conn.execute(
            f"""
            SELECT c.line_id, c.uid, c.qty, {_PRODUCT_COLUMNS}
            FROM cart c
                     JOIN products p ON p.pid = c.pid
            WHERE c.uid = ?
            ORDER BY c.line_id;
            """,
            (uid,),
        )
        rows = await cur.fetchall()
        await cur.close()
    return [
        models.CartLineItem(
            line_id=row["line_id"],
            uid=row["uid"],
            product=_row_to_product(row),
            qty=int(row["qty"]),
        )
        for row in rows
    ]


async def _fetch_line(conn: aiosqlite.Connection, uid: int, line_id: int):
    cur = await conn.execute(
        "SELECT line_id, pid, qty FROM cart WHERE line_id = ? AND uid = ?;",
        (line_id, uid),
    )
    row = await cur.fetchone()
    await cur.close()
    if not row:
        raise NotFoundError(f"Cart item {line_id} not found")
    return row


async def add_to_cart(session: models.Session, pid: int, qty: int = 1) -> int:
    """
    Add a product to the user's cart. If the product is already in the cart the
    quantities are merged, capped at stock_count. Returns the line_id.
    """
    if qty < 1:
        raise BadRequestError("Quantity must be at least 1")
    async with connect() as conn:
        uid = await _authorize(conn, session)
        product = await _fetch_product(conn, pid)
        if not product or not product.is_active:
            raise NotFoundError(f"Product {pid} not found")
        if product.stock_count <= 0:
            raise BadRequestError("Product is out of stock")

        cur = await conn.execute(
            "SELECT line_id, qty FROM cart WHERE uid = ? AND pid = ?;", (uid, pid)
        )
        existing = await cur.fetchone()
        await cur.close()
        if existing:
            line_id = existing["line_id"]
            new_qty = min(existing["qty"] + qty, product.stock_count)
            await conn.execute(
                "UPDATE cart SET qty = ? WHERE line_id = ?;", (new_qty, line_id)
            )
        else:
            cur = await conn.execute(
                "INSERT INTO cart(uid, pid, qty) VALUES (?, ?, ?);",
                (uid, pid, min(qty, product.stock_count)),
            )
            line_id = cur.lastrowid
            await cur.close()
        await conn.commit()
    return line_id


async def update_cart_quantity(session: models.Session, line_id: int, qty: int) -> None:
    """Set the quantity of a cart row. Zero is not a quantity; delete the row instead."""
    if qty < 1:
        raise BadRequestError("Quantity must be at least 1")
    async with connect() as conn:
        uid = await _authorize(conn, session)
        line = await _fetch_line(conn, uid, line_id)
        product = await _fetch_product(conn, line["pid"])
        if product is None or qty > product.stock_count:
            raise BadRequestError("Not enough stock available")
        await conn.execute(
            "UPDATE cart SET qty = ? WHERE line_id = ?;", (qty, line_id)
        )
        await conn.commit()


async def remove_from_cart(session: models.Session, line_id: int) -> None:
    async with connect() as conn:
        uid = await _authorize(conn, session)
        await _fetch_line(conn, uid, line_id)
        await conn.execute("DELETE FROM cart WHERE line_id = ?;", (line_id,))
        await conn.commit()


# ---------------------------
# Checkout & Orders
# ---------------------------


def _input_hash(
    shipping: models.ShippingAddress, items: Iterable[models.OrderItem], total: Decimal
) -> str:
    body = {
        "shipping": dataclasses.asdict(shipping),
        "items": [[i.pid, i.qty, str(i.uprice)] for i in items],
        "total": str(total),
    }
    return hashlib.sha256(json.dumps(body, sort_keys=True).encode()).hexdigest()


async def create_order(
    session: models.Session,
    shipping: models.ShippingAddress,
    items: List[models.OrderItem],
    total: Decimal,
    idempotency_key: Optional[str] = None,
) -> models.Order:
    """
    Create an order from the submitted lines, decrement stock and empty the
    user's cart in one transaction.

    A replayed idempotency_key returns the order it created the first time;
    the same key with a different payload is a ConflictError.
    """
    if not items:
        raise BadRequestError("Order has no items")
    if not shipping.is_complete():
        raise BadRequestError("Shipping address is incomplete")
    input_hash = _input_hash(shipping, items, total)

    async with connect() as conn:
        uid = await _authorize(conn, session)

        if idempotency_key:
            cur = await conn.execute(
                "SELECT ono, uid, input_hash FROM orders WHERE idempotency_key = ?;",
                (idempotency_key,),
            )
            prior = await cur.fetchone()
            await cur.close()
            if prior:
                if prior["uid"] != uid or prior["input_hash"] != input_hash:
                    raise ConflictError("Idempotency key reused with a different order")
                _logger.info(f"Replayed order {prior['ono']} for key {idempotency_key}")
                return await _fetch_order(conn, prior["ono"])

        # pick unique order number
        while True:
            ono = random.randint(100000, 999999)
            cur = await conn.execute("SELECT 1 FROM orders WHERE ono = ?;", (ono,))
            exists = await cur.fetchone()
            await cur.close()
            if not exists:
                break

        await conn.execute(
            """
            INSERT INTO orders(ono, uid, status, total_amount, shipping_address, created_at,
                               idempotency_key, input_hash)
            VALUES (?, ?, 'pending', ?, ?, ?, ?, ?);
            """,
            (
                ono,
                uid,
                str(total),
                json.dumps(dataclasses.asdict(shipping)),
                _now(),
                idempotency_key,
                input_hash,
            ),
        )

        # insert lines and decrement stock
        for line_no, item in enumerate(items, start=1):
            res = await conn.execute(
                "UPDATE products SET stock_count = stock_count - ? WHERE pid = ? AND stock_count >= ?;",
                (item.qty, item.pid, item.qty),
            )
            if res.rowcount == 0:
                raise BadRequestError(f"Product {item.pid} is not available in that quantity")
            await conn.execute(
                "INSERT INTO orderlines(ono, line_no, pid, qty, uprice) VALUES (?, ?, ?, ?, ?);",
                (ono, line_no, item.pid, item.qty, str(item.uprice)),
            )

        await conn.execute("DELETE FROM cart WHERE uid = ?;", (uid,))
        await conn.commit()
        order = await _fetch_order(conn, ono)
    _logger.info(f"Order {ono} created for uid {uid}")
    return order


async def _fetch_order(conn: aiosqlite.Connection, ono: int) -> models.Order:
    cur = await conn.execute(
        """
        SELECT ono, uid, status, total_amount, shipping_address, created_at
        FROM orders
        WHERE ono = ?;
        """,
        (ono,),
    )
    row = await cur.fetchone()
    await cur.close()
    if not row:
        raise NotFoundError(f"Order {ono} not found")
    cur = await conn.execute(
        "SELECT ono, line_no, pid, qty, uprice FROM orderlines WHERE ono = ? ORDER BY line_no;",
        (ono,),
    )
    line_rows = await cur.fetchall()
    await cur.close()
    return models.Order(
        ono=row["ono"],
        uid=row["uid"],
        status=models.OrderStatus(row["status"]),
        total_amount=_to_dec(row["total_amount"]),
        shipping_address=models.ShippingAddress(**json.loads(row["shipping_address"])),
        created_at=_to_dt(row["created_at"]),
        lines=tuple(
            models.OrderLine(
                ono=lr["ono"],
                line_no=lr["line_no"],
                pid=lr["pid"],
                qty=lr["qty"],
                uprice=_to_dec(lr["uprice"]),
            )
            for lr in line_rows
        ),
    )


async def list_orders(session: models.Session) -> List[models.Order]:
    """The session user's orders in reverse chronological order."""
    async with connect() as conn:
        uid = await _authorize(conn, session)
        cur = await conn.execute(
            "SELECT ono FROM orders WHERE uid = ? ORDER BY created_at DESC, ono DESC;",
            (uid,),
        )
        rows = await cur.fetchall()
        await cur.close()
        return [await _fetch_order(conn, row[0]) for row in rows]
