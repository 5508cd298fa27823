from typing import Dict, List, Literal, Optional, Sequence

from core.pricing import PricingBreakdown, format_money, line_total
from remote.models import CartLineItem, Order, Product, Review

_ALIGN_MAP = {
    "l": ":---",
    "c": ":---:",
    "r": "---:",
}


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of values (converted with str).
        aligns: 'l', 'c' or 'r' per column. Defaults to all center.

    Returns:
        str: Markdown formatted table, or "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [str(h) for h in headers]
    aligns = aligns or ["c"] * len(headers)
    if len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(_ALIGN_MAP[a] for a in aligns) + " |",
    ]
    lines += ["| " + " | ".join(str(cell) for cell in row) + " |" for row in rows]
    return "\n".join(lines)


def product_markdown(product: Product, reviews: Sequence[Review] = ()) -> str:
    price = format_money(product.price)
    if product.discount_pct:
        price += f" ~~{format_money(product.original_price)}~~ (-{product.discount_pct}%)"
    rows = [
        ["Price", price],
        ["Category", product.category.capitalize()],
        ["Brand", product.brand or "-"],
        ["In stock", product.stock_count if product.in_stock else "Out of stock"],
        ["Rating", f"{product.rating} / 5 ({product.review_count} reviews)"],
    ]
    md = f"### {product.name}\n\n"
    if product.description:
        md += f"{product.description}\n\n"
    md += generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
    if reviews:
        md += "\n\n#### Reviews\n\n"
        md += "\n\n".join(
            f"**{r.author}** {'★' * r.rating}{'☆' * (5 - r.rating)}  \n{r.comment or ''}"
            for r in reviews
        )
    return md


def breakdown_rows(breakdown: PricingBreakdown) -> List[List[str]]:
    shown: Dict[str, str] = breakdown.formatted()
    return [
        ["Subtotal", shown["subtotal"]],
        ["Shipping", shown["shipping"]],
        ["Tax", shown["tax"]],
        ["**Total**", f"**{shown['total']}**"],
    ]


def order_summary_markdown(items: Sequence[CartLineItem], breakdown: PricingBreakdown) -> str:
    rows = [
        [
            item.product.name,
            format_money(item.product.price),
            item.qty,
            format_money(line_total(item)),
        ]
        for item in items
    ]
    md = "### Order Summary\n\n"
    md += generate_markdown_table(
        ["Product", "Unit Price", "Qty", "Line Total"], rows, ["l", "r", "c", "r"]
    )
    md += "\n\n" + generate_markdown_table(None, breakdown_rows(breakdown), ["l", "r"])
    return md


def order_detail_markdown(order: Order, names: Dict[int, str]) -> str:
    addr = order.shipping_address
    header = (
        f"### Order #{order.ono}\n"
        f"Date: {order.created_at:%B %d, %Y}  \n"
        f"Status: **{order.status.value.capitalize()}**  \n"
        f"Ship To: {addr.one_line()}\n\n"
    )
    if not order.status.is_terminal:
        header += "_This order is still being processed._\n\n"
    rows = [
        [
            names.get(line.pid, f"PID {line.pid}"),
            line.qty,
            format_money(line.uprice),
            format_money(line.line_total),
        ]
        for line in order.lines
    ]
    table = generate_markdown_table(
        ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "c", "r", "r"]
    )
    return header + table + f"\n\n**Total:** {format_money(order.total_amount)}"
