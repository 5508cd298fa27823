import dataclasses
import unittest
from datetime import datetime
from decimal import Decimal

import fakes  # noqa: F401  (puts src/ on sys.path)
from core.pricing import compute_breakdown
from fakes import make_line, make_product
from remote.models import Order, OrderLine, OrderStatus, ShippingAddress
from utils.pure import (
    breakdown_rows,
    generate_markdown_table,
    order_detail_markdown,
    product_markdown,
)


class PureTestCase(unittest.TestCase):
    def test_markdown_table(self):
        md = generate_markdown_table(["A", "B"], [[1, "x"]], ["l", "r"])
        self.assertEqual(md, "| A | B |\n| :--- | ---: |\n| 1 | x |")
        # first row doubles as header
        self.assertEqual(
            generate_markdown_table(None, [["k", "v"], ["a", "b"]]),
            "| k | v |\n| :---: | :---: |\n| a | b |",
        )
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])

    def test_breakdown_rows_show_free_shipping(self):
        rows = breakdown_rows(compute_breakdown([make_line(price="29.99", qty=2)]))
        self.assertEqual(rows[1], ["Shipping", "Free"])
        self.assertEqual(rows[-1], ["**Total**", "**$64.78**"])

    def test_product_markdown_shows_discount(self):
        md = product_markdown(
            make_product(price="129.99", original_price=Decimal("159.99"), name="Headphones")
        )
        self.assertIn("### Headphones", md)
        self.assertIn("~~$159.99~~", md)

    def test_order_detail(self):
        order = Order(
            ono=123456,
            uid=1001,
            status=OrderStatus.SHIPPED,
            total_amount=Decimal("20.79"),
            shipping_address=ShippingAddress("Alice", "Smith", "a@x.com", "1 Main St", "Springfield", "12345"),
            created_at=datetime(2025, 3, 4, 10, 0),
            lines=(OrderLine(ono=123456, line_no=1, pid=4, qty=1, uprice=Decimal("10.00")),),
        )
        md = order_detail_markdown(order, {4: "Cotton T-Shirt"})
        self.assertIn("Order #123456", md)
        self.assertIn("Status: **Shipped**", md)
        self.assertIn("still being processed", md)
        self.assertIn("| Cotton T-Shirt | 1 | $10.00 | $10.00 |", md)
        self.assertTrue(md.endswith("**Total:** $20.79"))

        delivered = order_detail_markdown(
            dataclasses.replace(order, status=OrderStatus.DELIVERED), {}
        )
        self.assertNotIn("still being processed", delivered)
        self.assertIn("PID 4", delivered)


if __name__ == "__main__":
    unittest.main()
