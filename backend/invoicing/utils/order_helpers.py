"""Order identifier helpers."""

import re

# Commerce platform order ids: "order_" followed by a 26-character ULID
ORDER_ID_PATTERN = re.compile(r"^order_[a-zA-Z0-9]{26}$")


def is_valid_order_id(order_id: object) -> bool:
    """Check an order id against the expected format before touching the store."""
    return isinstance(order_id, str) and ORDER_ID_PATTERN.fullmatch(order_id) is not None
