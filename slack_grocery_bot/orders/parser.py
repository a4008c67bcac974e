"""Turn chat text such as ``"<@B1> 2 apples, 1 milk"`` into structured orders."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List

_MENTION_PREFIX = re.compile(r"^<@[^>]+>\s*")
_DELIMITERS = re.compile(r"\s*(?:[,;]|\.(?=\s+\d))\s*")
_QUANTITY = re.compile(r"^\s*(\d+(?:\.\d+)?)(?:\s*×)?\s+(.+)$", re.DOTALL)

ONE = Decimal(1)


@dataclass(frozen=True)
class ParsedOrder:
    quantity: Decimal
    item: str


def _to_quantity(text: str) -> Decimal:
    try:
        return Decimal(text)
    except InvalidOperation:
        return ONE


def parse_orders(text: str | None) -> List[ParsedOrder]:
    """Split *text* into ``(quantity, item)`` pairs in the order they appear.

    A leading bot mention is dropped and everything is lowercased. Tokens are
    separated by commas, semicolons, or a period followed by whitespace and a
    digit. A token without a leading quantity counts as one of that item.
    Never raises.
    """

    if not text:
        return []
    body = _MENTION_PREFIX.sub("", text.strip(), count=1).lower()
    orders: List[ParsedOrder] = []
    for token in _DELIMITERS.split(body):
        token = token.strip()
        if not token:
            continue
        match = _QUANTITY.match(token)
        if match:
            item = match.group(2).strip()
            if item:
                orders.append(ParsedOrder(_to_quantity(match.group(1)), item))
                continue
        orders.append(ParsedOrder(ONE, token))
    return orders
