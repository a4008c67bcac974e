"""Parsing of free-text orders and the weekly summary."""

from .parser import ParsedOrder, parse_orders
from .summary import (
    ACK_REACTION,
    AFFIRMATIVE_REACTION,
    SUMMARY_HEADER,
    aggregate_orders,
    format_entries,
    format_quantity,
    summarize,
)

__all__ = [
    "ACK_REACTION",
    "AFFIRMATIVE_REACTION",
    "ParsedOrder",
    "SUMMARY_HEADER",
    "aggregate_orders",
    "format_entries",
    "format_quantity",
    "parse_orders",
    "summarize",
]
