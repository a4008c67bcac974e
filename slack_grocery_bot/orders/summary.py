"""Aggregate stored order messages and thumbs-up reactions into a summary."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import MAX_PREC, Decimal, localcontext
from typing import Dict, Iterable, List

from slack_grocery_bot.orders.parser import ParsedOrder, parse_orders
from slack_grocery_bot.stores.events import MessageEvent, ReactionEvent

AFFIRMATIVE_REACTION = "+1"
ACK_REACTION = "white_check_mark"
SUMMARY_HEADER = "*Weekly Grocery Summary:*\n"
THUMBS_UP = "👍"


@dataclass
class ItemTotal:
    """Running total of one item for one user."""

    item: str
    quantity: Decimal = Decimal(0)
    message_ts: List[str] = field(default_factory=list)
    reactions: int = 0


def format_quantity(quantity: Decimal) -> str:
    """Render integral quantities without a fractional part (``3.0`` -> ``3``)."""

    if quantity == quantity.to_integral_value():
        return str(int(quantity))
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        return format(quantity.normalize(), "f")


def item_key(item: str) -> str:
    """Grouping key under which ``apple`` and ``apples`` are the same item."""

    words = item.split()
    if not words:
        return item
    last = words[-1]
    if len(last) > 3 and last.endswith("s") and not last.endswith("ss"):
        words[-1] = last[:-1]
    return " ".join(words)


def format_entries(orders: Iterable[ParsedOrder]) -> str:
    """Return ``"2× apples, 1× milk"`` for the acknowledgement of a single message."""

    return ", ".join(f"{format_quantity(order.quantity)}× {order.item}" for order in orders)


def aggregate_orders(
    messages: Iterable[MessageEvent],
    reactions: Iterable[ReactionEvent],
) -> Dict[str, List[ItemTotal]]:
    """Return per-user item totals, each carrying its thumbs-up count.

    Quantities of the same item are summed across messages. A reaction counts
    toward every item of the message whose ``ts`` it targets.
    """

    by_user: Dict[str, Dict[str, ItemTotal]] = {}
    # Sums stay exact however many digits a quantity has.
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        for message in messages:
            items = by_user.setdefault(message.user_id, {})
            for order in parse_orders(message.text):
                total = items.setdefault(item_key(order.item), ItemTotal(item=order.item))
                total.quantity += order.quantity
                if message.ts not in total.message_ts:
                    total.message_ts.append(message.ts)

    plus_one_by_ts = Counter(
        reaction.ts for reaction in reactions if reaction.reaction == AFFIRMATIVE_REACTION
    )

    result: Dict[str, List[ItemTotal]] = {}
    for user_id, items in by_user.items():
        if not items:
            continue
        for total in items.values():
            total.reactions = sum(plus_one_by_ts[ts] for ts in total.message_ts)
        result[user_id] = list(items.values())
    return result


def _format_total(total: ItemTotal) -> str:
    entry = f"{format_quantity(total.quantity)}× {total.item}"
    if total.reactions > 0:
        entry += f" ({total.reactions}× {THUMBS_UP})"
    return entry


def summary_lines(
    messages: Iterable[MessageEvent],
    reactions: Iterable[ReactionEvent],
) -> List[str]:
    aggregated = aggregate_orders(messages, reactions)
    return [
        f"• <@{user_id}>: " + ", ".join(_format_total(total) for total in totals)
        for user_id, totals in aggregated.items()
    ]


def summarize(
    messages: Iterable[MessageEvent],
    reactions: Iterable[ReactionEvent],
) -> str:
    """Render the weekly summary; empty string when nobody ordered anything."""

    lines = summary_lines(messages, reactions)
    if not lines:
        return ""
    return SUMMARY_HEADER + "\n".join(lines)
