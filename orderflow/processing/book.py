"""Synthetic order book construction module."""
from typing import Dict, List, Optional, Sequence

from orderflow.models import BookOrder, PriceLevel, Quote, price_key


def build_book(
    quotes: Sequence[Quote],
    max_orders: int = 3,
    precision: int = 2,
) -> List[PriceLevel]:
    """
    Rebuild the price-level book from a full depth snapshot.

    Args:
        quotes: Depth rungs in feed order (index = queue priority).
        max_orders: Synthetic display orders kept per side per level.
        precision: Decimal places used for the level key.

    Returns:
        Fresh list of PriceLevel, strictly descending by price. Sizes from
        different rungs landing on the same price are summed.
    """
    levels: Dict[str, PriceLevel] = {}

    def level_for(price: float) -> PriceLevel:
        key = price_key(price, precision)
        if key not in levels:
            levels[key] = PriceLevel(price=round(price, precision), key=key)
        return levels[key]

    for idx, q in enumerate(quotes):
        if q.bid_price > 0:
            level = level_for(q.bid_price)
            level.total_bid_size += q.bid_qty
            if len(level.bids) < max_orders:
                level.bids.append(BookOrder(id=f"b-{idx}", price=level.price, size=q.bid_qty, priority=idx))
        if q.ask_price > 0:
            level = level_for(q.ask_price)
            level.total_ask_size += q.ask_qty
            if len(level.asks) < max_orders:
                level.asks.append(BookOrder(id=f"a-{idx}", price=level.price, size=q.ask_qty, priority=idx))

    return sorted(levels.values(), key=lambda lv: lv.price, reverse=True)


def find_level(book: Sequence[PriceLevel], key: str) -> Optional[PriceLevel]:
    for level in book:
        if level.key == key:
            return level
    return None


def book_totals(book: Sequence[PriceLevel]) -> tuple:
    """Return (total bid size, total ask size) across the book."""
    return (
        sum(lv.total_bid_size for lv in book),
        sum(lv.total_ask_size for lv in book),
    )
