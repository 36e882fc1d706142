"""Heuristic iceberg detection from book replenishment."""
from typing import List, Optional, Sequence

from logger import get_logger
from orderflow.models import ActiveIceberg, InstrumentState, PriceLevel, Side, Trade, price_key
from orderflow.processing.book import find_level
from orderflow.processing.trades import new_id

logger = get_logger("orderflow.icebergs")


def _passive_size(level: Optional[PriceLevel], side: Side) -> int:
    if level is None:
        return 0
    return level.total_bid_size if side is Side.BID else level.total_ask_size


def find_iceberg(state: InstrumentState, key: str, side: Side) -> Optional[ActiveIceberg]:
    for iceberg in state.active_icebergs:
        if iceberg.key == key and iceberg.side is side:
            return iceberg
    return None


def detect_iceberg(
    state: InstrumentState,
    trade: Trade,
    book_before: Sequence[PriceLevel],
    *,
    min_refills: int = 3,
    precision: int = 2,
) -> Optional[ActiveIceberg]:
    """
    Count a replenishment when the passive side at the traded price did not shrink.

    A bid-aggressed trade hits resting bids, so the bid side is the one
    watched for reloading (and vice versa). ``state.book`` must already hold
    the book rebuilt from the same frame. When the frame carried no depth
    (``state.book is book_before``) nothing was observed and the counters
    are left alone.

    Returns:
        The active iceberg at that price, if one exists after this trade.
    """
    passive = trade.side          # BID-aggressed trades consume the bid queue
    key = price_key(trade.price, precision)
    iceberg = find_iceberg(state, key, passive)
    if state.book is book_before:
        return iceberg

    counter = f"{passive.value}:{key}"
    before = _passive_size(find_level(book_before, key), passive)
    after = _passive_size(find_level(state.book, key), passive)

    if before <= 0 or after < before:
        # queue got consumed: refills must be consecutive
        state.iceberg_refills.pop(counter, None)
        return iceberg

    refills = state.iceberg_refills.get(counter, (0, 0.0))[0] + 1
    state.iceberg_refills[counter] = (refills, trade.timestamp)

    if iceberg is not None:
        iceberg.last_update = trade.timestamp
        iceberg.total_filled += trade.size
        return iceberg

    if refills >= min_refills:
        iceberg = ActiveIceberg(
            id=new_id(),
            price=trade.price,
            key=key,
            side=passive,
            detected_at=trade.timestamp,
            last_update=trade.timestamp,
            total_filled=trade.size,
        )
        state.active_icebergs.append(iceberg)
        logger.info(f"Iceberg detected {passive.value} @ {key} after {refills} refills")
    return iceberg


def expire_icebergs(state: InstrumentState, now: float, lifetime_s: float = 5.0) -> List[ActiveIceberg]:
    """
    Drop markers whose last update is older than ``lifetime_s``.

    Refill counters idle for the same span are pruned too, so prices that
    stopped trading do not keep a partial count for the rest of the session.

    Returns:
        The removed markers.
    """
    stale = [c for c, (_, ts) in state.iceberg_refills.items() if now - ts >= lifetime_s]
    for counter in stale:
        del state.iceberg_refills[counter]

    expired = [i for i in state.active_icebergs if now - i.last_update >= lifetime_s]
    if not expired:
        return []
    for iceberg in expired:
        iceberg.status = "FINISHED"
        state.iceberg_refills.pop(f"{iceberg.side.value}:{iceberg.key}", None)
    state.active_icebergs = [i for i in state.active_icebergs if i.status == "ACTIVE"]
    return expired
