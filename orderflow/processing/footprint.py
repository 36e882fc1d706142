"""Footprint bar aggregation module."""
from bisect import bisect_left
from typing import List, Sequence, Tuple

from orderflow.config import FootprintConfig
from orderflow.models import (
    FootprintBar,
    FootprintLevel,
    InstrumentState,
    PriceLevel,
    Side,
    Trade,
    price_key,
)
from orderflow.processing.book import find_level
from orderflow.processing.imbalance import is_imbalanced


def snapshot_depth(bar: FootprintBar, book: Sequence[PriceLevel]) -> None:
    """Record total resting size per price into the bar's depth map (heatmap overlay)."""
    for level in book:
        total = level.total_size
        if total > 0:
            bar.depth_snapshot[level.key] = total


def _insert_level(bar: FootprintBar, level: FootprintLevel) -> None:
    # levels are kept descending; bisect on negated prices
    neg_prices = [-lv.price for lv in bar.levels]
    bar.levels.insert(bisect_left(neg_prices, -level.price), level)


def apply_trade(
    state: InstrumentState,
    trade: Trade,
    config: FootprintConfig = None,
) -> Tuple[FootprintBar, List[FootprintBar]]:
    """
    Fold one inferred trade into the instrument's active footprint bar.

    ``state.global_cvd`` must already include the trade; the bar only mirrors it.

    Args:
        state: Instrument state, mutated in place.
        trade: Inferred trade.
        config: Footprint configuration.

    Returns:
        (active bar, archived bars) after the update.
    """
    config = config or FootprintConfig()
    bar = state.current_bar
    snapshot_depth(bar, state.book)

    if bar.volume > config.rotation_volume:
        state.footprint_bars.append(bar)
        if len(state.footprint_bars) > config.max_bars:
            del state.footprint_bars[: len(state.footprint_bars) - config.max_bars]
        bar = FootprintBar.opened_at(trade.price, cvd=state.global_cvd, timestamp=trade.timestamp)
        snapshot_depth(bar, state.book)
        state.current_bar = bar

    if bar.volume == 0 and not bar.levels:
        # a bar opened on a seed price: OHLC starts at its first real trade
        bar.open = bar.high = bar.low = bar.close = trade.price

    key = price_key(trade.price, config.price_precision)
    level = bar.level_at(key)
    if level is None:
        level = FootprintLevel(price=round(trade.price, config.price_precision), key=key)
        _insert_level(bar, level)

    if trade.side is Side.ASK:
        level.ask_vol += trade.size
    else:
        level.bid_vol += trade.size
    level.delta = level.ask_vol - level.bid_vol
    level.imbalance = is_imbalanced(level.ask_vol, level.bid_vol, config.imbalance_ratio)

    book_level = find_level(state.book, key)
    book_size = book_level.total_size if book_level is not None else 0
    level.depth_intensity = min(book_size / config.depth_normalizer, 1.0)

    bar.high = max(bar.high, trade.price)
    bar.low = min(bar.low, trade.price)
    bar.close = trade.price
    bar.volume += trade.size
    bar.delta += trade.signed_size
    bar.cvd = state.global_cvd

    return bar, state.footprint_bars
