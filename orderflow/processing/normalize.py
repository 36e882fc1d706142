"""Feed normalization module."""
import math
from typing import Any, Dict, List, Mapping, Optional

from orderflow.models import InstrumentFeed, Quote


class FeedFormatError(ValueError):
    """An instrument entry in a frame is missing or has unusable required fields."""


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return num if math.isfinite(num) else None


def _to_int(value: Any) -> Optional[int]:
    """Parse quantity strings such as "150" or "150.0"."""
    num = _to_float(value)
    if num is None:
        return None
    return int(num)


def normalize_quotes(levels: Any) -> List[Quote]:
    """
    Normalize depth rungs.

    Args:
        levels: Sequence of dicts in either the logical shape
            (bidPrice/bidQty/askPrice/askQty) or the relay shape (bidP/bidQ/askP/askQ).

    Returns:
        List of Quote. A side with a non-positive price or an unparseable
        quantity is zeroed so the book builder skips it; it is not an error.
    """
    quotes: List[Quote] = []
    if not isinstance(levels, (list, tuple)):
        return quotes

    for q in levels:
        if not isinstance(q, Mapping):
            continue
        bid_p = _to_float(q.get("bidPrice", q.get("bidP")))
        bid_q = _to_int(q.get("bidQty", q.get("bidQ")))
        ask_p = _to_float(q.get("askPrice", q.get("askP")))
        ask_q = _to_int(q.get("askQty", q.get("askQ")))

        if bid_p is None or bid_q is None or bid_p <= 0:
            bid_p, bid_q = 0.0, 0
        if ask_p is None or ask_q is None or ask_p <= 0:
            ask_p, ask_q = 0.0, 0
        quotes.append(Quote(bid_price=bid_p, bid_qty=bid_q, ask_price=ask_p, ask_qty=ask_q))
    return quotes


def _flatten_relay(raw: Mapping) -> Dict[str, Any]:
    """Map the bridge relay shape (fullFeed.marketFF) onto the logical field names."""
    market = (raw.get("fullFeed") or {}).get("marketFF") or {}
    if not market:
        return {}
    ltpc = market.get("ltpc") or {}
    flat: Dict[str, Any] = {
        "ltp": ltpc.get("ltp"),
        "lastTradeQty": ltpc.get("ltq"),
        "closePrice": ltpc.get("cp"),
        "cumulativeVolume": market.get("vtt"),
        "openInterest": market.get("oi"),
    }
    market_level = market.get("marketLevel")
    if market_level is not None:
        flat["bidAskLevels"] = market_level.get("bidAskQuote")
    return flat


def normalize_feed(key: str, raw: Any) -> InstrumentFeed:
    """
    Normalize one instrument entry of a frame.

    Args:
        key: Instrument key.
        raw: Per-instrument payload (logical or relay shape).

    Returns:
        InstrumentFeed.

    Raises:
        FeedFormatError: the price is missing/non-positive or the volume
            counter is present but unparseable.
    """
    if not isinstance(raw, Mapping):
        raise FeedFormatError(f"{key}: feed entry is not a mapping ({type(raw).__name__})")

    data = raw if "ltp" in raw else _flatten_relay(raw)
    if not data:
        raise FeedFormatError(f"{key}: no recognizable price fields")

    ltp = _to_float(data.get("ltp"))
    if ltp is None or ltp <= 0:
        raise FeedFormatError(f"{key}: missing or non-positive ltp={data.get('ltp')!r}")

    cum_vol = None
    if data.get("cumulativeVolume") not in (None, ""):
        cum_vol = _to_int(data.get("cumulativeVolume"))
        if cum_vol is None or cum_vol < 0:
            raise FeedFormatError(f"{key}: bad cumulativeVolume={data.get('cumulativeVolume')!r}")

    levels = data.get("bidAskLevels")
    quotes = normalize_quotes(levels) if levels is not None else None

    oi = _to_float(data.get("openInterest"))

    return InstrumentFeed(
        key=key,
        ltp=ltp,
        last_trade_qty=_to_int(data.get("lastTradeQty")),
        close_price=_to_float(data.get("closePrice")),
        quotes=quotes,
        cumulative_volume=cum_vol,
        open_interest=oi if oi is not None and oi >= 0 else None,
    )
