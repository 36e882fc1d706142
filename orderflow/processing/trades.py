"""Trade inference from cumulative volume counters."""
import time
import uuid
from typing import Optional, Tuple

from logger import get_logger
from orderflow.models import Side, Trade

logger = get_logger("orderflow.trades")


def new_id() -> str:
    return uuid.uuid4().hex[:9]


def infer_trade(
    last_vol: int,
    new_vol: int,
    prev_price: float,
    new_price: float,
    *,
    timestamp: Optional[float] = None,
    key: str = "",
) -> Tuple[Optional[Trade], int]:
    """
    Turn a cumulative traded-volume reading into at most one inferred trade.

    Everything that printed between two frames collapses into a single trade
    of the net size. The aggressor is guessed with the tick rule: price up or
    unchanged counts as ask-aggressed, price down as bid-aggressed.

    Args:
        last_vol: Stored baseline counter (0 = never observed).
        new_vol: Counter from the current frame.
        prev_price: Price before this frame.
        new_price: Price in this frame.
        timestamp: Trade time, defaults to now.
        key: Instrument key, used for logging only.

    Returns:
        (trade or None, new baseline counter).
    """
    if last_vol == 0:
        return None, new_vol

    if new_vol > last_vol:
        side = Side.ASK if new_price >= prev_price else Side.BID
        trade = Trade(
            id=new_id(),
            price=new_price,
            size=new_vol - last_vol,
            side=side,
            timestamp=time.time() if timestamp is None else timestamp,
        )
        return trade, new_vol

    if new_vol < last_vol:
        logger.debug(f"{key}: volume counter regressed {last_vol} -> {new_vol}, rebasing")
        return None, new_vol

    return None, last_vol
