"""Imbalance computation module."""
from typing import Optional

from orderflow.models import FootprintLevel, Side


def is_imbalanced(ask_vol: int, bid_vol: int, ratio: float = 3.0) -> bool:
    """
    True when either side traded more than ``ratio`` times the other.

    Args:
        ask_vol: Buy-initiated volume.
        bid_vol: Sell-initiated volume.
        ratio: Dominance multiple.

    Returns:
        Symmetric imbalance flag. A one-sided level with any volume counts.
    """
    return ask_vol > bid_vol * ratio or bid_vol > ask_vol * ratio


def dominant_side(level: FootprintLevel) -> Optional[Side]:
    """Aggressor side that dominates an imbalanced level, or None."""
    if not level.imbalance:
        return None
    return Side.ASK if level.ask_vol > level.bid_vol else Side.BID


def imbalance_ratio(level: FootprintLevel) -> float:
    """Signed normalized imbalance in [-1, 1]; positive means buyers dominate."""
    total = level.ask_vol + level.bid_vol
    return 0.0 if total == 0 else (level.ask_vol - level.bid_vol) / total
