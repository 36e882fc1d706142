"""Auction (volume) profile module."""
from typing import Sequence

import pandas as pd

from orderflow.models import AuctionProfile, FootprintBar
from orderflow.processing.metrics import volume_histogram


def value_area(hist: pd.Series, value_area_pct: float = 0.70) -> AuctionProfile:
    """
    Point of control and value area from a price -> volume histogram.

    The band grows outward from the PoC one observed price at a time, taking
    whichever neighbour (above or below the band) has more volume; ties go up.

    Args:
        hist: Volume per price. Index order does not matter.
        value_area_pct: Fraction of total volume the band must cover.

    Returns:
        AuctionProfile; the empty sentinel when there is no volume.
    """
    if hist is None or hist.empty:
        return AuctionProfile()

    hist = hist.sort_index()
    prices = [float(p) for p in hist.index]
    volumes = [int(v) for v in hist.values]
    total = sum(volumes)
    if total <= 0:
        return AuctionProfile()

    # max volume, ties broken by the higher price
    poc_idx = max(range(len(prices)), key=lambda i: (volumes[i], prices[i]))
    target = total * value_area_pct

    lo = hi = poc_idx
    covered = volumes[poc_idx]
    while covered < target and (lo > 0 or hi < len(prices) - 1):
        up = volumes[hi + 1] if hi < len(prices) - 1 else None
        down = volumes[lo - 1] if lo > 0 else None
        if down is None or (up is not None and up >= down):
            hi += 1
            covered += up
        else:
            lo -= 1
            covered += down

    return AuctionProfile(
        poc=prices[poc_idx],
        vah=prices[hi],
        val=prices[lo],
        total_volume=total,
        value_area_volume=covered,
    )


def build_profile(bars: Sequence[FootprintBar], value_area_pct: float = 0.70) -> AuctionProfile:
    """Auction profile over the given bars (typically archived + active)."""
    return value_area(volume_histogram(bars), value_area_pct)
