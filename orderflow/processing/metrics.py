"""Metrics computation module."""
from typing import Sequence

import numpy as np
import pandas as pd

from orderflow.models import FootprintBar
from orderflow.processing.imbalance import imbalance_ratio

FOOTPRINT_COLUMNS = ["identifier", "price", "bid_size", "ask_size", "delta", "imbalance", "size", "depth_intensity"]


def bars_to_frame(bars: Sequence[FootprintBar]) -> pd.DataFrame:
    """
    Flatten footprint bars into one row per (bar, price level).

    Args:
        bars: Bars oldest first.

    Returns:
        DataFrame with columns:
            - identifier: str, bar index in ``bars``
            - price: float64
            - bid_size / ask_size: sell / buy initiated volume
            - delta: ask_size - bid_size
            - imbalance: bool flag from the aggregator
            - size: normalized imbalance in [-1, 1]
            - depth_intensity: book depth sample at last update
    """
    rows = []
    for idx, bar in enumerate(bars):
        for level in bar.levels:
            rows.append({
                "identifier": str(idx),
                "price": level.price,
                "bid_size": level.bid_vol,
                "ask_size": level.ask_vol,
                "delta": level.delta,
                "imbalance": level.imbalance,
                "size": imbalance_ratio(level),
                "depth_intensity": level.depth_intensity,
            })
    if not rows:
        return pd.DataFrame(columns=FOOTPRINT_COLUMNS)
    return pd.DataFrame(rows, columns=FOOTPRINT_COLUMNS)


def volume_histogram(bars: Sequence[FootprintBar]) -> pd.Series:
    """
    Total traded volume per price across bars.

    Returns:
        Series indexed by price (ascending), values = bid_size + ask_size.
    """
    df = bars_to_frame(bars)
    if df.empty:
        return pd.Series(dtype="int64")
    df["volume"] = df["bid_size"] + df["ask_size"]
    hist = df.groupby("price")["volume"].sum().sort_index()
    return hist[hist > 0]


def calc_bar_params(bars: Sequence[FootprintBar]) -> pd.DataFrame:
    """
    Compute per-bar metrics (delta, cvd, volume) for heatmap labels.

    Args:
        bars: Bars oldest first.

    Returns:
        DataFrame indexed by `identifier` with columns:
            - value: metric value normalized with tanh against the series scale
            - type: metric type ('delta', 'cvd', 'volume')
            - text: string representation of the raw metric value
    """
    if not bars:
        return pd.DataFrame(columns=["value", "type", "text"])

    index = pd.Index([str(i) for i in range(len(bars))], name="identifier")
    delta = pd.Series([b.delta for b in bars], index=index, dtype="float64")
    cvd = pd.Series([b.cvd for b in bars], index=index, dtype="float64")
    volume = pd.Series([b.volume for b in bars], index=index, dtype="float64")

    frames = []
    for name, series in (("delta", delta), ("cvd", cvd), ("volume", volume)):
        scale = series.abs().max()
        scaled = series / scale if scale else series * 0.0
        frames.append(pd.DataFrame({
            "value": np.tanh(scaled.replace([np.inf, -np.inf], 0)),
            "type": name,
            "text": series.astype("int64").astype(str),
        }, index=index))

    labels = pd.concat(frames)
    # group rows per bar, bars in numeric order
    order = np.argsort(labels.index.astype(int), kind="stable")
    return labels.iloc[order]
