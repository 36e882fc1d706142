"""Market structure: swing levels and trend classification."""
from orderflow.models import InstrumentState, MarketTrend


def update_structure(state: InstrumentState, lookback: int = 5) -> MarketTrend:
    """
    Refresh swing high/low from the last ``lookback`` closed bars.

    Until a bar has closed the seeded swing band is kept. The trend flips
    only when price leaves the band; inside it the previous trend stands.

    Returns:
        The (possibly updated) market trend.
    """
    recent = state.footprint_bars[-lookback:]
    if recent:
        high_bar = max(recent, key=lambda b: b.high)
        low_bar = min(recent, key=lambda b: b.low)
        state.swing_high, state.swing_high_cvd = high_bar.high, high_bar.cvd
        state.swing_low, state.swing_low_cvd = low_bar.low, low_bar.cvd

    if state.current_price > state.swing_high:
        state.market_trend = MarketTrend.BULLISH
    elif state.current_price < state.swing_low:
        state.market_trend = MarketTrend.BEARISH
    return state.market_trend
