"""Built-in signal trigger strategies."""
from __future__ import annotations

from typing import List, Optional

from orderflow.models import MarketTrend, Side, SignalSide, SignalType, price_key
from orderflow.processing.book import book_totals, find_level
from orderflow.processing.icebergs import find_iceberg
from orderflow.processing.imbalance import dominant_side

from .base import SignalCandidate, SignalContext, SignalStrategy


class CvdDivergence(SignalStrategy):
    """Price takes out a swing extreme but CVD does not follow."""

    signal_types = (SignalType.CVD_DIVERGENCE,)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        s = ctx.state
        if ctx.trade is None:
            return None
        if ctx.prev_price <= s.swing_high < ctx.price and s.global_cvd <= s.swing_high_cvd:
            return SignalCandidate(
                SignalType.CVD_DIVERGENCE, SignalSide.BEARISH,
                f"New high {ctx.price:.2f} without CVD confirmation ({s.global_cvd} <= {s.swing_high_cvd})",
            )
        if ctx.prev_price >= s.swing_low > ctx.price and s.global_cvd >= s.swing_low_cvd:
            return SignalCandidate(
                SignalType.CVD_DIVERGENCE, SignalSide.BULLISH,
                f"New low {ctx.price:.2f} without CVD confirmation ({s.global_cvd} >= {s.swing_low_cvd})",
            )
        return None


class StructureBreak(SignalStrategy):
    """Swing extreme taken out with CVD confirming the move."""

    signal_types = (SignalType.STRUCTURE_BREAK_BULL, SignalType.STRUCTURE_BREAK_BEAR)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        s = ctx.state
        if ctx.trade is None:
            return None
        if ctx.prev_price <= s.swing_high < ctx.price and s.global_cvd > s.swing_high_cvd:
            return SignalCandidate(
                SignalType.STRUCTURE_BREAK_BULL, SignalSide.BULLISH,
                f"Break above swing high {s.swing_high:.2f}",
                stop_loss=s.swing_low,
            )
        if ctx.prev_price >= s.swing_low > ctx.price and s.global_cvd < s.swing_low_cvd:
            return SignalCandidate(
                SignalType.STRUCTURE_BREAK_BEAR, SignalSide.BEARISH,
                f"Break below swing low {s.swing_low:.2f}",
                stop_loss=s.swing_high,
            )
        return None


class IcebergDefense(SignalStrategy):
    """Aggressor keeps hitting a price where a reloading passive order sits."""

    signal_types = (SignalType.ICEBERG_DEFENSE,)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        trade = ctx.trade
        if trade is None:
            return None
        key = price_key(trade.price, ctx.precision)
        iceberg = find_iceberg(ctx.state, key, trade.side)
        if iceberg is None:
            return None
        side = SignalSide.BULLISH if iceberg.side is Side.BID else SignalSide.BEARISH
        return SignalCandidate(
            SignalType.ICEBERG_DEFENSE, side,
            f"{iceberg.side.value} iceberg defending {key} ({iceberg.total_filled} filled)",
        )


class Absorption(SignalStrategy):
    """Heavy one-sided aggression at a level while the passive side still rests there."""

    signal_types = (SignalType.ABSORPTION,)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        trade = ctx.trade
        if trade is None:
            return None
        key = price_key(trade.price, ctx.precision)
        level = ctx.state.current_bar.level_at(key)
        if level is None:
            return None
        aggressor = dominant_side(level)
        if aggressor is None:
            return None
        volume = level.bid_vol if aggressor is Side.BID else level.ask_vol
        if volume < ctx.config.imbalance_min_volume:
            return None

        book_level = find_level(ctx.state.book, key)
        if book_level is None:
            return None
        resting = book_level.total_bid_size if aggressor is Side.BID else book_level.total_ask_size
        if resting <= 0:
            return None

        side = SignalSide.BULLISH if aggressor is Side.BID else SignalSide.BEARISH
        return SignalCandidate(
            SignalType.ABSORPTION, side,
            f"{volume} {aggressor.value}-aggressed absorbed at {key}, {resting} still resting",
        )


class MomentumBreakout(SignalStrategy):
    """Delta-dominated bar pushing past the previous bar's extreme."""

    signal_types = (SignalType.MOMENTUM_BREAKOUT,)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        s = ctx.state
        bar = s.current_bar
        if ctx.trade is None or not s.footprint_bars or bar.volume < ctx.config.momentum_min_volume:
            return None
        prev_bar = s.footprint_bars[-1]
        ratio = bar.delta / bar.volume
        if ratio >= ctx.config.momentum_delta_ratio and ctx.price >= bar.high and ctx.price > prev_bar.high:
            return SignalCandidate(
                SignalType.MOMENTUM_BREAKOUT, SignalSide.BULLISH,
                f"Delta {ratio:.0%} of volume, through {prev_bar.high:.2f}",
                stop_loss=bar.low if bar.low < ctx.price else None,
            )
        if -ratio >= ctx.config.momentum_delta_ratio and ctx.price <= bar.low and ctx.price < prev_bar.low:
            return SignalCandidate(
                SignalType.MOMENTUM_BREAKOUT, SignalSide.BEARISH,
                f"Delta {ratio:.0%} of volume, through {prev_bar.low:.2f}",
                stop_loss=bar.high if bar.high > ctx.price else None,
            )
        return None


class LiquiditySkew(SignalStrategy):
    """Resting depth heavily stacked on one side of the book."""

    signal_types = (SignalType.LIQUIDITY_SKEW,)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        bids, asks = book_totals(ctx.state.book)
        if bids + asks < ctx.config.skew_min_size:
            return None
        ratio = ctx.config.skew_ratio
        if bids > 0 and bids >= asks * ratio:
            return SignalCandidate(SignalType.LIQUIDITY_SKEW, SignalSide.BULLISH, f"Bid depth {bids} vs ask {asks}")
        if asks > 0 and asks >= bids * ratio:
            return SignalCandidate(SignalType.LIQUIDITY_SKEW, SignalSide.BEARISH, f"Ask depth {asks} vs bid {bids}")
        return None


class ValueAreaRejection(SignalStrategy):
    """Price leaves the value area and is pushed back inside."""

    signal_types = (SignalType.VAH_REJECTION, SignalType.VAL_REJECTION)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        p = ctx.profile
        if p.is_empty or p.vah <= p.val:
            return None
        if ctx.prev_price > p.vah >= ctx.price:
            return SignalCandidate(
                SignalType.VAH_REJECTION, SignalSide.BEARISH,
                f"Rejected back below VAH {p.vah:.2f}",
            )
        if ctx.prev_price < p.val <= ctx.price:
            return SignalCandidate(
                SignalType.VAL_REJECTION, SignalSide.BULLISH,
                f"Rejected back above VAL {p.val:.2f}",
            )
        return None


class ContextAlignment(SignalStrategy):
    """VWAP reclaim in the direction of the prevailing structure, flow agreeing."""

    signal_types = (SignalType.CONTEXT_ALIGNMENT_LONG, SignalType.CONTEXT_ALIGNMENT_SHORT)

    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        s = ctx.state
        if ctx.trade is None:
            return None
        vwap = s.vwap
        bar_delta = s.current_bar.delta
        if (s.market_trend is MarketTrend.BULLISH and ctx.prev_price < vwap <= ctx.price
                and bar_delta > 0 and s.global_cvd > 0):
            return SignalCandidate(
                SignalType.CONTEXT_ALIGNMENT_LONG, SignalSide.BULLISH,
                f"VWAP {vwap:.2f} reclaimed in uptrend",
            )
        if (s.market_trend is MarketTrend.BEARISH and ctx.prev_price > vwap >= ctx.price
                and bar_delta < 0 and s.global_cvd < 0):
            return SignalCandidate(
                SignalType.CONTEXT_ALIGNMENT_SHORT, SignalSide.BEARISH,
                f"VWAP {vwap:.2f} lost in downtrend",
            )
        return None


def default_strategies() -> List[SignalStrategy]:
    return [
        CvdDivergence(),
        StructureBreak(),
        IcebergDefense(),
        Absorption(),
        MomentumBreakout(),
        LiquiditySkew(),
        ValueAreaRejection(),
        ContextAlignment(),
    ]
