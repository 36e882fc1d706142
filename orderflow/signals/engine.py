from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from logger import get_logger
from orderflow.config import SignalConfig
from orderflow.models import (
    AuctionProfile,
    InstrumentState,
    SignalSide,
    SignalStatus,
    Trade,
    TradeSignal,
)
from orderflow.processing.trades import new_id

from .base import RiskPlan, SignalCandidate, SignalContext, SignalStrategy
from .strategies import default_strategies

logger = get_logger("orderflow.signals")


def pnl_ticks(side: SignalSide, entry: float, price: float, tick_size: float) -> float:
    """Signed PnL in ticks; positive when price moved in the signal's favour."""
    return round(side.sign * (price - entry) / tick_size, 4)


class SignalEngine:
    """
    Generates trade signals from strategy plugins and simulates their outcome.

    Lifecycle per signal: OPEN -> WIN | LOSS | EXPIRED, resolved on the first
    tick whose price touches take-profit or stop-loss, or once ``expiry_s``
    has elapsed.
    """

    def __init__(
        self,
        config: Optional[SignalConfig] = None,
        strategies: Optional[Iterable[SignalStrategy]] = None,
    ):
        self.config = config or SignalConfig()
        candidates = list(strategies) if strategies is not None else default_strategies()
        if self.config.enabled:
            candidates = [
                s for s in candidates
                if any(t.value in self.config.enabled for t in s.signal_types)
            ]
        self.strategies: List[SignalStrategy] = candidates

    # -------------------------
    # Risk
    # -------------------------
    def risk_plan(self, side: SignalSide, entry: float, stop: Optional[float] = None) -> RiskPlan:
        """Stop-loss / take-profit for an entry. A structural stop on the wrong side is ignored."""
        default_dist = self.config.stop_ticks * self.config.tick_size
        if stop is not None and (stop - entry) * side.sign < 0:
            dist = abs(entry - stop)
        else:
            dist = default_dist
        rr = self.config.risk_reward
        return RiskPlan(
            sl=entry - side.sign * dist,
            tp=entry + side.sign * dist * rr,
            rr=rr,
        )

    # -------------------------
    # Resolution
    # -------------------------
    def _resolution(self, sig: TradeSignal, price: float, now: float) -> Optional[SignalStatus]:
        if sig.side is SignalSide.BULLISH:
            if price >= sig.take_profit:
                return SignalStatus.WIN
            if price <= sig.stop_loss:
                return SignalStatus.LOSS
        else:
            if price <= sig.take_profit:
                return SignalStatus.WIN
            if price >= sig.stop_loss:
                return SignalStatus.LOSS
        if self.config.expiry_s is not None and now - sig.entry_time >= self.config.expiry_s:
            return SignalStatus.EXPIRED
        return None

    def resolve(self, state: InstrumentState, now: float) -> List[TradeSignal]:
        """
        Check every open signal against the current price, oldest entry first.

        Returns:
            Signals closed on this tick (already moved to history).
        """
        price = state.current_price
        tick = self.config.tick_size
        still_open: List[TradeSignal] = []
        closed: List[TradeSignal] = []

        for sig in state.active_signals:
            status = self._resolution(sig, price, now)
            sig.pnl_ticks = pnl_ticks(sig.side, sig.entry_price, price, tick)
            if status is None:
                still_open.append(sig)
                continue
            sig.status = status
            sig.exit_price = price
            sig.exit_time = now
            closed.append(sig)
            logger.info(f"Signal {sig.type.value} {sig.side.value} @ {sig.entry_price:.2f} -> "
                        f"{status.value} {sig.pnl_ticks:+.1f} ticks")

        state.active_signals = still_open
        if closed:
            state.signal_history = list(reversed(closed)) + state.signal_history
            del state.signal_history[self.config.history_limit:]
        return closed

    # -------------------------
    # Generation
    # -------------------------
    def _in_cooldown(self, state: InstrumentState, cand: SignalCandidate, now: float) -> bool:
        horizon = now - self.config.cooldown_s
        for sig in (*state.active_signals, *state.signal_history):
            if sig.type is cand.type and sig.side is cand.side and sig.entry_time > horizon:
                return True
        return False

    def open_signal(self, state: InstrumentState, cand: SignalCandidate, now: float) -> TradeSignal:
        entry = state.current_price
        plan = self.risk_plan(cand.side, entry, cand.stop_loss)
        sig = TradeSignal(
            id=new_id(),
            type=cand.type,
            side=cand.side,
            entry_price=entry,
            stop_loss=plan.sl,
            take_profit=plan.tp,
            risk_reward=plan.rr,
            entry_time=now,
            message=cand.message,
        )
        state.active_signals.append(sig)
        return sig

    def generate(self, ctx: SignalContext) -> List[TradeSignal]:
        opened: List[TradeSignal] = []
        state = ctx.state
        for strategy in self.strategies:
            if len(state.active_signals) >= self.config.max_active:
                break
            cand = strategy.evaluate(ctx)
            if cand is None:
                continue
            if self.config.enabled and cand.type.value not in self.config.enabled:
                continue
            if self._in_cooldown(state, cand, ctx.now):
                continue
            sig = self.open_signal(state, cand, ctx.now)
            opened.append(sig)
            logger.info(f"[{ctx.key}] {sig.type.value} {sig.side.value} @ {sig.entry_price:.2f} "
                        f"SL {sig.stop_loss:.2f} TP {sig.take_profit:.2f}: {sig.message}")
        return opened

    def on_tick(
        self,
        key: str,
        state: InstrumentState,
        prev_price: float,
        trade: Optional[Trade],
        profile: AuctionProfile,
        now: float,
        precision: int = 2,
    ) -> List[TradeSignal]:
        """Resolve open signals, then evaluate strategies. Returns newly opened signals."""
        self.resolve(state, now)
        ctx = SignalContext(
            key=key,
            state=state,
            prev_price=prev_price,
            trade=trade,
            profile=profile,
            config=self.config,
            now=now,
            precision=precision,
        )
        return self.generate(ctx)


def summarize_performance(history: Sequence[TradeSignal]) -> Dict[str, float]:
    """Closed-signal statistics: counts, win rate (percent) and total PnL in ticks."""
    total = len(history)
    wins = sum(1 for s in history if s.status is SignalStatus.WIN)
    losses = sum(1 for s in history if s.status is SignalStatus.LOSS)
    expired = sum(1 for s in history if s.status is SignalStatus.EXPIRED)
    return {
        "closed": total,
        "wins": wins,
        "losses": losses,
        "expired": expired,
        "win_rate": (wins / total) * 100 if total else 0.0,
        "total_pnl_ticks": round(sum(s.pnl_ticks for s in history), 4),
    }
