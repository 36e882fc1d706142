"""Cumulative volume delta and open interest tracking."""
from orderflow.models import InstrumentState, Trade


def apply_trade_flow(state: InstrumentState, trade: Trade) -> int:
    """
    Add one inferred trade to the running session counters.

    CVD is never reset during the session; bar rotation does not touch it.

    Returns:
        The new global CVD.
    """
    state.global_cvd += trade.signed_size
    state.session_volume += trade.size
    state.session_notional += trade.price * trade.size
    if state.session_volume > 0:
        state.vwap = state.session_notional / state.session_volume
    return state.global_cvd


def update_open_interest(state: InstrumentState, open_interest: float) -> float:
    """
    Apply an absolute open-interest reading.

    The first reading only sets the baseline. Later readings update the
    last-tick delta and the session-cumulative change.

    Returns:
        The last-tick delta.
    """
    if state.open_interest == 0:
        state.open_interest = open_interest
        state.open_interest_delta = 0
        return 0

    delta = open_interest - state.open_interest
    state.open_interest_delta = delta
    state.open_interest_change += delta
    state.open_interest = open_interest
    return delta
