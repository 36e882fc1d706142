from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from orderflow.config import SignalConfig
from orderflow.models import AuctionProfile, InstrumentState, SignalSide, SignalType, Trade


@dataclass
class SignalContext:
    """Everything a strategy may look at for one tick. Strategies must not mutate it."""
    key: str
    state: InstrumentState
    prev_price: float
    trade: Optional[Trade]
    profile: AuctionProfile
    config: SignalConfig
    now: float
    precision: int = 2

    @property
    def price(self) -> float:
        return self.state.current_price


@dataclass
class SignalCandidate:
    type: SignalType
    side: SignalSide
    message: str = ""
    stop_loss: Optional[float] = None   # structural stop; engine default otherwise


@dataclass
class RiskPlan:
    sl: float
    tp: float
    rr: float


class SignalStrategy(ABC):
    """
    Signal trigger plugin.

    Evaluates one tick and proposes at most one candidate. Ids, risk plan,
    cooldown and lifecycle belong to the engine.
    """

    signal_types: tuple = ()

    @abstractmethod
    def evaluate(self, ctx: SignalContext) -> Optional[SignalCandidate]:
        raise NotImplementedError

    @property
    def name(self) -> str:
        return type(self).__name__
