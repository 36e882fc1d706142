"""Data structure definitions (dataclasses)."""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Side(str, Enum):
    """Aggressor / book side."""
    BID = "BID"
    ASK = "ASK"


class SignalSide(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"

    @property
    def sign(self) -> int:
        return 1 if self is SignalSide.BULLISH else -1


class SignalType(str, Enum):
    """Closed set of signal kinds."""
    ICEBERG_DEFENSE = "ICEBERG_DEFENSE"
    ABSORPTION = "ABSORPTION"
    MOMENTUM_BREAKOUT = "MOMENTUM_BREAKOUT"
    LIQUIDITY_SKEW = "LIQUIDITY_SKEW"
    VAH_REJECTION = "VAH_REJECTION"
    VAL_REJECTION = "VAL_REJECTION"
    CVD_DIVERGENCE = "CVD_DIVERGENCE"
    STRUCTURE_BREAK_BULL = "STRUCTURE_BREAK_BULL"
    STRUCTURE_BREAK_BEAR = "STRUCTURE_BREAK_BEAR"
    CONTEXT_ALIGNMENT_LONG = "CONTEXT_ALIGNMENT_LONG"
    CONTEXT_ALIGNMENT_SHORT = "CONTEXT_ALIGNMENT_SHORT"


class SignalStatus(str, Enum):
    OPEN = "OPEN"
    WIN = "WIN"
    LOSS = "LOSS"
    EXPIRED = "EXPIRED"


class ConnectionStatus(str, Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"


class MarketTrend(str, Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"


def price_key(price: float, precision: int = 2) -> str:
    """Canonical fixed-precision key for a price; never compare raw floats for level identity."""
    return f"{price:.{precision}f}"


# ---------------------------------------------------------------------------
# Inbound feed (normalized)
# ---------------------------------------------------------------------------
@dataclass
class Quote:
    """One depth rung: bid and ask side of the same index."""
    bid_price: float
    bid_qty: int
    ask_price: float
    ask_qty: int


@dataclass
class InstrumentFeed:
    """Normalized per-instrument snapshot from a feed frame."""
    key: str
    ltp: float
    last_trade_qty: Optional[int] = None
    close_price: Optional[float] = None
    quotes: Optional[List[Quote]] = None       # None: frame carried no depth
    cumulative_volume: Optional[int] = None    # None: feed has no volume counter
    open_interest: Optional[float] = None


# ---------------------------------------------------------------------------
# Book
# ---------------------------------------------------------------------------
@dataclass
class BookOrder:
    """Synthetic display order; the feed carries no order identities."""
    id: str
    price: float
    size: int
    priority: int


@dataclass
class PriceLevel:
    price: float
    key: str
    bids: List[BookOrder] = field(default_factory=list)
    asks: List[BookOrder] = field(default_factory=list)
    total_bid_size: int = 0
    total_ask_size: int = 0

    @property
    def total_size(self) -> int:
        return self.total_bid_size + self.total_ask_size


# ---------------------------------------------------------------------------
# Trades and footprint
# ---------------------------------------------------------------------------
@dataclass
class Trade:
    """
    Inferred trade.

    The side is a tick-rule guess (price up or unchanged = ask-aggressed),
    not a real tape print.
    """
    id: str
    price: float
    size: int
    side: Side
    timestamp: float

    @property
    def signed_size(self) -> int:
        return self.size if self.side is Side.ASK else -self.size


@dataclass
class FootprintLevel:
    price: float
    key: str
    bid_vol: int = 0    # sell-initiated
    ask_vol: int = 0    # buy-initiated
    delta: int = 0
    imbalance: bool = False
    depth_intensity: float = 0.0

    @property
    def volume(self) -> int:
        return self.bid_vol + self.ask_vol


@dataclass
class FootprintBar:
    timestamp: float
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    delta: int = 0
    cvd: int = 0
    levels: List[FootprintLevel] = field(default_factory=list)   # descending by price
    depth_snapshot: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def opened_at(cls, price: float, cvd: int = 0, timestamp: Optional[float] = None) -> "FootprintBar":
        return cls(
            timestamp=time.time() if timestamp is None else timestamp,
            open=price, high=price, low=price, close=price, cvd=cvd,
        )

    def level_at(self, key: str) -> Optional[FootprintLevel]:
        for level in self.levels:
            if level.key == key:
                return level
        return None


@dataclass
class AuctionProfile:
    """Point of control and value area; all None when there is no volume."""
    poc: Optional[float] = None
    vah: Optional[float] = None
    val: Optional[float] = None
    total_volume: int = 0
    value_area_volume: int = 0

    @property
    def is_empty(self) -> bool:
        return self.poc is None


@dataclass
class ActiveIceberg:
    id: str
    price: float
    key: str
    side: Side          # passive side that keeps reloading
    detected_at: float
    last_update: float
    total_filled: int = 0
    status: str = "ACTIVE"


@dataclass
class TradeSignal:
    id: str
    type: SignalType
    side: SignalSide
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    entry_time: float
    message: str = ""
    status: SignalStatus = SignalStatus.OPEN
    pnl_ticks: float = 0.0
    exit_price: Optional[float] = None
    exit_time: Optional[float] = None


# ---------------------------------------------------------------------------
# Per-instrument state
# ---------------------------------------------------------------------------
@dataclass
class InstrumentState:
    current_price: float
    current_bar: FootprintBar
    book: List[PriceLevel] = field(default_factory=list)
    recent_trades: List[Trade] = field(default_factory=list)     # newest first
    footprint_bars: List[FootprintBar] = field(default_factory=list)  # closed bars, oldest first
    auction_profile: AuctionProfile = field(default_factory=AuctionProfile)

    global_cvd: int = 0
    last_vol: int = 0
    session_volume: int = 0
    session_notional: float = 0.0
    vwap: float = 0.0
    close_price: Optional[float] = None

    open_interest: float = 0.0
    open_interest_change: float = 0.0
    open_interest_delta: float = 0.0

    swing_high: float = 0.0
    swing_low: float = 0.0
    swing_high_cvd: int = 0
    swing_low_cvd: int = 0
    market_trend: MarketTrend = MarketTrend.NEUTRAL

    active_signals: List[TradeSignal] = field(default_factory=list)
    signal_history: List[TradeSignal] = field(default_factory=list)   # newest first
    active_icebergs: List[ActiveIceberg] = field(default_factory=list)
    # "<side>:<price key>" -> (consecutive refills, time of last refill)
    iceberg_refills: Dict[str, Tuple[int, float]] = field(default_factory=dict)

    last_trade_qty: Optional[int] = None
    price_observed: bool = False    # False while prices are seeded from a guess

    @classmethod
    def create(cls, price: float, timestamp: Optional[float] = None) -> "InstrumentState":
        state = cls(current_price=price, current_bar=FootprintBar.opened_at(price, timestamp=timestamp))
        state.reseed(price)
        return state

    def reseed(self, price: float) -> None:
        """
        Re-anchor price-derived seeds on ``price``.

        Used when the first real price arrives for a state created from a
        guessed reference. An untraded bar is reopened at ``price``; the
        swing band and VWAP are reset only while nothing has traded.
        """
        self.current_price = price
        bar = self.current_bar
        if bar.volume == 0 and not bar.levels:
            bar.open = bar.high = bar.low = bar.close = price
        if self.session_volume == 0:
            self.vwap = price
        if not self.footprint_bars:
            self.swing_high = price * 1.002
            self.swing_low = price * 0.998

    def all_bars(self) -> List[FootprintBar]:
        return [*self.footprint_bars, self.current_bar]


@dataclass(frozen=True)
class MarketSnapshot:
    """Consolidated view delivered to subscribers. Holds private copies only."""
    selected_instrument: str
    state: InstrumentState
    available_instruments: tuple
    instrument_names: Dict[str, str]
    connection_status: ConnectionStatus
    ts: float
