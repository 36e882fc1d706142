from __future__ import annotations

import copy
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from logger import get_logger
from orderflow.catalog import InstrumentCatalog, StaticInstrumentCatalog
from orderflow.config import EngineConfig
from orderflow.models import (
    ActiveIceberg,
    ConnectionStatus,
    InstrumentState,
    MarketSnapshot,
    Side,
    price_key,
)
from orderflow.processing.trades import new_id

logger = get_logger("orderflow.state")

Subscriber = Callable[[MarketSnapshot], None]


class InstrumentStateStore:
    """
    In-memory, session-scoped state for every tracked instrument.

    Designed for:
    - one writer (the feed pipeline) holding ``lock`` for a whole frame
    - many read-only subscribers receiving deep-copied snapshots
    - per-instrument recovery: one instrument's state can be dropped and
      recreated without touching the others
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        catalog: Optional[InstrumentCatalog] = None,
    ):
        self.config = config or EngineConfig()
        self.catalog = catalog or StaticInstrumentCatalog()

        # Thread safety: protect per-instrument state and the subscriber list
        self.lock = threading.RLock()

        self._states: Dict[str, InstrumentState] = {}
        self._known: List[str] = []
        self._names: Dict[str, str] = {}
        self._subscribers: List[Subscriber] = []

        for key in self.catalog.list_known_instruments():
            self.add_instrument(key)

        self.current_key: Optional[str] = self._known[0] if self._known else None
        self.connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED

    # ------------- instrument registry -------------
    @property
    def instrument_keys(self) -> Tuple[str, ...]:
        with self.lock:
            return tuple(self._known)

    def display_name(self, key: str) -> str:
        with self.lock:
            return self._names.get(key) or self.catalog.resolve_display_name(key)

    def add_instrument(self, key: str, name: Optional[str] = None) -> bool:
        """Register a key in the known universe. Returns False if it was already known."""
        with self.lock:
            if key in self._names:
                if name:
                    self._names[key] = name
                return False
            self._known.append(key)
            self._names[key] = name or self.catalog.resolve_display_name(key)
            return True

    def add_instruments(self, pairs: Iterable[Tuple[str, str]]) -> int:
        with self.lock:
            return sum(1 for key, name in pairs if self.add_instrument(key, name))

    # ------------- per-instrument state -------------
    def get(self, key: str) -> Optional[InstrumentState]:
        with self.lock:
            return self._states.get(key)

    def _best_guess_price(self) -> float:
        for st in self._states.values():
            if st.current_price > 0:
                return st.current_price
        return self.config.default_reference_price

    def get_or_create(
        self,
        key: str,
        reference_price: Optional[float] = None,
        now: Optional[float] = None,
    ) -> InstrumentState:
        """Return the state for ``key``, creating it lazily for unseen instruments."""
        with self.lock:
            state = self._states.get(key)
            if state is None:
                price = reference_price if reference_price and reference_price > 0 else self._best_guess_price()
                state = InstrumentState.create(price, timestamp=now)
                self._states[key] = state
                self.add_instrument(key)
                logger.debug(f"Created state for {key} @ {price}")
            return state

    def reset_instrument(self, key: str, reference_price: Optional[float] = None) -> InstrumentState:
        """Discard an instrument's state and start it fresh; other instruments are untouched."""
        with self.lock:
            old = self._states.pop(key, None)
            if reference_price is None and old is not None and old.current_price > 0:
                reference_price = old.current_price
            logger.warning(f"Resetting state for {key}")
            return self.get_or_create(key, reference_price)

    # ------------- selection / status -------------
    def select_instrument(self, key: str, reference_price: Optional[float] = None) -> Optional[MarketSnapshot]:
        """Make ``key`` the current instrument (creating it if unseen) and broadcast."""
        with self.lock:
            self.get_or_create(key, reference_price)
            self.current_key = key
        return self.broadcast()

    def set_connection_status(self, status: Union[ConnectionStatus, str]) -> Optional[MarketSnapshot]:
        try:
            status = ConnectionStatus(status)
        except ValueError as e:
            raise ValueError(f"Unknown connection status: {status!r}") from e
        with self.lock:
            if status is not self.connection_status:
                logger.info(f"Connection status {self.connection_status.value} -> {status.value}")
            self.connection_status = status
        return self.broadcast()

    def inject_iceberg(self, side: Side, now: Optional[float] = None) -> Optional[ActiveIceberg]:
        """Place a manual iceberg marker at the selected instrument's current price."""
        now = time.time() if now is None else now
        with self.lock:
            state = self._states.get(self.current_key) if self.current_key else None
            if state is None:
                return None
            precision = self.config.footprint.price_precision
            iceberg = ActiveIceberg(
                id=new_id(),
                price=state.current_price,
                key=price_key(state.current_price, precision),
                side=Side(side),
                detected_at=now,
                last_update=now,
            )
            state.active_icebergs.append(iceberg)
        self.broadcast()
        return iceberg

    # ------------- subscribe / broadcast -------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a snapshot callback; returns the matching unsubscribe function."""
        with self.lock:
            self._subscribers.append(callback)
        self.broadcast()

        def unsubscribe() -> None:
            with self.lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def snapshot(self) -> Optional[MarketSnapshot]:
        """
        Build a consolidated snapshot of the selected instrument.

        Falls back to the first known instrument with state when the selected
        one has none. Returns None when no instrument has state yet.
        """
        with self.lock:
            key = self.current_key
            if key not in self._states:
                key = next((k for k in self._known if k in self._states), None)
                if key is None:
                    return None
                self.current_key = key

            return MarketSnapshot(
                selected_instrument=key,
                state=copy.deepcopy(self._states[key]),
                available_instruments=tuple(self._known),
                instrument_names=dict(self._names),
                connection_status=self.connection_status,
                ts=time.time(),
            )

    def broadcast(self) -> Optional[MarketSnapshot]:
        """Deliver one snapshot to every subscriber. A failing callback does not stop the others."""
        snap = self.snapshot()
        if snap is None:
            return None
        with self.lock:
            subscribers = list(self._subscribers)
        for cb in subscribers:
            try:
                cb(snap)
            except Exception as e:
                logger.error(f"Subscriber {cb!r} failed: {e}")
        return snap
