from __future__ import annotations

import time
from typing import Any, Mapping, Optional

from logger import get_logger
from orderflow.models import InstrumentFeed, InstrumentState, Trade
from orderflow.processing import (
    FeedFormatError,
    apply_trade,
    apply_trade_flow,
    build_book,
    build_profile,
    detect_iceberg,
    expire_icebergs,
    infer_trade,
    normalize_feed,
    snapshot_depth,
    update_open_interest,
    update_structure,
)
from orderflow.signals import SignalEngine
from orderflow.state import InstrumentStateStore

logger = get_logger("orderflow.pipeline")


class MarketDataPipeline:
    """
    Feed frame -> per-instrument analytics.

    Responsibilities:
    - Normalize each instrument entry of a frame
    - Rebuild the book, infer trades, update footprint / CVD / OI / profile
    - Run the signal engine
    - Broadcast one consolidated snapshot per frame

    Notes:
    - A malformed entry skips that instrument only; the rest of the frame goes on.
    - Any other failure while updating an instrument resets that instrument's state.
    """

    def __init__(self, store: InstrumentStateStore, signal_engine: Optional[SignalEngine] = None):
        self.store = store
        self.config = store.config
        self.signal_engine = signal_engine or SignalEngine(self.config.signals)
        self.frames_processed = 0

    # -------------------------
    # Frame processing
    # -------------------------
    def process_frame(self, frame: Mapping[str, Any], now: Optional[float] = None) -> int:
        """
        Apply one feed frame.

        Args:
            frame: ``{"feeds": {instrument_key: payload, ...}}``.
            now: Frame time in epoch seconds, defaults to wall clock.

        Returns:
            Number of instruments updated.
        """
        feeds = frame.get("feeds") if isinstance(frame, Mapping) else None
        if not isinstance(feeds, Mapping):
            logger.warning("Frame without a feeds mapping ignored")
            return 0

        now = time.time() if now is None else now
        updated = 0
        with self.store.lock:
            for key, raw in feeds.items():
                try:
                    feed = normalize_feed(key, raw)
                except FeedFormatError as e:
                    logger.warning(f"Skipping malformed feed: {e}")
                    continue
                try:
                    self.apply_feed(feed, now)
                    updated += 1
                except Exception as e:
                    logger.exception(f"Failed to update {key}: {e}")
                    self.store.reset_instrument(key, feed.ltp)
            self.frames_processed += 1

        self.store.broadcast()
        return updated

    def apply_feed(self, feed: InstrumentFeed, now: float) -> Optional[Trade]:
        """Run the aggregation steps for one instrument. Caller holds the store lock."""
        cfg = self.config
        fp = cfg.footprint
        state = self.store.get_or_create(feed.key, reference_price=feed.ltp, now=now)

        if not state.price_observed:
            state.reseed(feed.ltp)
            state.price_observed = True
        prev_price = state.current_price
        state.current_price = feed.ltp
        if feed.close_price is not None:
            state.close_price = feed.close_price
        if feed.last_trade_qty is not None:
            state.last_trade_qty = feed.last_trade_qty

        book_before = state.book
        if feed.quotes is not None:
            state.book = build_book(feed.quotes, fp.max_book_orders, fp.price_precision)

        if feed.open_interest is not None:
            update_open_interest(state, feed.open_interest)

        trade = None
        if feed.cumulative_volume is not None:
            trade, state.last_vol = infer_trade(
                state.last_vol, feed.cumulative_volume, prev_price, feed.ltp,
                timestamp=now, key=feed.key,
            )

        if trade is not None:
            self._apply_trade(state, trade, book_before)
        elif feed.quotes is not None and state.book:
            snapshot_depth(state.current_bar, state.book)

        expire_icebergs(state, now, cfg.iceberg_lifetime_s)
        update_structure(state, cfg.signals.swing_lookback)
        self.signal_engine.on_tick(
            feed.key, state, prev_price, trade, state.auction_profile, now,
            precision=fp.price_precision,
        )
        return trade

    def _apply_trade(self, state: InstrumentState, trade: Trade, book_before) -> None:
        cfg = self.config
        fp = cfg.footprint
        state.recent_trades.insert(0, trade)
        del state.recent_trades[fp.max_recent_trades:]

        apply_trade_flow(state, trade)
        apply_trade(state, trade, fp)
        detect_iceberg(
            state, trade, book_before,
            min_refills=cfg.iceberg_min_refills, precision=fp.price_precision,
        )
        state.auction_profile = build_profile(state.all_bars(), cfg.value_area_pct)

    # -------------------------
    # Other relay messages
    # -------------------------
    def process_quotes(self, data: Mapping[str, Mapping[str, Any]]) -> int:
        """Apply ``{key: {"last_price": p}}`` quote responses (price only) and broadcast."""
        if not isinstance(data, Mapping):
            return 0
        updated = 0
        with self.store.lock:
            for key, quote in data.items():
                price = quote.get("last_price") if isinstance(quote, Mapping) else None
                try:
                    price = float(price)
                except (TypeError, ValueError):
                    continue
                if price <= 0:
                    continue
                state = self.store.get_or_create(key, reference_price=price)
                if not state.price_observed:
                    state.reseed(price)
                    state.price_observed = True
                state.current_price = price
                updated += 1
        self.store.broadcast()
        return updated

    def handle_message(self, msg: Mapping[str, Any]) -> None:
        """
        Route one relay message by its ``type``.

        Handled types: connection_status, live_feed, initial_feed,
        quote_response, error. Never raises.
        """
        if not isinstance(msg, Mapping):
            logger.warning(f"Ignoring non-mapping message: {type(msg).__name__}")
            return
        kind = msg.get("type")
        try:
            if kind == "connection_status":
                self.store.set_connection_status(msg.get("status"))
            elif kind in ("live_feed", "initial_feed"):
                self.process_frame(msg)
            elif kind == "quote_response":
                self.process_quotes(msg.get("data") or {})
            elif kind == "error":
                logger.error(f"Relay error: {msg.get('message')}")
            else:
                logger.debug(f"Unhandled message type {kind!r}")
        except Exception as e:
            logger.error(f"Failed to handle {kind!r} message: {e}")
