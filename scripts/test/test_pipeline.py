"""
End-to-end pipeline and state store tests.
"""
import pytest

from orderflow import (
    ConnectionStatus,
    EngineConfig,
    InstrumentStateStore,
    MarketDataPipeline,
    Side,
    StaticInstrumentCatalog,
)

NIFTY = "NSE_FO|NIFTY"
BANK = "NSE_FO|BANKNIFTY"


def _feed(ltp, vol=None, oi=None, levels=None):
    raw = {"ltp": ltp}
    if vol is not None:
        raw["cumulativeVolume"] = vol
    if oi is not None:
        raw["openInterest"] = oi
    if levels is not None:
        raw["bidAskLevels"] = levels
    return raw


def _setup(**kwargs):
    store = InstrumentStateStore(EngineConfig(**kwargs))
    pipeline = MarketDataPipeline(store)
    snaps = []
    store.subscribe(snaps.append)
    return store, pipeline, snaps


def test_first_frame_is_baseline_then_trades_accumulate():
    store, pipeline, _ = _setup()
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1000)}}, now=1.0)
    state = store.get(NIFTY)
    assert state.last_vol == 1000
    assert state.recent_trades == []

    pipeline.process_frame({"feeds": {NIFTY: _feed(100.05, vol=1040)}}, now=2.0)
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1050)}}, now=3.0)
    assert [t.size for t in state.recent_trades] == [10, 40]
    assert [t.side for t in state.recent_trades] == [Side.BID, Side.ASK]
    assert state.global_cvd == 30
    assert state.current_bar.cvd == 30
    assert not state.auction_profile.is_empty


def test_malformed_entry_skips_only_that_instrument():
    store, pipeline, _ = _setup()
    frame = {"feeds": {
        NIFTY: _feed(100.0, vol=10),
        "BAD|1": {"ltp": "n/a"},
        "BAD|2": _feed(50.0, vol="lots"),
        BANK: _feed(200.0, vol=20),
    }}
    assert pipeline.process_frame(frame, now=1.0) == 2
    assert store.get(NIFTY) is not None
    assert store.get(BANK) is not None
    assert store.get("BAD|1") is None
    assert store.get("BAD|2") is None


def test_frame_without_feeds_is_ignored():
    _, pipeline, _ = _setup()
    assert pipeline.process_frame({"type": "live_feed"}) == 0
    assert pipeline.frames_processed == 0


def test_relay_shape_is_accepted():
    store, pipeline, _ = _setup()
    relay = {"fullFeed": {"marketFF": {
        "ltpc": {"ltp": 101.5, "ltq": 75, "cp": 99.0},
        "vtt": "5000",
        "oi": 12000,
        "marketLevel": {"bidAskQuote": [
            {"bidP": 101.45, "bidQ": "300", "askP": 101.5, "askQ": "150"},
        ]},
    }}}
    pipeline.process_frame({"feeds": {NIFTY: relay}}, now=1.0)
    state = store.get(NIFTY)
    assert state.current_price == 101.5
    assert state.close_price == 99.0
    assert state.last_vol == 5000
    assert state.open_interest == 12000
    assert [lv.key for lv in state.book] == ["101.50", "101.45"]


def test_counter_regression_through_pipeline():
    store, pipeline, _ = _setup()
    for t, vol in enumerate([100, 150, 40, 90]):
        pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=vol)}}, now=float(t))
    state = store.get(NIFTY)
    assert [t.size for t in state.recent_trades] == [50, 50]
    assert state.session_volume == 100


def test_open_interest_baseline_and_deltas():
    store, pipeline, _ = _setup()
    for t, oi in enumerate([5000, 5100, 5050]):
        pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, oi=oi)}}, now=float(t))
    state = store.get(NIFTY)
    assert state.open_interest == 5050
    assert state.open_interest_delta == -50
    assert state.open_interest_change == 50


def test_one_broadcast_per_frame_with_isolated_copy():
    store, pipeline, snaps = _setup()
    assert snaps == []   # nothing to show before any state exists

    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1), BANK: _feed(200.0, vol=1)}}, now=1.0)
    assert len(snaps) == 1
    snap = snaps[0]
    assert snap.selected_instrument == NIFTY
    assert set(snap.available_instruments) == {NIFTY, BANK}

    snap.state.global_cvd = 999_999
    snap.state.recent_trades.append("junk")
    assert store.get(NIFTY).global_cvd == 0
    assert store.get(NIFTY).recent_trades == []
    with pytest.raises(AttributeError):
        snap.selected_instrument = BANK


def test_failing_subscriber_does_not_block_others():
    store, pipeline, snaps = _setup()

    def boom(_snap):
        raise RuntimeError("subscriber bug")

    store.subscribe(boom)
    late = []
    store.subscribe(late.append)
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1)}}, now=1.0)
    assert len(snaps) == 1
    assert len(late) == 1


def test_unsubscribe_stops_delivery():
    store, pipeline, snaps = _setup()
    other = []
    unsubscribe = store.subscribe(other.append)
    unsubscribe()
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1)}}, now=1.0)
    assert len(snaps) == 1
    assert other == []


def test_select_unseen_instrument_creates_it_lazily():
    store, pipeline, snaps = _setup(default_reference_price=500.0)
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0)}}, now=1.0)

    snap = store.select_instrument(BANK)
    assert snap.selected_instrument == BANK
    assert store.get(BANK).current_price == 100.0    # best guess from another instrument
    assert snaps[-1].selected_instrument == BANK

    fresh = InstrumentStateStore(EngineConfig(default_reference_price=500.0))
    assert fresh.select_instrument("X|1").state.current_price == 500.0


def test_catalog_seeds_known_instruments():
    catalog = StaticInstrumentCatalog([(NIFTY, "Nifty Fut"), (BANK, "Bank Nifty Fut")])
    store = InstrumentStateStore(catalog=catalog)
    assert store.instrument_keys == (NIFTY, BANK)
    assert store.current_key == NIFTY
    assert store.display_name(BANK) == "Bank Nifty Fut"
    assert store.display_name("OTHER|1") == "OTHER|1"
    assert store.snapshot() is None


def test_connection_status_messages():
    store, pipeline, snaps = _setup()
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0)}}, now=1.0)

    pipeline.handle_message({"type": "connection_status", "status": "CONNECTED"})
    assert store.connection_status is ConnectionStatus.CONNECTED
    assert snaps[-1].connection_status is ConnectionStatus.CONNECTED

    with pytest.raises(ValueError):
        store.set_connection_status("SLEEPY")
    # routed through the message handler it is logged, not raised
    pipeline.handle_message({"type": "connection_status", "status": "SLEEPY"})
    assert store.connection_status is ConnectionStatus.CONNECTED


def test_handle_message_routes_feeds_quotes_and_errors():
    store, pipeline, _ = _setup()
    pipeline.handle_message({"type": "initial_feed", "feeds": {NIFTY: _feed(100.0, vol=10)}})
    pipeline.handle_message({"type": "live_feed", "feeds": {NIFTY: _feed(100.1, vol=15)}})
    assert store.get(NIFTY).session_volume == 5

    pipeline.handle_message({"type": "quote_response", "data": {BANK: {"last_price": 250.5}}})
    assert store.get(BANK).current_price == 250.5

    pipeline.handle_message({"type": "error", "message": "relay down"})
    pipeline.handle_message({"type": "mystery"})
    pipeline.handle_message("not a message")


def test_process_quotes_skips_bad_prices():
    store, pipeline, _ = _setup()
    updated = pipeline.process_quotes({
        NIFTY: {"last_price": "101.25"},
        BANK: {"last_price": None},
        "X|1": {"last_price": -3},
    })
    assert updated == 1
    assert store.get(NIFTY).current_price == 101.25
    assert store.get(BANK) is None


def test_unexpected_failure_resets_only_that_instrument(monkeypatch):
    store, pipeline, _ = _setup()
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=10), BANK: _feed(200.0, vol=10)}}, now=1.0)
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.1, vol=30), BANK: _feed(200.1, vol=30)}}, now=2.0)
    assert store.get(NIFTY).session_volume == 20

    real_apply = pipeline.apply_feed

    def flaky(feed, now):
        if feed.key == NIFTY:
            raise RuntimeError("aggregation bug")
        return real_apply(feed, now)

    monkeypatch.setattr(pipeline, "apply_feed", flaky)
    assert pipeline.process_frame({"feeds": {NIFTY: _feed(100.2, vol=40), BANK: _feed(200.2, vol=40)}}, now=3.0) == 1

    assert store.get(NIFTY).session_volume == 0
    assert store.get(NIFTY).current_price == 100.2
    assert store.get(BANK).session_volume == 30


def test_reset_instrument_keeps_others():
    store, pipeline, _ = _setup()
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=10), BANK: _feed(200.0, vol=10)}}, now=1.0)
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.1, vol=20), BANK: _feed(200.1, vol=20)}}, now=2.0)

    fresh = store.reset_instrument(NIFTY)
    assert fresh.global_cvd == 0
    assert fresh.current_price == 100.1
    assert store.get(BANK).global_cvd == 10


def test_inject_and_expire_iceberg():
    store, pipeline, snaps = _setup(iceberg_lifetime_s=5.0)
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0)}}, now=1.0)

    iceberg = store.inject_iceberg(Side.BID, now=1.0)
    assert iceberg.key == "100.00"
    assert snaps[-1].state.active_icebergs[0].id == iceberg.id

    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0)}}, now=4.0)
    assert len(store.get(NIFTY).active_icebergs) == 1
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0)}}, now=6.0)
    assert store.get(NIFTY).active_icebergs == []


def test_iceberg_detected_from_refilling_bid():
    store, pipeline, _ = _setup(iceberg_min_refills=3)
    levels = [{"bidPrice": 100.0, "bidQty": 500, "askPrice": 100.05, "askQty": 100}]
    # price ticks down into 100.00 so the tick rule marks trades as bid-aggressed;
    # the up-ticks print at 100.10 where nothing rests
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.10, vol=1000, levels=levels)}}, now=1.0)
    for i in range(4):
        base = 1000 + i * 20
        pipeline.process_frame({"feeds": {NIFTY: _feed(100.10, vol=base + 5, levels=levels)}}, now=2.0 + i)
        pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=base + 15, levels=levels)}}, now=2.5 + i)

    icebergs = store.get(NIFTY).active_icebergs
    assert len(icebergs) == 1
    assert icebergs[0].side is Side.BID
    assert icebergs[0].key == "100.00"


def test_guessed_seed_price_never_leaks_into_bars_or_structure():
    store, pipeline, _ = _setup()    # default reference price 1000
    store.select_instrument("NSE_FO|X")
    assert store.get("NSE_FO|X").current_price == 1000.0

    pipeline.process_frame({"feeds": {"NSE_FO|X": _feed(24000.0, vol=100)}}, now=1.0)
    pipeline.process_frame({"feeds": {"NSE_FO|X": _feed(24001.0, vol=150)}}, now=2.0)

    state = store.get("NSE_FO|X")
    bar = state.current_bar
    assert (bar.open, bar.high, bar.low, bar.close) == (24001.0, 24001.0, 24001.0, 24001.0)
    assert state.swing_low < 24000.0 < state.swing_high
    assert state.market_trend.value == "NEUTRAL"
    assert not [s for s in state.active_signals if s.type.value.startswith("CONTEXT_ALIGNMENT")]


def test_trades_on_frames_without_depth_are_not_refills():
    store, pipeline, _ = _setup()
    levels = [{"bidPrice": 99.95, "bidQty": 100, "askPrice": 100.0, "askQty": 500}]
    pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1000, levels=levels)}}, now=1.0)
    for i in range(1, 5):
        pipeline.process_frame({"feeds": {NIFTY: _feed(100.0, vol=1000 + 10 * i)}}, now=1.0 + i)

    state = store.get(NIFTY)
    assert state.session_volume == 40
    assert state.active_icebergs == []
    assert state.iceberg_refills == {}
    assert not [s for s in state.active_signals if s.type.value == "ICEBERG_DEFENSE"]


def test_last_trade_quantity_is_kept_on_state():
    store, pipeline, _ = _setup()
    pipeline.process_frame({"feeds": {NIFTY: {"ltp": 100.0, "lastTradeQty": "75"}}}, now=1.0)
    assert store.get(NIFTY).last_trade_qty == 75
