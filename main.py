import argparse
from pprint import pprint

from logger import set_level
from orderflow import EngineConfig, InstrumentStateStore, MarketDataPipeline
from orderflow.datasource import load_frames, replay_frames
from orderflow.signals import summarize_performance


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Replay recorded feed frames through the order-flow engine.")
    p.add_argument("frames", help="JSON array or JSON Lines file of feed frames")
    p.add_argument("--instrument", help="instrument key to summarize (default: first seen)")
    p.add_argument("--env-file", default=".env", help="dotenv file with ORDERFLOW_* overrides")
    p.add_argument("--no-progress", action="store_true", help="disable the progress bar")
    return p


def summarize(store: InstrumentStateStore) -> dict:
    snap = store.snapshot()
    if snap is None:
        return {"instrument": None}
    st = snap.state
    profile = st.auction_profile
    return {
        "instrument": snap.selected_instrument,
        "name": snap.instrument_names.get(snap.selected_instrument),
        "price": st.current_price,
        "last_trade_qty": st.last_trade_qty,
        "closed_bars": len(st.footprint_bars),
        "current_bar_volume": st.current_bar.volume,
        "global_cvd": st.global_cvd,
        "vwap": round(st.vwap, 4),
        "open_interest": st.open_interest,
        "oi_change": st.open_interest_change,
        "poc": profile.poc,
        "vah": profile.vah,
        "val": profile.val,
        "trend": st.market_trend.value,
        "open_signals": len(st.active_signals),
        "performance": summarize_performance(st.signal_history),
    }


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = EngineConfig.from_env(args.env_file)
    set_level(config.log_level)

    store = InstrumentStateStore(config)
    pipeline = MarketDataPipeline(store)

    frames = load_frames(args.frames)
    replay_frames(pipeline, frames, progress=not args.no_progress)

    if args.instrument:
        store.select_instrument(args.instrument)

    print("Instruments:", ", ".join(store.instrument_keys))
    pprint(summarize(store))


if __name__ == "__main__":
    main()
