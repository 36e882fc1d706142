from .book import build_book, find_level
from .cvd import apply_trade_flow, update_open_interest
from .footprint import apply_trade, snapshot_depth
from .icebergs import detect_iceberg, expire_icebergs
from .metrics import bars_to_frame, calc_bar_params, volume_histogram
from .normalize import FeedFormatError, normalize_feed
from .profile import build_profile, value_area
from .structure import update_structure
from .trades import infer_trade

__all__ = [
    "FeedFormatError",
    "apply_trade",
    "apply_trade_flow",
    "bars_to_frame",
    "build_book",
    "build_profile",
    "calc_bar_params",
    "detect_iceberg",
    "expire_icebergs",
    "find_level",
    "infer_trade",
    "normalize_feed",
    "snapshot_depth",
    "update_open_interest",
    "update_structure",
    "value_area",
    "volume_histogram",
]
