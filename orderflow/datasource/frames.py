"""Recorded feed frame loading and replay."""
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from tqdm import tqdm

from logger import get_logger

if TYPE_CHECKING:
    from orderflow.pipeline import MarketDataPipeline

logger = get_logger("orderflow.datasource")


def load_frames(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Load recorded frames.

    Args:
        path: Either a JSON file holding an array of frames (or a single
            frame object), or a JSON Lines file with one frame per line.

    Returns:
        List of frame dicts in file order.

    Raises:
        FileNotFoundError: path does not exist.
        ValueError: the content is neither JSON nor JSON Lines.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return []

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None

    if isinstance(data, list):
        return [f for f in data if isinstance(f, dict)]
    if isinstance(data, dict):
        return [data]

    frames: List[Dict[str, Any]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            frame = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path}:{lineno}: invalid JSON line: {e}") from e
        if isinstance(frame, dict):
            frames.append(frame)
    return frames


def replay_frames(
    pipeline: "MarketDataPipeline",
    frames: Iterable[Dict[str, Any]],
    *,
    progress: bool = True,
    start_ts: Optional[float] = None,
    step_s: float = 1.0,
) -> int:
    """
    Feed recorded frames through a pipeline in order.

    Args:
        pipeline: Target pipeline.
        frames: Frames oldest first.
        progress: Show a tqdm progress bar.
        start_ts: Synthetic clock start; None uses wall-clock time per frame.
        step_s: Synthetic clock increment per frame when ``start_ts`` is given.

    Returns:
        Number of frames replayed.
    """
    frames = list(frames)
    count = 0
    for i, frame in enumerate(tqdm(frames, desc="Replaying frames", disable=not progress)):
        now = None if start_ts is None else start_ts + i * step_s
        # relay messages carry a type; bare frames are plain feed frames
        if "type" in frame and frame.get("type") not in ("live_feed", "initial_feed"):
            pipeline.handle_message(frame)
        else:
            pipeline.process_frame(frame, now=now)
        count += 1
    logger.info(f"Replayed {count} frames")
    return count
