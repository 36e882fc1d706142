from .frames import load_frames, replay_frames

__all__ = ["load_frames", "replay_frames"]
