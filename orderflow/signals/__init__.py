from .base import RiskPlan, SignalCandidate, SignalContext, SignalStrategy
from .engine import SignalEngine, pnl_ticks, summarize_performance
from .strategies import (
    Absorption,
    ContextAlignment,
    CvdDivergence,
    IcebergDefense,
    LiquiditySkew,
    MomentumBreakout,
    StructureBreak,
    ValueAreaRejection,
    default_strategies,
)

__all__ = [
    "Absorption",
    "ContextAlignment",
    "CvdDivergence",
    "IcebergDefense",
    "LiquiditySkew",
    "MomentumBreakout",
    "RiskPlan",
    "SignalCandidate",
    "SignalContext",
    "SignalEngine",
    "SignalStrategy",
    "StructureBreak",
    "ValueAreaRejection",
    "default_strategies",
    "pnl_ticks",
    "summarize_performance",
]
