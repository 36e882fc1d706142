from .catalog import InstrumentCatalog, StaticInstrumentCatalog
from .config import EngineConfig, FootprintConfig, SignalConfig
from .models import ConnectionStatus, MarketSnapshot, Side, SignalSide, SignalStatus, SignalType
from .pipeline import MarketDataPipeline
from .signals import SignalEngine
from .state import InstrumentStateStore

__all__ = [
    "ConnectionStatus",
    "EngineConfig",
    "FootprintConfig",
    "InstrumentCatalog",
    "InstrumentStateStore",
    "MarketDataPipeline",
    "MarketSnapshot",
    "Side",
    "SignalConfig",
    "SignalEngine",
    "SignalSide",
    "SignalStatus",
    "SignalType",
    "StaticInstrumentCatalog",
]
