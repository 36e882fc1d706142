"""Configuration class definitions."""
import os
from dataclasses import dataclass, field
from typing import Callable, Optional, Set

from dotenv import load_dotenv


@dataclass
class FootprintConfig:
    """Footprint aggregation configuration."""
    rotation_volume: int = 5000         # a bar closes once its volume exceeds this
    depth_normalizer: float = 2000.0    # book size that maps to depth intensity 1.0
    imbalance_ratio: float = 3.0
    max_bars: int = 30
    max_recent_trades: int = 50
    max_book_orders: int = 3
    price_precision: int = 2

    def __post_init__(self):
        for name in ("rotation_volume", "depth_normalizer", "imbalance_ratio",
                     "max_bars", "max_recent_trades", "max_book_orders"):
            if getattr(self, name) <= 0:
                raise ValueError(f"FootprintConfig.{name} must be positive")
        if self.price_precision < 0:
            raise ValueError("FootprintConfig.price_precision must be >= 0")


@dataclass
class SignalConfig:
    """Signal generation and simulated risk configuration."""
    tick_size: float = 0.05
    stop_ticks: float = 20.0
    risk_reward: float = 2.0
    expiry_s: Optional[float] = 900.0
    cooldown_s: float = 30.0
    max_active: int = 5
    history_limit: int = 200
    swing_lookback: int = 5

    # strategy thresholds
    imbalance_min_volume: int = 300
    momentum_delta_ratio: float = 0.6
    momentum_min_volume: int = 1000
    skew_ratio: float = 3.0
    skew_min_size: int = 500

    # signal type names to run; empty means every registered strategy
    enabled: Set[str] = field(default_factory=set)

    def __post_init__(self):
        for name in ("tick_size", "stop_ticks", "risk_reward", "max_active",
                     "history_limit", "swing_lookback", "skew_ratio"):
            if getattr(self, name) <= 0:
                raise ValueError(f"SignalConfig.{name} must be positive")
        if self.expiry_s is not None and self.expiry_s <= 0:
            self.expiry_s = None
        self.enabled = {str(s).upper() for s in self.enabled}


@dataclass
class EngineConfig:
    """Top-level engine configuration."""
    footprint: FootprintConfig = None
    signals: SignalConfig = None
    value_area_pct: float = 0.70
    iceberg_min_refills: int = 3
    iceberg_lifetime_s: float = 5.0
    default_reference_price: float = 1000.0
    log_level: str = "INFO"

    def __post_init__(self):
        if self.footprint is None:
            self.footprint = FootprintConfig()
        if self.signals is None:
            self.signals = SignalConfig()
        if not 0 < self.value_area_pct <= 1:
            raise ValueError("EngineConfig.value_area_pct must be in (0, 1]")
        if self.iceberg_min_refills <= 0 or self.iceberg_lifetime_s <= 0:
            raise ValueError("EngineConfig iceberg thresholds must be positive")

    @classmethod
    def from_env(cls, env_file: Optional[str] = ".env") -> "EngineConfig":
        """
        Build a configuration from ORDERFLOW_* environment variables.

        Args:
            env_file: dotenv file loaded first (missing file is fine). Pass None
                to read only the process environment.

        Returns:
            EngineConfig with every variable that is set applied over the defaults.
        """
        if env_file:
            load_dotenv(env_file)

        footprint = FootprintConfig(
            rotation_volume=_env("ORDERFLOW_ROTATION_VOLUME", int, 5000),
            depth_normalizer=_env("ORDERFLOW_DEPTH_NORMALIZER", float, 2000.0),
            imbalance_ratio=_env("ORDERFLOW_IMBALANCE_RATIO", float, 3.0),
            max_bars=_env("ORDERFLOW_MAX_BARS", int, 30),
            price_precision=_env("ORDERFLOW_PRICE_PRECISION", int, 2),
        )
        enabled = os.getenv("ORDERFLOW_SIGNALS", "")
        signals = SignalConfig(
            tick_size=_env("ORDERFLOW_TICK_SIZE", float, 0.05),
            stop_ticks=_env("ORDERFLOW_STOP_TICKS", float, 20.0),
            risk_reward=_env("ORDERFLOW_RISK_REWARD", float, 2.0),
            expiry_s=_env("ORDERFLOW_SIGNAL_EXPIRY_S", float, 900.0),
            cooldown_s=_env("ORDERFLOW_SIGNAL_COOLDOWN_S", float, 30.0),
            max_active=_env("ORDERFLOW_MAX_ACTIVE_SIGNALS", int, 5),
            enabled={s.strip() for s in enabled.split(",") if s.strip()},
        )
        return cls(
            footprint=footprint,
            signals=signals,
            value_area_pct=_env("ORDERFLOW_VALUE_AREA_PCT", float, 0.70),
            iceberg_min_refills=_env("ORDERFLOW_ICEBERG_MIN_REFILLS", int, 3),
            iceberg_lifetime_s=_env("ORDERFLOW_ICEBERG_LIFETIME_S", float, 5.0),
            default_reference_price=_env("ORDERFLOW_DEFAULT_PRICE", float, 1000.0),
            log_level=os.getenv("ORDERFLOW_LOG_LEVEL", "INFO"),
        )


def _env(name: str, cast: Callable, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e
