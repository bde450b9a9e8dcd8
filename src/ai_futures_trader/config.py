"""Configuration management for AI Futures Trader."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_SYMBOLS = ["BTC", "ETH", "SOL", "BNB", "DOGE"]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def _parse_decimals_overrides(raw: str) -> dict[str, int]:
    """Parse ``"DOGE:5,XRP:4"`` into a symbol -> decimals mapping."""
    overrides: dict[str, int] = {}
    for chunk in raw.split(","):
        if ":" not in chunk:
            continue
        symbol, decimals = chunk.split(":", 1)
        try:
            overrides[symbol.strip().upper()] = int(decimals)
        except ValueError:
            continue
    return overrides


@dataclass
class APIConfig:
    """API configuration for the exchange and LLM."""

    anthropic_base_url: str = ""
    anthropic_api_key: str = ""
    llm_model: str = "deepseek-chat"
    bybit_api_key: str = ""
    bybit_api_secret: str = ""
    bybit_demo: bool = True


@dataclass
class TradingConfig:
    """Trading parameters configuration."""

    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    initial_capital: float = 10000.0
    max_leverage: int = 20
    decision_interval_seconds: int = 180
    reconcile_interval_seconds: int = 60
    settle_delay_seconds: float = 2.0  # wait before reading the live position
    price_decimals: int = 2
    price_decimals_overrides: dict[str, int] = field(default_factory=dict)
    exchange_timeout_seconds: float = 10.0
    llm_timeout_seconds: float = 60.0
    leverage_attempts: int = 2
    skip_when_positions_open: bool = True
    fill_missing_protection: bool = True
    default_stop_loss_percent: float = 5.0
    default_take_profit_percent: float = 6.0
    dry_run: bool = False  # Trade against the in-memory paper venue
    paper_balance: float = 10000.0
    shutdown_grace_seconds: float = 90.0  # let an in-flight cycle finish on stop


@dataclass
class ReconcileConfig:
    """Position history matching parameters."""

    lookback_days: int = 7
    history_limit: int = 10
    scan_depth: int = 2
    qty_tolerance: float = 0.001
    price_tolerance: float = 0.01


@dataclass
class StorageConfig:
    """Durable store and audit trail locations."""

    database_path: Path = Path("data/trading.db")
    audit_dir: Path = Path("logs/audit")


@dataclass
class LoggingConfig:
    """Console and file logging."""

    level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True


@dataclass
class Config:
    """Main configuration container."""

    api: APIConfig = field(default_factory=APIConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)
    reconcile: ReconcileConfig = field(default_factory=ReconcileConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_path: Path | None = None) -> "Config":
        """Load configuration from environment variables.

        Args:
            env_path: Path to .env file (optional)

        Returns:
            Config instance populated from environment
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        api = APIConfig(
            anthropic_base_url=os.getenv("ANTHROPIC_BASE_URL", ""),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            llm_model=os.getenv("LLM_MODEL", "deepseek-chat"),
            bybit_api_key=os.getenv("BYBIT_API_KEY", ""),
            bybit_api_secret=os.getenv("BYBIT_API_SECRET", ""),
            bybit_demo=_env_bool("BYBIT_DEMO", True),
        )

        symbols_raw = os.getenv("TRADING_SYMBOLS", "")
        symbols = [s.strip().upper() for s in symbols_raw.split(",") if s.strip()]

        max_leverage = min(max(int(os.getenv("MAX_LEVERAGE", "20")), 1), 20)

        trading = TradingConfig(
            symbols=symbols or list(DEFAULT_SYMBOLS),
            initial_capital=float(os.getenv("START_MONEY", "10000")),
            max_leverage=max_leverage,
            decision_interval_seconds=int(os.getenv("DECISION_INTERVAL_SECONDS", "180")),
            reconcile_interval_seconds=int(os.getenv("RECONCILE_INTERVAL_SECONDS", "60")),
            settle_delay_seconds=float(os.getenv("SETTLE_DELAY_SECONDS", "2")),
            price_decimals=int(os.getenv("PRICE_DECIMALS", "2")),
            price_decimals_overrides=_parse_decimals_overrides(
                os.getenv("PRICE_DECIMALS_OVERRIDES", "")
            ),
            exchange_timeout_seconds=float(os.getenv("EXCHANGE_TIMEOUT_SECONDS", "10")),
            llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
            leverage_attempts=max(int(os.getenv("LEVERAGE_ATTEMPTS", "2")), 1),
            skip_when_positions_open=_env_bool("SKIP_WHEN_POSITIONS_OPEN", True),
            fill_missing_protection=_env_bool("FILL_MISSING_PROTECTION", True),
            default_stop_loss_percent=float(os.getenv("DEFAULT_STOP_LOSS_PERCENT", "5")),
            default_take_profit_percent=float(os.getenv("DEFAULT_TAKE_PROFIT_PERCENT", "6")),
            dry_run=_env_bool("DRY_RUN", False),
            paper_balance=float(os.getenv("PAPER_BALANCE", "10000")),
            shutdown_grace_seconds=float(os.getenv("SHUTDOWN_GRACE_SECONDS", "90")),
        )

        reconcile = ReconcileConfig(
            lookback_days=int(os.getenv("HISTORY_LOOKBACK_DAYS", "7")),
            history_limit=int(os.getenv("HISTORY_LIMIT", "10")),
            scan_depth=max(int(os.getenv("HISTORY_SCAN_DEPTH", "2")), 1),
            qty_tolerance=float(os.getenv("MATCH_QTY_TOLERANCE", "0.001")),
            price_tolerance=float(os.getenv("MATCH_PRICE_TOLERANCE", "0.01")),
        )

        storage = StorageConfig(
            database_path=Path(os.getenv("DATABASE_PATH", "data/trading.db")),
            audit_dir=Path(os.getenv("AUDIT_DIR", "logs/audit")),
        )

        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            log_to_file=_env_bool("LOG_TO_FILE", True),
        )

        return cls(
            api=api,
            trading=trading,
            reconcile=reconcile,
            storage=storage,
            logging=logging_config,
        )
