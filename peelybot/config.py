"""
Configuration management for PeelyBot

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # peelybot package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


# Load .env on module import
_load_env_file()


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class RpcConfig:
    """RPC client configuration"""
    url: str = field(default_factory=lambda: _get_env("RPC_ENDPOINT", ""))
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("RPC_TIMEOUT_SECONDS", 30.0))
    commitment: str = field(default_factory=lambda: _get_env("RPC_COMMITMENT", "confirmed"))


@dataclass
class TxConfig:
    """Transaction submission configuration"""
    # Retries after the first submission attempt (3 -> 4 attempts in total)
    max_retries: int = field(default_factory=lambda: _get_env_int("TX_MAX_RETRIES", 3))
    # Base delay D in seconds; attempt k sleeps D * 2**k + uniform(0, D)
    retry_base_delay: float = field(default_factory=lambda: _get_env_float("TX_RETRY_BASE_DELAY", 1.0))
    blockhash_max_attempts: int = field(default_factory=lambda: _get_env_int("BLOCKHASH_MAX_ATTEMPTS", 3))
    confirmation_timeout: float = field(default_factory=lambda: _get_env_float("TX_CONFIRMATION_TIMEOUT", 60.0))
    confirmation_poll_interval: float = field(default_factory=lambda: _get_env_float("TX_CONFIRMATION_POLL_INTERVAL", 1.0))
    skip_preflight: bool = field(default_factory=lambda: _get_env_bool("TX_SKIP_PREFLIGHT", True))


@dataclass
class TradeConfig:
    """Trade quoting service configuration (PumpPortal local trade API)"""
    api_url: str = field(default_factory=lambda: _get_env("TRADE_API_URL", "https://pumpportal.fun/api/trade-local"))
    slippage: float = field(default_factory=lambda: _get_env_float("TRADE_SLIPPAGE", 10.0))
    priority_fee: float = field(default_factory=lambda: _get_env_float("TRADE_PRIORITY_FEE", 0.00001))
    pool: str = field(default_factory=lambda: _get_env("TRADE_POOL", "pump"))
    timeout: float = field(default_factory=lambda: _get_env_float("TRADE_TIMEOUT", 30.0))


@dataclass
class FeeConfig:
    """Service fee configuration"""
    team_wallet_address: str = field(default_factory=lambda: _get_env("TEAM_WALLET_ADDRESS", ""))
    fee_rate: str = field(default_factory=lambda: _get_env("FEE_RATE", "0.01"))
    referrer_share: str = field(default_factory=lambda: _get_env("REFERRER_SHARE", "0.35"))


@dataclass
class WalletConfig:
    """Custodial wallet configuration"""
    # Rent-exempt minimum in SOL (kept as string, parsed to Decimal)
    min_rent_exempt_balance: str = field(default_factory=lambda: _get_env("MIN_RENT_EXEMPT_BALANCE", "0.00203928"))


@dataclass
class MetadataConfig:
    """Token metadata (DAS getAsset) configuration"""
    url: str = field(default_factory=lambda: _get_env("METADATA_RPC_URL", ""))
    timeout: float = field(default_factory=lambda: _get_env_float("METADATA_TIMEOUT", 15.0))


@dataclass
class BotConfig:
    """Chat-facing settings"""
    explorer_tx_url: str = field(default_factory=lambda: _get_env("EXPLORER_TX_URL", "https://solscan.io/tx/"))
    referral_url: str = field(default_factory=lambda: _get_env("BOT_REFERRAL_URL", "https://t.me/PeelyOnSOLBOT?start="))
    session_ttl_seconds: float = field(default_factory=lambda: _get_env_float("SESSION_TTL_SECONDS", 600.0))


def _get_default_log_path() -> str:
    """Get default log file path under peelybot/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"peelybot_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    Environment variables:
        LOG_FILE: Path to log file (overrides default)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", _get_default_log_path()))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Loads all settings from environment variables and .env file.

    Usage:
        from peelybot.config import config

        print(config.rpc.url)
        print(config.fees.team_wallet_address)
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    tx: TxConfig = field(default_factory=TxConfig)
    trade: TradeConfig = field(default_factory=TradeConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    bot: BotConfig = field(default_factory=BotConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def reload(cls) -> "Config":
        """Reload configuration from environment"""
        _load_env_file()
        return cls()


# Global config instance
config = Config()


def get_config() -> Config:
    """Get global configuration instance"""
    return config


def reload_config() -> Config:
    """Reload and return new configuration"""
    global config
    config = Config.reload()
    return config


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "peelybot",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with optional rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (uses global config if None)
        logger_name: Name of the logger to configure (default: peelybot)

    Returns:
        Configured logger instance
    """
    if log_config is None:
        log_config = config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to release file handles on reload
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger
