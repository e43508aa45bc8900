"""
Configuration for the OOF chain services
"""

import os
import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger("config")

MAINNET_RPC = "https://api.mainnet-beta.solana.com"
DEVNET_RPC = "https://api.devnet.solana.com"

# Default configuration
DEFAULT_CONFIG = {
    "SIMULATION_MODE": True,

    # RPC
    "NETWORK": "mainnet",
    "RPC_HTTP_ENDPOINT": "",
    "COMMITMENT": "confirmed",

    # Market + swap APIs
    "PUMP_FUN_API_URL": "https://frontend-api.pump.fun",
    "PUMPPORTAL_TRADE_URL": "https://pumpportal.fun/api/trade-local",
    "PUMPPORTAL_WS_URL": "wss://pumpportal.fun/api/data",
    "JUPITER_API_URL": "https://quote-api.jup.ag/v6",
    "JUPITER_PRICE_URL": "https://price.jup.ag/v4",
    "HTTP_TIMEOUT_SECONDS": 10,

    # Bonding curve
    "GRADUATION_THRESHOLD_SOL": 85.0,
    "SOL_PRICE_FALLBACK_USD": 240.0,

    # Trading
    "DEFAULT_SLIPPAGE_BPS": 100,
    "PRIORITY_FEE_SOL": 0.00005,

    # Portfolio
    "DUST_THRESHOLD_USD": 1.0,

    # Cross-chain bridge
    "OOF_TOKEN_MINT": "",
    "OOF_TOKEN_DECIMALS": 9,
    "BRIDGE_WALLET_ADDRESS": "",
    "OOF_EXCHANGE_RATE_USD": 0.001,
    "ZORA_TOKENS_PER_USD": 1000.0,
    "BRIDGE_FEE_PERCENT": 0.03,
    "CARD_CATEGORIES": ["paper-hands", "dust-collector", "gains-master"],
    "ZORA_API_URL": "https://api.zora.co/tokens",
    "ZORA_SUBMIT_ENABLED": False,
    "CARD_IMAGE_BASE_URL": "https://oof-platform.com/cards",
}


CONFIG_FILE = "config.json"


def _config_path(path: Optional[str] = None) -> str:
    return path or os.environ.get("OOF_CONFIG_FILE") or CONFIG_FILE


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Settings layered over DEFAULT_CONFIG.
    USE_ENV_CONFIG=true reads the environment; otherwise the JSON file at `path`
    (OOF_CONFIG_FILE, then config.json) is read, and written with defaults on first run.
    """
    if os.environ.get("USE_ENV_CONFIG", "").lower() == "true":
        logger.info("Loading configuration from environment variables")
        overrides = load_config_from_env()
    else:
        config_file = _config_path(path)
        if not os.path.exists(config_file):
            save_config(DEFAULT_CONFIG, config_file)
            overrides = {}
        else:
            try:
                with open(config_file, "r") as f:
                    overrides = json.load(f)
                if not isinstance(overrides, dict):
                    raise ValueError(f"expected a JSON object, got {type(overrides).__name__}")
            except (OSError, ValueError) as e:
                logger.error(f"Unreadable config {config_file}, using defaults: {e}")
                overrides = {}

    config = {**DEFAULT_CONFIG, **overrides}
    for problem in validate_config(config):
        logger.warning(f"Config: {problem}")
    return config


def parse_env_value(raw: str, default: Any) -> Any:
    """Coerce an environment string to the type of its default value."""
    # bool first: bool is a subclass of int
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, list):
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def load_config_from_env() -> Dict[str, Any]:
    config = dict(DEFAULT_CONFIG)
    for key, default_value in DEFAULT_CONFIG.items():
        raw = os.environ.get(key)
        if raw is None:
            continue
        try:
            config[key] = parse_env_value(raw, default_value)
        except ValueError:
            logger.warning(f"Ignoring {key}={raw!r}, keeping {default_value!r}")
    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Human-readable problems with a config; empty when it is usable."""
    problems = []
    if not 0 <= config.get("DEFAULT_SLIPPAGE_BPS", 0) <= 10_000:
        problems.append("DEFAULT_SLIPPAGE_BPS must be between 0 and 10000")
    if not 0 <= config.get("BRIDGE_FEE_PERCENT", 0) < 1:
        problems.append("BRIDGE_FEE_PERCENT is a fraction and must be in [0, 1)")
    if config.get("GRADUATION_THRESHOLD_SOL", 0) <= 0:
        problems.append("GRADUATION_THRESHOLD_SOL must be positive")
    if not config.get("CARD_CATEGORIES"):
        problems.append("CARD_CATEGORIES must name at least one card")
    if not config.get("SIMULATION_MODE", True):
        for key in ("OOF_TOKEN_MINT", "BRIDGE_WALLET_ADDRESS"):
            if not config.get(key):
                problems.append(f"{key} is required outside simulation mode")
    return problems


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> bool:
    config_file = _config_path(path)
    try:
        with open(config_file, "w") as f:
            json.dump(config, f, indent=2)
    except (OSError, TypeError) as e:
        logger.error(f"Could not write {config_file}: {e}")
        return False
    logger.info(f"Configuration written to {config_file}")
    return True


def get_rpc_endpoint(config: Dict[str, Any]) -> str:
    """Explicit RPC_HTTP_ENDPOINT wins, otherwise NETWORK selects mainnet or devnet."""
    endpoint = config.get("RPC_HTTP_ENDPOINT")
    if endpoint:
        return endpoint
    if str(config.get("NETWORK", "mainnet")).lower() == "devnet":
        return DEVNET_RPC
    return MAINNET_RPC
