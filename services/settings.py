# settings.py - Environment configuration for all services.
"""
All settings are loaded from .env (main.py calls load_dotenv before
importing services).

Exchange accounts are declared in EXCHANGE_ACCOUNTS (comma-separated ids,
declaration order is routing order). For each id:
- <ID>_PRIVATE_KEY: Hyperliquid API wallet private key
- <ID>_WALLET_ADDRESS: Master account address (optional, for API wallets)
- <ID>_CHAT_IDS: Comma-separated chat ids routed to this account
- <ID>_NAME: Display name (optional)
"""

import os

from models import Account
from services.errors import ConfigError


# === SIGNAL FILTER ===

CONFIDENCE_THRESHOLD = 0.7

# === EXCHANGE ===

HYPERLIQUID_TESTNET = os.getenv("HYPERLIQUID_TESTNET", "false").lower() == "true"
MARKET_SLIPPAGE = float(os.getenv("MARKET_SLIPPAGE", "0.05"))

# === LLM ===

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None

# === POLICY STORE (Firestore) ===

USER_ID = os.getenv("USER_ID", "")
POLICY_EXCHANGE = os.getenv("POLICY_EXCHANGE", "hyperliquid")
POLICY_TRADE_TYPE = os.getenv("POLICY_TRADE_TYPE", "futures")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
FIREBASE_CLIENT_EMAIL = os.getenv("FIREBASE_CLIENT_EMAIL", "")
FIREBASE_PRIVATE_KEY = os.getenv("FIREBASE_PRIVATE_KEY", "")

# === TELEGRAM ===

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_BOT_CHAT_ID = os.getenv("TELEGRAM_BOT_CHAT_ID", "")


def parse_chat_ids(value: str) -> frozenset[int]:
    """Parse "123, -100456" into a set of ints. Blank entries are skipped."""
    ids = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(int(part))
        except ValueError:
            raise ConfigError(f"Invalid chat id: {part!r}") from None
    return frozenset(ids)


def load_accounts(env: dict | None = None) -> tuple[Account, ...]:
    """Build the account list from the environment, in declaration order."""
    env = os.environ if env is None else env
    ids = [a.strip() for a in env.get("EXCHANGE_ACCOUNTS", "primary,secondary").split(",") if a.strip()]

    accounts = []
    for account_id in ids:
        prefix = account_id.upper()
        accounts.append(Account(
            id=account_id,
            name=env.get(f"{prefix}_NAME", f"{account_id.capitalize()} Account"),
            allowed_chat_ids=parse_chat_ids(env.get(f"{prefix}_CHAT_IDS", "")),
            credentials={
                "private_key": env.get(f"{prefix}_PRIVATE_KEY", ""),
                "wallet_address": env.get(f"{prefix}_WALLET_ADDRESS", ""),
                "testnet": HYPERLIQUID_TESTNET,
            },
        ))
    return tuple(accounts)


def validate_env(accounts: tuple[Account, ...]) -> None:
    """Raise ConfigError listing everything required that is missing."""
    missing = []
    if not USER_ID:
        missing.append("USER_ID")
    if not OPENAI_API_KEY:
        missing.append("OPENAI_API_KEY")
    if not TELEGRAM_BOT_TOKEN:
        missing.append("TELEGRAM_BOT_TOKEN")
    if not TELEGRAM_BOT_CHAT_ID:
        missing.append("TELEGRAM_BOT_CHAT_ID")
    if not (FIREBASE_PROJECT_ID and FIREBASE_CLIENT_EMAIL and FIREBASE_PRIVATE_KEY):
        missing.append("FIREBASE_PROJECT_ID/FIREBASE_CLIENT_EMAIL/FIREBASE_PRIVATE_KEY")
    for account in accounts:
        if not account.has_credentials:
            missing.append(f"{account.id.upper()}_PRIVATE_KEY")

    if missing:
        raise ConfigError(f"Missing configuration: {', '.join(missing)}")

    if not any(account.allowed_chat_ids for account in accounts):
        raise ConfigError("No chat IDs configured for any exchange account")
