# vaultrelay/core/config.py

import os

# =========================
# CONFIGURATION
# =========================

def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Relay HTTP base URL used for both fetching and submitting envelopes
RELAY_URL = os.getenv("VAULTRELAY_RELAY_URL", "http://127.0.0.1:3030")

# Client traffic goes through Tor unless disabled
USE_TOR = _flag("VAULTRELAY_USE_TOR", "1")
TOR_PROXY_URL = os.getenv("VAULTRELAY_TOR_PROXY", "socks5h://127.0.0.1:9050")
TOR_PROXY = {
    'http': TOR_PROXY_URL,
    'https': TOR_PROXY_URL
}

FETCH_INTERVAL = float(os.getenv("VAULTRELAY_FETCH_INTERVAL", "1.0"))  # seconds between polls
HTTP_TIMEOUT = float(os.getenv("VAULTRELAY_HTTP_TIMEOUT", "10"))

# Timing obfuscation on submissions (milliseconds)
MIN_DELAY_MS = int(os.getenv("VAULTRELAY_MIN_DELAY_MS", "100"))
MAX_DELAY_MS = int(os.getenv("VAULTRELAY_MAX_DELAY_MS", "2000"))

# Plaintext padding bucket; 0 keeps the length frame but adds no fill
PADDED_MESSAGE_SIZE = int(os.getenv("VAULTRELAY_PADDED_SIZE", "0"))

# Relay side
RELAY_HOST = os.getenv("VAULTRELAY_HOST", "0.0.0.0")
RELAY_PORT = int(os.getenv("VAULTRELAY_PORT", "3030"))
STORE = os.getenv("VAULTRELAY_STORE", "memory")  # "memory" or "sql"
DATABASE_URL = os.getenv("VAULTRELAY_DATABASE_URL", "sqlite:///vaultrelay.db")
SUBMIT_LIMIT = os.getenv("VAULTRELAY_SUBMIT_LIMIT", "60/minute")

LOG_LEVEL = os.getenv("VAULTRELAY_LOG_LEVEL", "INFO")
