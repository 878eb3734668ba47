# vaultrelay/core/circuit_breaker.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from vaultrelay.core.config import SUBMIT_LIMIT

# Initialize limiter
limiter = Limiter(key_func=get_remote_address)

# Rate limit constants
SUBMIT_RATE = SUBMIT_LIMIT
