"""Shared slowapi limiter so routers can decorate endpoints with their own limits."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from app.constants import DEFAULT_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address, default_limits=[DEFAULT_RATE_LIMIT])
