"""
api/limiter.py -- The one slowapi Limiter for the passcode endpoints.

api/main.py mounts it (app.state.limiter + SlowAPIMiddleware) and
api/routes/auth.py decorates /request-otp and /verify-otp with
@limiter.limit(OTP_RATE_LIMIT). Counters are keyed by client IP and live in
RATE_LIMIT_STORAGE_URI: "memory://" for a single process, a redis:// URI
when several workers must share counts.

Tests flip limiter.enabled off so repeated logins from TestClient's fixed
address are not throttled.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri=get_settings().rate_limit_storage_uri)
