"""
Shared Flask extensions: rate limiter and CORS.

Created unbound here and attached to the app in create_app().
"""

from __future__ import annotations

from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["200 per hour"])
cors = CORS()
