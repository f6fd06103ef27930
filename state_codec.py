"""State codec — persisted state blob <-> data-URL token.

The persisted state is JSON wrapped in a self-describing token:

    data:application/json;base64,<base64 of the UTF-8 JSON text>

decode() also accepts bare JSON (older slots) and degrades to an empty
mapping for anything it cannot read. It never raises.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "data:application/json;base64,"


class CodecError(ValueError):
    """Malformed stored data. Internal to this module."""


def _to_base64(text: str) -> str:
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError:
        # Lone surrogates: keep the code units rather than fail.
        raw = text.encode("utf-8", "surrogatepass")
    return base64.b64encode(raw).decode("ascii")


def _from_base64(payload: str) -> str:
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CodecError(f"invalid base64 payload: {exc}") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        try:
            return raw.decode("utf-8", "surrogatepass")
        except UnicodeDecodeError:
            return raw.decode("latin-1")


def encode(obj: Any) -> str:
    """Serialize *obj* to a data-URL token. ``None`` encodes as ``{}``."""
    text = json.dumps({} if obj is None else obj, ensure_ascii=False)
    return TOKEN_PREFIX + _to_base64(text)


def _parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, TypeError, RecursionError) as exc:
        # RecursionError: pathologically deep nesting
        raise CodecError(f"invalid JSON: {exc}") from exc


def decode(token: Any) -> Any:
    """Parse a token (or bare JSON) back to plain data, ``{}`` on failure."""
    if not token or not isinstance(token, str):
        return {}
    try:
        if token.startswith("data:"):
            _, sep, payload = token.partition(",")
            value = _parse(_from_base64(payload if sep else ""))
        elif token.strip().startswith(("{", "[")):
            value = _parse(token)
        else:
            return {}
    except CodecError as exc:
        logger.debug("Discarding unreadable state token: %s", exc)
        return {}
    # JSON null, false, 0 and "" read back as an empty state.
    return {} if value in (None, False, 0, "") else value
