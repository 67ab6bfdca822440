"""Response Decoder: turns a raw Bot API response body into a usable result.

Every response is a JSON envelope ``{"ok": bool, "result": ...}``.  The
decoders never raise: malformed JSON, an empty or non-object top level, or
``"ok": false`` all produce an empty result and a log record.  When the
caller needs the reason of an ``ok=false`` answer, :func:`decode_error`
returns it as an :class:`~botapi.models.Error`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from botapi.models import Error

logger = logging.getLogger(__name__)


def _parse_envelope(data: bytes) -> Dict[str, Any]:
    """Parse *data*; return ``{}`` for anything that is not a non-empty object."""
    try:
        envelope = json.loads(data)
    except (TypeError, ValueError, UnicodeDecodeError) as exc:
        logger.error("Response is not valid JSON", extra={"error": str(exc)})
        return {}
    if not isinstance(envelope, dict) or not envelope:
        logger.error("Got an empty response object")
        return {}
    return envelope


def _successful_envelope(data: bytes) -> Optional[Dict[str, Any]]:
    envelope = _parse_envelope(data)
    if not envelope:
        return None
    if envelope.get("ok") is not True:
        logger.warning(
            "Result is not ok",
            extra={"error_code": envelope.get("error_code"), "description": envelope.get("description")},
        )
        return None
    return envelope


def decode_object(data: bytes) -> Dict[str, Any]:
    """Return the ``result`` object of a successful response, else ``{}``."""
    envelope = _successful_envelope(data)
    if envelope is None:
        return {}
    result = envelope.get("result")
    return result if isinstance(result, dict) else {}


def decode_array(data: bytes) -> List[Any]:
    """Return the ``result`` array of a successful response, else ``[]``."""
    envelope = _successful_envelope(data)
    if envelope is None:
        return []
    result = envelope.get("result")
    return result if isinstance(result, list) else []


def is_ok(data: bytes) -> bool:
    """True when *data* is a non-empty JSON object whose ``ok`` flag is true."""
    envelope = _parse_envelope(data)
    return bool(envelope) and envelope.get("ok") is True


def decode_error(data: bytes) -> Optional[Error]:
    """Return the error detail of an ``ok=false`` response.

    ``None`` when the response succeeded or is not a parseable envelope.
    """
    envelope = _parse_envelope(data)
    if not envelope or envelope.get("ok") is True:
        return None
    try:
        return Error.model_validate(envelope)
    except ValidationError as exc:
        logger.warning("Malformed error envelope", extra={"error": str(exc)})
        return Error()
