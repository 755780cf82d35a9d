import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional

import pika

from ...exceptions import MalformedAttributeInput

logger = logging.getLogger(__name__)


def _load_attributes(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, Mapping):
        return dict(raw)

    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")

    if not isinstance(raw, str):
        raise MalformedAttributeInput(f"Attributes must be a mapping or JSON text, got {type(raw).__name__}.")

    try:
        parsed = json.loads(raw)
    except ValueError as e:
        raise MalformedAttributeInput(f"Attributes are not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedAttributeInput(f"Attributes JSON must be an object, got {type(parsed).__name__}.")
    return parsed


def parse_attributes(raw: Any) -> Dict[str, Any]:
    """
    Read caller supplied attributes as a mapping.

    Accepts a mapping or JSON object text. Anything unreadable is logged and
    treated as an empty attribute set so the operation can go on.
    """
    if raw is None or (isinstance(raw, (str, bytes, bytearray)) and not raw.strip()):
        return {}

    try:
        return _load_attributes(raw)
    except MalformedAttributeInput as e:
        logger.warning(f"Ignoring malformed attributes {raw!r}: {e}")
        return {}


def build_properties(persistent: bool = True, headers: Optional[Dict[str, Any]] = None) -> pika.BasicProperties:
    return pika.BasicProperties(
        delivery_mode=pika.DeliveryMode.Persistent if persistent else pika.DeliveryMode.Transient,
        headers=headers or None,
    )
