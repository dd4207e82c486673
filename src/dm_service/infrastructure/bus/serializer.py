from __future__ import annotations

import json
from datetime import datetime
from typing import Any
from uuid import UUID


class _Encoder(json.JSONEncoder):
    def default(self, o: object) -> Any:
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, datetime):
            return o.isoformat()
        return super().default(o)


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope, cls=_Encoder)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    envelope = json.loads(raw)
    if not isinstance(envelope, dict) or "event" not in envelope:
        raise ValueError("Change feed envelope without 'event'")
    data = envelope.get("data") or {}
    if not isinstance(data, dict):
        raise ValueError("Change feed envelope 'data' must be an object")
    return envelope["event"], data
