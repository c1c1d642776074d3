"""ID utilities."""

from __future__ import annotations

import uuid


def new_request_id(prefix: str = "req_") -> str:
    """Return a short random correlation id (e.g. ``req_3f9a1c2b7d04``)."""

    return f"{prefix}{uuid.uuid4().hex[:12]}"
