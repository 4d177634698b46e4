"""
Pydantic models used across the backend.

`EventIn` is the request body accepted by `POST /api/events/{kind}`.
`Event` is the persisted record; the same shape is written to the event
store and appended to the monthly archive documents.

Guidelines:
- `EventIn` never carries `id`, `type` or `created_at`; those are
  assigned by the server.
- `amount_oz` is left untyped on `EventIn` so the service can apply its
  own range rules and return a specific error.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


class EventIn(BaseModel):
    """Input shape for an event sent by clients.

    Fields:
    - `amount_oz`: quantity, validated by `EventService` (defaults to 64).
    - `source`: free text such as `tap` or `bottle`.
    - `note`: free text.
    """

    model_config = ConfigDict(extra="ignore")

    amount_oz: Any = None
    source: Optional[str] = None
    note: Optional[str] = None


class Event(BaseModel):
    """A persisted, immutable event."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    amount_oz: Union[int, float, None] = None
    created_at: int
    user_agent: Optional[str] = None
    source: Optional[str] = None
    note: Optional[str] = None
