"""Shared event schema (v1).

The API stores an append-only event log per cart session. Clients can read it back to
show what happened to a cart and its checkout attempts.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    CART = "Cart"
    DELIVERY = "Delivery"
    CHECKOUT = "Checkout"


class EventTypeV1(str, Enum):
    CART_UPDATED = "CART_UPDATED"
    CART_CLEARED = "CART_CLEARED"
    DELIVERY_VALIDATED = "DELIVERY_VALIDATED"
    DELIVERY_REJECTED = "DELIVERY_REJECTED"
    CHECKOUT_REJECTED = "CHECKOUT_REJECTED"
    CHECKOUT_SESSION_CREATED = "CHECKOUT_SESSION_CREATED"
    CHECKOUT_FAILED = "CHECKOUT_FAILED"


class EventV1(BaseModel):
    id: str
    session_id: str

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
