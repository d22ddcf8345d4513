# Overview: The single movement type vocabulary and its business-to-ledger mapping.

"""
Movement types

One enum covers every tag that can appear on a movement. Business callers
speak in business reasons; the ledger records a direction. The mapping is:

    business type     direction   ledger type written
    ---------------   ---------   -------------------
    PURCHASE          +1          INBOUND
    RETURN            +1          INBOUND
    ADJUSTMENT_IN     +1          INBOUND
    TRANSFER_IN       +1          INBOUND
    SALE              -1          OUTBOUND
    ADJUSTMENT_OUT    -1          OUTBOUND
    TRANSFER_OUT      -1          OUTBOUND

Writes that set an absolute quantity (manual edits, bulk adjust, feed import)
have no business type; their ledger type follows the sign of the actual
change (INBOUND / OUTBOUND), except location-scoped manual edits, which are
recorded as ADJUSTMENT.
"""
from __future__ import annotations

from enum import Enum

from ..validation import ValidationError


class MovementType(str, Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"
    ADJUSTMENT = "ADJUSTMENT"


BUSINESS_DIRECTION: dict[MovementType, int] = {
    MovementType.PURCHASE: 1,
    MovementType.RETURN: 1,
    MovementType.ADJUSTMENT_IN: 1,
    MovementType.TRANSFER_IN: 1,
    MovementType.SALE: -1,
    MovementType.ADJUSTMENT_OUT: -1,
    MovementType.TRANSFER_OUT: -1,
}

BUSINESS_TYPES = frozenset(BUSINESS_DIRECTION)


def parse_business_type(value) -> MovementType:
    """Accept only business reason tags (the ones callers may submit)."""
    try:
        movement_type = MovementType(str(value).strip().upper())
    except ValueError:
        raise ValidationError("Invalid movement type")
    if movement_type not in BUSINESS_TYPES:
        raise ValidationError("Invalid movement type")
    return movement_type


def signed_quantity(movement_type: MovementType, quantity: int) -> int:
    return BUSINESS_DIRECTION[movement_type] * quantity


def ledger_type_for_delta(delta: int) -> MovementType:
    return MovementType.INBOUND if delta > 0 else MovementType.OUTBOUND
