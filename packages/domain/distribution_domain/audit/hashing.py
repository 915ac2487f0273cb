"""Canonical serialisation and content hashes for audit records."""

import hashlib
import json
from typing import Any, Dict, Iterable, Optional

from ..schemas import CapitalProviderPosition, WaterfallStructure


def canonical_json(payload: Any) -> str:
    """Deterministic JSON: sorted keys, compact separators, ASCII only.

    Values json can't encode natively (Decimal, datetime) are written as str.
    """
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def serialize_roster(positions: Iterable[CapitalProviderPosition]) -> str:
    """Canonical JSON of positions ordered by id."""
    ordered = sorted(positions, key=lambda p: p.id)
    return canonical_json([p.model_dump(mode="json") for p in ordered])


def serialize_structure(structure: Optional[WaterfallStructure]) -> Optional[str]:
    """Canonical JSON of a structure; None when there is no structure."""
    if structure is None:
        return None
    return canonical_json(structure.model_dump(mode="json"))


def compute_event_hash(
    deal_id: str,
    sequence_number: int,
    event_type: str,
    event_data: Dict[str, Any],
    previous_hash: Optional[str],
    timestamp: str,
) -> str:
    """sha256 over the event's identity, payload, predecessor and timestamp."""
    return sha256_hex(canonical_json({
        "dealId": deal_id,
        "sequenceNumber": sequence_number,
        "eventType": event_type,
        "eventData": event_data,
        "previousHash": previous_hash,
        "timestamp": timestamp,
    }))
