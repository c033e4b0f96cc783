"""Identifier, share token and proof hash helpers."""

from __future__ import annotations

import hashlib
import re
import secrets
from datetime import UTC, datetime

AGREEMENT_ID_PREFIX = "AGP"

_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def generate_agreement_id(now: datetime | None = None) -> str:
    """Return an id of the form ``AGP-YYYYMMDD-XXXXXX``."""
    moment = now or datetime.now(UTC)
    return f"{AGREEMENT_ID_PREFIX}-{moment:%Y%m%d}-{secrets.token_hex(3).upper()}"


def generate_share_token() -> str:
    """Return an opaque token granting read-only public access."""
    return secrets.token_hex(32)


def compute_proof_hash(
    agreement_id: str,
    title: str,
    content: str,
    party_a_contact: str,
    party_b_contact: str,
    hashed_at: str,
) -> str:
    """SHA-256 over the canonical agreement fields.

    Contacts are lower-cased so that case variations of the same address
    produce the same fingerprint. ``hashed_at`` is the creation timestamp
    stored alongside the record, which keeps the hash recomputable while
    distinguishing otherwise identical agreements.
    """
    data = ":".join(
        [
            agreement_id,
            title,
            content,
            party_a_contact.lower(),
            party_b_contact.lower(),
            hashed_at,
        ]
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def is_valid_email(value: object) -> bool:
    if not isinstance(value, str):
        return False
    if not _EMAIL_PATTERN.match(value):
        return False
    if ".." in value or "@." in value or value.endswith("."):
        return False
    return True


__all__ = [
    "compute_proof_hash",
    "generate_agreement_id",
    "generate_share_token",
    "is_valid_email",
]
