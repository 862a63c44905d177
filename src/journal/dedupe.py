"""Content-addressed deduplication of fill candidates.

Fingerprint = SHA-256 of ``user_id|raw_fill_id|fill_time|SIDE|quantity|price``.
The unique constraint on (user_id, fill_hash) makes re-imports idempotent;
this module only classifies candidates so the importer can skip the ones
already stored.
"""

import hashlib
from dataclasses import dataclass, field, replace

from loguru import logger
from sqlalchemy.orm import Session

from src.journal.csv_parser import ParsedFill
from src.journal.models import Fill
from src.utils.timezone import format_utc_iso

# Keys per IN (...) query; keeps well under every driver's bind parameter limit
_LOOKUP_CHUNK = 5000


@dataclass
class DedupeResult:
    """Candidates split into unseen and already-imported fills."""

    new_fills: list[ParsedFill] = field(default_factory=list)
    duplicates: list[ParsedFill] = field(default_factory=list)


def _format_number(value: float | int) -> str:
    """Shortest text form of a number: 100.0 → "100", 107.50 → "107.5"."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def compute_fingerprint(
    user_id: str,
    raw_fill_id: str,
    fill_time,
    side: str,
    quantity: int,
    price: float,
) -> str:
    """Deterministic hex digest identifying one execution for one user.

    Independent of batch, file and row order: the same execution reported
    in two different exports hashes identically.
    """
    payload = "|".join(
        [
            user_id,
            raw_fill_id,
            format_utc_iso(fill_time),
            side.upper(),
            _format_number(quantity),
            _format_number(price),
        ]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def fingerprint_fill(fill: ParsedFill, user_id: str) -> str:
    """Fingerprint of a parsed fill."""
    return compute_fingerprint(
        user_id, fill.raw_fill_id, fill.fill_time, fill.side, fill.quantity, fill.price
    )


def find_existing_fingerprints(session: Session, user_id: str, hashes: list[str]) -> set[str]:
    """Return which of ``hashes`` are already stored for ``user_id``."""
    existing: set[str] = set()
    unique_hashes = list(dict.fromkeys(hashes))
    for start in range(0, len(unique_hashes), _LOOKUP_CHUNK):
        chunk = unique_hashes[start : start + _LOOKUP_CHUNK]
        rows = (
            session.query(Fill.fill_hash)
            .filter(Fill.user_id == user_id, Fill.fill_hash.in_(chunk))
            .all()
        )
        existing.update(row.fill_hash for row in rows)
    return existing


def deduplicate_fills(session: Session, fills: list[ParsedFill], user_id: str) -> DedupeResult:
    """Split candidates into new fills and duplicates.

    A candidate is a duplicate when its fingerprint is already stored for
    this user or appeared earlier in the same batch. Every returned fill is
    a copy tagged with its fingerprint.

    Args:
        session: SQLAlchemy session.
        fills: Parsed fill candidates, in file order.
        user_id: Owning user; part of the fingerprint.

    Returns:
        DedupeResult preserving input order within each partition.
    """
    result = DedupeResult()
    if not fills:
        return result

    tagged = [replace(fill, fingerprint=fingerprint_fill(fill, user_id)) for fill in fills]
    seen = find_existing_fingerprints(session, user_id, [f.fingerprint for f in tagged])

    for fill in tagged:
        if fill.fingerprint in seen:
            result.duplicates.append(fill)
        else:
            seen.add(fill.fingerprint)
            result.new_fills.append(fill)

    logger.info(
        f"Dedup: {len(result.new_fills)} new, {len(result.duplicates)} already imported"
    )
    return result
