"""Journal import orchestrator.

Ties together: CSV parser → reference resolution → dedup → fill
persistence → trade reconstruction → daily summary recalculation.

The batch record is committed in ``processing`` state before any work and
finalized exactly once. Work is committed at stage boundaries, so a
failing stage rolls back only itself; fills stored by earlier stages stay
and a re-run skips them as duplicates.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import date

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config.base import ColumnMapping
from src.config.logging import log_import
from src.journal.csv_parser import ParsedFill, RowError, parse_csv
from src.journal.dedupe import deduplicate_fills
from src.journal.models import Fill, ImportBatch
from src.journal.resolver import ReferenceResolver, ResolutionError
from src.journal.trade_builder import reconstruct_trades
from src.services.daily_summary import recalc_summaries_from
from src.utils.timezone import utc_now


class ImportPreconditionError(ValueError):
    """Raised before any write when the import cannot start at all."""
    pass


@dataclass
class ImportResult:
    """Result of an import operation."""

    batch_id: int | None = None
    status: str = "processing"
    total_rows: int = 0
    new_fills: int = 0
    duplicate_fills: int = 0
    trades_created: int = 0
    error_rows: int = 0
    errors: list[RowError] = field(default_factory=list)
    # Completed batch of this user with byte-identical content, if any
    previous_batch_id: int | None = None

    @property
    def outcome(self) -> str:
        """``clean``, ``clean_with_skips`` or ``failed``."""
        if self.status == "failed":
            return "failed"
        return "clean_with_skips" if self.errors else "clean"

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "status": self.status,
            "new_fills": self.new_fills,
            "duplicate_fills": self.duplicate_fills,
            "trades_created": self.trades_created,
            "error_rows": self.error_rows,
            "previous_batch_id": self.previous_batch_id,
            "errors": [e.to_dict() for e in self.errors],
        }


def hash_file(content: str) -> str:
    """SHA-256 of the raw file text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def run_import(
    session: Session,
    content: str,
    filename: str,
    user_id: str,
    column_map: ColumnMapping | None = None,
) -> ImportResult:
    """Run a full import of one broker export file.

    Args:
        session: SQLAlchemy session. Committed at stage boundaries.
        content: Raw CSV text.
        filename: Original file name, stored on the batch.
        user_id: Owning user; must already be provisioned.
        column_map: Broker header mapping. Defaults to the configured one.

    Returns:
        ImportResult with counts and the structured error list. Stage
        failures are reported here with status ``failed``, not raised.

    Raises:
        ImportPreconditionError: If user_id is missing. Nothing is written.
    """
    if not user_id or not isinstance(user_id, str) or not user_id.strip():
        raise ImportPreconditionError(f"run_import: user_id is required, got {user_id!r}")

    result = ImportResult()
    file_hash = hash_file(content)

    previous = (
        session.query(ImportBatch.id)
        .filter(
            ImportBatch.user_id == user_id,
            ImportBatch.file_hash == file_hash,
            ImportBatch.status == "complete",
        )
        .first()
    )
    if previous:
        result.previous_batch_id = previous.id
        logger.info(
            f"{filename} matches completed batch {previous.id}; its fills will classify as duplicates"
        )

    batch = ImportBatch(
        user_id=user_id,
        filename=filename,
        file_hash=file_hash,
        status="processing",
        started_at=utc_now(),
    )
    session.add(batch)
    session.commit()
    result.batch_id = batch.id
    logger.info(f"Import batch {batch.id} started: {filename} (user {user_id})")

    try:
        _run_stages(session, batch, content, user_id, column_map, result)
        result.status = "complete" if result.total_rows > 0 else "failed"
    except Exception as e:
        session.rollback()
        logger.exception(f"Import batch {batch.id} failed: {e}")
        result.errors.append(RowError(None, f"{type(e).__name__}: {e}"))
        result.status = "failed"

    _finalize_batch(session, batch, result)

    log_import(
        f"Batch {result.batch_id} {result.status}: {result.new_fills} new, "
        f"{result.duplicate_fills} dupes, {result.trades_created} trades, "
        f"{result.error_rows} error rows",
        batch_id=result.batch_id,
        user_id=user_id,
    )
    return result


def _run_stages(
    session: Session,
    batch: ImportBatch,
    content: str,
    user_id: str,
    column_map: ColumnMapping | None,
    result: ImportResult,
) -> None:
    """Run every pipeline stage, accumulating into ``result``."""
    # Step 1: Normalize
    parsed = parse_csv(content, column_map)
    result.total_rows = parsed.total_rows
    result.errors.extend(parsed.errors)
    result.error_rows = len(parsed.errors)

    if parsed.total_rows == 0:
        result.errors.append(RowError(None, "File contains no data rows"))
        return

    if parsed.fills:
        days = [f.trading_day for f in parsed.fills]
        batch.date_range_start = min(days)
        batch.date_range_end = max(days)

    # Steps 2-3: Resolve accounts, then instruments, once per distinct key
    resolver = ReferenceResolver(session, user_id)
    account_ids = _resolve_all(
        resolver.resolve_account, [f.account_external_id for f in parsed.fills]
    )
    instrument_ids = _resolve_all(
        resolver.resolve_instrument, [f.root_symbol for f in parsed.fills]
    )
    session.commit()

    # Step 4: Deduplicate
    deduped = deduplicate_fills(session, parsed.fills, user_id)
    result.duplicate_fills = len(deduped.duplicates)

    # Step 5: Persist each new fill in its own savepoint
    inserted: list[Fill] = []
    for candidate in deduped.new_fills:
        account_id = account_ids.get(candidate.account_external_id)
        instrument_id = instrument_ids.get(candidate.root_symbol)
        if account_id is None or instrument_id is None:
            result.errors.append(
                RowError(
                    candidate.row,
                    f"Could not resolve account or instrument for fill {candidate.raw_fill_id or '?'}",
                )
            )
            result.error_rows += 1
            continue

        fill = _build_fill(candidate, batch.id, user_id, account_id, instrument_id)
        try:
            with session.begin_nested():
                session.add(fill)
                session.flush()
        except IntegrityError:
            # Stored by a concurrent import after our dedup query ran
            logger.warning(
                f"Row {candidate.row}: fill {candidate.raw_fill_id} inserted concurrently, "
                f"counting as duplicate"
            )
            result.duplicate_fills += 1
            continue
        inserted.append(fill)

    result.new_fills = len(inserted)
    session.commit()
    logger.info(f"Persisted {len(inserted)} new fills")

    # Step 6: Reconstruct trades
    trades = reconstruct_trades(session, inserted, user_id)
    result.trades_created = len(trades)
    session.commit()

    # Step 7: Recompute daily summaries from each account's earliest touched day
    earliest: dict[int, date] = {}
    for fill in inserted:
        day = earliest.get(fill.account_id)
        if day is None or fill.trading_day < day:
            earliest[fill.account_id] = fill.trading_day

    for account_id, start_day in sorted(earliest.items()):
        recalc_summaries_from(session, user_id, account_id, start_day)
    session.commit()


def _resolve_all(resolve, keys: list[str]) -> dict[str, int]:
    """Resolve each distinct key; unresolvable keys are left out of the map."""
    resolved: dict[str, int] = {}
    for key in dict.fromkeys(keys):
        try:
            resolved[key] = resolve(key)
        except ResolutionError as e:
            logger.warning(f"Could not resolve {key!r}: {e}")
    return resolved


def _build_fill(
    candidate: ParsedFill,
    batch_id: int,
    user_id: str,
    account_id: int,
    instrument_id: int,
) -> Fill:
    return Fill(
        import_batch_id=batch_id,
        user_id=user_id,
        account_id=account_id,
        instrument_id=instrument_id,
        fill_hash=candidate.fingerprint,
        raw_fill_id=candidate.raw_fill_id,
        raw_order_id=candidate.raw_order_id,
        raw_instrument=candidate.raw_instrument,
        root_symbol=candidate.root_symbol,
        side=candidate.side,
        quantity=candidate.quantity,
        price=candidate.price,
        fill_time=candidate.fill_time,
        commission=candidate.commission,
        fee=0.0,
        trading_day=candidate.trading_day,
    )


def _finalize_batch(session: Session, batch: ImportBatch, result: ImportResult) -> None:
    """Write final status, counts and errors to the batch row, once."""
    batch.status = result.status
    batch.total_rows = result.total_rows
    batch.new_fills = result.new_fills
    batch.duplicate_fills = result.duplicate_fills
    batch.trades_created = result.trades_created
    batch.error_rows = result.error_rows
    batch.error_details = [e.to_dict() for e in result.errors] or None
    batch.completed_at = utc_now()
    session.commit()

    logger.info(
        f"Import batch {batch.id} {batch.status}: {result.new_fills} new, "
        f"{result.duplicate_fills} skipped (dup), {result.error_rows} error rows, "
        f"{result.trades_created} trades"
    )
