"""Reconstruct trades from fills using the flat-to-flat convention.

Grouping logic:
- Fills are partitioned by (account_id, instrument_id)
- Each partition is walked in fill_time order with a signed running
  position (+qty BUY, -qty SELL)
- Every return to exactly zero closes a trade
- Fills left over with a non-zero position form one trailing open trade

Sorting is stable, so fills sharing a timestamp keep their insertion
order, which decides the segment a simultaneous fill joins.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.orm import Session

from src.data.models import Instrument, Trade
from src.journal.models import Fill
from src.utils.calc import calc_gross_pnl, classify_outcome, weighted_average_price

GROUPING_METHOD = "flat_to_flat"


@dataclass
class FillSegment:
    """Consecutive fills of one (account, instrument) group."""

    fills: list[Fill]
    is_open: bool


def _group_key(fill: Fill) -> tuple:
    """Generate a grouping key for a fill."""
    return (fill.account_id, fill.instrument_id)


def segment_fills(fills: list[Fill]) -> list[FillSegment]:
    """Split one group's fills into flat-to-flat segments.

    Args:
        fills: Fills of a single (account, instrument) group, any order.

    Returns:
        Closed segments in time order, then at most one open segment.
    """
    ordered = sorted(fills, key=lambda f: f.fill_time)

    segments: list[FillSegment] = []
    position = 0
    current: list[Fill] = []

    for fill in ordered:
        position += fill.signed_quantity
        current.append(fill)
        if position == 0:
            segments.append(FillSegment(fills=current, is_open=False))
            current = []

    if current:
        segments.append(FillSegment(fills=current, is_open=True))

    return segments


def build_trade(segment: FillSegment, user_id: str, multiplier: float) -> Trade:
    """Compute a Trade row from one segment.

    Side is fixed by the opening fill. Entry fills share its side; exit
    fills are on the opposite side.

    Args:
        segment: Fills of one trade in time order.
        user_id: Owning user.
        multiplier: Current instrument multiplier (money per point per contract).

    Returns:
        Unsaved Trade.
    """
    fills = segment.fills
    first = fills[0]

    side = "LONG" if first.side == "BUY" else "SHORT"
    entry_fills = [f for f in fills if f.side == first.side]
    exit_fills = [f for f in fills if f.side != first.side]

    entry_qty = sum(f.quantity for f in entry_fills)
    exit_qty = sum(f.quantity for f in exit_fills)

    avg_entry_price = weighted_average_price((f.price, f.quantity) for f in entry_fills)
    avg_exit_price = weighted_average_price((f.price, f.quantity) for f in exit_fills)

    entry_time = min(f.fill_time for f in entry_fills)
    exit_time = max(f.fill_time for f in exit_fills) if exit_fills else None

    if segment.is_open:
        duration_seconds = None
        gross_pnl = 0.0
        outcome = None
    else:
        duration_seconds = round((exit_time - entry_time).total_seconds())
        gross_pnl = calc_gross_pnl(side, avg_entry_price, avg_exit_price, exit_qty, multiplier)

    commission_total = sum(f.commission or 0.0 for f in fills)
    fees_total = 0.0
    net_pnl = round(gross_pnl - commission_total - fees_total, 2)

    if not segment.is_open:
        outcome = classify_outcome(net_pnl)

    return Trade(
        user_id=user_id,
        account_id=first.account_id,
        instrument_id=first.instrument_id,
        root_symbol=first.root_symbol,
        trading_day=first.trading_day,
        entry_time=entry_time,
        exit_time=exit_time,
        duration_seconds=duration_seconds,
        side=side,
        entry_qty=entry_qty,
        exit_qty=exit_qty,
        avg_entry_price=avg_entry_price,
        avg_exit_price=avg_exit_price,
        is_open=segment.is_open,
        gross_pnl=gross_pnl,
        commission_total=commission_total,
        fees_total=fees_total,
        net_pnl=net_pnl,
        outcome=outcome,
        grouping_method=GROUPING_METHOD,
    )


def reconstruct_trades(session: Session, fills: list[Fill], user_id: str) -> list[Trade]:
    """Build and persist trades from freshly inserted fills.

    Each fill's ``trade_id`` is set to the trade it lands in. Instrument
    multipliers are read from the instruments table at call time.

    Args:
        session: SQLAlchemy session.
        fills: Persisted fills (with account_id/instrument_id), in insertion order.
        user_id: Owning user.

    Returns:
        Trades created, in group then time order.
    """
    if not fills:
        return []

    groups: dict[tuple, list[Fill]] = {}
    for fill in fills:
        groups.setdefault(_group_key(fill), []).append(fill)

    logger.info(f"Reconstructing trades from {len(fills)} fills in {len(groups)} groups")

    multipliers: dict[int, float] = {}
    created: list[Trade] = []

    for (account_id, instrument_id), group_fills in groups.items():
        if instrument_id not in multipliers:
            instrument = session.get(Instrument, instrument_id)
            if instrument is None:
                logger.warning(
                    f"Instrument {instrument_id} not found for account {account_id}: "
                    f"pricing {len(group_fills)} fills with multiplier 1, P&L is in raw points"
                )
            multipliers[instrument_id] = instrument.multiplier if instrument else 1.0

        for segment in segment_fills(group_fills):
            trade = build_trade(segment, user_id, multipliers[instrument_id])
            session.add(trade)
            session.flush()

            for fill in segment.fills:
                fill.trade_id = trade.id

            created.append(trade)
            logger.debug(f"Created {trade!r} from {len(segment.fills)} fills")

    session.flush()

    open_count = sum(1 for t in created if t.is_open)
    logger.info(f"Created {len(created)} trades ({open_count} open)")
    return created
