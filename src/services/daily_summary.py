"""Daily summary recalculation.

Rolls an account's closed trades up per trading day and maintains the
cumulative P&L chain:

    cumulative_pnl(day) = sum(net_pnl of the account's days before day) + net_pnl(day)

Because the chain is a prefix sum, changing one day invalidates every
later day. ``recalc_summaries_from`` recomputes the chain as an explicit
ascending fold; ``recalc_daily_summary`` recomputes a single day and leaves
propagation to the caller.

Usage:
    from src.services.daily_summary import recalc_summaries_from

    days = recalc_summaries_from(session, user_id, account_id, date(2026, 2, 10))
"""

from dataclasses import dataclass, fields
from datetime import date

from loguru import logger
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.config.base import get_config
from src.data.models import DailySummary, Trade
from src.utils.calc import calc_profit_factor
from src.utils.timezone import utc_now


@dataclass
class DayMetrics:
    """Statistics for one (account, trading day), before the cumulative value."""

    trade_count: int = 0
    win_count: int = 0
    loss_count: int = 0
    breakeven_count: int = 0
    gross_pnl: float = 0.0
    net_pnl: float = 0.0
    commission_total: float = 0.0
    fees_total: float = 0.0
    win_rate: float | None = None
    profit_factor: float | None = None
    avg_win: float | None = None
    avg_loss: float | None = None
    largest_win: float | None = None
    largest_loss: float | None = None
    avg_r: float | None = None
    total_r: float | None = None
    max_contracts: int | None = None


def compute_day_metrics(trades: list[Trade], profit_factor_cap: float | None = None) -> DayMetrics:
    """Compute a day's statistics from its closed trades.

    Args:
        trades: Closed trades of one account and trading day.
        profit_factor_cap: Value reported when there are wins and no
            losses. Defaults to the configured cap.

    Returns:
        DayMetrics. Ratios and extremes are None when undefined.
    """
    if profit_factor_cap is None:
        profit_factor_cap = get_config().profit_factor_cap

    metrics = DayMetrics(trade_count=len(trades))
    if not trades:
        return metrics

    wins = [t.net_pnl for t in trades if t.outcome == "WIN"]
    losses = [t.net_pnl for t in trades if t.outcome == "LOSS"]

    metrics.win_count = len(wins)
    metrics.loss_count = len(losses)
    metrics.breakeven_count = sum(1 for t in trades if t.outcome == "BREAKEVEN")

    metrics.gross_pnl = round(sum(t.gross_pnl or 0.0 for t in trades), 2)
    metrics.net_pnl = round(sum(t.net_pnl or 0.0 for t in trades), 2)
    metrics.commission_total = sum(t.commission_total or 0.0 for t in trades)
    metrics.fees_total = sum(t.fees_total or 0.0 for t in trades)

    metrics.win_rate = metrics.win_count / metrics.trade_count * 100
    metrics.profit_factor = calc_profit_factor(sum(wins), sum(losses), profit_factor_cap)

    if wins:
        metrics.avg_win = sum(wins) / len(wins)
        metrics.largest_win = max(wins)
    if losses:
        metrics.avg_loss = sum(losses) / len(losses)
        metrics.largest_loss = min(losses)

    r_multiples = [t.r_multiple for t in trades if t.r_multiple is not None]
    if r_multiples:
        metrics.total_r = sum(r_multiples)
        metrics.avg_r = metrics.total_r / len(r_multiples)

    metrics.max_contracts = max(t.entry_qty for t in trades)
    return metrics


def _closed_trades(session: Session, user_id: str, account_id: int, trading_day: date) -> list[Trade]:
    return (
        session.query(Trade)
        .filter(
            Trade.user_id == user_id,
            Trade.account_id == account_id,
            Trade.trading_day == trading_day,
            Trade.is_open == False,  # noqa: E712
        )
        .order_by(Trade.entry_time, Trade.id)
        .all()
    )


def _prior_net_pnl(session: Session, user_id: str, account_id: int, before: date) -> float:
    """Sum of stored net P&L for the account's days strictly before ``before``."""
    total = (
        session.query(func.coalesce(func.sum(DailySummary.net_pnl), 0.0))
        .filter(
            DailySummary.user_id == user_id,
            DailySummary.account_id == account_id,
            DailySummary.trading_day < before,
        )
        .scalar()
    )
    return float(total or 0.0)


def _upsert_summary(
    session: Session,
    user_id: str,
    account_id: int,
    trading_day: date,
    metrics: DayMetrics,
    cumulative_pnl: float,
) -> DailySummary:
    """Insert or update the (user, account, day) row."""
    summary = (
        session.query(DailySummary)
        .filter(
            DailySummary.user_id == user_id,
            DailySummary.account_id == account_id,
            DailySummary.trading_day == trading_day,
        )
        .one_or_none()
    )
    if summary is None:
        summary = DailySummary(user_id=user_id, account_id=account_id, trading_day=trading_day)
        session.add(summary)

    for metric in fields(DayMetrics):
        setattr(summary, metric.name, getattr(metrics, metric.name))
    summary.cumulative_pnl = round(cumulative_pnl, 2)
    summary.updated_at = utc_now()

    session.flush()
    return summary


def recalc_daily_summary(
    session: Session,
    user_id: str,
    account_id: int,
    trading_day: date,
) -> DailySummary:
    """Recompute and upsert one day's summary.

    Later days are not touched; callers that change historical trades
    must use ``recalc_summaries_from`` so their cumulative values follow.

    Args:
        session: SQLAlchemy session.
        user_id: Owning user (always written explicitly).
        account_id: Account whose day to recompute.
        trading_day: Broker trading day.

    Returns:
        The upserted DailySummary.
    """
    metrics = compute_day_metrics(_closed_trades(session, user_id, account_id, trading_day))
    cumulative = _prior_net_pnl(session, user_id, account_id, trading_day) + metrics.net_pnl
    return _upsert_summary(session, user_id, account_id, trading_day, metrics, cumulative)


def _days_from(session: Session, user_id: str, account_id: int, start_day: date) -> list[date]:
    """Days on or after ``start_day`` that have trades or a stored summary."""
    trade_days = (
        session.query(Trade.trading_day)
        .filter(
            Trade.user_id == user_id,
            Trade.account_id == account_id,
            Trade.trading_day >= start_day,
        )
        .distinct()
        .all()
    )
    summary_days = (
        session.query(DailySummary.trading_day)
        .filter(
            DailySummary.user_id == user_id,
            DailySummary.account_id == account_id,
            DailySummary.trading_day >= start_day,
        )
        .all()
    )
    return sorted({row.trading_day for row in trade_days} | {row.trading_day for row in summary_days})


def recalc_summaries_from(
    session: Session,
    user_id: str,
    account_id: int,
    start_day: date,
) -> list[date]:
    """Recompute the cumulative chain from ``start_day`` through the last day with data.

    Days are folded strictly ascending; each day's cumulative value builds
    on the one computed just before it. Days before ``start_day`` are read
    (their net P&L seeds the fold) but never written.

    Returns:
        The trading days recomputed, ascending.
    """
    days = _days_from(session, user_id, account_id, start_day)
    if not days:
        return []

    cumulative = _prior_net_pnl(session, user_id, account_id, start_day)
    for trading_day in days:
        metrics = compute_day_metrics(_closed_trades(session, user_id, account_id, trading_day))
        cumulative += metrics.net_pnl
        _upsert_summary(session, user_id, account_id, trading_day, metrics, cumulative)

    logger.info(
        f"Recalculated {len(days)} daily summaries for account {account_id} "
        f"({days[0]} → {days[-1]}), cumulative={cumulative:.2f}"
    )
    return days


def recalc_account(session: Session, user_id: str, account_id: int) -> list[date]:
    """Rebuild an account's entire summary chain from its earliest day."""
    first_trade_day = (
        session.query(func.min(Trade.trading_day))
        .filter(Trade.user_id == user_id, Trade.account_id == account_id)
        .scalar()
    )
    first_summary_day = (
        session.query(func.min(DailySummary.trading_day))
        .filter(DailySummary.user_id == user_id, DailySummary.account_id == account_id)
        .scalar()
    )
    candidates = [d for d in (first_trade_day, first_summary_day) if d is not None]
    if not candidates:
        logger.info(f"No trades for account {account_id}, nothing to recalculate")
        return []
    return recalc_summaries_from(session, user_id, account_id, min(candidates))
