"""Look up or create the account and instrument behind each fill.

Accounts are keyed by the broker's external id, instruments by root
symbol, both scoped to the owning user. Each resolver instance caches its
answers, so a batch makes one lookup-or-create per distinct key rather
than one per fill.
"""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config.base import get_config
from src.data.models import Account, Instrument


class ResolutionError(Exception):
    """Raised when an identifier cannot be mapped to a reference entity."""
    pass


@dataclass(frozen=True)
class InstrumentDefaults:
    """Starting economics for a known futures root; users may edit them later."""

    display_name: str
    tick_size: float
    tick_value: float
    commission_per_side: float
    is_micro: bool

    @property
    def multiplier(self) -> float:
        return self.tick_value / self.tick_size


KNOWN_INSTRUMENTS: dict[str, InstrumentDefaults] = {
    # Micro futures
    "MNQ": InstrumentDefaults("Micro Nasdaq", 0.25, 0.5, 0.5, True),
    "MES": InstrumentDefaults("Micro S&P", 0.25, 1.25, 0.5, True),
    "MGC": InstrumentDefaults("Micro Gold", 0.1, 1.0, 0.8, True),
    "MYM": InstrumentDefaults("Micro Dow", 1.0, 0.5, 0.5, True),
    "M2K": InstrumentDefaults("Micro Russell", 0.1, 0.5, 0.5, True),
    "MCL": InstrumentDefaults("Micro Crude Oil", 0.01, 1.0, 0.5, True),
    # Standard futures
    "NQ": InstrumentDefaults("E-mini Nasdaq", 0.25, 5.0, 2.05, False),
    "ES": InstrumentDefaults("E-mini S&P", 0.25, 12.5, 2.05, False),
    "GC": InstrumentDefaults("Gold", 0.1, 10.0, 2.05, False),
    "CL": InstrumentDefaults("Crude Oil", 0.01, 10.0, 2.05, False),
    "YM": InstrumentDefaults("E-mini Dow", 1.0, 5.0, 2.05, False),
    "RTY": InstrumentDefaults("E-mini Russell", 0.1, 5.0, 2.05, False),
}


def build_instrument(user_id: str, root_symbol: str) -> Instrument:
    """New Instrument row for ``root_symbol`` with default economics.

    Unknown symbols get zeroed tick values, multiplier 1 and
    ``needs_configuration`` so the user is prompted to fill them in.
    """
    defaults = KNOWN_INSTRUMENTS.get(root_symbol)
    if defaults is None:
        return Instrument(
            user_id=user_id,
            root_symbol=root_symbol,
            display_name=root_symbol,
            tick_size=0.0,
            tick_value=0.0,
            multiplier=1.0,
            commission_per_side=0.0,
            is_micro=False,
            needs_configuration=True,
        )

    return Instrument(
        user_id=user_id,
        root_symbol=root_symbol,
        display_name=defaults.display_name,
        tick_size=defaults.tick_size,
        tick_value=defaults.tick_value,
        multiplier=round(defaults.multiplier, 4),
        commission_per_side=defaults.commission_per_side,
        is_micro=defaults.is_micro,
        needs_configuration=False,
    )


class ReferenceResolver:
    """Per-batch lookup-or-create of accounts and instruments.

    Example:
        >>> resolver = ReferenceResolver(session, user_id="u-1")
        >>> account_id = resolver.resolve_account("LFE0506373520003")
        >>> instrument_id = resolver.resolve_instrument("MNQ")
    """

    def __init__(self, session: Session, user_id: str, broker: str | None = None) -> None:
        self.session = session
        self.user_id = user_id
        self.broker = broker or get_config().default_broker
        self._accounts: dict[str, int] = {}
        self._instruments: dict[str, int] = {}

    def resolve_account(self, external_id: str) -> int:
        """Return the account id for ``external_id``, creating it on first sight.

        New accounts are named after their external id until the user
        renames them.

        Raises:
            ResolutionError: If external_id is blank.
        """
        if not external_id:
            raise ResolutionError("Missing account identifier")

        if external_id in self._accounts:
            return self._accounts[external_id]

        account_id = self._get_or_create(
            lookup=lambda: self.session.query(Account)
            .filter(Account.user_id == self.user_id, Account.external_id == external_id)
            .one_or_none(),
            build=lambda: Account(
                user_id=self.user_id,
                name=external_id,
                external_id=external_id,
                broker=self.broker,
            ),
        )
        self._accounts[external_id] = account_id
        return account_id

    def resolve_instrument(self, root_symbol: str) -> int:
        """Return the instrument id for ``root_symbol``, creating it on first sight.

        Raises:
            ResolutionError: If root_symbol is blank.
        """
        if not root_symbol:
            raise ResolutionError("Missing root symbol")

        if root_symbol in self._instruments:
            return self._instruments[root_symbol]

        instrument_id = self._get_or_create(
            lookup=lambda: self.session.query(Instrument)
            .filter(Instrument.user_id == self.user_id, Instrument.root_symbol == root_symbol)
            .one_or_none(),
            build=lambda: build_instrument(self.user_id, root_symbol),
        )
        self._instruments[root_symbol] = instrument_id
        return instrument_id

    def _get_or_create(self, lookup, build) -> int:
        """Idempotent upsert: lookup, else insert in a savepoint, else re-lookup.

        A unique violation on insert means another writer created the row
        between our lookup and insert; the second lookup picks it up.
        """
        existing = lookup()
        if existing is not None:
            return existing.id

        entity = build()
        try:
            with self.session.begin_nested():
                self.session.add(entity)
                self.session.flush()
        except IntegrityError:
            existing = lookup()
            if existing is None:
                raise
            return existing.id

        if isinstance(entity, Instrument) and entity.needs_configuration:
            logger.warning(
                f"Unknown instrument {entity.root_symbol!r}: created with neutral "
                f"economics (multiplier 1), configure tick size/value before relying on P&L"
            )
        else:
            logger.info(f"Created {entity!r}")
        return entity.id
