"""
PeriodService -- accounting period lifecycle and posting gate.

Responsibility:
    Opens (month, year) periods, closes them, and answers the journal
    engine's question "may I post on this date?" inside the posting
    transaction.

Architecture position:
    Kernel > Services.  Called by JournalService on every post and by the
    request-level close operation.

Invariants enforced:
    - Period states are open -> closed; closed is terminal.
    - No journal dated in a closed period is ever inserted.
    - Close is serialized against in-flight postings:
        * posting reads the period row FOR SHARE inside its own transaction;
        * close takes FOR UPDATE NOWAIT, so it fails fast with
          PeriodBusyError while any posting holds the shared lock, and a
          posting that starts after the close waits, then sees is_closed.
    - Returns frozen ``PeriodInfo`` DTOs.  Flush-only.

Failure modes:
    - PeriodNotFoundError, PeriodClosedError, AlreadyClosedError,
      PeriodBusyError, PeriodAlreadyExistsError, InvalidPeriodError.

Audit relevance:
    period_opened / period_closed are logged with month, year and actor.
    Posting attempts into closed periods are logged at WARNING.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from ledger_kernel.domain.dtos import PeriodInfo
from ledger_kernel.exceptions import (
    AlreadyClosedError,
    InvalidPeriodError,
    PeriodAlreadyExistsError,
    PeriodBusyError,
    PeriodClosedError,
    PeriodNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService):
    """
    Service for the accounting period lifecycle.

    Contract:
        Lifecycle methods flush within the caller's transaction.
        ``lock_period_for_posting`` must be called in the same transaction
        that inserts the journal.

    Non-goals:
        - No reopen path.  Reopening is an administrative override outside
          the kernel.
    """

    def _select(self, month: int, year: int):
        return select(AccountingPeriod).where(
            AccountingPeriod.month == month,
            AccountingPeriod.year == year,
        )

    @staticmethod
    def _validate_key(month: int, year: int) -> None:
        if not isinstance(month, int) or not 1 <= month <= 12 or not isinstance(year, int):
            raise InvalidPeriodError(month, year)

    def open_period(self, month: int, year: int) -> PeriodInfo:
        """
        Create an open period for (month, year).

        Raises:
            InvalidPeriodError: month outside 1..12.
            PeriodAlreadyExistsError: row already exists.
        """
        self._validate_key(month, year)
        if self.session.execute(self._select(month, year)).scalar_one_or_none() is not None:
            raise PeriodAlreadyExistsError(month, year)

        period = AccountingPeriod(month=month, year=year, is_closed=False)
        self.session.add(period)
        self.session.flush()

        logger.info("period_opened", extra={"month": month, "year": year})
        return period.to_dto()

    def ensure_year(self, year: int) -> list[PeriodInfo]:
        """Open every missing month of ``year``; existing rows are returned as-is."""
        periods = []
        for month in range(1, 13):
            existing = self.session.execute(self._select(month, year)).scalar_one_or_none()
            periods.append(existing.to_dto() if existing else self.open_period(month, year))
        return periods

    def get_period(self, month: int, year: int) -> PeriodInfo:
        period = self.session.execute(self._select(month, year)).scalar_one_or_none()
        if period is None:
            raise PeriodNotFoundError(month, year)
        return period.to_dto()

    def get_period_for_date(self, entry_date: date) -> PeriodInfo:
        return self.get_period(entry_date.month, entry_date.year)

    def list_periods(self, year: int | None = None) -> list[PeriodInfo]:
        stmt = select(AccountingPeriod).order_by(AccountingPeriod.year, AccountingPeriod.month)
        if year is not None:
            stmt = stmt.where(AccountingPeriod.year == year)
        return [p.to_dto() for p in self.session.execute(stmt).scalars()]

    def is_open(self, entry_date: date) -> bool:
        period = self.session.execute(
            self._select(entry_date.month, entry_date.year)
        ).scalar_one_or_none()
        return period is not None and not period.is_closed

    def close_period(self, month: int, year: int, closed_by: str) -> PeriodInfo:
        """
        Close a period.

        Preconditions:
            Caller owns the transaction and commits on success.

        Postconditions:
            ``is_closed`` is true, ``closed_at`` is the clock time and
            ``closed_by`` the actor.  Later postings dated in the period fail
            with PeriodClosedError.

        Raises:
            PeriodNotFoundError: no row for (month, year).
            AlreadyClosedError: already closed.
            PeriodBusyError: a posting transaction holds the period row.
        """
        self._validate_key(month, year)
        try:
            period = self.session.execute(
                self._select(month, year)
                .with_for_update(nowait=True)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        except OperationalError as exc:
            logger.warning(
                "period_close_blocked_by_postings",
                extra={"month": month, "year": year},
            )
            raise PeriodBusyError(month, year) from exc

        if period is None:
            raise PeriodNotFoundError(month, year)
        if period.is_closed:
            raise AlreadyClosedError(month, year)

        period.is_closed = True
        period.closed_at = self.clock.now()
        period.closed_by = closed_by
        self.session.flush()

        logger.info(
            "period_closed",
            extra={"month": month, "year": year, "closed_by": closed_by},
        )
        return period.to_dto()

    def lock_period_for_posting(self, entry_date: date) -> PeriodInfo:
        """
        Take a shared lock on the period covering ``entry_date`` and verify
        it is open.  Called by JournalService inside the posting transaction.

        Raises:
            PeriodNotFoundError, PeriodClosedError.
        """
        month, year = entry_date.month, entry_date.year
        period = self.session.execute(
            self._select(month, year)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if period is None:
            raise PeriodNotFoundError(month, year)
        if period.is_closed:
            logger.warning(
                "posting_rejected_period_closed",
                extra={"month": month, "year": year, "entry_date": entry_date},
            )
            raise PeriodClosedError(month, year, str(entry_date))
        return period.to_dto()
