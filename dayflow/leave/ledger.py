"""Leave balance ledger — per (employee, category, year) allocation and usage.

Debits and credits are single conditional UPDATE statements so two
concurrent approvals can never drive a balance negative: the predicate
``allocated - used >= days`` is evaluated by the database, and a
zero-row result means the balance was not there.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dayflow.common.constants import LeaveCategory
from dayflow.common.exceptions import InsufficientBalance, StorageConflict
from dayflow.config import settings
from dayflow.leave.models import LeaveBalance
from dayflow.leave.rules import is_tracked

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def default_allocations() -> dict[LeaveCategory, Decimal]:
    return {
        LeaveCategory.vacation: settings.DEFAULT_VACATION_DAYS,
        LeaveCategory.sick: settings.DEFAULT_SICK_DAYS,
        LeaveCategory.personal: settings.DEFAULT_PERSONAL_DAYS,
        LeaveCategory.unpaid: ZERO,
    }


class LeaveLedger:
    """Balance reads and conditional writes."""

    @staticmethod
    async def initialize(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalance]:
        """Create default allocation rows for *year*; existing rows are kept.

        Safe to call before every read or debit of a year: a concurrent
        initializer losing the unique-key race leaves the winner's rows.
        """
        existing = await db.execute(
            select(LeaveBalance.category).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
        )
        present = set(existing.scalars().all())
        allocations = default_allocations()
        missing = [c for c in allocations if c not in present]
        if not missing:
            return []

        created: list[LeaveBalance] = []
        try:
            async with db.begin_nested():
                for category in missing:
                    row = LeaveBalance(
                        employee_id=employee_id,
                        category=category,
                        year=year,
                        allocated=allocations[category],
                        used=ZERO,
                    )
                    db.add(row)
                    created.append(row)
                await db.flush()
        except IntegrityError:
            logger.info(
                "Leave balances for employee=%s year=%s created concurrently",
                employee_id, year,
            )
            return []

        logger.info(
            "Initialised %d leave balance rows for employee=%s year=%s",
            len(created), employee_id, year,
        )
        return created

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> dict[LeaveCategory, dict[str, Decimal]]:
        """Return ``{category: {allocated, used, remaining}}`` for every category.

        Categories without a row report zeros.
        """
        result = await db.execute(
            select(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
            )
            .execution_options(populate_existing=True)
        )
        rows = {b.category: b for b in result.scalars().all()}

        balances: dict[LeaveCategory, dict[str, Decimal]] = {}
        for category in LeaveCategory:
            row = rows.get(category)
            allocated = Decimal(row.allocated) if row else ZERO
            used = Decimal(row.used) if row else ZERO
            balances[category] = {
                "allocated": allocated,
                "used": used,
                "remaining": allocated - used,
            }
        return balances

    @staticmethod
    async def remaining(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        year: int,
    ) -> Decimal:
        result = await db.execute(
            select(LeaveBalance.allocated - LeaveBalance.used).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.category == category,
                LeaveBalance.year == year,
            )
        )
        value = result.scalar_one_or_none()
        return Decimal(str(value)) if value is not None else ZERO

    @staticmethod
    async def debit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        days: Decimal,
        year: int,
    ) -> None:
        """Consume *days* from the balance or raise ``InsufficientBalance``.

        Untracked categories (unpaid) are a no-op.
        """
        if not is_tracked(category) or days <= ZERO:
            return

        result = await db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.category == category,
                LeaveBalance.year == year,
                LeaveBalance.allocated - LeaveBalance.used >= days,
            )
            .values(used=LeaveBalance.used + days, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            left = await LeaveLedger.remaining(db, employee_id, category, year)
            logger.info(
                "Debit refused: employee=%s category=%s year=%s days=%s remaining=%s",
                employee_id, category.value, year, days, left,
            )
            raise InsufficientBalance(category.value, days, left)

        logger.info(
            "Debited %s day(s) of %s for employee=%s year=%s",
            days, category.value, employee_id, year,
        )

    @staticmethod
    async def credit(
        db: AsyncSession,
        employee_id: uuid.UUID,
        category: LeaveCategory,
        days: Decimal,
        year: int,
    ) -> None:
        """Return *days* previously debited. Untracked categories are a no-op."""
        if not is_tracked(category) or days <= ZERO:
            return

        result = await db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.category == category,
                LeaveBalance.year == year,
                LeaveBalance.used >= days,
            )
            .values(used=LeaveBalance.used - days, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.error(
                "Credit found no matching usage: employee=%s category=%s year=%s days=%s",
                employee_id, category.value, year, days,
            )
            raise StorageConflict("LeaveBalance", f"{employee_id}/{category.value}/{year}")

        logger.info(
            "Credited %s day(s) of %s for employee=%s year=%s",
            days, category.value, employee_id, year,
        )
