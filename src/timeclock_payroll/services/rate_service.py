"""Append-only pay rate records."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from timeclock_payroll.calculators.normalizer import to_instant
from timeclock_payroll.calculators.rate_resolver import RateResolver
from timeclock_payroll.calculators.types import RateRecord
from timeclock_payroll.models import PayRate


class PayRateService:
    """Records rate changes without touching earlier rates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_pay_rate(
        self,
        business_id: str,
        user_id: str,
        hourly_rate_cents: int,
        effective_from: datetime | date | str,
    ) -> PayRate:
        """Append a new rate effective from ``effective_from``.

        Raises:
            ValueError: If the rate is not positive or the date is unparseable
        """
        if isinstance(hourly_rate_cents, bool) or hourly_rate_cents <= 0:
            raise ValueError(f"Hourly rate must be a positive number of cents, got {hourly_rate_cents}")
        effective = to_instant(effective_from)
        if effective is None:
            raise ValueError(f"Unparseable effective date {effective_from!r}")

        rate = PayRate(
            business_id=business_id,
            user_id=user_id,
            hourly_rate_cents=hourly_rate_cents,
            effective_from=effective,
        )
        self.session.add(rate)
        await self.session.flush()
        return rate

    async def list_pay_rates(self, business_id: str, user_id: str) -> list[RateRecord]:
        return await RateResolver(self.session).get_rate_records(business_id, user_id)
