"""
Standard type definitions for database models.

Provides consistent types for monetary, rate and timestamp fields across all
models.
"""

from datetime import UTC, datetime

from sqlalchemy import DECIMAL, DateTime
from sqlalchemy.types import TypeDecorator

# Crypto amounts and received values
# Precision: 18 digits total, 8 after decimal point (satoshi precision)
MoneyType = DECIMAL(18, 8)

# USD prices and commission amounts
# Precision: 18 digits total, 2 after decimal point
UsdType = DECIMAL(18, 2)

# Commission rate percentages
# Precision: 10 digits total, 6 after decimal point
# Suitable for: 0.079375%, 10.000000%
RatePercentType = DECIMAL(10, 6)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp.

    Backends without native timezone support (SQLite) return naive values;
    those are read back as UTC so comparisons with `datetime.now(UTC)` work.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


def utcnow() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)
