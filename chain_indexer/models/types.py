"""
Standard type definitions for database models.

Provides consistent types for on-chain amounts and JSON payloads.
"""

from sqlalchemy import JSON, BigInteger, Numeric
from sqlalchemy.dialects.postgresql import JSONB

# Integer amounts up to 2**256 - 1 (78 decimal digits)
# Suitable for: wei values, ERC-20 raw amounts, gas prices
WeiType = Numeric(78, 0)

# Bitcoin amounts in satoshi (21e14 fits comfortably in 64 bits)
SatoshiType = BigInteger

# Raw transaction structures: JSONB on PostgreSQL, JSON elsewhere
JsonType = JSON().with_variant(JSONB(), "postgresql")
