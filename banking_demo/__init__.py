"""
Banking Demo Backend

A banking demo with investment bookkeeping, paginated account statements
and a hash-chained audit trail. All monetary values use Decimal.
"""

__version__ = "1.0.0"
