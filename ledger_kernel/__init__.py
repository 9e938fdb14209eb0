"""
Ledger Kernel

Offline inventory ledger over an embedded, schema-versioned store:
- Daily stock snapshots per product and business date
- Append-only stock movement log
- Weighted moving average costing
- Invoice totals and payment status with Decimal arithmetic
"""

__version__ = "0.1.0"
