"""Cost ledger: append-only spend records and reporting."""

from vidscribe.ledger.report import format_cost
from vidscribe.ledger.store import CostLedger, LedgerError

__all__ = ["CostLedger", "LedgerError", "format_cost"]
