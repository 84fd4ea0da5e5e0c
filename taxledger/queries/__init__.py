"""Read-only ledger queries."""

from taxledger.queries.executor import LedgerQueries

__all__ = ["LedgerQueries"]
