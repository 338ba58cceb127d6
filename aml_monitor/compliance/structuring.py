from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
import logging

from aml_monitor.compliance.models import Transaction, coerce_transactions

logger = logging.getLogger(__name__)

STRUCTURING_THRESHOLD = 10000.0
STRUCTURING_WINDOW = timedelta(hours=24)
STRUCTURING_MIN_TRANSACTIONS = 3

def _in_window(txn: Transaction, reference_time: datetime, window: timedelta) -> bool:
    occurred_at = txn.occurred_at
    if occurred_at is None:
        return False
    return reference_time - occurred_at < window

def structuring_window(
    transactions: Iterable[Any],
    account_id: str,
    reference_time: Optional[datetime] = None,
    window: timedelta = STRUCTURING_WINDOW
) -> List[Transaction]:
    """Transactions originated by ``account_id`` in the trailing window.

    Records with an unparsable timestamp or a non-numeric amount never
    qualify. ``reference_time`` defaults to the current UTC time.
    """
    reference_time = reference_time or datetime.now(timezone.utc)
    return [
        txn for txn in coerce_transactions(transactions)
        if txn.from_account == account_id
        and txn.amount is not None
        and _in_window(txn, reference_time, window)
    ]

def is_structuring_pattern(
    window_txns: List[Transaction],
    threshold: float = STRUCTURING_THRESHOLD,
    min_transactions: int = STRUCTURING_MIN_TRANSACTIONS
) -> bool:
    if len(window_txns) < min_transactions:
        return False
    all_below = all(txn.amount < threshold for txn in window_txns)
    total = sum(txn.amount for txn in window_txns)
    return all_below and total > threshold

def detect_structuring(
    transactions: Iterable[Any],
    account_id: str,
    reference_time: Optional[datetime] = None,
    threshold: float = STRUCTURING_THRESHOLD,
    window: timedelta = STRUCTURING_WINDOW,
    min_transactions: int = STRUCTURING_MIN_TRANSACTIONS
) -> bool:
    window_txns = structuring_window(transactions, account_id, reference_time, window)
    return is_structuring_pattern(window_txns, threshold, min_transactions)

def structuring_accounts(
    transactions: Iterable[Any],
    reference_time: Optional[datetime] = None,
    threshold: float = STRUCTURING_THRESHOLD,
    window: timedelta = STRUCTURING_WINDOW,
    min_transactions: int = STRUCTURING_MIN_TRANSACTIONS
) -> Dict[str, List[Transaction]]:
    """Flagged originating accounts mapped to the transactions that form the pattern."""
    reference_time = reference_time or datetime.now(timezone.utc)
    by_account: Dict[str, List[Transaction]] = defaultdict(list)
    for txn in coerce_transactions(transactions):
        if txn.amount is not None and _in_window(txn, reference_time, window):
            by_account[txn.from_account].append(txn)

    flagged = {
        account: txns for account, txns in by_account.items()
        if is_structuring_pattern(txns, threshold, min_transactions)
    }
    if flagged:
        logger.info(f"Structuring detected for {len(flagged)} account(s)")
    return flagged
