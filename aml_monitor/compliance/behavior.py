from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from aml_monitor.compliance.models import coerce_transactions

def _dated(transactions: Iterable[Any], account_id: str) -> List[datetime]:
    stamps = [
        txn.occurred_at for txn in coerce_transactions(transactions)
        if txn.from_account == account_id
    ]
    return sorted(ts for ts in stamps if ts is not None)

def detect_velocity(
    transactions: Iterable[Any],
    account_id: str,
    reference_time: Optional[datetime] = None,
    max_transactions: int = 10,
    window: timedelta = timedelta(hours=1)
) -> bool:
    reference_time = reference_time or datetime.now(timezone.utc)
    recent = [ts for ts in _dated(transactions, account_id) if reference_time - ts < window]
    return len(recent) > max_transactions

def detect_dormant_activity(
    transactions: Iterable[Any],
    account_id: str,
    reference_time: Optional[datetime] = None,
    dormancy_days: int = 180,
    activity_window: timedelta = timedelta(hours=24)
) -> bool:
    """Recent activity on an account that was silent for more than ``dormancy_days``.

    Looks at the latest transaction inside ``activity_window`` and the one
    before it; an account with a single transaction on record is never dormant.
    """
    reference_time = reference_time or datetime.now(timezone.utc)
    stamps = [ts for ts in _dated(transactions, account_id) if ts <= reference_time]
    if len(stamps) < 2:
        return False

    latest, previous = stamps[-1], stamps[-2]
    if reference_time - latest >= activity_window:
        return False
    return latest - previous > timedelta(days=dormancy_days)

def build_transfer_graph(transactions: Iterable[Any]) -> Dict[str, Set[str]]:
    graph: Dict[str, Set[str]] = defaultdict(set)
    for txn in coerce_transactions(transactions):
        if txn.from_account and txn.to_account:
            graph[txn.from_account].add(txn.to_account)
    return graph

def detect_circular_transfer(
    transactions: Iterable[Any],
    account_id: str,
    max_depth: int = 3,
    graph: Optional[Dict[str, Set[str]]] = None
) -> bool:
    """Funds leaving ``account_id`` return to it within ``max_depth`` hops."""
    graph = graph if graph is not None else build_transfer_graph(transactions)
    frontier = {account_id}
    visited: Set[str] = set()

    for _ in range(max_depth):
        next_frontier: Set[str] = set()
        for account in frontier:
            for neighbour in graph.get(account, ()):
                if neighbour == account_id:
                    return True
                if neighbour not in visited:
                    visited.add(neighbour)
                    next_frontier.add(neighbour)
        if not next_frontier:
            break
        frontier = next_frontier

    return False

def cash_ratio(transactions: Iterable[Any], account_id: str) -> float:
    own = [txn for txn in coerce_transactions(transactions) if txn.from_account == account_id]
    if not own:
        return 0.0
    cash = sum(1 for txn in own if (txn.payment_format or "").lower() == "cash")
    return cash / len(own)
