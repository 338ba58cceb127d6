import argparse
import json
import random
import sys
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from faker import Faker

from aml_monitor.compliance.models import Transaction
from aml_monitor.config.settings import get_config

COUNTRIES = ['US', 'UK', 'IN', 'DE', 'CN', 'RU', 'AE', 'SG', 'CH', 'NG', 'BR', 'JP', 'KR', 'PK', 'IR']
PAYMENT_FORMATS = ['Wire', 'ACH', 'SWIFT', 'RTGS', 'Cash', 'Crypto', 'Check']
TRANSACTION_TYPES = ['Transfer', 'Deposit', 'Withdrawal', 'Payment', 'Exchange']

class TransactionGenerator:
    """Synthetic AML transactions.

    Roughly ``laundering_ratio`` of the records are laundering cases, half of
    them just under the reporting threshold and half well above it.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        laundering_ratio: float = 0.12,
        history_days: int = 90,
        now: Optional[datetime] = None
    ):
        self.random = random.Random(seed)
        self.fake = Faker()
        if seed is not None:
            self.fake.seed_instance(seed)
        self.laundering_ratio = laundering_ratio
        self.history_days = history_days
        self.now = now or datetime.now(timezone.utc)

    def _transaction_id(self) -> str:
        return "TXN-" + self.fake.bothify("????####", letters="ABCDEFGHIJKLMNOPQRSTUVWXYZ")

    def _account_id(self) -> str:
        return f"ACC-{self.random.randint(1000, 9999)}"

    def create_transaction(self) -> Transaction:
        is_laundering = self.random.random() < self.laundering_ratio
        if is_laundering:
            amount = (
                self.random.randint(8000, 9999) if self.random.random() < 0.5
                else self.random.randint(15000, 500000)
            )
        else:
            amount = self.random.randint(50, 25000)

        occurred_at = self.now - timedelta(
            days=self.random.randint(0, self.history_days),
            seconds=self.random.randint(0, 86399)
        )

        return Transaction(
            id=self._transaction_id(),
            timestamp=occurred_at.isoformat(),
            from_account=self._account_id(),
            to_account=self._account_id(),
            amount=float(amount),
            currency="USD",
            from_country=self.random.choice(COUNTRIES),
            to_country=self.random.choice(COUNTRIES),
            transaction_type=self.random.choice(TRANSACTION_TYPES),
            payment_format=self.random.choice(PAYMENT_FORMATS),
            is_laundering=is_laundering
        )

    def structuring_burst(self, account_id: Optional[str] = None, count: int = 5) -> List[Transaction]:
        # Smurfing scenario: several deposits just below the threshold within a few hours.
        account_id = account_id or self._account_id()
        country = self.random.choice(COUNTRIES)
        return [
            Transaction(
                id=self._transaction_id(),
                timestamp=(self.now - timedelta(minutes=35 * i + 1)).isoformat(),
                from_account=account_id,
                to_account=self._account_id(),
                amount=float(self.random.randint(9500, 9900)),
                currency="USD",
                from_country=country,
                to_country=country,
                transaction_type="Deposit",
                payment_format="Cash",
                is_laundering=True
            )
            for i in range(count)
        ]

    def generate(self, count: int, structuring_bursts: int = 0) -> List[Transaction]:
        txns = [self.create_transaction() for _ in range(count)]
        for _ in range(structuring_bursts):
            txns.extend(self.structuring_burst())
        # Newest first
        return sorted(txns, key=lambda t: t.timestamp, reverse=True)

def main(argv: Optional[List[str]] = None):
    config = get_config().generator

    parser = argparse.ArgumentParser(description="Generate synthetic AML transactions as JSON lines")
    parser.add_argument("--count", type=int, default=config.transaction_count)
    parser.add_argument("--seed", type=int, default=config.seed)
    parser.add_argument("--structuring-bursts", type=int, default=0)
    args = parser.parse_args(argv)

    generator = TransactionGenerator(
        seed=args.seed,
        laundering_ratio=config.laundering_ratio,
        history_days=config.history_days
    )
    for txn in generator.generate(args.count, args.structuring_bursts):
        sys.stdout.write(json.dumps(txn.to_dict()) + "\n")

if __name__ == "__main__":
    main()
