"""
Demo data and the predefined category list.

The ephemeral store is seeded from here when no persisted backend is
configured. Seeded balances are derived from the opening balance and
the seeded transactions so the ledger invariant holds from the start.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

from finboard.models.ledger import (
    Account,
    AccountType,
    Category,
    Holding,
    Transaction,
    TransactionType,
)


CATEGORIES: list[Category] = [
    Category(id="c1", name="Salary", type=TransactionType.INCOME),
    Category(id="c2", name="Investment", type=TransactionType.INCOME),
    Category(id="c3", name="Bonus", type=TransactionType.INCOME),
    Category(id="c4", name="Food", type=TransactionType.EXPENSE),
    Category(id="c5", name="Transport", type=TransactionType.EXPENSE),
    Category(id="c6", name="Housing", type=TransactionType.EXPENSE),
    Category(id="c7", name="Entertainment", type=TransactionType.EXPENSE),
    Category(id="c8", name="Shopping", type=TransactionType.EXPENSE),
    Category(id="c9", name="Utilities", type=TransactionType.EXPENSE),
]


def categories_for(tx_type: TransactionType) -> list[Category]:
    """Categories offered for one transaction direction."""
    return [c for c in CATEGORIES if c.type == tx_type]


def demo_transactions() -> list[Transaction]:
    return [
        Transaction(id="t1", account_id="1", amount=Decimal("50000"),
                    type=TransactionType.INCOME, category="Salary",
                    date=date(2023, 10, 5), description="October Salary"),
        Transaction(id="t2", account_id="2", amount=Decimal("2500"),
                    type=TransactionType.EXPENSE, category="Food",
                    date=date(2023, 10, 6), description="Dinner with friends"),
        Transaction(id="t3", account_id="1", amount=Decimal("1200"),
                    type=TransactionType.EXPENSE, category="Transport",
                    date=date(2023, 10, 7), description="High Speed Rail"),
        Transaction(id="t4", account_id="3", amount=Decimal("300"),
                    type=TransactionType.EXPENSE, category="Entertainment",
                    date=date(2023, 10, 8), description="Movie ticket"),
        Transaction(id="t5", account_id="1", amount=Decimal("15000"),
                    type=TransactionType.EXPENSE, category="Rent",
                    date=date(2023, 10, 1), description="Monthly Rent"),
    ]


def demo_accounts(transactions: list[Transaction]) -> list[Account]:
    """Demo accounts with balances consistent with `transactions`."""
    openings = [
        ("1", "中國信託 (CTBC) Main", AccountType.BANK, Decimal("150000")),
        ("2", "國泰世華 (Cathay)", AccountType.BANK, Decimal("45000")),
        ("3", "Wallet Cash", AccountType.CASH, Decimal("3200")),
    ]
    accounts = []
    for account_id, name, account_type, opening in openings:
        movement = sum(
            (t.signed_amount for t in transactions if t.account_id == account_id),
            Decimal("0"),
        )
        accounts.append(Account(
            id=account_id,
            name=name,
            type=account_type,
            opening_balance=opening,
            balance=opening + movement,
            currency="TWD",
        ))
    return accounts


def demo_holdings() -> list[Holding]:
    now = datetime.now(timezone.utc)
    return [
        Holding(symbol="2330.TW", name="TSMC", quantity=Decimal("1000"),
                average_cost=Decimal("500"), current_price=Decimal("980"),
                last_updated=now),
        Holding(symbol="0050.TW", name="Yuanta Taiwan 50", quantity=Decimal("2000"),
                average_cost=Decimal("120"), current_price=Decimal("185"),
                last_updated=now),
        Holding(symbol="AAPL", name="Apple Inc.", quantity=Decimal("10"),
                average_cost=Decimal("150"), current_price=Decimal("220"),
                last_updated=now),
        Holding(symbol="NVDA", name="NVIDIA", quantity=Decimal("5"),
                average_cost=Decimal("400"), current_price=Decimal("900"),
                last_updated=now),
    ]
