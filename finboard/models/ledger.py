"""
Core Data Models for finboard

These models define the schemas for everything the ledger and the
price-sync core exchange with the store and the UI:
1. Accounts and Transactions (the ledger)
2. Holdings (the stock portfolio)
3. Quotes and Sources (transient price-lookup output)

DESIGN DECISION: Money is Decimal everywhere it is persisted.
Balance arithmetic must round-trip exactly: reverting a transaction
has to restore the balance bit-for-bit, which float cannot promise.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


def new_id() -> str:
    """Generate a store key for a new account or transaction."""
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """Kinds of account the dashboard tracks."""
    BANK = "Bank"
    CASH = "Cash"
    INVESTMENT = "Investment"
    CREDIT_CARD = "CreditCard"


class TransactionType(str, Enum):
    """
    Direction of a transaction.

    Income adds to the account balance, Expense subtracts from it.
    """
    INCOME = "Income"
    EXPENSE = "Expense"


class Collection(str, Enum):
    """Collections held by a ledger store."""
    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"
    HOLDINGS = "holdings"


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Account(BaseModel):
    """
    A bank, cash, investment or credit-card account.

    INVARIANT: balance == opening_balance + sum of signed amounts of
    every transaction referencing this account. Only TransactionLedger
    may move the balance.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique account ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name of the account"
    )
    type: AccountType = Field(
        default=AccountType.BANK,
        description="Account type"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        description="Balance before any recorded transaction"
    )
    balance: Optional[Decimal] = Field(
        default=None,
        description="Cached current balance"
    )
    currency: str = Field(
        default="TWD",
        min_length=3,
        max_length=3,
        description="ISO currency code"
    )

    @model_validator(mode='after')
    def default_balance(self) -> 'Account':
        """A freshly opened account starts at its opening balance."""
        if self.balance is None:
            self.balance = self.opening_balance
        return self

    @property
    def key(self) -> str:
        return self.id


class Transaction(BaseModel):
    """
    A single income or expense entry against one account.

    Immutable once created: edits are modelled as revert + apply.

    NOTE: amount and category are deliberately unconstrained here.
    TransactionLedger.apply owns those preconditions so that a bad
    transaction is rejected with a ledger ValidationError, not a
    schema error at construction time.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Unique transaction ID"
    )
    account_id: str = Field(
        ...,
        description="ID of the account this transaction moves"
    )
    amount: Decimal = Field(
        ...,
        description="Unsigned amount; direction comes from type"
    )
    type: TransactionType = Field(
        default=TransactionType.EXPENSE,
        description="Income or Expense"
    )
    category: str = Field(
        default="",
        max_length=100,
        description="Category name (e.g. Food, Salary)"
    )
    date: dt.date = Field(
        default_factory=dt.date.today,
        description="Date of the transaction"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Free-text note"
    )

    @property
    def key(self) -> str:
        return self.id

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this transaction on its account balance."""
        return signed_amount(self.type, self.amount)


def signed_amount(tx_type: TransactionType, amount: Decimal) -> Decimal:
    """+amount for Income, -amount for Expense."""
    return amount if tx_type == TransactionType.INCOME else -amount


class Category(BaseModel):
    """A predefined transaction category offered by the UI."""

    id: str
    name: str
    type: TransactionType
    icon: Optional[str] = None


# =============================================================================
# PORTFOLIO MODELS
# =============================================================================

class Holding(BaseModel):
    """
    A position in a tradable instrument.

    The symbol is the natural key. The price-sync core only ever
    touches current_price and last_updated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    symbol: str = Field(
        ...,
        min_length=1,
        max_length=32,
        description="Ticker symbol, e.g. 2330.TW or AAPL"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Instrument name (defaults to the symbol)"
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        description="Number of units held"
    )
    average_cost: Decimal = Field(
        ...,
        ge=0,
        description="Average cost per unit"
    )
    current_price: Decimal = Field(
        ...,
        ge=0,
        description="Latest known price per unit"
    )
    last_updated: Optional[dt.datetime] = Field(
        default=None,
        description="When current_price was last refreshed"
    )

    @model_validator(mode='after')
    def default_name(self) -> 'Holding':
        if not self.name:
            self.name = self.symbol
        return self

    @property
    def key(self) -> str:
        return self.symbol

    @computed_field
    @property
    def market_value(self) -> Decimal:
        return self.quantity * self.current_price


# =============================================================================
# PRICE LOOKUP MODELS (transient, never persisted)
# =============================================================================

class Quote(BaseModel):
    """A (symbol, price) pair extracted from a price-lookup response."""
    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    price: float


class Source(BaseModel):
    """A citation accompanying a lookup response, shown for transparency."""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class PriceSyncResult(BaseModel):
    """
    Outcome of one price sync.

    `updated` is the full holding list, with matched holdings carrying
    their new price. `matched` names the symbols that were updated.
    """

    updated: list[Holding] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    matched: list[str] = Field(default_factory=list)

    @property
    def update_count(self) -> int:
        return len(self.matched)


# =============================================================================
# DASHBOARD MODELS
# =============================================================================

class PortfolioSummary(BaseModel):
    """Derived figures shown on the dashboard and fed to the advisor."""

    total_balance: Decimal = Field(
        ...,
        description="Sum of all account balances"
    )
    portfolio_value: Decimal = Field(
        ...,
        description="Sum of quantity * current_price over holdings"
    )
    top_expense_category: Optional[str] = Field(
        default=None,
        description="Category of the most recent expense, if any"
    )

    @computed_field
    @property
    def net_worth(self) -> Decimal:
        return self.total_balance + self.portfolio_value

    def to_advice_prompt(self) -> str:
        """Summary string handed to the advice service."""
        return (
            f"Total Net Worth: {self.net_worth}. "
            f"Cash: {self.total_balance}. "
            f"Stocks: {self.portfolio_value}. "
            f"Top expense: {self.top_expense_category or 'None'}."
        )


class ActionResult(BaseModel):
    """
    Result of a user-triggered ledger action, as shown to the UI.

    Either ok, or blocked with a message explaining why.
    """

    ok: bool
    message: str = ""
    transaction: Optional[Transaction] = None
