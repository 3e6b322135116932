"""
Shared fixtures.

No real API calls in tests: the price lookup and advice services are
fakes, and the persisted store runs against an in-memory worksheet.
"""

import asyncio
from decimal import Decimal
from typing import Optional

import pytest
from tenacity import wait_none

from finboard.agents import (
    AdviceService,
    ExternalLookupError,
    LookupResponse,
    PriceLookupService,
)
from finboard.audit import AuditLogger
from finboard.ledger import TransactionLedger
from finboard.models.ledger import Account, Collection, Holding
from finboard.services.storage import EphemeralStore, GoogleSheetsLedgerStore, StorageError
from finboard.services.storage.google_sheets import COLUMNS


class FakePriceLookup(PriceLookupService):
    """Returns a canned answer and records what it was asked."""

    def __init__(
        self,
        text: str = "",
        citations: Optional[list] = None,
        error: Optional[Exception] = None,
    ):
        self.text = text
        self.citations = citations or []
        self.error = error
        self.calls: list[list[str]] = []
        self.gate: Optional[asyncio.Event] = None

    async def lookup(self, symbols: list[str]) -> LookupResponse:
        self.calls.append(list(symbols))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return LookupResponse(text=self.text, citations=self.citations)


class FakeAdvice(AdviceService):
    def __init__(self, answer: str = "Save more.", fail: bool = False):
        self.answer = answer
        self.fail = fail
        self.summaries: list[str] = []

    async def advise(self, summary: str) -> str:
        self.summaries.append(summary)
        if self.fail:
            raise ExternalLookupError("advice", "service down")
        return self.answer


class FlakyStore(EphemeralStore):
    """
    EphemeralStore that fails chosen operations.

    fail_writes: collection -> number of successful writes allowed
                 before every further write to it fails
    fail_deletes: collections whose deletes fail
    """

    def __init__(self, fail_writes: Optional[dict] = None, fail_deletes: Optional[set] = None):
        super().__init__()
        self.fail_writes = dict(fail_writes or {})
        self.fail_deletes = set(fail_deletes or ())
        self.write_counts = {collection: 0 for collection in Collection}

    async def write(self, collection, entity):
        allowed = self.fail_writes.get(collection)
        if allowed is not None and self.write_counts[collection] >= allowed:
            raise StorageError(f"simulated write failure on {collection.value}")
        self.write_counts[collection] += 1
        return await super().write(collection, entity)

    async def delete(self, collection, key):
        if collection in self.fail_deletes:
            raise StorageError(f"simulated delete failure on {collection.value}")
        return await super().delete(collection, key)


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def store() -> EphemeralStore:
    return EphemeralStore()


@pytest.fixture
def account(store) -> Account:
    account = Account(id="acc-1", name="Main", opening_balance=Decimal("5000"))
    store.load(Collection.ACCOUNTS, [account])
    return account


@pytest.fixture
def ledger(store, account, audit_logger) -> TransactionLedger:
    return TransactionLedger(store, audit_logger=audit_logger)


def make_holding(symbol: str, price: str = "100") -> Holding:
    return Holding(
        symbol=symbol,
        quantity=Decimal("10"),
        average_cost=Decimal("50"),
        current_price=Decimal(price),
    )


class FakeWorksheet:
    """
    Just enough of gspread.Worksheet for the store.

    fail_reads: get_all_values raises
    fail_reads_after_write: the first row change sets fail_reads
    lost_append_responses: number of appends that succeed but then
                           raise, like a timed-out response
    """

    def __init__(self, header: list[str]):
        self.rows = [list(header)]
        self.input_options: list[str] = []
        self.update_calls = 0
        self.fail_reads = False
        self.fail_reads_after_write = False
        self.lost_append_responses = 0

    def get_all_values(self) -> list[list[str]]:
        if self.fail_reads:
            raise RuntimeError("read quota exceeded")
        return [list(row) for row in self.rows]

    def _after_change(self):
        if self.fail_reads_after_write:
            self.fail_reads = True

    def append_row(self, values, value_input_option="USER_ENTERED"):
        self.input_options.append(value_input_option)
        self.rows.append([str(v) for v in values])
        self._after_change()
        if self.lost_append_responses:
            self.lost_append_responses -= 1
            raise RuntimeError("response timed out")

    def update(self, range_name=None, values=None, value_input_option="USER_ENTERED"):
        self.input_options.append(value_input_option)
        self.update_calls += 1
        start = int(range_name.lstrip("A"))
        for offset, row in enumerate(values):
            self.rows[start - 1 + offset] = [str(v) for v in row]
        self._after_change()

    def delete_rows(self, index):
        del self.rows[index - 1]
        self._after_change()


class FakeSheetsClient:
    def __init__(self):
        self.sheets = {collection: FakeWorksheet(COLUMNS[collection]) for collection in Collection}

    def get_worksheet(self, collection):
        return self.sheets[collection]


@pytest.fixture
def sheets_client() -> FakeSheetsClient:
    return FakeSheetsClient()


@pytest.fixture
def no_retry_wait(monkeypatch):
    """Sheets calls are retried with backoff; skip the sleeps in tests."""
    monkeypatch.setattr(GoogleSheetsLedgerStore.refresh.retry, "wait", wait_none())
    monkeypatch.setattr(GoogleSheetsLedgerStore._write_row.retry, "wait", wait_none())
