"""Tests for the CSV and Google Sheets ledgers."""

import csv
import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from tenacity import wait_none

from manifest_bot.config import Settings
from manifest_bot.core.errors import ExternalDependencyFailure
from manifest_bot.core.types import OrderSnapshot
from manifest_bot.ledger import CsvLedger, GoogleSheetsLedger, build_ledger, format_ledger_row

from tests.helpers import line

SNAPSHOT = OrderSnapshot(
    id=7,
    owner_user_id=1,
    client_phone="+34600000000",
    status="processing",
    total_sum=Decimal("14.99"),
    items=(line("P1", 3, "9.99"), line("Gift box", 1, "5")),
    updated_at=datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
)


class StaticToken:
    async def token(self) -> str:
        return "test-token"


def _sheets(handler, **kwargs) -> GoogleSheetsLedger:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleSheetsLedger(
        "SHEET", "Sheet1!A:E", StaticToken(), client=client, retry_wait=wait_none(), **kwargs
    )


def test_format_ledger_row():
    assert format_ledger_row(SNAPSHOT, "Europe/Madrid") == [
        "15.01.2025, 11:00:00",
        "+34600000000",
        "P1 (3 pcs) (9.99€), Gift box (1 pcs) (5.00€)",
        "14.99",
        "processing",
    ]


def test_format_ledger_row_naive_timestamp_is_utc():
    naive = datetime(2025, 7, 1, 8, 30, 0)
    row = format_ledger_row(SNAPSHOT, "Europe/Madrid", now=naive)
    assert row[0] == "01.07.2025, 10:30:00"


@pytest.mark.asyncio
async def test_csv_ledger_appends_rows_with_header(tmp_path):
    path = tmp_path / "out" / "ledger.csv"
    ledger = CsvLedger(path)

    await ledger.append_order(SNAPSHOT)
    await ledger.append_order(SNAPSHOT)

    with path.open(encoding="utf-8", newline="") as fh:
        rows = list(csv.reader(fh))
    assert rows[0] == ["date", "phone", "items", "total", "status"]
    assert len(rows) == 3
    assert rows[1][2] == "P1 (3 pcs) (9.99€), Gift box (1 pcs) (5.00€)"
    assert await ledger.read_rows() == rows[1:]


@pytest.mark.asyncio
async def test_sheets_ledger_appends_one_row():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"updates": {"updatedRows": 1}})

    ledger = _sheets(handler)
    await ledger.append_order(SNAPSHOT)
    await ledger.aclose()

    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert "/spreadsheets/SHEET/values/" in request.url.path
    assert request.url.path.endswith(":append")
    assert request.url.params["valueInputOption"] == "USER_ENTERED"
    assert request.headers["Authorization"] == "Bearer test-token"
    body = json.loads(request.content)
    assert body["values"][0][1] == "+34600000000"
    assert body["values"][0][3] == "14.99"


@pytest.mark.asyncio
async def test_sheets_ledger_retries_rate_limit():
    statuses = iter([429, 429, 200])
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(next(statuses), json={})

    await _sheets(handler).append_order(SNAPSHOT)

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_sheets_ledger_gives_up_after_max_attempts():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(429, json={})

    with pytest.raises(ExternalDependencyFailure):
        await _sheets(handler, max_attempts=2).append_order(SNAPSHOT)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_sheets_ledger_does_not_retry_server_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500, text="backend error")

    with pytest.raises(ExternalDependencyFailure):
        await _sheets(handler).append_order(SNAPSHOT)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_sheets_ledger_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    with pytest.raises(ExternalDependencyFailure):
        await _sheets(handler).append_order(SNAPSHOT)


def test_build_ledger(tmp_path):
    csv_settings = Settings(LEDGER_BACKEND="csv", LEDGER_CSV_PATH=str(tmp_path / "l.csv"), _env_file=None)
    assert isinstance(build_ledger(csv_settings), CsvLedger)

    assert build_ledger(Settings(LEDGER_BACKEND="none", _env_file=None)) is None
    # Sheets without credentials falls back to no ledger.
    assert build_ledger(Settings(LEDGER_BACKEND="sheets", _env_file=None)) is None

    sheets = build_ledger(
        Settings(
            LEDGER_BACKEND="sheets",
            GOOGLE_SHEET_ID="abc",
            GOOGLE_SHEETS_KEYFILE="/nonexistent/key.json",
            _env_file=None,
        )
    )
    assert isinstance(sheets, GoogleSheetsLedger)
