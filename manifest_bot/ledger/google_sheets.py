"""
Google Sheets ledger.

One ``values:append`` call per finalized order. Only a 429 answer is
retried: Google rejected the request, so no row was written. Any other
failure is reported as ``ExternalDependencyFailure`` and not retried, because
a timed-out append may already have added the row.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol
from urllib.parse import quote

import httpx
import structlog
from google.auth.exceptions import TransportError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from manifest_bot.core.errors import ExternalDependencyFailure
from manifest_bot.core.interfaces import LedgerExport
from manifest_bot.core.types import OrderSnapshot

from .base import format_ledger_row

logger = structlog.get_logger()

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
SHEETS_API_URL = "https://sheets.googleapis.com/v4"


class TokenProvider(Protocol):
    async def token(self) -> str: ...


class ServiceAccountTokenProvider:
    """OAuth access tokens for a service-account key file."""

    def __init__(self, keyfile: str):
        self.keyfile = keyfile
        self._credentials = None

    @retry(
        reraise=True,
        retry=retry_if_exception_type(TransportError),
        wait=wait_exponential_jitter(initial=1, max=10),
        stop=stop_after_attempt(3),
    )
    def _refresh(self) -> None:
        self._credentials.refresh(Request())

    async def token(self) -> str:
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_file(
                self.keyfile, scopes=[SHEETS_SCOPE]
            )
        if not self._credentials.valid:
            try:
                await asyncio.to_thread(self._refresh)
            except Exception as exc:
                raise ExternalDependencyFailure("google_auth", str(exc)) from exc
        return self._credentials.token


class _RateLimited(Exception):
    pass


class GoogleSheetsLedger(LedgerExport):
    def __init__(
        self,
        spreadsheet_id: str,
        range_: str,
        token_provider: TokenProvider,
        tz: str = "Europe/Madrid",
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = SHEETS_API_URL,
        max_attempts: int = 4,
        retry_wait=None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.range = range_
        self.token_provider = token_provider
        self.tz = tz
        self.api_url = api_url.rstrip("/")
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential_jitter(initial=1, max=10)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30)

    @property
    def append_url(self) -> str:
        return (
            f"{self.api_url}/spreadsheets/{self.spreadsheet_id}"
            f"/values/{quote(self.range, safe='')}:append"
        )

    async def append_order(self, order: OrderSnapshot) -> None:
        row = format_ledger_row(order, self.tz)
        try:
            async for attempt in AsyncRetrying(
                reraise=True,
                retry=retry_if_exception_type(_RateLimited),
                wait=self.retry_wait,
                stop=stop_after_attempt(self.max_attempts),
                before_sleep=lambda state: logger.warning(
                    "sheets_rate_limited",
                    order_id=order.id,
                    attempt=state.attempt_number,
                ),
            ):
                with attempt:
                    await self._append_once(row)
        except _RateLimited as exc:
            raise ExternalDependencyFailure("google_sheets", "rate limited") from exc
        logger.info("sheets_row_appended", order_id=order.id)

    async def _append_once(self, row) -> None:
        token = await self.token_provider.token()
        try:
            response = await self._client.post(
                self.append_url,
                params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
                json={"values": [row]},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise ExternalDependencyFailure("google_sheets", str(exc)) from exc
        if response.status_code == 429:
            raise _RateLimited()
        if response.is_error:
            raise ExternalDependencyFailure(
                "google_sheets", f"HTTP {response.status_code}: {response.text[:200]}"
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
