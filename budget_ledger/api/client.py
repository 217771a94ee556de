"""
Client for a remote tagged-action endpoint.

Each call POSTs {"action": name, ...payload} and expects
{"status": "success", ...} back. Anything else (transport error, non-2xx
status, a body that is not JSON, or an error status) raises
RemoteActionError. Calls are not retried: the caller's recovery after any
failure is a fresh read_all().
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

import httpx
import structlog

from budget_ledger.config import get_settings
from budget_ledger.models.records import UNASSIGNED, PhotoAttachment, SettingsRegistry


logger = structlog.get_logger(__name__)


class RemoteActionError(Exception):
    """A remote action did not succeed."""

    def __init__(self, action: str, message: str, status_code: Optional[int] = None):
        self.action = action
        self.status_code = status_code
        super().__init__(f"{action} failed: {message}")


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


class LedgerClient:
    """
    Async client for the tagged-action channel.

    Usage:
        async with LedgerClient("https://ledger.example/exec") as client:
            snapshot = await client.read_all()
            await client.assign_project("Road Repair", "Spring Tender")
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            url: Endpoint URL; defaults to RemoteApiSettings.url
            timeout: Seconds per call; defaults to RemoteApiSettings.timeout_seconds
            transport: httpx transport override (tests, ASGI apps)
        """
        if url is None or timeout is None:
            remote = get_settings().remote_api
            url = url or remote.url
            timeout = timeout or remote.timeout_seconds
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def call(self, action: str, **payload: Any) -> dict:
        """Send one action; return the success body."""
        body = {"action": action, **{k: _plain(v) for k, v in payload.items()}}
        client = self._ensure_client()

        try:
            response = await client.post(self.url, json=body)
        except httpx.HTTPError as e:
            logger.warning("remote_transport_failed", action=action, error=str(e))
            raise RemoteActionError(action, f"transport error: {e}") from e

        if response.status_code >= 400:
            raise RemoteActionError(
                action, f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            result = response.json()
        except ValueError as e:
            raise RemoteActionError(action, "response is not JSON", response.status_code) from e

        if not isinstance(result, dict) or result.get("status") != "success":
            message = result.get("message", "unknown error") if isinstance(result, dict) else "malformed response"
            logger.warning("remote_action_failed", action=action, message=message)
            raise RemoteActionError(action, message, response.status_code)

        return result

    # ---- actions --------------------------------------------------------

    async def read_all(self) -> dict:
        return await self.call("readAll")

    async def add(
        self,
        name: str,
        category: str,
        amount: Decimal,
        content: str = "",
        location: str = "",
        suggest_by: str = "",
        staff: str = "",
        photos: Optional[list[PhotoAttachment]] = None,
        auto_case: bool = False,
    ) -> dict:
        """One category line per call, as the entry form sends them."""
        return await self.call(
            "add",
            name=name,
            category=category,
            amount=amount,
            content=content,
            location=location,
            suggestBy=suggest_by,
            staff=staff,
            fileDataList=[p.model_dump() for p in photos or []],
            isAutoCase=auto_case,
        )

    async def update_project(self, old_name: str, old_category: str, **fields: Any) -> dict:
        return await self.call("updateProject", oldName=old_name, oldCat=old_category, **fields)

    async def delete_project(self, name: str) -> dict:
        return await self.call("deleteProject", name=name)

    async def update_full_case(self, new_name: str, old_name: str = "", **fields: Any) -> dict:
        return await self.call("updateFullCase", oldName=old_name, newName=new_name, **fields)

    async def assign_project(self, project_name: str, tender_name: str = UNASSIGNED) -> dict:
        return await self.call("assignProject", projectName=project_name, tenderName=tender_name)

    async def delete_case(self, name: str) -> dict:
        return await self.call("deleteCase", name=name)

    async def save_settings(self, registry: SettingsRegistry) -> dict:
        return await self.call("saveSettings", config=registry.model_dump(mode="json", by_alias=True))

    async def save_payment(
        self,
        tender_name: str,
        stage: str,
        amount: Decimal,
        paid_on: date,
        invoice: str = "",
        payment_id: str = "",
    ) -> dict:
        return await self.call(
            "savePayment",
            id=payment_id,
            tenderName=tender_name,
            stage=stage,
            amount=amount,
            date=paid_on,
            invoice=invoice,
        )

    async def delete_payment(self, payment_id: str) -> dict:
        return await self.call("deletePayment", id=payment_id)
