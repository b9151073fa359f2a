"""
veritas.db.accounts – known fake account registry used by admin review.
"""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from .database import RecordNotFound

AccountStatus = Literal["pending", "confirmed", "dismissed"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FakeAccount(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    username: str
    platform: str | None = None
    reason: str
    evidence: str | None = None
    reported_count: int = 1
    status: AccountStatus = "pending"
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class FakeAccountStore:
    """Reported accounts awaiting or past admin review."""

    def __init__(self) -> None:
        self._accounts: dict[str, FakeAccount] = {}
        self._lock = asyncio.Lock()

    async def report(
        self,
        username: str,
        reason: str,
        platform: str | None = None,
        evidence: str | None = None,
    ) -> FakeAccount:
        """
        File a report.  A repeat report for the same username/platform bumps
        ``reported_count`` on the existing entry instead of adding a new one.
        """
        key = (username.lower(), (platform or "").lower())
        async with self._lock:
            for account in self._accounts.values():
                if (account.username.lower(), (account.platform or "").lower()) == key:
                    account.reported_count += 1
                    account.updated_at = _now()
                    if evidence and not account.evidence:
                        account.evidence = evidence
                    return account.model_copy()

            account = FakeAccount(
                username=username, platform=platform, reason=reason, evidence=evidence
            )
            self._accounts[account.id] = account
            return account.model_copy()

    async def list(
        self, status: str | None = None, search: str | None = None
    ) -> list[FakeAccount]:
        """Newest-first; *search* matches username or reason, case-insensitively."""
        async with self._lock:
            accounts = sorted(
                (a.model_copy() for a in self._accounts.values()),
                key=lambda a: a.created_at,
                reverse=True,
            )

        if status and status.lower() != "all":
            accounts = [a for a in accounts if a.status == status.lower()]
        if search:
            term = search.lower()
            accounts = [
                a for a in accounts
                if term in a.username.lower() or term in a.reason.lower()
            ]
        return accounts

    async def set_status(self, account_id: str, status: AccountStatus) -> FakeAccount:
        async with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise RecordNotFound(f"Account {account_id} not found")
            account.status = status
            account.updated_at = _now()
            return account.model_copy()

    async def delete(self, account_id: str) -> None:
        async with self._lock:
            if self._accounts.pop(account_id, None) is None:
                raise RecordNotFound(f"Account {account_id} not found")
