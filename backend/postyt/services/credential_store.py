from __future__ import annotations

from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Iterable, Protocol
import json
import logging

from pydantic import ValidationError

from ..config import settings
from ..errors import AccountNotFound, CredentialStoreError
from ..models import AccountCredential, PlatformId, TokenUpdate, as_utc

logger = logging.getLogger("uvicorn.error")


class CredentialStore(Protocol):
    """What the publish flow needs from credential persistence."""

    def find_account(self, user_id: str, platform: str, account_id: str) -> AccountCredential | None:
        ...

    def apply_token_update(
        self,
        user_id: str,
        platform: str,
        account_id: str,
        access_token: str,
        expiry_date: datetime | None,
        refresh_token: str | None = None,
    ) -> None:
        ...


class JsonCredentialStore:
    """Linked accounts persisted in one JSON document.

    Layout: ``{user_id: {platform: [credential, ...]}}``. Every
    read-modify-write cycle holds a process-wide lock.
    """

    _state_lock = Lock()

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else settings.credentials_state_path

    def _load_state(self, *, for_write: bool = False) -> dict[str, Any]:
        """Read the state document.

        Reads degrade to an empty document when the file is damaged. Writes
        raise instead, so a damaged file is never replaced by a partial one.
        """
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            return self._damaged_state(for_write, exc)
        if not isinstance(payload, dict):
            return self._damaged_state(for_write, None)
        return payload

    def _damaged_state(self, for_write: bool, cause: Exception | None) -> dict[str, Any]:
        if for_write:
            raise CredentialStoreError(
                f"Credential state at {self.path} is unreadable; refusing to overwrite it"
            ) from cause
        logger.warning("Credential state at %s is unreadable; treating it as empty", self.path)
        return {}

    def _save_state(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=True), encoding="utf-8")
        tmp_path.replace(self.path)

    @staticmethod
    def _platform_accounts(state: dict[str, Any], user_id: str, platform: str) -> list[dict[str, Any]]:
        user = state.setdefault(user_id, {})
        accounts = user.get(platform)
        if not isinstance(accounts, list):
            accounts = []
            user[platform] = accounts
        return accounts

    @staticmethod
    def _parse_credential(raw: Any) -> AccountCredential | None:
        if not isinstance(raw, dict):
            return None
        try:
            return AccountCredential.model_validate(raw)
        except ValidationError:
            logger.warning("Skipping malformed stored credential: %s", raw.get("account_id"))
            return None

    def find_account(self, user_id: str, platform: str, account_id: str) -> AccountCredential | None:
        with self._state_lock:
            state = self._load_state()
        accounts = (state.get(user_id) or {}).get(platform) or []
        for raw in accounts:
            if isinstance(raw, dict) and str(raw.get("account_id")) == account_id:
                return self._parse_credential(raw)
        return None

    def apply_token_update(
        self,
        user_id: str,
        platform: str,
        account_id: str,
        access_token: str,
        expiry_date: datetime | None,
        refresh_token: str | None = None,
    ) -> None:
        """Persist a refreshed token.

        Raises:
            AccountNotFound: the account was unlinked meanwhile.
            CredentialStoreError: the state file is damaged.
        """
        with self._state_lock:
            state = self._load_state(for_write=True)
            accounts = self._platform_accounts(state, user_id, platform)
            for raw in accounts:
                if isinstance(raw, dict) and str(raw.get("account_id")) == account_id:
                    raw["access_token"] = access_token
                    expiry = as_utc(expiry_date)
                    raw["expiry_date"] = expiry.isoformat() if expiry else None
                    if refresh_token:
                        raw["refresh_token"] = refresh_token
                    self._save_state(state)
                    return
        raise AccountNotFound(platform, account_id)

    def apply_token_updates(self, user_id: str, updates: Iterable[TokenUpdate]) -> None:
        for update in updates:
            try:
                self.apply_token_update(
                    user_id,
                    update.platform,
                    update.account_id,
                    update.access_token,
                    update.expiry_date,
                    refresh_token=update.refresh_token,
                )
            except AccountNotFound:
                logger.warning(
                    "Dropping refreshed %s token: account %s no longer linked",
                    update.platform,
                    update.account_id,
                )

    def upsert_account(self, user_id: str, platform: str, credential: AccountCredential) -> None:
        """Link an account, replacing an existing entry with the same id."""
        record = credential.model_dump(mode="json")
        with self._state_lock:
            state = self._load_state(for_write=True)
            accounts = self._platform_accounts(state, user_id, platform)
            for position, raw in enumerate(accounts):
                if isinstance(raw, dict) and str(raw.get("account_id")) == credential.account_id:
                    # Providers only return a refresh token on first consent.
                    if not record.get("refresh_token"):
                        record["refresh_token"] = raw.get("refresh_token")
                    accounts[position] = record
                    break
            else:
                accounts.append(record)
            self._save_state(state)

    def list_accounts(self, user_id: str) -> dict[str, list[dict[str, str]]]:
        with self._state_lock:
            state = self._load_state()
        user = state.get(user_id) or {}
        listing: dict[str, list[dict[str, str]]] = {}
        for platform in PlatformId:
            entries = []
            for raw in user.get(platform.value) or []:
                credential = self._parse_credential(raw)
                if credential is None:
                    continue
                entries.append(
                    {
                        "accountId": credential.account_id,
                        "accountName": credential.account_name or credential.account_id,
                    }
                )
            listing[platform.value] = entries
        return listing
