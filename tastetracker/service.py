"""Passport reads, migration-on-read and the entry save/reset protocol.

Passports used to live in a Shopify customer metafield. The document store is
now authoritative: the first read for a customer with no stored document pulls
the legacy passport from Shopify and writes it to the store. Every later read is
served from the store. Shopify is never written to.

Migration is not locked. Two first reads for the same customer may both copy the
legacy passport; the legacy data is read-only, so both writes carry the same
content and the store converges.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

from .db import DocumentStore
from .errors import RemoteApiError, RemoteTransportError, StoreUnavailableError
from .normalizer import normalize_roast, sanitize_entry_fields, utc_now_iso

logger = logging.getLogger("tastetracker.passport")
logger.setLevel(logging.INFO)

RESET_ACTION = "reset"


class LegacyPassportSource(Protocol):
    def fetch_legacy_passport(self, customer_id: Union[str, int]) -> dict[str, Any]:
        ...


@dataclass(frozen=True)
class EntryActionResult:
    entry_id: Optional[str] = None
    reset: bool = False
    changed: bool = True

    def to_response(self) -> dict[str, Any]:
        if self.reset:
            return {"ok": True, "reset": True}
        return {"ok": True, "entry_id": self.entry_id}


def unused_entry_id(base: str, entries: list) -> str:
    taken = {entry.get("id") for entry in entries if isinstance(entry, dict)}
    candidate = base
    suffix = 1
    while candidate in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


class PassportService:
    def __init__(
        self,
        store: DocumentStore,
        legacy: LegacyPassportSource,
        clock: Callable[[], str] = utc_now_iso,
    ):
        self.store = store
        self.legacy = legacy
        self._clock = clock

    def _read_legacy(self, customer_id: str, strict: bool) -> dict[str, Any]:
        try:
            return self.legacy.fetch_legacy_passport(customer_id) or {}
        except (RemoteTransportError, RemoteApiError) as exc:
            if strict:
                raise
            logger.warning("Legacy passport unavailable for customer %s, treating as empty: %s", customer_id, exc)
            return {}

    def get_passport(self, customer_id: str, allow_migration: bool = True) -> dict[str, Any]:
        """Return the customer's passport, migrating it from Shopify on first read.

        With ``allow_migration`` false nothing is written and Shopify errors
        propagate, so a caller about to save never builds on a passport it
        could not fully read.
        """
        customer_id = str(customer_id)
        strict = not allow_migration

        if not self.store.is_connected:
            logger.warning("Passport store not connected, reading customer %s from Shopify", customer_id)
            return self._read_legacy(customer_id, strict)

        stored = self.store.find_passport(customer_id)
        if stored is not None:
            return stored

        passport = self._read_legacy(customer_id, strict)
        if passport and allow_migration:
            self.store.upsert_passport(customer_id, passport, migrated=True)
            logger.info("Migrated passport for customer %s (%s roasts)", customer_id, len(passport))
        return passport

    def save_passport(self, customer_id: str, passport: dict[str, Any]) -> None:
        if not self.store.is_connected:
            raise StoreUnavailableError("Passport store is not connected")
        self.store.upsert_passport(str(customer_id), passport)

    def apply_entry_action(
        self,
        customer_id: str,
        roast_handle: str,
        entry_id: Optional[str] = None,
        action: Optional[str] = None,
        fields: Optional[dict[str, Any]] = None,
    ) -> EntryActionResult:
        customer_id = str(customer_id)
        passport = dict(self.get_passport(customer_id, allow_migration=False))
        now = self._clock()
        roast = normalize_roast(passport.get(roast_handle), now=now)
        entries = roast["entries"]

        existing_index = -1
        if entry_id:
            existing_index = next(
                (index for index, entry in enumerate(entries) if isinstance(entry, dict) and entry.get("id") == entry_id),
                -1,
            )

        if action == RESET_ACTION:
            if existing_index == -1:
                return EntryActionResult(entry_id=entry_id, reset=True, changed=False)
            del entries[existing_index]
            passport[roast_handle] = roast
            self.save_passport(customer_id, passport)
            logger.info("Reset entry %s of %s for customer %s", entry_id, roast_handle, customer_id)
            return EntryActionResult(entry_id=entry_id, reset=True)

        values = sanitize_entry_fields(fields)

        if existing_index != -1:
            existing = entries[existing_index]
            entry = {**existing, **values, "id": existing["id"], "updated_at": now}
            entry.setdefault("created_at", now)
            entries[existing_index] = entry
        else:
            entry = {"id": entry_id or unused_entry_id(now, entries), "created_at": now, "updated_at": now, **values}
            entries.append(entry)

        passport[roast_handle] = roast
        self.save_passport(customer_id, passport)
        return EntryActionResult(entry_id=entry["id"])
