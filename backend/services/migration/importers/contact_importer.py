"""
Contact importer.
Merges duplicates by email and carries tags, custom field values and notes across.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Optional

from ..categories import MigrationCategory
from ..errors import AccountAccessError, MigrationError, RecordConflictError
from .base import BaseImporter, CREATED, SKIPPED, UPDATED

logger = logging.getLogger(__name__)


class ContactImporter(BaseImporter):
    """Import contacts into the destination location"""

    category = MigrationCategory.CONTACTS
    conflicts_are_duplicates = False

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Serialises lookups and writes per email so one run cannot create twins
        self._email_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().transform(record)
        id_map = self.context.id_map

        tags = []
        for tag in record.get("tags") or []:
            mapped = id_map.get(MigrationCategory.TAGS.value, tag)
            if mapped:
                tags.append(mapped)
        payload["tags"] = tags

        custom_fields = []
        for item in record.get("customFields") or []:
            field_id = id_map.get(MigrationCategory.CUSTOM_FIELDS.value, item.get("id"))
            if field_id:
                custom_fields.append({**item, "id": field_id})
        payload["customFields"] = custom_fields

        payload.setdefault("source", "Migration")
        return payload

    async def import_record(self, record: Dict[str, Any]) -> str:
        email = (record.get("email") or "").strip().lower()
        if self.options.merge_duplicate_contacts and email:
            async with self._email_locks[email]:
                return await self._merge(record, email)
        return await self._create(record)

    async def _merge(self, record: Dict[str, Any], email: str) -> str:
        """Match an existing destination contact by email before writing"""
        payload = self.transform(record)
        existing = await self._call(lambda: self.destination.find_contact_by_email(email), "Look up")
        if existing is None:
            return await self._create(record, payload)
        return await self._apply_existing(record, payload, existing["id"])

    async def _create(self, record: Dict[str, Any], payload: Optional[Dict[str, Any]] = None) -> str:
        payload = payload if payload is not None else self.transform(record)
        try:
            created = await self._call(lambda: self.destination.create(self.category, payload), "Create")
        except RecordConflictError as e:
            allowed = self.options.merge_duplicate_contacts or self.options.overwrite_existing
            if not allowed or not e.existing_id:
                raise RecordConflictError(
                    f"Contact already exists in destination: {e}", existing_id=e.existing_id
                ) from e
            return await self._apply_existing(record, payload, e.existing_id)

        self.remember(record, created)
        await self.after_import(record, created.get("id"), CREATED)
        return CREATED

    async def _apply_existing(self, record: Dict[str, Any], payload: Dict[str, Any], existing_id: str) -> str:
        self.remember(record, {"id": existing_id})
        if not self.options.overwrite_existing:
            return SKIPPED
        await self._call(lambda: self.destination.update(self.category, existing_id, payload), "Update")
        return UPDATED

    async def after_import(self, record: Dict[str, Any], destination_id: Optional[str], outcome: str):
        # Notes are only copied onto contacts this run created, so reruns add none
        if outcome != CREATED or not destination_id or not self.options.include_conversation_history:
            return
        await self._copy_notes(record.get("id"), destination_id)

    async def _copy_notes(self, source_id: Optional[str], destination_id: str):
        if not source_id:
            return
        try:
            notes = await self._call(lambda: self.source.list_contact_notes(source_id), "Read notes for")
            for note in notes:
                body = note.get("body")
                if body:
                    await self._call(
                        lambda: self.destination.create_contact_note(destination_id, body), "Copy note for"
                    )
        except AccountAccessError:
            raise
        except MigrationError as e:
            logger.warning(f"Could not copy notes for contact {source_id}: {e}")
