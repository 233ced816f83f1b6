"""
Calendar and appointment importers.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..categories import MigrationCategory
from .base import BaseImporter, SKIPPED

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class CalendarImporter(BaseImporter):
    category = MigrationCategory.CALENDARS

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().transform(record)
        # Team members are users of the source location
        payload.pop("teamMembers", None)
        return payload


class AppointmentImporter(BaseImporter):
    category = MigrationCategory.APPOINTMENTS
    conflicts_are_duplicates = False

    def is_historical(self, record: Dict[str, Any]) -> bool:
        start = parse_timestamp(record.get("startTime"))
        return start is not None and start < datetime.now(timezone.utc)

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().transform(record)
        id_map = self.context.id_map

        payload.pop("calendarId", None)
        calendar_id = id_map.get(MigrationCategory.CALENDARS.value, record.get("calendarId"))
        if calendar_id:
            payload["calendarId"] = calendar_id

        payload.pop("contactId", None)
        contact_id = id_map.get(MigrationCategory.CONTACTS.value, record.get("contactId"))
        if contact_id:
            payload["contactId"] = contact_id

        payload.pop("assignedUserId", None)
        return payload

    async def import_record(self, record: Dict[str, Any]) -> str:
        if not self.options.include_historical_appointments and self.is_historical(record):
            return SKIPPED
        return await super().import_record(record)
