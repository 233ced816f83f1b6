"""
Importers for categories copied field-for-field: tags, custom fields, forms,
surveys, campaigns, AI prompts, templates, media.
"""

import logging
from typing import Any, Dict

from ..categories import MigrationCategory
from ..errors import AccountAccessError, MigrationError
from .base import BaseImporter, READ_ONLY_FIELDS

logger = logging.getLogger(__name__)


class ContentImporter(BaseImporter):
    """Name-keyed record copied as-is"""

    def __init__(self, category: MigrationCategory, *args, **kwargs):
        self.category = category
        super().__init__(*args, **kwargs)


class TagImporter(BaseImporter):
    """Contacts reference tags by name, so the map is keyed by name"""

    category = MigrationCategory.TAGS

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {"name": record.get("name")}

    def remember(self, record: Dict[str, Any], destination: Dict[str, Any]):
        name = record.get("name")
        self.context.id_map.record(self.category.value, name, destination.get("name") or name)


class CustomFieldImporter(BaseImporter):
    category = MigrationCategory.CUSTOM_FIELDS

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().transform(record)
        # fieldKey is derived from the name by the platform
        payload.pop("fieldKey", None)
        return payload


class FormImporter(BaseImporter):
    """Forms, optionally with their submissions"""

    category = MigrationCategory.FORMS

    async def prepare(self, record: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.options.include_form_submissions or not record.get("id"):
            return payload
        form_id = record["id"]
        try:
            submissions = await self._call(lambda: self.source.list_form_submissions(form_id), "Read submissions for")
        except AccountAccessError:
            raise
        except MigrationError as e:
            logger.warning(f"Could not read submissions for form {form_id}: {e}")
            return payload
        payload["submissions"] = [
            {k: v for k, v in submission.items() if k not in READ_ONLY_FIELDS}
            for submission in submissions
        ]
        return payload
