# Per-category importers into the destination account

from functools import partial
from typing import Callable, Dict

from ..categories import MigrationCategory
from .base import BaseImporter, IdMap, TransferContext, record_name, CREATED, UPDATED, SKIPPED, CONVERTED
from .calendar_importer import AppointmentImporter, CalendarImporter
from .contact_importer import ContactImporter
from .content_importer import ContentImporter, CustomFieldImporter, FormImporter, TagImporter
from .pipeline_importer import OpportunityImporter, PipelineImporter
from .workflow_importer import WorkflowImporter, workflow_to_prompt, WORKFLOW_PROMPTS

IMPORTERS: Dict[MigrationCategory, Callable[..., BaseImporter]] = {
    MigrationCategory.CONTACTS: ContactImporter,
    MigrationCategory.TAGS: TagImporter,
    MigrationCategory.CUSTOM_FIELDS: CustomFieldImporter,
    MigrationCategory.PIPELINES: PipelineImporter,
    MigrationCategory.OPPORTUNITIES: OpportunityImporter,
    MigrationCategory.CALENDARS: CalendarImporter,
    MigrationCategory.APPOINTMENTS: AppointmentImporter,
    MigrationCategory.FORMS: FormImporter,
    MigrationCategory.SURVEYS: partial(ContentImporter, MigrationCategory.SURVEYS),
    MigrationCategory.WORKFLOWS: WorkflowImporter,
    MigrationCategory.CAMPAIGNS: partial(ContentImporter, MigrationCategory.CAMPAIGNS),
    MigrationCategory.AI_PROMPTS: partial(ContentImporter, MigrationCategory.AI_PROMPTS),
    MigrationCategory.TEMPLATES: partial(ContentImporter, MigrationCategory.TEMPLATES),
    MigrationCategory.MEDIA: partial(ContentImporter, MigrationCategory.MEDIA),
}


def build_importer(category: MigrationCategory, *args, **kwargs) -> BaseImporter:
    return IMPORTERS[MigrationCategory(category)](*args, **kwargs)


__all__ = [
    "BaseImporter",
    "IdMap",
    "TransferContext",
    "record_name",
    "build_importer",
    "IMPORTERS",
    "workflow_to_prompt",
    "WORKFLOW_PROMPTS",
    "CREATED",
    "UPDATED",
    "SKIPPED",
    "CONVERTED",
]
