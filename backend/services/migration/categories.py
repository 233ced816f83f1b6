"""
Fixed catalog of migratable CRM data categories.
"""

import math
from enum import Enum
from typing import Dict, Iterable, Mapping, Tuple


class MigrationCategory(str, Enum):
    """Data categories copied between tenants, in catalog order"""
    CONTACTS = "contacts"
    TAGS = "tags"
    CUSTOM_FIELDS = "customFields"
    PIPELINES = "pipelines"
    OPPORTUNITIES = "opportunities"
    CALENDARS = "calendars"
    APPOINTMENTS = "appointments"
    FORMS = "forms"
    SURVEYS = "surveys"
    WORKFLOWS = "workflows"
    CAMPAIGNS = "campaigns"
    AI_PROMPTS = "aiPrompts"
    TEMPLATES = "templates"
    MEDIA = "media"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATALOG: Tuple[MigrationCategory, ...] = tuple(MigrationCategory)

CATALOG_INDEX: Dict[MigrationCategory, int] = {c: i for i, c in enumerate(CATALOG)}

# category -> categories whose records it references
DEPENDENCIES: Dict[MigrationCategory, Tuple[MigrationCategory, ...]] = {
    MigrationCategory.CONTACTS: (MigrationCategory.TAGS, MigrationCategory.CUSTOM_FIELDS),
    MigrationCategory.OPPORTUNITIES: (MigrationCategory.PIPELINES,),
    MigrationCategory.APPOINTMENTS: (MigrationCategory.CALENDARS,),
}

CATEGORY_LABELS: Dict[MigrationCategory, str] = {
    MigrationCategory.CONTACTS: "contacts",
    MigrationCategory.TAGS: "tags",
    MigrationCategory.CUSTOM_FIELDS: "custom fields",
    MigrationCategory.PIPELINES: "pipelines",
    MigrationCategory.OPPORTUNITIES: "opportunities",
    MigrationCategory.CALENDARS: "calendars",
    MigrationCategory.APPOINTMENTS: "appointments",
    MigrationCategory.FORMS: "forms",
    MigrationCategory.SURVEYS: "surveys",
    MigrationCategory.WORKFLOWS: "workflows",
    MigrationCategory.CAMPAIGNS: "campaigns",
    MigrationCategory.AI_PROMPTS: "AI prompts",
    MigrationCategory.TEMPLATES: "templates",
    MigrationCategory.MEDIA: "media files",
}

# Records per minute a single job sustains for each category.
# Contacts carry notes and merges; media are the slowest to recreate.
THROUGHPUT_PER_MINUTE: Dict[MigrationCategory, int] = {
    MigrationCategory.CONTACTS: 60,
    MigrationCategory.TAGS: 120,
    MigrationCategory.CUSTOM_FIELDS: 120,
    MigrationCategory.PIPELINES: 30,
    MigrationCategory.OPPORTUNITIES: 60,
    MigrationCategory.CALENDARS: 30,
    MigrationCategory.APPOINTMENTS: 60,
    MigrationCategory.FORMS: 30,
    MigrationCategory.SURVEYS: 30,
    MigrationCategory.WORKFLOWS: 60,
    MigrationCategory.CAMPAIGNS: 30,
    MigrationCategory.AI_PROMPTS: 60,
    MigrationCategory.TEMPLATES: 60,
    MigrationCategory.MEDIA: 20,
}


def parse_categories(values: Iterable[str]) -> Tuple[MigrationCategory, ...]:
    """Convert raw category names, raising ValueError on anything outside the catalog"""
    parsed = []
    for value in values:
        parsed.append(MigrationCategory(value))
    return tuple(parsed)


def estimate_minutes(counts: Mapping[MigrationCategory, int]) -> int:
    """Estimated migration time in whole minutes; non-decreasing in every count"""
    minutes = 0.0
    for category, count in counts.items():
        minutes += max(count, 0) / THROUGHPUT_PER_MINUTE[MigrationCategory(category)]
    return math.ceil(minutes)
