"""
Category Importer Unit Tests
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from services.migration.categories import MigrationCategory
from services.migration.domain import MigrationOptions
from services.migration.errors import RecordConflictError
from services.migration.importers import (
    CONVERTED,
    CREATED,
    SKIPPED,
    UPDATED,
    WORKFLOW_PROMPTS,
    TransferContext,
    build_importer,
    workflow_to_prompt,
)

from fakes import DESTINATION, SOURCE

pytestmark = pytest.mark.unit


@pytest_asyncio.fixture
async def providers(provider_factory, source_credentials, destination_credentials):
    source = provider_factory(source_credentials)
    destination = provider_factory(destination_credentials)
    yield source, destination
    await source.close()
    await destination.close()


@pytest.fixture
def importer_for(providers, retry):
    """Factory fixture to build an importer sharing one transfer context."""
    context = TransferContext()

    def _importer_for(category: MigrationCategory, **options):
        source, destination = providers
        return build_importer(category, source, destination, MigrationOptions(**options), context, retry)

    _importer_for.context = context
    return _importer_for


class TestContactImporter:
    """Test contact creation, merging and linkage."""

    @pytest.mark.asyncio
    async def test_creates_contact_with_mapped_tags_only(self, platform, importer_for):
        importer_for.context.id_map.record("tags", "vip", "vip")

        outcome = await importer_for(MigrationCategory.CONTACTS).import_record({
            "id": "c-1", "email": "ana@example.com", "tags": ["vip", "never-migrated"], "locationId": SOURCE,
        })

        created = platform.locations[DESTINATION].of(MigrationCategory.CONTACTS)
        assert outcome == CREATED
        assert created[0]["tags"] == ["vip"]
        assert created[0]["email"] == "ana@example.com"
        assert importer_for.context.id_map.get("contacts", "c-1") == created[0]["id"]

    @pytest.mark.asyncio
    async def test_custom_field_values_follow_field_map(self, platform, importer_for):
        importer_for.context.id_map.record("customFields", "cf-src", "cf-dst")

        await importer_for(MigrationCategory.CONTACTS).import_record({
            "id": "c-1",
            "email": "ana@example.com",
            "customFields": [{"id": "cf-src", "value": "Gold"}, {"id": "cf-unknown", "value": "x"}],
        })

        created = platform.locations[DESTINATION].of(MigrationCategory.CONTACTS)[0]
        assert created["customFields"] == [{"id": "cf-dst", "value": "Gold"}]

    @pytest.mark.asyncio
    async def test_merge_skips_existing_email(self, platform, importer_for):
        platform.seed(DESTINATION, MigrationCategory.CONTACTS, [{"id": "dst-1", "email": "ANA@example.com"}])

        outcome = await importer_for(MigrationCategory.CONTACTS).import_record({"id": "c-1", "email": "ana@example.com"})

        assert outcome == SKIPPED
        assert len(platform.locations[DESTINATION].of(MigrationCategory.CONTACTS)) == 1
        assert importer_for.context.id_map.get("contacts", "c-1") == "dst-1"

    @pytest.mark.asyncio
    async def test_merge_with_overwrite_updates(self, platform, importer_for):
        platform.seed(DESTINATION, MigrationCategory.CONTACTS, [{"id": "dst-1", "email": "ana@example.com"}])

        outcome = await importer_for(MigrationCategory.CONTACTS, overwrite_existing=True).import_record(
            {"id": "c-1", "email": "ana@example.com", "phone": "+15550100"}
        )

        assert outcome == UPDATED
        assert platform.locations[DESTINATION].of(MigrationCategory.CONTACTS)[0]["phone"] == "+15550100"

    @pytest.mark.asyncio
    async def test_duplicate_without_merge_or_overwrite_fails(self, platform, importer_for):
        platform.seed(DESTINATION, MigrationCategory.CONTACTS, [{"id": "dst-1", "email": "ana@example.com"}])
        importer = importer_for(MigrationCategory.CONTACTS, merge_duplicate_contacts=False)

        with pytest.raises(RecordConflictError, match="already exists"):
            await importer.import_record({"id": "c-1", "email": "ana@example.com"})

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_in_one_run_create_one_contact(self, platform, importer_for):
        importer = importer_for(MigrationCategory.CONTACTS)

        outcomes = await asyncio.gather(
            importer.import_record({"id": "c-1", "email": "ana@example.com"}),
            importer.import_record({"id": "c-2", "email": "Ana@Example.com"}),
        )

        assert sorted(outcomes) == [CREATED, SKIPPED]
        assert len(platform.locations[DESTINATION].of(MigrationCategory.CONTACTS)) == 1

    @pytest.mark.asyncio
    async def test_notes_copied_when_history_enabled(self, platform, importer_for):
        platform.locations[SOURCE].notes["c-1"].append({"id": "n-1", "body": "Prefers mornings"})

        await importer_for(MigrationCategory.CONTACTS, include_conversation_history=True).import_record(
            {"id": "c-1", "email": "ana@example.com"}
        )

        destination_id = platform.locations[DESTINATION].of(MigrationCategory.CONTACTS)[0]["id"]
        assert [n["body"] for n in platform.locations[DESTINATION].notes[destination_id]] == ["Prefers mornings"]

    @pytest.mark.asyncio
    async def test_notes_not_copied_by_default(self, platform, importer_for):
        platform.locations[SOURCE].notes["c-1"].append({"id": "n-1", "body": "Prefers mornings"})

        await importer_for(MigrationCategory.CONTACTS).import_record({"id": "c-1", "email": "ana@example.com"})

        assert platform.calls("GET", "/notes") == 0


class TestNameKeyedImporters:
    """Test tags, custom fields and other name-keyed categories."""

    @pytest.mark.asyncio
    async def test_existing_tag_is_skipped_and_still_mapped(self, platform, importer_for):
        platform.seed(DESTINATION, MigrationCategory.TAGS, [{"id": "t-dst", "name": "vip"}])

        outcome = await importer_for(MigrationCategory.TAGS).import_record({"id": "t-src", "name": "vip"})

        assert outcome == SKIPPED
        assert importer_for.context.id_map.get("tags", "vip") == "vip"

    @pytest.mark.asyncio
    async def test_existing_template_overwritten_when_requested(self, platform, importer_for):
        platform.seed(DESTINATION, MigrationCategory.TEMPLATES, [{"id": "tpl-dst", "name": "Welcome", "body": "old"}])

        outcome = await importer_for(MigrationCategory.TEMPLATES, overwrite_existing=True).import_record(
            {"id": "tpl-src", "name": "Welcome", "body": "new"}
        )

        assert outcome == UPDATED
        assert platform.locations[DESTINATION].of(MigrationCategory.TEMPLATES)[0]["body"] == "new"

    @pytest.mark.asyncio
    async def test_custom_field_drops_field_key(self, platform, importer_for):
        await importer_for(MigrationCategory.CUSTOM_FIELDS).import_record(
            {"id": "cf-1", "name": "Membership", "fieldKey": "contact.membership", "dataType": "TEXT"}
        )

        created = platform.locations[DESTINATION].of(MigrationCategory.CUSTOM_FIELDS)[0]
        assert "fieldKey" not in created
        assert importer_for.context.id_map.get("customFields", "cf-1") == created["id"]

    @pytest.mark.asyncio
    async def test_form_submissions_attached_when_enabled(self, platform, importer_for):
        platform.locations[SOURCE].submissions["f-1"].append({"id": "s-1", "name": "Ana", "email": "ana@example.com"})

        await importer_for(MigrationCategory.FORMS, include_form_submissions=True).import_record(
            {"id": "f-1", "name": "Intake"}
        )

        created = platform.locations[DESTINATION].of(MigrationCategory.FORMS)[0]
        assert created["submissions"] == [{"name": "Ana", "email": "ana@example.com"}]


class TestPipelineAndOpportunityImporters:
    """Test opportunity re-linking."""

    @pytest.mark.asyncio
    async def test_opportunity_linked_to_migrated_pipeline_stage(self, platform, importer_for):
        await importer_for(MigrationCategory.PIPELINES).import_record({
            "id": "p-src", "name": "Sales",
            "stages": [{"id": "s-new", "name": "New"}, {"id": "s-won", "name": "Won"}],
        })
        pipeline = platform.locations[DESTINATION].of(MigrationCategory.PIPELINES)[0]

        await importer_for(MigrationCategory.OPPORTUNITIES).import_record({
            "id": "o-1", "name": "Package deal", "pipelineId": "p-src", "pipelineStageId": "s-won",
        })

        opportunity = platform.locations[DESTINATION].of(MigrationCategory.OPPORTUNITIES)[0]
        assert opportunity["pipelineId"] == pipeline["id"]
        assert opportunity["pipelineStageId"] == pipeline["stages"][1]["id"]

    @pytest.mark.asyncio
    async def test_opportunity_without_migrated_pipeline_drops_linkage(self, platform, importer_for):
        outcome = await importer_for(MigrationCategory.OPPORTUNITIES).import_record({
            "id": "o-1", "name": "Package deal", "pipelineId": "p-src", "pipelineStageId": "s-won", "contactId": "c-1",
        })

        opportunity = platform.locations[DESTINATION].of(MigrationCategory.OPPORTUNITIES)[0]
        assert outcome == CREATED
        assert "pipelineId" not in opportunity
        assert "pipelineStageId" not in opportunity
        assert "contactId" not in opportunity


class TestAppointmentImporter:
    """Test historical appointment handling."""

    @staticmethod
    def appointment(days: int) -> dict:
        start = datetime.now(timezone.utc) + timedelta(days=days)
        return {"id": f"a{days}", "title": "Consultation", "calendarId": "cal-src", "startTime": start.isoformat()}

    @pytest.mark.asyncio
    async def test_past_appointments_skipped_by_default(self, platform, importer_for):
        outcome = await importer_for(MigrationCategory.APPOINTMENTS).import_record(self.appointment(-3))

        assert outcome == SKIPPED
        assert platform.locations[DESTINATION].of(MigrationCategory.APPOINTMENTS) == []

    @pytest.mark.asyncio
    async def test_past_appointments_included_when_requested(self, platform, importer_for):
        outcome = await importer_for(MigrationCategory.APPOINTMENTS, include_historical_appointments=True).import_record(
            self.appointment(-3)
        )

        assert outcome == CREATED

    @pytest.mark.asyncio
    async def test_calendar_mapped_for_future_appointments(self, platform, importer_for):
        importer_for.context.id_map.record("calendars", "cal-src", "cal-dst")

        await importer_for(MigrationCategory.APPOINTMENTS).import_record(self.appointment(5))

        created = platform.locations[DESTINATION].of(MigrationCategory.APPOINTMENTS)[0]
        assert created["calendarId"] == "cal-dst"


class TestWorkflowImporter:
    """Test workflows become recreation prompts."""

    WORKFLOW = {
        "id": "wf-1",
        "name": "New Client Welcome",
        "status": "published",
        "trigger": {"type": "contact_tag", "filters": {"tag": "new-client"}},
        "actions": [
            {"type": "send_email", "subject": "Welcome!"},
            {"type": "wait", "delay": 86400},
            {"type": "send_sms", "message": "See you soon", "delay": 3600},
        ],
    }

    def test_prompt_describes_trigger_and_sequence(self):
        prompt = workflow_to_prompt(self.WORKFLOW)

        assert "**WORKFLOW: New Client Welcome**" in prompt
        assert "- Type: Tag Added/Removed" in prompt
        assert "1. [Immediately] Send Email" in prompt
        assert "2. [1 days] Wait/Delay" in prompt
        assert "3. [1 hours] Send SMS" in prompt
        assert '- Message: "See you soon"' in prompt
        assert "**TO RECREATE IN NEW ACCOUNT:**" in prompt

    def test_prompt_for_bare_workflow(self):
        prompt = workflow_to_prompt({"id": "wf-2"})

        assert "**WORKFLOW: Unnamed Workflow**" in prompt
        assert "Set trigger: as described above" in prompt

    @pytest.mark.asyncio
    async def test_workflow_is_converted_not_written(self, platform, importer_for):
        outcome = await importer_for(MigrationCategory.WORKFLOWS).import_record(self.WORKFLOW)

        prompts = importer_for.context.artifacts[WORKFLOW_PROMPTS]
        assert outcome == CONVERTED
        assert prompts[0]["sourceId"] == "wf-1"
        assert prompts[0]["name"] == "New Client Welcome"
        assert platform.calls("POST", "/workflows") == 0
