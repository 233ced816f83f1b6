"""
Pipeline and opportunity importers.
Opportunities are re-linked to migrated pipelines, stages and contacts.
"""

from typing import Any, Dict

from ..categories import MigrationCategory
from .base import BaseImporter

STAGES = "pipelineStages"


class PipelineImporter(BaseImporter):
    category = MigrationCategory.PIPELINES

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().transform(record)
        payload["stages"] = [
            {k: v for k, v in stage.items() if k != "id"}
            for stage in record.get("stages") or []
        ]
        return payload

    def remember(self, record: Dict[str, Any], destination: Dict[str, Any]):
        super().remember(record, destination)
        # Stages are matched by name; positions may differ if the destination already had the pipeline
        destination_stages = {s.get("name"): s.get("id") for s in destination.get("stages") or []}
        for stage in record.get("stages") or []:
            self.context.id_map.record(STAGES, stage.get("id"), destination_stages.get(stage.get("name")))


class OpportunityImporter(BaseImporter):
    category = MigrationCategory.OPPORTUNITIES
    conflicts_are_duplicates = False

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload = super().transform(record)
        id_map = self.context.id_map

        pipeline_id = id_map.get(MigrationCategory.PIPELINES.value, record.get("pipelineId"))
        stage_id = id_map.get(STAGES, record.get("pipelineStageId"))
        payload.pop("pipelineId", None)
        payload.pop("pipelineStageId", None)
        if pipeline_id:
            payload["pipelineId"] = pipeline_id
            if stage_id:
                payload["pipelineStageId"] = stage_id

        contact_id = id_map.get(MigrationCategory.CONTACTS.value, record.get("contactId"))
        payload.pop("contactId", None)
        payload.pop("contact", None)
        if contact_id:
            payload["contactId"] = contact_id
        return payload
