"""
Workflow importer.

The platform API cannot create workflows, so each one is converted into a
readable recreation prompt and kept on the job instead of being written.
"""

import json
import re
from typing import Any, Dict, List

from ..categories import MigrationCategory
from .base import BaseImporter, CONVERTED

WORKFLOW_PROMPTS = "workflowPrompts"

TRIGGER_NAMES = {
    "contact_created": "Contact Created",
    "contact_changed": "Contact Changed",
    "contact_tag": "Tag Added/Removed",
    "form_submitted": "Form Submitted",
    "appointment_booked": "Appointment Booked",
    "appointment_status": "Appointment Status Changed",
    "opportunity_created": "Opportunity Created",
    "opportunity_status": "Opportunity Status Changed",
    "pipeline_stage": "Pipeline Stage Changed",
    "inbound_message": "Message Received",
    "call_status": "Call Status Changed",
    "invoice_paid": "Invoice Paid",
    "birthday": "Birthday",
    "custom_date": "Custom Date",
    "webhook": "Webhook Received",
    "manual": "Manual Trigger",
}

ACTION_NAMES = {
    "send_sms": "Send SMS",
    "send_email": "Send Email",
    "add_tag": "Add Tag",
    "remove_tag": "Remove Tag",
    "update_contact": "Update Contact Field",
    "create_task": "Create Task",
    "add_note": "Add Note",
    "send_notification": "Send Internal Notification",
    "wait": "Wait/Delay",
    "condition": "If/Then Condition",
    "webhook": "Send Webhook",
    "add_to_workflow": "Add to Another Workflow",
    "remove_from_workflow": "Remove from Workflow",
    "create_opportunity": "Create Opportunity",
    "update_opportunity": "Update Opportunity",
    "assign_user": "Assign to User",
    "voicemail": "Send Ringless Voicemail",
    "call": "Make Phone Call",
}


def humanize(value: str, names: Dict[str, str]) -> str:
    if value in names:
        return names[value]
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), value.replace("_", " "))


def format_delay(delay: Any) -> str:
    if not delay:
        return "Immediately"
    if isinstance(delay, str):
        return delay
    if isinstance(delay, (int, float)):
        if delay < 60:
            return f"{delay:g} seconds"
        if delay < 3600:
            return f"{round(delay / 60)} minutes"
        if delay < 86400:
            return f"{round(delay / 3600)} hours"
        return f"{round(delay / 86400)} days"
    if isinstance(delay, dict) and delay.get("value") and delay.get("unit"):
        return f"{delay['value']} {delay['unit']}"
    return json.dumps(delay)


def workflow_to_prompt(workflow: Dict[str, Any]) -> str:
    """Describe a workflow so it can be rebuilt by hand in another location"""
    lines: List[str] = [
        f"**WORKFLOW: {workflow.get('name') or 'Unnamed Workflow'}**",
        "",
        f"**Status:** {workflow.get('status') or 'Unknown'}",
        f"**ID:** {workflow.get('id')}",
        "",
    ]

    trigger = workflow.get("trigger") or (workflow.get("triggers") or [None])[0]
    trigger_name = "as described above"
    if trigger:
        trigger_name = humanize(trigger.get("type") or trigger.get("name") or "Unknown", TRIGGER_NAMES)
        lines.append("**TRIGGER:**")
        lines.append(f"- Type: {trigger_name}")
        if trigger.get("filters"):
            lines.append(f"- Filters: {json.dumps(trigger['filters'])}")
        lines.append("")

    actions = workflow.get("actions") or workflow.get("steps") or []
    if actions:
        lines.append("**SEQUENCE:**")
        for index, action in enumerate(actions, start=1):
            action_type = action.get("type") or action.get("actionType") or "Unknown"
            lines.append(f"{index}. [{format_delay(action.get('delay'))}] {humanize(action_type, ACTION_NAMES)}")
            if action_type in ("send_sms", "sms"):
                lines.append(f"   - Message: \"{action.get('message') or action.get('body') or '[Template]'}\"")
            if action_type in ("send_email", "email"):
                lines.append(f"   - Subject: \"{action.get('subject') or '[Template]'}\"")
            if action_type in ("add_tag", "tag"):
                lines.append(f"   - Tag: \"{action.get('tag') or action.get('tagName') or '[Tag Name]'}\"")
            if action_type in ("wait", "delay"):
                lines.append(f"   - Wait: {format_delay(action.get('delay') or action.get('duration'))}")
            condition = action.get("conditions") or action.get("condition")
            if condition:
                lines.append(f"   - Condition: {json.dumps(condition)}")
        lines.append("")

    lines.extend([
        "**TO RECREATE IN NEW ACCOUNT:**",
        "1. Go to Automation → Workflows → Create Workflow",
        f"2. Set trigger: {trigger_name}",
        "3. Add each action in sequence with specified delays",
        "4. Configure message templates with your branding",
        "5. Test with a sample contact before enabling",
        "",
        "---",
    ])
    return "\n".join(lines)


class WorkflowImporter(BaseImporter):
    category = MigrationCategory.WORKFLOWS

    async def import_record(self, record: Dict[str, Any]) -> str:
        prompts = self.context.artifacts.setdefault(WORKFLOW_PROMPTS, [])
        prompts.append({
            "sourceId": record.get("id"),
            "name": record.get("name") or "Unnamed Workflow",
            "prompt": workflow_to_prompt(record),
        })
        return CONVERTED
