"""Zendesk webhook registration: an HTTP target and the trigger that fires it."""

from evsrc.domain.shared.model.condition import ConditionSet
from evsrc.domain.shared.model.value import ValueObject
from evsrc.domain.source.model.source import EventSource
from evsrc.domain.source.model.status import (
    CONDITION_DEPLOYED,
    CONDITION_SINK_PROVIDED,
    CONDITION_TARGET_SYNCED,
)

ZENDESK_SOURCE_CONDITIONS = ConditionSet.living(
    CONDITION_SINK_PROVIDED, CONDITION_DEPLOYED, CONDITION_TARGET_SYNCED
)

REASON_NO_URL = "AdapterURLUnknown"
REASON_CREDENTIAL_ERROR = "CredentialError"
REASON_FAILED_SYNC = "FailedSync"

REASON_TARGET_CREATED = "ZendeskTargetCreated"
REASON_TRIGGER_CREATED = "ZendeskTriggerCreated"
REASON_TARGET_DELETED = "ZendeskTargetDeleted"
REASON_TRIGGER_DELETED = "ZendeskTriggerDeleted"
REASON_FAILED_TARGET_CREATE = "FailedZendeskTargetCreate"
REASON_FAILED_TARGET_DELETE = "FailedZendeskTargetDelete"


class ZendeskTarget(ValueObject):
    id: int | None = None
    title: str
    type: str = "http_target"
    target_url: str
    method: str = "post"
    username: str | None = None
    password: str | None = None
    content_type: str = "application/json"


class TriggerCondition(ValueObject):
    field: str
    operator: str
    value: str


class TriggerAction(ValueObject):
    field: str
    value: list[str] | str


class ZendeskTrigger(ValueObject):
    id: int | None = None
    title: str
    all_conditions: list[TriggerCondition] = []
    any_conditions: list[TriggerCondition] = []
    actions: list[TriggerAction] = []


def target_title(source: EventSource) -> str:
    """Title shared by the Target and Trigger registered for ``source``."""
    return f"io.evsrc.zendesksource.{source.namespace}.{source.name}"


def desired_target(title: str, url: str, username: str, password: str) -> ZendeskTarget:
    return ZendeskTarget(
        title=title,
        target_url=url,
        username=username,
        password=password,
    )


def desired_trigger(title: str, target_id: int) -> ZendeskTrigger:
    """Trigger notifying the target whenever a ticket is created."""
    return ZendeskTrigger(
        title=title,
        all_conditions=[TriggerCondition(field="update_type", operator="is", value="Create")],
        actions=[
            TriggerAction(
                field="notification_target",
                value=[str(target_id), TRIGGER_PAYLOAD_JSON],
            )
        ],
    )


TRIGGER_PAYLOAD_JSON = """{
  "ticket": {
    "id": {{ticket.id}},
    "external_id": "{{ticket.external_id}}",
    "title": "{{ticket.title}}",
    "url": "{{ticket.url}}",
    "description": "{{ticket.description}}",
    "via": "{{ticket.via}}",
    "status": "{{ticket.status}}",
    "priority": "{{ticket.priority}}",
    "ticket_type": "{{ticket.ticket_type}}",
    "group_name": "{{ticket.group.name}}",
    "brand_name": "{{ticket.brand.name}}",
    "due_date": "{{ticket.due_date}}",
    "account": "{{ticket.account}}",
    "assignee": {
      "email": "{{ticket.assignee.email}}",
      "name": "{{ticket.assignee.name}}",
      "first_name": "{{ticket.assignee.first_name}}",
      "last_name": "{{ticket.assignee.last_name}}"
    },
    "requester": {
      "name": "{{ticket.requester.name}}",
      "first_name": "{{ticket.requester.first_name}}",
      "last_name": "{{ticket.requester.last_name}}",
      "email": "{{ticket.requester.email}}",
      "language": "{{ticket.requester.language}}",
      "phone": "{{ticket.requester.phone}}",
      "external_id": "{{ticket.requester.external_id}}",
      "field": "{{ticket.requester_field}}",
      "details": "{{ticket.requester.details}}"
    },
    "organization": {
      "name": "{{ticket.organization.name}}",
      "external_id": "{{ticket.organization.external_id}}",
      "details": "{{ticket.organization.details}}",
      "notes": "{{ticket.organization.notes}}"
    },
    "ccs": "{{ticket.ccs}}",
    "cc_names": "{{ticket.cc_names}}",
    "tags": "{{ticket.tags}}",
    "current_holiday_name": "{{ticket.current_holiday_name}}",
    "ticket_field_id": "{{ticket.ticket_field_ID}}",
    "ticket_field_option_title_id": "{{ticket.ticket_field_option_title_ID}}"
  },
  "current_user": {
    "name": "{{current_user.name}}",
    "first_name": "{{current_user.first_name}}",
    "email": "{{current_user.email}}",
    "organization": {
      "name": "{{current_user.organization.name}}",
      "notes": "{{current_user.organization.notes}}",
      "details": "{{current_user.organization.details}}"
    },
    "external_id": "{{current_user.external_id}}",
    "phone": "{{current_user.phone}}",
    "details": "{{current_user.details}}",
    "notes": "{{current_user.notes}}",
    "language": "{{current_user.language}}"
  },
  "satisfaction": {
    "current_rating": "{{satisfaction.current_rating}}",
    "current_comment": "{{satisfaction.current_comment}}"
  }
}"""
