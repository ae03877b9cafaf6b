"""Event source resources: metadata, declared spec and observed status."""

from datetime import datetime
from enum import StrEnum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Self

from evsrc.domain.shared.error import ValidationError
from evsrc.domain.shared.model.condition import Condition
from evsrc.domain.shared.model.value import Entity, ValueObject

SOURCE_FINALIZER = "sources.evsrc.io/finalizer"


class SourceKind(StrEnum):
    HTTP = "HttpSource"
    ZENDESK = "ZendeskSource"
    SLACK = "SlackSource"


class SourceKey(ValueObject):
    """Identifies one source for the reconcile queue."""

    kind: SourceKind
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "SourceKey":
        try:
            kind, namespace, name = value.split("/")
        except ValueError:
            raise ValidationError(f"Invalid source key: {value!r}") from None
        return cls(kind=SourceKind(kind), namespace=namespace, name=name)


class SpecModel(ValueObject):
    """Spec fragments accept camelCase keys from manifests."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ObjectMeta(Entity):
    namespace: str = "default"
    name: str
    uid: str = Field(default_factory=lambda: str(uuid4()))
    generation: int = 1
    resource_version: int = 0
    finalizers: list[str] = []
    deletion_timestamp: datetime | None = None
    labels: dict[str, str] = {}


class KReference(SpecModel):
    """Reference to a named addressable object."""

    kind: str
    name: str
    namespace: str | None = None
    api_version: str = ""


class Destination(SpecModel):
    """Where events are delivered: a reference, a URI, or a URI relative to a reference."""

    ref: KReference | None = None
    uri: str | None = None

    @model_validator(mode="after")
    def require_ref_or_uri(self) -> Self:
        if self.ref is None and not self.uri:
            raise ValueError("sink requires either ref or uri")
        return self


class CloudEventOverrides(SpecModel):
    extensions: dict[str, str] = {}


class SecretKeySelector(SpecModel):
    name: str
    key: str


class SecretValueFromSource(SpecModel):
    secret_key_ref: SecretKeySelector | None = None


class CloudEventAttributes(ValueObject):
    type: str
    source: str


class OwnerReference(ValueObject):
    kind: str
    name: str
    uid: str
    controller: bool = True


class SourceSpec(SpecModel):
    sink: Destination
    ce_overrides: CloudEventOverrides | None = None


class HttpSourceSpec(SourceSpec):
    event_type: str
    event_source: str | None = None
    basic_auth_username: str | None = None
    basic_auth_password: SecretValueFromSource | None = None


class ZendeskSourceSpec(SourceSpec):
    email: str
    subdomain: str
    token: SecretValueFromSource
    webhook_username: str
    webhook_password: SecretValueFromSource


class SlackSourceSpec(SourceSpec):
    signing_secret: SecretValueFromSource | None = None
    app_id: str | None = None


class SourceStatus(Entity):
    observed_generation: int = 0
    conditions: list[Condition] = []
    sink_uri: str | None = None
    address: str | None = None
    ce_attributes: list[CloudEventAttributes] = []

    def get_condition(self, type_: str) -> Condition | None:
        for cond in self.conditions:
            if cond.type == type_:
                return cond
        return None


class EventSource(Entity):
    """Common shape of every source kind."""

    kind: ClassVar[SourceKind]

    metadata: ObjectMeta
    spec: SourceSpec
    status: SourceStatus = Field(default_factory=SourceStatus)

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def key(self) -> SourceKey:
        return SourceKey(kind=self.kind, namespace=self.namespace, name=self.name)

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def owner_reference(self) -> OwnerReference:
        return OwnerReference(kind=self.kind, name=self.name, uid=self.metadata.uid)

    def as_event_source(self) -> str:
        """Value of the CloudEvents "source" attribute."""
        return f"{self.namespace}.{self.name}"

    def event_types(self) -> list[str]:
        return []

    def cloud_event_attributes(self) -> list[CloudEventAttributes]:
        source = self.as_event_source()
        return [CloudEventAttributes(type=t, source=source) for t in self.event_types()]


class HttpSource(EventSource):
    kind: ClassVar[SourceKind] = SourceKind.HTTP

    spec: HttpSourceSpec

    def as_event_source(self) -> str:
        if self.spec.event_source:
            return self.spec.event_source
        return super().as_event_source()

    def event_types(self) -> list[str]:
        return [self.spec.event_type]


class ZendeskSource(EventSource):
    kind: ClassVar[SourceKind] = SourceKind.ZENDESK

    spec: ZendeskSourceSpec

    def as_event_source(self) -> str:
        return f"{self.spec.subdomain}.zendesk.com"

    def event_types(self) -> list[str]:
        return ["com.zendesk.ticket.new"]


class SlackSource(EventSource):
    kind: ClassVar[SourceKind] = SourceKind.SLACK

    spec: SlackSourceSpec

    def as_event_source(self) -> str:
        if self.spec.app_id:
            return f"com.slack.events/{self.spec.app_id}"
        return super().as_event_source()

    def event_types(self) -> list[str]:
        return ["com.slack.events"]


SOURCE_TYPES: dict[SourceKind, type[EventSource]] = {
    SourceKind.HTTP: HttpSource,
    SourceKind.ZENDESK: ZendeskSource,
    SourceKind.SLACK: SlackSource,
}


def source_from_manifest(manifest: dict[str, Any]) -> EventSource:
    """Build a source from a manifest document with ``kind``, ``metadata`` and ``spec``."""
    kind = manifest.get("kind")
    try:
        source_type = SOURCE_TYPES[SourceKind(kind)]
    except ValueError:
        raise ValidationError(f"Unknown source kind: {kind!r}", field="kind") from None

    metadata = manifest.get("metadata") or {}
    return source_type.model_validate(
        {
            "metadata": {
                "namespace": metadata.get("namespace", "default"),
                "name": metadata.get("name"),
                "labels": metadata.get("labels", {}),
            },
            "spec": manifest.get("spec") or {},
        }
    )
