"""Receive adapter workloads owned by sources.

A workload is either an addressable Service (always on, reports a public
URL) or a Deployment (no address). Both share one shape; the kind tag
decides how its observed status maps onto the Deployed condition.
"""

import hashlib
from enum import StrEnum

from evsrc.domain.shared.model.value import ValueObject
from evsrc.domain.source.model.source import OwnerReference, SecretKeySelector

# Longest name accepted for a child object.
MAX_NAME_LENGTH = 63

# Fields whose value is decided by the controller. Everything else on the
# observed object (annotations, status) belongs to someone else.
CONTROLLED_FIELDS = frozenset({"kind", "image", "env", "labels", "owner", "port"})


class WorkloadKind(StrEnum):
    SERVICE = "Service"
    DEPLOYMENT = "Deployment"

    @property
    def addressable(self) -> bool:
        return self is WorkloadKind.SERVICE


class EnvVar(ValueObject):
    name: str
    value: str | None = None
    secret_key_ref: SecretKeySelector | None = None


class WaitingState(ValueObject):
    """Why the workload's replicas are not running, e.g. ImagePullBackOff."""

    reason: str
    message: str = ""


class WorkloadStatus(ValueObject):
    ready: bool | None = None  # None until the workload reports readiness
    url: str | None = None
    message: str = ""
    waiting: WaitingState | None = None


class AdapterWorkload(ValueObject):
    kind: WorkloadKind
    namespace: str
    name: str
    image: str
    env: list[EnvVar] = []
    labels: dict[str, str] = {}
    owner: OwnerReference | None = None
    port: int | None = None
    annotations: dict[str, str] = {}
    status: WorkloadStatus = WorkloadStatus()

    def controlled(self) -> dict:
        return self.model_dump(include=set(CONTROLLED_FIELDS), mode="json")

    def differs_from(self, desired: "AdapterWorkload") -> bool:
        return self.controlled() != desired.controlled()

    def with_desired(self, desired: "AdapterWorkload") -> "AdapterWorkload":
        """Copy of this object with every controller-owned field taken from ``desired``."""
        return self.model_copy(update={f: getattr(desired, f) for f in CONTROLLED_FIELDS})

    def is_controlled_by(self, owner: OwnerReference) -> bool:
        return self.owner is not None and self.owner.controller and self.owner.uid == owner.uid

    def env_value(self, name: str) -> str | None:
        for var in self.env:
            if var.name == name:
                return var.value
        return None


def child_name(prefix: str, name: str) -> str:
    """Deterministic child object name, shortened with a hash when too long."""
    full = prefix + name
    if len(full) <= MAX_NAME_LENGTH:
        return full
    digest = hashlib.md5(full.encode()).hexdigest()
    return full[: MAX_NAME_LENGTH - len(digest)] + digest
