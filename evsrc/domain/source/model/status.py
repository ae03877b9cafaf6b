"""Source status transitions.

SourceStatusManager is the only writer of a source's conditions during a
reconciliation pass. It is built from the ConditionSet owned by the kind's
reconciler.
"""

from evsrc.domain.shared.model.condition import ConditionManager, ConditionSet
from evsrc.domain.source.model.source import SourceStatus
from evsrc.domain.source.model.workload import AdapterWorkload, WorkloadKind

CONDITION_SINK_PROVIDED = "SinkProvided"
CONDITION_DEPLOYED = "Deployed"
CONDITION_TARGET_SYNCED = "TargetSynced"

REASON_SINK_NOT_FOUND = "SinkNotFound"
REASON_SINK_EMPTY = "SinkEmpty"
REASON_UNAVAILABLE = "AdapterUnavailable"
REASON_DEPLOYING = "AdapterDeploying"

EVENT_SOURCE_CONDITIONS = ConditionSet.living(CONDITION_SINK_PROVIDED, CONDITION_DEPLOYED)


class SourceStatusManager:
    def __init__(self, status: SourceStatus, conditions: ConditionSet) -> None:
        self.status = status
        self._manager = ConditionManager(conditions, status.conditions)

    @property
    def conditions(self) -> ConditionManager:
        return self._manager

    def initialize_conditions(self) -> None:
        self._manager.initialize_conditions()

    def is_ready(self) -> bool:
        return self._manager.is_happy()

    def mark_sink(self, uri: str | None) -> None:
        if not uri:
            self.status.sink_uri = None
            self._manager.mark_false(
                CONDITION_SINK_PROVIDED, REASON_SINK_EMPTY, "The sink has no URI"
            )
            return
        self.status.sink_uri = uri
        self._manager.mark_true(CONDITION_SINK_PROVIDED)

    def mark_no_sink(self, message: str = "") -> None:
        self.status.sink_uri = None
        msg = "The sink does not exist or its URI is not set"
        if message:
            msg += ": " + message
        self._manager.mark_false(CONDITION_SINK_PROVIDED, REASON_SINK_NOT_FOUND, msg)

    def propagate_availability(
        self, kind: WorkloadKind, workload: AdapterWorkload | None
    ) -> None:
        """Map the observed adapter onto the Deployed condition.

        ``workload`` is None when the adapter could not be observed at all.
        """
        noun = f"adapter {kind.value}"

        if workload is None:
            self.status.address = None
            self._manager.mark_unknown(
                CONDITION_DEPLOYED,
                REASON_UNAVAILABLE,
                f"The status of the {noun} can not be determined",
            )
            return

        observed = workload.status
        self.status.address = observed.url if kind.addressable else None

        if observed.ready:
            self._manager.mark_true(CONDITION_DEPLOYED)
            return

        if observed.ready is None:
            msg = f"The {noun} is not ready yet"
            if observed.message:
                msg += ": " + observed.message
            self._manager.mark_unknown(CONDITION_DEPLOYED, REASON_DEPLOYING, msg)
            return

        reason = REASON_UNAVAILABLE
        msg = f"The {noun} is unavailable"
        if observed.message:
            msg += ": " + observed.message
        if not kind.addressable and observed.waiting is not None:
            reason = observed.waiting.reason
            if observed.waiting.message:
                msg += ": " + observed.waiting.message
        self._manager.mark_false(CONDITION_DEPLOYED, reason, msg)

    def mark_deployment_unknown(self, reason: str, message: str) -> None:
        self.status.address = None
        self._manager.mark_unknown(CONDITION_DEPLOYED, reason, message)

    def mark_target_synced(self) -> None:
        self._manager.mark_true(CONDITION_TARGET_SYNCED)

    def mark_target_not_synced(self, reason: str, message: str) -> None:
        self._manager.mark_false(CONDITION_TARGET_SYNCED, reason, message)

    def mark_target_sync_unknown(self, reason: str, message: str) -> None:
        self._manager.mark_unknown(CONDITION_TARGET_SYNCED, reason, message)
