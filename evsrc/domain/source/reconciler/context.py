from dataclasses import dataclass

from evsrc.domain.shared.port.event_recorder import EventRecorder
from evsrc.domain.source.model.source import EventSource
from evsrc.domain.source.model.status import SourceStatusManager


@dataclass
class ReconcileContext:
    """Everything one reconciliation pass of one source works on."""

    source: EventSource
    status: SourceStatusManager
    events: EventRecorder
