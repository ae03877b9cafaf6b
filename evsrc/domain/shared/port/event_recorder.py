"""EventRecorder port: human-readable events about a source."""

from typing import Protocol


class EventRecorder(Protocol):
    """Fire-and-forget recorder bound to one involved object."""

    def normal(self, reason: str, message: str) -> None: ...

    def warn(self, reason: str, message: str) -> None: ...


class EventRecorderFactory(Protocol):
    def __call__(self, involved: str) -> EventRecorder:
        """Recorder for the object named ``involved``, e.g. ``ZendeskSource/default/tickets``."""
        ...
