"""EventRecorder writing events to the log and to logfire."""

import logging

import logfire

from evsrc.domain.shared.port.event_recorder import EventRecorder, EventRecorderFactory

logger = logging.getLogger(__name__)


class LoggingEventRecorder(EventRecorder):
    def __init__(self, involved: str) -> None:
        self.involved = involved

    def normal(self, reason: str, message: str) -> None:
        logger.info("[%s] %s: %s", self.involved, reason, message)
        logfire.info(
            "event {reason}", reason=reason, involved=self.involved, message=message
        )

    def warn(self, reason: str, message: str) -> None:
        logger.warning("[%s] %s: %s", self.involved, reason, message)
        logfire.warn(
            "event {reason}", reason=reason, involved=self.involved, message=message
        )


class LoggingEventRecorderFactory(EventRecorderFactory):
    def __call__(self, involved: str) -> EventRecorder:
        return LoggingEventRecorder(involved)
