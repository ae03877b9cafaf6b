"""Unit tests for LoggingEventRecorder."""

import logging

from evsrc.infrastructure.event.recorder import LoggingEventRecorder, LoggingEventRecorderFactory


class TestLoggingEventRecorder:
    def test_normal_event_is_logged_at_info(self, caplog):
        recorder = LoggingEventRecorderFactory()("ZendeskSource/default/tickets")

        with caplog.at_level(logging.INFO, logger="evsrc.infrastructure.event.recorder"):
            recorder.normal("ZendeskTargetCreated", 'Zendesk Target "t" was created')

        [record] = [r for r in caplog.records if r.name == "evsrc.infrastructure.event.recorder"]
        assert record.levelno == logging.INFO
        assert "[ZendeskSource/default/tickets] ZendeskTargetCreated" in record.getMessage()

    def test_warning_event_is_logged_at_warning(self, caplog):
        recorder = LoggingEventRecorder("HttpSource/default/webhook")

        with caplog.at_level(logging.INFO, logger="evsrc.infrastructure.event.recorder"):
            recorder.warn("BadSinkURI", "Could not resolve sink URI")

        [record] = [r for r in caplog.records if r.name == "evsrc.infrastructure.event.recorder"]
        assert record.levelno == logging.WARNING
        assert record.getMessage().endswith("BadSinkURI: Could not resolve sink URI")
