from unittest.mock import AsyncMock

import pytest
from source_fakes import (
    SINK_URI,
    InMemoryWorkloads,
    RecordingEvents,
    make_context,
    make_http_source,
    make_zendesk_source,
)

from evsrc.domain.source.model.zendesk import ZENDESK_SOURCE_CONDITIONS
from evsrc.domain.source.reconciler.context import ReconcileContext


@pytest.fixture
def events() -> RecordingEvents:
    return RecordingEvents()


@pytest.fixture
def workloads() -> InMemoryWorkloads:
    return InMemoryWorkloads()


@pytest.fixture
def sinks() -> AsyncMock:
    resolver = AsyncMock()
    resolver.resolve.return_value = SINK_URI
    return resolver


@pytest.fixture
def http_ctx() -> ReconcileContext:
    return make_context(make_http_source())


@pytest.fixture
def zendesk_ctx() -> ReconcileContext:
    return make_context(make_zendesk_source(), ZENDESK_SOURCE_CONDITIONS)
