"""Unit tests for AdapterReconciler."""

from unittest.mock import AsyncMock

import pytest
from source_fakes import SINK_URI, InMemoryWorkloads, make_context, make_http_source

from evsrc.domain.shared.error import (
    ConflictError,
    ExternalServiceError,
    InvalidStateError,
    NotFoundError,
)
from evsrc.domain.shared.model.condition import READY
from evsrc.domain.source.model.source import OwnerReference
from evsrc.domain.source.model.status import (
    CONDITION_DEPLOYED,
    CONDITION_SINK_PROVIDED,
    REASON_DEPLOYING,
    REASON_SINK_NOT_FOUND,
    REASON_UNAVAILABLE,
)
from evsrc.domain.source.model.workload import WorkloadKind, WorkloadStatus
from evsrc.domain.source.reconciler.resources import AdapterSettings, make_adapter
from evsrc.domain.source.service.adapter import (
    REASON_ADAPTER_CREATE,
    REASON_ADAPTER_DELETE,
    REASON_ADAPTER_UPDATE,
    REASON_BAD_SINK_URI,
    REASON_FAILED_ADAPTER_CREATE,
    REASON_FAILED_ADAPTER_DELETE,
    REASON_NOT_OWNED,
    AdapterReconciler,
)

SETTINGS = AdapterSettings(image="registry.example.com/httpsource-adapter:v1")


def _reconciler(workloads, sinks) -> AdapterReconciler:
    return AdapterReconciler(
        adapter_name="httpsource",
        kind=WorkloadKind.SERVICE,
        workloads=workloads,
        sinks=sinks,
    )


def _builder(source, settings=SETTINGS):
    def build(sink_uri):
        return make_adapter(WorkloadKind.SERVICE, source, "httpsource", settings, [], sink_uri)

    return build


class TestCreate:
    @pytest.mark.asyncio
    async def test_creates_missing_adapter(self, http_ctx, workloads, sinks):
        """First pass creates the adapter and leaves Deployed Unknown."""
        reconciler = _reconciler(workloads, sinks)

        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        adapter = await workloads.get("default", "httpsource-webhook")
        assert adapter.image == SETTINGS.image
        assert adapter.env_value("K_SINK") == SINK_URI
        assert adapter.is_controlled_by(http_ctx.source.owner_reference())
        assert http_ctx.events.reasons == [REASON_ADAPTER_CREATE]
        deployed = http_ctx.status.conditions.get(CONDITION_DEPLOYED)
        assert deployed.is_unknown
        assert deployed.reason == REASON_DEPLOYING
        assert not http_ctx.status.is_ready()
        assert http_ctx.source.status.sink_uri == SINK_URI
        assert http_ctx.source.status.address is None

    @pytest.mark.asyncio
    async def test_next_pass_observes_ready_adapter(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        second = make_context(http_ctx.source)
        await reconciler.reconcile_source(second, _builder(second.source))

        assert second.status.is_ready()
        assert second.source.status.address == "http://adapter.example.com/"

    @pytest.mark.asyncio
    async def test_sets_cloud_event_attributes(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)

        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        [attrs] = http_ctx.source.status.ce_attributes
        assert attrs.type == "com.example.webhook"
        assert attrs.source == "default.webhook"

    @pytest.mark.asyncio
    async def test_create_failure_marks_deployment_unknown(self, http_ctx, sinks):
        """A failed create is recorded and raised for retry."""
        workloads = AsyncMock()
        workloads.get.side_effect = NotFoundError("not found")
        workloads.create.side_effect = ExternalServiceError("docker is down")
        reconciler = _reconciler(workloads, sinks)

        with pytest.raises(ExternalServiceError, match="docker is down"):
            await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        deployed = http_ctx.status.conditions.get(CONDITION_DEPLOYED)
        assert deployed.is_unknown
        assert deployed.reason == REASON_UNAVAILABLE
        assert http_ctx.events.reasons == [REASON_FAILED_ADAPTER_CREATE]

    @pytest.mark.asyncio
    async def test_lookup_failure_is_raised(self, http_ctx, sinks):
        workloads = AsyncMock()
        workloads.get.side_effect = ExternalServiceError("timeout")
        reconciler = _reconciler(workloads, sinks)

        with pytest.raises(ExternalServiceError):
            await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        workloads.create.assert_not_called()
        assert http_ctx.status.conditions.get(CONDITION_DEPLOYED).is_unknown

    @pytest.mark.asyncio
    async def test_adapter_not_ready_yet(self, http_ctx, sinks):
        workloads = InMemoryWorkloads(WorkloadStatus(ready=None, message="starting"))
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        second = make_context(http_ctx.source)
        await reconciler.reconcile_source(second, _builder(second.source))

        deployed = second.status.conditions.get(CONDITION_DEPLOYED)
        assert deployed.is_unknown
        assert deployed.reason == REASON_DEPLOYING
        assert "starting" in deployed.message
        assert not second.status.is_ready()


class TestUpdate:
    @pytest.mark.asyncio
    async def test_unchanged_adapter_is_not_written(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        second = make_context(http_ctx.source)
        await reconciler.reconcile_source(second, _builder(second.source))

        assert workloads.creates == 1
        assert workloads.updates == 0
        assert second.events.events == []
        assert second.status.is_ready()

    @pytest.mark.asyncio
    async def test_changed_settings_update_adapter(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        newer = AdapterSettings(image="registry.example.com/httpsource-adapter:v2")
        second = make_context(http_ctx.source)
        await reconciler.reconcile_source(second, _builder(second.source, newer))

        adapter = await workloads.get("default", "httpsource-webhook")
        assert adapter.image == newer.image
        assert workloads.updates == 1
        assert second.events.reasons == [REASON_ADAPTER_UPDATE]

    @pytest.mark.asyncio
    async def test_update_keeps_foreign_annotations(self, http_ctx, workloads, sinks):
        """Fields other writers own survive an update."""
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))
        key = ("default", "httpsource-webhook")
        workloads.items[key] = workloads.items[key].model_copy(
            update={"annotations": {"autoscaling/min-scale": "1"}}
        )

        newer = AdapterSettings(image="registry.example.com/httpsource-adapter:v2")
        await reconciler.reconcile_source(
            make_context(http_ctx.source), _builder(http_ctx.source, newer)
        )

        assert workloads.items[key].annotations == {"autoscaling/min-scale": "1"}

    @pytest.mark.asyncio
    async def test_foreign_adapter_is_not_touched(self, http_ctx, workloads, sinks):
        """An adapter owned by someone else is reported, never overwritten."""
        desired = _builder(http_ctx.source)(SINK_URI)
        foreign = desired.model_copy(
            update={"owner": OwnerReference(kind="HttpSource", name="other", uid="not-ours")}
        )
        workloads.items[("default", desired.name)] = foreign
        reconciler = _reconciler(workloads, sinks)

        with pytest.raises(InvalidStateError):
            await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        deployed = http_ctx.status.conditions.get(CONDITION_DEPLOYED)
        assert deployed.is_false
        assert deployed.reason == REASON_NOT_OWNED
        assert workloads.updates == 0


class TestSink:
    @pytest.mark.asyncio
    async def test_unresolvable_sink_stops_the_pass(self, http_ctx, workloads, sinks):
        sinks.resolve.side_effect = NotFoundError('Broker "default/missing" not found')
        reconciler = _reconciler(workloads, sinks)

        with pytest.raises(NotFoundError):
            await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        sink = http_ctx.status.conditions.get(CONDITION_SINK_PROVIDED)
        assert sink.is_false
        assert sink.reason == REASON_SINK_NOT_FOUND
        assert http_ctx.status.conditions.get(READY).is_false
        assert http_ctx.source.status.sink_uri is None
        assert http_ctx.events.reasons == [REASON_BAD_SINK_URI]
        assert workloads.creates == 0

    @pytest.mark.asyncio
    async def test_sink_change_updates_adapter(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        sinks.resolve.return_value = "http://other-broker.default.example.com/"
        await reconciler.reconcile_source(
            make_context(http_ctx.source), _builder(http_ctx.source)
        )

        adapter = await workloads.get("default", "httpsource-webhook")
        assert adapter.env_value("K_SINK") == "http://other-broker.default.example.com/"


def test_adapter_name_is_shortened_for_long_sources(workloads, sinks):
    reconciler = _reconciler(workloads, sinks)
    source = make_http_source(name="x" * 80)

    name = reconciler.adapter_name_for(source)

    assert len(name) <= 63
    assert name.startswith("httpsource-x")
    assert name == reconciler.adapter_name_for(make_http_source(name="x" * 80))


class TestDelete:
    @pytest.mark.asyncio
    async def test_removes_owned_adapter(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))

        ctx = make_context(http_ctx.source)
        await reconciler.delete_adapter(ctx)

        assert workloads.items == {}
        assert ctx.events.reasons == [REASON_ADAPTER_DELETE]

    @pytest.mark.asyncio
    async def test_missing_adapter_is_fine(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)

        await reconciler.delete_adapter(http_ctx)

        assert workloads.deletes == 0
        assert http_ctx.events.events == []

    @pytest.mark.asyncio
    async def test_foreign_adapter_is_left_alone(self, http_ctx, workloads, sinks):
        desired = _builder(http_ctx.source)(SINK_URI)
        foreign = desired.model_copy(
            update={"owner": OwnerReference(kind="HttpSource", name="other", uid="not-ours")}
        )
        workloads.items[("default", desired.name)] = foreign
        reconciler = _reconciler(workloads, sinks)

        await reconciler.delete_adapter(http_ctx)

        assert workloads.deletes == 0
        assert ("default", desired.name) in workloads.items

    @pytest.mark.asyncio
    async def test_unmanaged_container_is_left_alone(self, http_ctx, sinks):
        workloads = AsyncMock()
        workloads.get.side_effect = ConflictError("not managed by evsrc")
        reconciler = _reconciler(workloads, sinks)

        await reconciler.delete_adapter(http_ctx)

        workloads.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_delete_is_raised(self, http_ctx, workloads, sinks):
        reconciler = _reconciler(workloads, sinks)
        await reconciler.reconcile_source(http_ctx, _builder(http_ctx.source))
        workloads.delete = AsyncMock(side_effect=ExternalServiceError("docker is down"))

        ctx = make_context(http_ctx.source)
        with pytest.raises(ExternalServiceError):
            await reconciler.delete_adapter(ctx)

        assert ctx.events.reasons == [REASON_FAILED_ADAPTER_DELETE]
