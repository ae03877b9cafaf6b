"""Unit tests for ZendeskSynchronizer."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from evsrc.domain.shared.error import (
    ExternalServiceError,
    NotFoundError,
    PermanentError,
    SecretKeyMissingError,
)
from evsrc.domain.source.model.status import CONDITION_TARGET_SYNCED
from evsrc.domain.source.model.workload import WorkloadKind, WorkloadStatus
from evsrc.domain.source.model.zendesk import (
    REASON_CREDENTIAL_ERROR,
    REASON_FAILED_SYNC,
    REASON_FAILED_TARGET_DELETE,
    REASON_NO_URL,
    REASON_TARGET_CREATED,
    REASON_TARGET_DELETED,
    REASON_TRIGGER_CREATED,
    REASON_TRIGGER_DELETED,
    ZendeskTarget,
    ZendeskTrigger,
)
from evsrc.domain.source.reconciler.resources import AdapterSettings, make_adapter
from evsrc.domain.source.service.adapter import AdapterReconciler
from evsrc.domain.source.service.secret import SecretResolver
from evsrc.domain.source.service.zendesk import ZendeskSynchronizer

TITLE = "io.evsrc.zendesksource.default.tickets"
ADAPTER_URL = "http://adapter.example.com/"


class FakeZendesk:
    """ZendeskApi keeping targets and triggers in lists."""

    def __init__(self) -> None:
        self.targets: list[ZendeskTarget] = []
        self.triggers: list[ZendeskTrigger] = []
        self.calls: list[str] = []
        self._next_id = 100

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def list_targets(self) -> list[ZendeskTarget]:
        self.calls.append("list_targets")
        return list(self.targets)

    async def create_target(self, target: ZendeskTarget) -> ZendeskTarget:
        self.calls.append("create_target")
        created = target.model_copy(update={"id": self._id()})
        self.targets.append(created)
        return created

    async def delete_target(self, target_id: int) -> None:
        self.calls.append("delete_target")
        self.targets = [t for t in self.targets if t.id != target_id]

    async def list_triggers(self) -> list[ZendeskTrigger]:
        self.calls.append("list_triggers")
        return list(self.triggers)

    async def create_trigger(self, trigger: ZendeskTrigger) -> ZendeskTrigger:
        self.calls.append("create_trigger")
        created = trigger.model_copy(update={"id": self._id()})
        self.triggers.append(created)
        return created

    async def delete_trigger(self, trigger_id: int) -> None:
        self.calls.append("delete_trigger")
        self.triggers = [t for t in self.triggers if t.id != trigger_id]


@pytest.fixture
def zendesk() -> FakeZendesk:
    return FakeZendesk()


@pytest.fixture
def secret_store() -> AsyncMock:
    store = AsyncMock()
    store.get.return_value = {"token": b"api-token", "password": b"hook-secret"}
    return store


@pytest.fixture
def adapters(workloads, sinks) -> AdapterReconciler:
    return AdapterReconciler(
        adapter_name="zendesksource",
        kind=WorkloadKind.SERVICE,
        workloads=workloads,
        sinks=sinks,
    )


@pytest.fixture
def factory(zendesk) -> MagicMock:
    return MagicMock(return_value=zendesk)


@pytest.fixture
def sync(adapters, secret_store, factory) -> ZendeskSynchronizer:
    return ZendeskSynchronizer(
        adapters=adapters,
        secrets=SecretResolver(secrets=secret_store),
        zendesk=factory,
    )


async def _deploy_adapter(workloads, ctx, status=None) -> None:
    if status is not None:
        workloads.status = status
    adapter = make_adapter(
        WorkloadKind.SERVICE,
        ctx.source,
        "zendesksource",
        AdapterSettings(image="zendesk-adapter:v1"),
        [],
        "http://broker.default.example.com/",
    )
    await workloads.create(adapter)


def _synced(ctx):
    return ctx.status.conditions.get(CONDITION_TARGET_SYNCED)


class TestEnsure:
    @pytest.mark.asyncio
    async def test_registers_target_then_trigger(self, sync, zendesk, workloads, zendesk_ctx):
        """A ready adapter gets a Target and a Trigger pointing at it."""
        await _deploy_adapter(workloads, zendesk_ctx)

        await sync.ensure(zendesk_ctx)

        [target] = zendesk.targets
        assert target.title == TITLE
        assert target.target_url == ADAPTER_URL
        assert target.username == "hook"
        assert target.password == "hook-secret"
        [trigger] = zendesk.triggers
        assert trigger.title == TITLE
        assert trigger.actions[0].value[0] == str(target.id)
        assert zendesk.calls.index("create_target") < zendesk.calls.index("create_trigger")
        assert zendesk_ctx.events.reasons == [REASON_TARGET_CREATED, REASON_TRIGGER_CREATED]
        assert _synced(zendesk_ctx).is_true

    @pytest.mark.asyncio
    async def test_client_uses_source_credentials(
        self, sync, factory, workloads, zendesk_ctx
    ):
        await _deploy_adapter(workloads, zendesk_ctx)

        await sync.ensure(zendesk_ctx)

        factory.assert_called_once_with("acme", "agent@example.com", "api-token")

    @pytest.mark.asyncio
    async def test_second_pass_creates_nothing(self, sync, zendesk, workloads, zendesk_ctx):
        await _deploy_adapter(workloads, zendesk_ctx)
        await sync.ensure(zendesk_ctx)
        zendesk.calls.clear()

        await sync.ensure(zendesk_ctx)

        assert "create_target" not in zendesk.calls
        assert "create_trigger" not in zendesk.calls
        assert len(zendesk.targets) == 1
        assert len(zendesk.triggers) == 1

    @pytest.mark.asyncio
    async def test_resumes_after_target_only(self, sync, zendesk, workloads, zendesk_ctx):
        """A pass interrupted after the Target only creates the Trigger."""
        await _deploy_adapter(workloads, zendesk_ctx)
        zendesk.targets.append(ZendeskTarget(id=7, title=TITLE, target_url=ADAPTER_URL))

        await sync.ensure(zendesk_ctx)

        assert "create_target" not in zendesk.calls
        [trigger] = zendesk.triggers
        assert trigger.actions[0].value[0] == "7"
        assert zendesk_ctx.events.reasons == [REASON_TRIGGER_CREATED]

    @pytest.mark.asyncio
    async def test_missing_adapter_leaves_sync_unknown(self, sync, zendesk, zendesk_ctx):
        await sync.ensure(zendesk_ctx)

        assert _synced(zendesk_ctx).is_unknown
        assert _synced(zendesk_ctx).reason == REASON_NO_URL
        assert zendesk.calls == []

    @pytest.mark.asyncio
    async def test_failed_adapter_lookup_is_recorded(self, sync, zendesk, workloads, zendesk_ctx):
        workloads.get = AsyncMock(side_effect=ExternalServiceError("docker is down"))

        with pytest.raises(ExternalServiceError):
            await sync.ensure(zendesk_ctx)

        assert _synced(zendesk_ctx).is_unknown
        assert _synced(zendesk_ctx).reason == REASON_NO_URL
        assert "docker is down" in _synced(zendesk_ctx).message
        assert zendesk.calls == []

    @pytest.mark.asyncio
    async def test_adapter_without_url_leaves_sync_unknown(
        self, sync, zendesk, workloads, zendesk_ctx
    ):
        await _deploy_adapter(workloads, zendesk_ctx, WorkloadStatus(ready=None))

        await sync.ensure(zendesk_ctx)

        assert _synced(zendesk_ctx).reason == REASON_NO_URL
        assert zendesk.calls == []

    @pytest.mark.asyncio
    async def test_missing_secret_is_credential_error(
        self, sync, secret_store, workloads, zendesk_ctx
    ):
        await _deploy_adapter(workloads, zendesk_ctx)
        secret_store.get.side_effect = NotFoundError('secret "zendesk" not found')

        with pytest.raises(NotFoundError):
            await sync.ensure(zendesk_ctx)

        assert _synced(zendesk_ctx).is_false
        assert _synced(zendesk_ctx).reason == REASON_CREDENTIAL_ERROR

    @pytest.mark.asyncio
    async def test_missing_key_is_credential_error(
        self, sync, secret_store, workloads, zendesk_ctx
    ):
        await _deploy_adapter(workloads, zendesk_ctx)
        secret_store.get.return_value = {"token": b"api-token"}

        with pytest.raises(SecretKeyMissingError):
            await sync.ensure(zendesk_ctx)

        assert "password" in _synced(zendesk_ctx).message

    @pytest.mark.asyncio
    async def test_denied_is_permanent(self, sync, zendesk, workloads, zendesk_ctx):
        await _deploy_adapter(workloads, zendesk_ctx)
        zendesk.list_targets = AsyncMock(
            side_effect=ExternalServiceError("Forbidden", status_code=403)
        )

        with pytest.raises(PermanentError):
            await sync.ensure(zendesk_ctx)

        assert _synced(zendesk_ctx).reason == REASON_FAILED_SYNC
        assert _synced(zendesk_ctx).message.startswith("Unable to list Targets")

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self, sync, zendesk, workloads, zendesk_ctx):
        await _deploy_adapter(workloads, zendesk_ctx)
        zendesk.create_target = AsyncMock(
            side_effect=ExternalServiceError("Internal Server Error", status_code=500)
        )

        with pytest.raises(ExternalServiceError) as exc_info:
            await sync.ensure(zendesk_ctx)

        assert not isinstance(exc_info.value, PermanentError)
        assert _synced(zendesk_ctx).message.startswith("Unable to create Target")
        assert zendesk.triggers == []

    @pytest.mark.asyncio
    async def test_conflict_adopts_existing_target(self, sync, zendesk, workloads, zendesk_ctx):
        """A Target created concurrently is adopted instead of failing."""
        await _deploy_adapter(workloads, zendesk_ctx)
        existing = ZendeskTarget(id=42, title=TITLE, target_url=ADAPTER_URL)
        listings = [[], [existing]]

        async def list_targets():
            return listings.pop(0)

        zendesk.list_targets = list_targets
        zendesk.create_target = AsyncMock(
            side_effect=ExternalServiceError("Title taken", status_code=422)
        )

        await sync.ensure(zendesk_ctx)

        [trigger] = zendesk.triggers
        assert trigger.actions[0].value[0] == "42"
        assert _synced(zendesk_ctx).is_true


class TestTeardown:
    @pytest.fixture
    def registered(self, zendesk):
        zendesk.targets.append(ZendeskTarget(id=1, title=TITLE, target_url=ADAPTER_URL))
        zendesk.triggers.append(ZendeskTrigger(id=2, title=TITLE))
        zendesk.targets.append(ZendeskTarget(id=3, title="someone-else", target_url=ADAPTER_URL))
        return zendesk

    @pytest.mark.asyncio
    async def test_deletes_trigger_then_target(self, sync, registered, zendesk_ctx):
        await sync.teardown(zendesk_ctx)

        assert registered.triggers == []
        assert [t.title for t in registered.targets] == ["someone-else"]
        assert registered.calls.index("delete_trigger") < registered.calls.index("delete_target")
        assert zendesk_ctx.events.reasons == [REASON_TRIGGER_DELETED, REASON_TARGET_DELETED]

    @pytest.mark.asyncio
    async def test_nothing_registered(self, sync, zendesk, zendesk_ctx):
        await sync.teardown(zendesk_ctx)

        assert "delete_trigger" not in zendesk.calls
        assert "delete_target" not in zendesk.calls

    @pytest.mark.asyncio
    async def test_missing_secret_waives_cleanup(self, sync, secret_store, zendesk, zendesk_ctx):
        secret_store.get.side_effect = NotFoundError('secret "zendesk" not found')

        await sync.teardown(zendesk_ctx)

        assert zendesk.calls == []
        assert zendesk_ctx.events.reasons == [REASON_FAILED_TARGET_DELETE]

    @pytest.mark.asyncio
    async def test_missing_key_is_raised(self, sync, secret_store, zendesk_ctx):
        secret_store.get.return_value = {"password": b"hook-secret"}

        with pytest.raises(SecretKeyMissingError):
            await sync.teardown(zendesk_ctx)

    @pytest.mark.asyncio
    async def test_denied_waives_cleanup(self, sync, registered, zendesk_ctx):
        registered.delete_trigger = AsyncMock(
            side_effect=ExternalServiceError("Unauthorized", status_code=401)
        )

        await sync.teardown(zendesk_ctx)

        assert "delete_target" not in registered.calls
        [(kind, reason, message)] = zendesk_ctx.events.events
        assert kind == "Warning"
        assert reason == REASON_FAILED_TARGET_DELETE
        assert "authorization denied" in message

    @pytest.mark.asyncio
    async def test_delete_failure_is_raised(self, sync, registered, zendesk_ctx):
        registered.delete_target = AsyncMock(
            side_effect=ExternalServiceError("Bad Gateway", status_code=502)
        )

        with pytest.raises(ExternalServiceError):
            await sync.teardown(zendesk_ctx)

        assert zendesk_ctx.events.reasons == [REASON_TRIGGER_DELETED, REASON_FAILED_TARGET_DELETE]
