from evsrc.domain.source.model.source import HttpSource, SourceKind
from evsrc.domain.source.model.workload import EnvVar
from evsrc.domain.source.reconciler.base import SourceReconciler
from evsrc.domain.source.reconciler.resources import secret_env, value_env

ADAPTER_NAME = "httpsource"


class HttpSourceReconciler(SourceReconciler[HttpSource]):
    """Runs a Service adapter receiving arbitrary HTTP requests as events."""

    kind = SourceKind.HTTP

    def app_env(self, source: HttpSource) -> list[EnvVar]:
        spec = source.spec
        return [
            EnvVar(name="HTTP_EVENT_TYPE", value=spec.event_type),
            EnvVar(name="HTTP_EVENT_SOURCE", value=source.as_event_source()),
            *value_env("HTTP_BASICAUTH_USERNAME", spec.basic_auth_username),
            *secret_env("HTTP_BASICAUTH_PASSWORD", spec.basic_auth_password),
        ]
