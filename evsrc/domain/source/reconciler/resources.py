"""Builders for receive adapter workloads."""

import json

from evsrc.domain.shared.model.value import ValueObject
from evsrc.domain.source.model.source import CloudEventOverrides, EventSource, SecretValueFromSource
from evsrc.domain.source.model.workload import AdapterWorkload, EnvVar, WorkloadKind, child_name

# Recommended labels
APP_NAME_LABEL = "app.kubernetes.io/name"
APP_INSTANCE_LABEL = "app.kubernetes.io/instance"
APP_COMPONENT_LABEL = "app.kubernetes.io/component"
APP_PART_OF_LABEL = "app.kubernetes.io/part-of"
APP_MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"

ADAPTER_COMPONENT = "adapter"
ADAPTER_PORT = 8080

ENV_LOGGING_CONFIG = "K_LOGGING_CONFIG"
ENV_METRICS_CONFIG = "K_METRICS_CONFIG"
ENV_TRACING_CONFIG = "K_TRACING_CONFIG"


class AdapterSettings(ValueObject):
    """Deployment-wide settings for the adapters of one source kind."""

    image: str
    logging_config: str = ""
    metrics_config: str = ""
    tracing_config: str = ""


def adapter_labels(adapter_name: str, instance: str) -> dict[str, str]:
    return {
        APP_NAME_LABEL: adapter_name,
        APP_INSTANCE_LABEL: instance,
        APP_COMPONENT_LABEL: ADAPTER_COMPONENT,
        APP_PART_OF_LABEL: adapter_name,
        APP_MANAGED_BY_LABEL: f"{adapter_name}-controller",
    }


def service_env(name: str, namespace: str) -> list[EnvVar]:
    return [EnvVar(name="NAMESPACE", value=namespace), EnvVar(name="NAME", value=name)]


def sink_env(sink_uri: str | None) -> list[EnvVar]:
    if not sink_uri:
        return []
    return [EnvVar(name="K_SINK", value=sink_uri)]


def ce_overrides_env(overrides: CloudEventOverrides | None) -> list[EnvVar]:
    if overrides is None:
        return []
    value = json.dumps(overrides.model_dump(), sort_keys=True)
    return [EnvVar(name="K_CE_OVERRIDES", value=value)]


def observability_env(settings: AdapterSettings, kind: WorkloadKind) -> list[EnvVar]:
    # The metrics port of a Service is taken by its serving proxy.
    metrics = "" if kind is WorkloadKind.SERVICE else settings.metrics_config
    return [
        EnvVar(name=ENV_LOGGING_CONFIG, value=settings.logging_config),
        EnvVar(name=ENV_METRICS_CONFIG, value=metrics),
        EnvVar(name=ENV_TRACING_CONFIG, value=settings.tracing_config),
    ]


def value_env(name: str, value: str | None) -> list[EnvVar]:
    if value is None:
        return []
    return [EnvVar(name=name, value=value)]


def secret_env(name: str, ref: SecretValueFromSource | None) -> list[EnvVar]:
    if ref is None or ref.secret_key_ref is None:
        return []
    return [EnvVar(name=name, secret_key_ref=ref.secret_key_ref)]


def make_adapter(
    kind: WorkloadKind,
    source: EventSource,
    adapter_name: str,
    settings: AdapterSettings,
    app_env: list[EnvVar],
    sink_uri: str | None,
) -> AdapterWorkload:
    """Desired adapter for ``source``, carrying the common env around ``app_env``."""
    name = child_name(f"{adapter_name}-", source.name)
    env = [
        *service_env(name, source.namespace),
        *app_env,
        *sink_env(sink_uri),
        *ce_overrides_env(source.spec.ce_overrides),
        *observability_env(settings, kind),
    ]
    return AdapterWorkload(
        kind=kind,
        namespace=source.namespace,
        name=name,
        image=settings.image,
        env=env,
        labels=adapter_labels(adapter_name, source.name),
        owner=source.owner_reference(),
        port=ADAPTER_PORT if kind.addressable else None,
    )
