"""WorkloadClient running receive adapters as Docker containers via aiodocker.

Each adapter is one long-running container named ``<namespace>.<name>``. The
controller-owned part of the workload is stored as JSON in a label, so reads
return exactly what was last written. Any other label on the container is
surfaced as an annotation and kept across updates.
"""

import json
from typing import Any

import aiodocker
import logfire

from evsrc.domain.shared.error import ConflictError, ExternalServiceError, NotFoundError
from evsrc.domain.source.model.workload import (
    AdapterWorkload,
    EnvVar,
    WaitingState,
    WorkloadKind,
    WorkloadStatus,
)
from evsrc.domain.source.port.workload import WorkloadClient
from evsrc.domain.source.service.secret import SecretResolver

SPEC_LABEL = "io.evsrc.workload"
NAMESPACE_LABEL = "io.evsrc.namespace"

REASON_CRASH_LOOP = "CrashLoopBackOff"


def container_name(namespace: str, name: str) -> str:
    return f"{namespace}.{name}"


class DockerWorkloadClient(WorkloadClient):
    """Runs adapters as containers that Docker restarts when they exit.

    Service workloads publish their port on a host port picked by Docker and
    report ``http://<public_host>:<host port>/`` as their URL. Secret-backed
    env vars are resolved when the container is created.
    """

    def __init__(
        self,
        docker: aiodocker.Docker,
        secrets: SecretResolver,
        public_host: str = "localhost",
        network: str | None = None,
    ):
        self._docker = docker
        self._secrets = secrets
        self._public_host = public_host
        self._network = network

    async def get(self, namespace: str, name: str) -> AdapterWorkload:
        data = await self._inspect(container_name(namespace, name))
        return self._to_workload(data)

    async def create(self, workload: AdapterWorkload) -> AdapterWorkload:
        name = container_name(workload.namespace, workload.name)
        config = await self._prepare(workload)
        await self._start(name, config)
        return await self.get(workload.namespace, workload.name)

    async def update(self, workload: AdapterWorkload) -> AdapterWorkload:
        """Replace the container, as a running container's config cannot change.

        Secrets and the image are resolved before the old container is
        removed, so a failure there leaves the running adapter in place.
        """
        name = container_name(workload.namespace, workload.name)
        config = await self._prepare(workload)
        await self._remove(name)
        await self._start(name, config)
        return await self.get(workload.namespace, workload.name)

    async def delete(self, namespace: str, name: str) -> None:
        await self._remove(container_name(namespace, name))

    async def _prepare(self, workload: AdapterWorkload) -> dict[str, Any]:
        config = await self._container_config(workload)
        await self._ensure_image(workload.image)
        return config

    async def _start(self, name: str, config: dict[str, Any]) -> None:
        with logfire.span("docker create {name}", name=name):
            try:
                container = await self._docker.containers.create(config, name=name)
                await container.start()
            except aiodocker.DockerError as e:
                logfire.error("Docker error creating adapter", container=name, error=str(e))
                if e.status == 409:
                    raise ConflictError(f"Container {name} already exists") from e
                raise ExternalServiceError(
                    f"Docker error creating container {name}: {e.message}",
                    status_code=e.status,
                ) from e

    async def _remove(self, name: str) -> None:
        try:
            container = await self._docker.containers.get(name)
            await container.delete(force=True)
        except aiodocker.DockerError as e:
            if e.status != 404:
                raise ExternalServiceError(
                    f"Docker error removing container {name}: {e.message}",
                    status_code=e.status,
                ) from e
        else:
            logfire.info("Removed adapter container", container=name)

    async def _inspect(self, name: str) -> dict[str, Any]:
        try:
            container = await self._docker.containers.get(name)
            return await container.show()
        except aiodocker.DockerError as e:
            if e.status == 404:
                raise NotFoundError(f"Container {name} not found") from e
            raise ExternalServiceError(
                f"Docker error inspecting container {name}: {e.message}",
                status_code=e.status,
            ) from e

    async def _ensure_image(self, image: str) -> None:
        """Prefer a local image over pulling from the registry."""
        try:
            await self._docker.images.inspect(image)
            return
        except aiodocker.DockerError:
            pass

        logfire.info("Pulling adapter image", image=image)
        try:
            await self._docker.images.pull(image)
        except aiodocker.DockerError as e:
            raise ExternalServiceError(
                f"Unable to pull image {image}: {e.message}", status_code=e.status
            ) from e

    async def _container_config(self, workload: AdapterWorkload) -> dict[str, Any]:
        labels = {
            **workload.annotations,
            **workload.labels,
            NAMESPACE_LABEL: workload.namespace,
            SPEC_LABEL: json.dumps(workload.controlled(), sort_keys=True),
        }
        host_config: dict[str, Any] = {"RestartPolicy": {"Name": "always"}}
        if self._network:
            host_config["NetworkMode"] = self._network

        config: dict[str, Any] = {
            "Image": workload.image,
            "Env": [await self._env_entry(workload.namespace, var) for var in workload.env],
            "Labels": labels,
            "HostConfig": host_config,
        }
        if workload.port is not None:
            port = f"{workload.port}/tcp"
            config["Env"].append(f"PORT={workload.port}")
            config["ExposedPorts"] = {port: {}}
            # Empty HostPort lets Docker pick a free one.
            host_config["PortBindings"] = {port: [{"HostPort": ""}]}
        return config

    async def _env_entry(self, namespace: str, var: EnvVar) -> str:
        if var.secret_key_ref is not None:
            value = await self._secrets.resolve(namespace, var.secret_key_ref)
        else:
            value = var.value or ""
        return f"{var.name}={value}"

    def _to_workload(self, data: dict[str, Any]) -> AdapterWorkload:
        labels = data.get("Config", {}).get("Labels") or {}
        name = data.get("Name", "").lstrip("/")
        try:
            spec = json.loads(labels[SPEC_LABEL])
        except (KeyError, json.JSONDecodeError) as e:
            # Someone else's container squatting on the adapter's name.
            raise ConflictError(f"Container {name} is not managed by evsrc") from e

        owned = set(spec.get("labels", {})) | {SPEC_LABEL, NAMESPACE_LABEL}
        annotations = {k: v for k, v in labels.items() if k not in owned}

        namespace = labels[NAMESPACE_LABEL]
        workload = AdapterWorkload.model_validate(
            {
                **spec,
                "namespace": namespace,
                "name": name.removeprefix(f"{namespace}."),
                "annotations": annotations,
            }
        )
        return workload.model_copy(update={"status": self._status(workload, data)})

    def _status(self, workload: AdapterWorkload, data: dict[str, Any]) -> WorkloadStatus:
        state = data.get("State", {})
        url = self._url(workload, data)

        if state.get("Restarting"):
            return WorkloadStatus(
                ready=False,
                url=url,
                message="container keeps exiting",
                waiting=WaitingState(
                    reason=REASON_CRASH_LOOP,
                    message=f"back-off restarting failed container (exit code {state.get('ExitCode')})",
                ),
            )

        if state.get("Running"):
            health = (state.get("Health") or {}).get("Status")
            if health == "starting":
                return WorkloadStatus(ready=None, url=url, message="health check starting")
            if health == "unhealthy":
                return WorkloadStatus(ready=False, url=url, message="health check failing")
            return WorkloadStatus(ready=True, url=url)

        if state.get("Status") == "created":
            return WorkloadStatus(ready=None, message="container not started")

        message = f"container {state.get('Status', 'stopped')} with code {state.get('ExitCode')}"
        if state.get("Error"):
            message += f": {state['Error']}"
        return WorkloadStatus(ready=False, message=message)

    def _url(self, workload: AdapterWorkload, data: dict[str, Any]) -> str | None:
        if workload.kind is not WorkloadKind.SERVICE or workload.port is None:
            return None
        ports = (data.get("NetworkSettings") or {}).get("Ports") or {}
        bindings = ports.get(f"{workload.port}/tcp") or []
        if not bindings or not bindings[0].get("HostPort"):
            return None
        return f"http://{self._public_host}:{bindings[0]['HostPort']}/"
