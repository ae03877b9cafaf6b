from typing import AsyncIterable

import aiodocker
from dishka import provide

from evsrc.config import Config
from evsrc.domain.source.port.workload import WorkloadClient
from evsrc.domain.source.service.secret import SecretResolver
from evsrc.infrastructure.oci.workload import DockerWorkloadClient
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope


class OciProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_docker(self) -> AsyncIterable[aiodocker.Docker]:
        docker = aiodocker.Docker()
        yield docker
        await docker.close()

    @provide(scope=Scope.APP)
    def get_workload_client(
        self, docker: aiodocker.Docker, secrets: SecretResolver, config: Config
    ) -> WorkloadClient:
        return DockerWorkloadClient(
            docker=docker,
            secrets=secrets,
            public_host=config.docker.public_host,
            network=config.docker.network,
        )
