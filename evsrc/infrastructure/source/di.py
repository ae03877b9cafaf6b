from pathlib import Path

from dishka import provide

from evsrc.config import Config
from evsrc.domain.source.port.secret import SecretStore
from evsrc.domain.source.port.sink import SinkResolver
from evsrc.infrastructure.secret.file_store import FileSecretStore
from evsrc.infrastructure.sink.resolver import ConfiguredSinkResolver
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope


class SourceInfraProvider(Provider):
    @provide(scope=Scope.APP)
    def get_secret_store(self, config: Config) -> SecretStore:
        return FileSecretStore(Path(config.secrets.directory).expanduser())

    @provide(scope=Scope.APP)
    def get_sink_resolver(self, config: Config) -> SinkResolver:
        return ConfiguredSinkResolver(config.sinks)
