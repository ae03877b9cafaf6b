from dishka import AsyncContainer, from_context, make_async_container

from evsrc.config import Config
from evsrc.domain.source.util.di.provider import SourceProvider
from evsrc.infrastructure.event.di import EventProvider
from evsrc.infrastructure.http.di import HttpProvider
from evsrc.infrastructure.oci.di import OciProvider
from evsrc.infrastructure.persistence.di import PersistenceProvider
from evsrc.infrastructure.source.di import SourceInfraProvider
from evsrc.util.di.base import Provider
from evsrc.util.di.scope import Scope


class ConfigProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)


def create_container(config: Config | None = None) -> AsyncContainer:
    # Pydantic Settings populates from env vars at runtime
    config = config or Config()  # type: ignore[call-arg]

    return make_async_container(
        ConfigProvider(),
        PersistenceProvider(),
        OciProvider(),
        HttpProvider(),
        SourceInfraProvider(),
        EventProvider(),
        SourceProvider(),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
