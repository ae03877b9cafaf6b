"""Reads credentials out of secrets referenced by source specs."""

from evsrc.domain.shared.error import ConfigurationError, SecretKeyMissingError
from evsrc.domain.shared.service import Service
from evsrc.domain.source.model.source import SecretKeySelector, SecretValueFromSource
from evsrc.domain.source.port.secret import SecretStore


class SecretResolver(Service):
    """Resolves one key of one secret.

    A missing secret raises NotFoundError (often "not provisioned yet"), while a
    secret without the requested key raises SecretKeyMissingError, which is a
    configuration problem the user has to fix.
    """

    secrets: SecretStore

    async def resolve(
        self, namespace: str, ref: SecretValueFromSource | SecretKeySelector | None
    ) -> str:
        selector = ref.secret_key_ref if isinstance(ref, SecretValueFromSource) else ref
        if selector is None:
            raise ConfigurationError("no secret key reference given")

        data = await self.secrets.get(namespace, selector.name)
        try:
            value = data[selector.key]
        except KeyError:
            raise SecretKeyMissingError(selector.key, selector.name) from None
        return value.decode()
