"""SecretStore port: opaque key/value credential stores."""

from typing import Protocol


class SecretStore(Protocol):
    async def get(self, namespace: str, name: str) -> dict[str, bytes]:
        """Return the data of one secret, raising NotFoundError when it does not exist."""
        ...
