"""SecretStore backed by YAML files: ``<root>/<namespace>/<name>.yaml``."""

from pathlib import Path

import yaml

from evsrc.domain.shared.error import ConfigurationError, NotFoundError
from evsrc.domain.source.port.secret import SecretStore


class FileSecretStore(SecretStore):
    """Reads secrets written by an operator as flat YAML mappings.

    Files are read on every call, so rotating a credential needs no restart.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def path_for(self, namespace: str, name: str) -> Path:
        return self._root / namespace / f"{name}.yaml"

    async def get(self, namespace: str, name: str) -> dict[str, bytes]:
        path = self.path_for(namespace, name)
        if not path.is_file():
            raise NotFoundError(f'secret "{name}" not found in namespace "{namespace}"')

        try:
            data = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Secret file {path} is not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Secret file {path} must contain a mapping")

        return {str(k): str(v).encode() for k, v in data.items()}
