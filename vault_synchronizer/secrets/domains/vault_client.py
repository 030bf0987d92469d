"""HashiCorp Vault secret reader."""
import logging
from typing import Any, Dict, Optional

import hvac
from hvac.exceptions import VaultError

from .config_loader import VaultSettings
from .errors import DecodeError, RemoteFetchError

logger = logging.getLogger(__name__)

# hvac default, in seconds
DEFAULT_TIMEOUT = 30


def decode_kv_payload(source_id: str, response: Any) -> Dict[str, str]:
    """
    Extract the field mapping from a KV v2 read response.

    The payload lives under ``data.data`` and every value must be a string.

    Raises:
        DecodeError: If the response does not have that shape
    """
    data = response.get("data") if isinstance(response, dict) else None
    payload = data.get("data") if isinstance(data, dict) else None
    if not isinstance(payload, dict):
        raise DecodeError(source_id, f"vault secret {source_id} has no 'data' mapping")

    fields: Dict[str, str] = {}
    for key, value in payload.items():
        if not isinstance(value, str):
            raise DecodeError(
                source_id,
                f"field {key} of vault secret {source_id} is {type(value).__name__}, expected string",
            )
        fields[key] = value
    return fields


class VaultSecretReader:
    """Reads secrets from Vault with a token loaded by the authenticator."""

    def __init__(self, settings: VaultSettings, token: str, client: Optional[hvac.Client] = None):
        self._settings = settings
        self._token = token
        self._client = client

    @property
    def client(self) -> hvac.Client:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = hvac.Client(
                url=self._settings.addr,
                token=self._token,
                verify=self._settings.verify,
                cert=self._settings.cert,
                timeout=self._settings.timeout or DEFAULT_TIMEOUT,
                namespace=self._settings.namespace,
            )
        return self._client

    def read(self, source_id: str) -> Dict[str, str]:
        """
        Read a secret's fields from Vault.

        Args:
            source_id: Logical Vault path, e.g. ``secret/data/db``

        Returns:
            Field name -> string value

        Raises:
            RemoteFetchError: If the secret is missing or the request fails
            DecodeError: If the payload is not a KV v2 string mapping
        """
        logger.info(f"read {source_id} from vault")
        try:
            response = self.client.read(source_id)
        except (VaultError, OSError) as e:
            raise RemoteFetchError(source_id, f"failed to read vault secret {source_id}") from e

        if response is None:
            raise RemoteFetchError(source_id, f"vault secret {source_id} not found")
        return decode_kv_payload(source_id, response)
