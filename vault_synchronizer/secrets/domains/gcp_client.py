"""GCP Secret Manager secret reader."""
import json
import logging
from typing import Any, Dict, Optional

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager
from google.oauth2 import service_account

from .config_loader import GCPSettings
from .errors import CredentialError, DecodeError, RemoteFetchError

logger = logging.getLogger(__name__)


def _load_service_account(credential: str) -> service_account.Credentials:
    try:
        info: Any = json.loads(credential)
    except ValueError as e:
        raise CredentialError("service account credential is not valid JSON") from e
    if not isinstance(info, dict):
        raise CredentialError("service account credential must be a JSON object")
    try:
        return service_account.Credentials.from_service_account_info(info)
    except (ValueError, auth_exceptions.GoogleAuthError) as e:
        raise CredentialError("service account credential is invalid") from e


def decode_json_payload(source_id: str, raw: bytes) -> Dict[str, str]:
    """
    Decode a secret version payload holding a JSON object of strings.

    Raises:
        DecodeError: If the payload is not a JSON object with string values
    """
    try:
        payload = json.loads(raw.decode("UTF-8"))
    except ValueError as e:
        raise DecodeError(source_id, f"gcp secret {source_id} is not a JSON object") from e
    if not isinstance(payload, dict):
        raise DecodeError(source_id, f"gcp secret {source_id} is not a JSON object")

    for key, value in payload.items():
        if not isinstance(value, str):
            raise DecodeError(
                source_id,
                f"field {key} of gcp secret {source_id} is {type(value).__name__}, expected string",
            )
    return payload


class GCPSecretReader:
    """Wrapper around GCP Secret Manager client."""

    def __init__(
        self,
        settings: GCPSettings,
        credential: str,
        client: Optional[secretmanager.SecretManagerServiceClient] = None,
    ):
        self._settings = settings
        self._credentials = _load_service_account(credential)
        self._client = client

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient(credentials=self._credentials)
        return self._client

    def version_name(self, source_id: str) -> str:
        """
        Resolve a source id to a secret version resource name.

        Accepts a bare secret id (resolved in the configured project) or a full
        ``projects/<p>/secrets/<s>`` name, with or without ``/versions/<v>``.
        """
        if source_id.startswith("projects/"):
            if "/versions/" in source_id:
                return source_id
            return f"{source_id.rstrip('/')}/versions/latest"
        return f"projects/{self._settings.project_id}/secrets/{source_id}/versions/latest"

    def read(self, source_id: str) -> Dict[str, str]:
        """
        Read a secret's fields from GCP Secret Manager.

        Args:
            source_id: Secret id or resource name

        Returns:
            Field name -> string value

        Raises:
            RemoteFetchError: If the request or the token refresh fails
            DecodeError: If the payload is not a JSON object of strings
        """
        logger.info(f"read {source_id} from gcp secret manager")
        name = self.version_name(source_id)
        try:
            response = self.client.access_secret_version(request={"name": name})
        except (gcp_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError) as e:
            raise RemoteFetchError(source_id, f"failed to read gcp secret {name}") from e
        return decode_json_payload(source_id, response.payload.data)
