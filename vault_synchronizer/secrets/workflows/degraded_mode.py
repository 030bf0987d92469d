"""Presence check used when the remote store cannot be reached."""
import logging
from typing import Mapping

from ..domains.errors import LocalStoreError, MissingSecretError

logger = logging.getLogger(__name__)


def check_secrets(secrets: Mapping[str, str], store) -> None:
    """
    Check that every desired secret already exists locally.

    Only existence is checked, not content. A lookup error counts as missing.

    Args:
        secrets: Kubernetes secret name -> remote source id
        store: Local secret store

    Raises:
        MissingSecretError: For the first secret that cannot be found
    """
    for name, source_id in secrets.items():
        logger.info(f"check secret {name} from vault secret {source_id}")
        try:
            found = store.exists(name)
        except LocalStoreError as e:
            raise MissingSecretError(name) from e
        if not found:
            raise MissingSecretError(name)
