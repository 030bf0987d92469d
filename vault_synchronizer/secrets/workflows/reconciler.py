"""Reconcile desired remote secrets against Kubernetes secrets."""
import logging
from typing import Mapping

from ..domains.errors import (
    CleanupError,
    LocalStoreError,
    LocalWriteError,
    format_error_chain,
)
from ..domains.models import VAULT_ANNOTATION, SyncResult, build_managed_secret

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Creates, updates and deletes managed secrets so the local store matches
    the desired mapping.

    Writing the desired secrets is fatal on the first failure. Deleting
    obsolete ones is best effort: failures are logged, collected in the
    result and never fail the run.
    """

    def __init__(self, reader, store, annotation: str = VAULT_ANNOTATION):
        self._reader = reader
        self._store = store
        self._annotation = annotation

    def reconcile(self, secrets: Mapping[str, str]) -> SyncResult:
        """
        Apply the desired mapping, then remove obsolete managed secrets.

        Args:
            secrets: Kubernetes secret name -> remote source id

        Returns:
            SyncResult describing what was changed

        Raises:
            RemoteFetchError: If a remote secret cannot be read or decoded
            LocalWriteError: If a local secret cannot be created or updated
        """
        result = SyncResult()
        for name, source_id in secrets.items():
            self._apply(name, source_id, result)
        self._cleanup(secrets, result)
        return result

    def _apply(self, name: str, source_id: str, result: SyncResult) -> None:
        payload = self._reader.read(source_id)
        secret = build_managed_secret(name, source_id, payload, self._annotation)

        try:
            if not self._store.exists(name):
                logger.info(f"create secret {name} from vault secret {source_id}")
                self._store.create(secret)
                result.created.append(name)
                return
            logger.info(f"update secret {name} from vault secret {source_id}")
            self._store.replace(secret)
            result.updated.append(name)
        except LocalStoreError as e:
            raise LocalWriteError(name, f"failed to write secret {name}") from e

    def _cleanup(self, secrets: Mapping[str, str], result: SyncResult) -> None:
        try:
            local_secrets = self._store.list_secrets()
        except LocalStoreError as e:
            logger.warning(f"cleanup of unused vault secrets failed: {format_error_chain(e)}")
            result.cleanup_skipped = True
            return

        for local in local_secrets:
            if not local.is_managed(self._annotation):
                continue
            if local.name in secrets:
                continue
            logger.info(f"delete secret {local.name}")
            try:
                self._store.delete(local.name)
            except LocalStoreError as e:
                error = CleanupError(local.name, f"delete obsolete vault secret {local.name} failed")
                error.__cause__ = e
                logger.warning(format_error_chain(error))
                result.cleanup_errors.append(error)
                continue
            result.deleted.append(local.name)
