"""One synchronizer run: load the credential, then reconcile or fall back."""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..domains.config_loader import SyncConfig, load_token
from ..domains.errors import CredentialError, format_error_chain
from ..domains.models import SyncResult
from .degraded_mode import check_secrets
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


@dataclass
class RunOutcome:
    """Result of a run that ended in success."""
    degraded: bool
    result: Optional[SyncResult] = None


def build_reader(config: SyncConfig, credential: str):
    """Create the remote reader for the configured backend."""
    if config.backend == "gcp":
        from ..domains.gcp_client import GCPSecretReader
        return GCPSecretReader(config.gcp, credential)

    from ..domains.vault_client import VaultSecretReader
    return VaultSecretReader(config.vault, credential)


def run(
    config: SyncConfig,
    store,
    reader_factory: Optional[Callable[[SyncConfig, str], object]] = None,
) -> RunOutcome:
    """
    Synchronize the configured secrets into the store.

    If the credential cannot be loaded, the run succeeds in degraded mode as
    long as every desired secret already exists locally. The remote store is
    not contacted in that case.

    Raises:
        MissingSecretError: Degraded mode found a desired secret missing
        RemoteFetchError: A remote secret could not be read
        LocalWriteError: A local secret could not be written
    """
    try:
        credential = load_token(config.token_path)
        reader = (reader_factory or build_reader)(config, credential)
    except CredentialError as e:
        check_secrets(config.secrets, store)
        logger.warning(
            f"cannot synchronize secrets - all secrets seem to be available "
            f"therefore pod creation will continue: {format_error_chain(e)}"
        )
        return RunOutcome(degraded=True)

    result = Reconciler(reader, store).reconcile(config.secrets)
    if result.cleanup_errors:
        logger.warning(f"{len(result.cleanup_errors)} obsolete secret(s) could not be deleted")
    return RunOutcome(degraded=False, result=result)
