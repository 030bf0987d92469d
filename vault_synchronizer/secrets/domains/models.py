"""Domain models for secret synchronization."""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping

from .errors import CleanupError

# Annotation marking a Kubernetes secret as synchronized from the remote store.
# Its value is the source id the secret was last synchronized from.
VAULT_ANNOTATION = "vault-secret"


@dataclass(frozen=True)
class DesiredEntry:
    """A local secret name and the remote secret it is built from."""
    local_name: str
    source_id: str


@dataclass(frozen=True)
class ManagedSecret:
    """A local secret built from a remote payload, tagged as managed."""
    name: str
    data: Mapping[str, bytes]
    annotations: Mapping[str, str]


@dataclass(frozen=True)
class LocalSecret:
    """A secret as listed from the local store."""
    name: str
    annotations: Mapping[str, str] = field(default_factory=dict)

    def is_managed(self, annotation: str = VAULT_ANNOTATION) -> bool:
        return annotation in self.annotations


@dataclass
class SyncResult:
    """Outcome of one reconciliation."""
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    cleanup_errors: List[CleanupError] = field(default_factory=list)
    cleanup_skipped: bool = False


def build_managed_secret(
    name: str,
    source_id: str,
    payload: Mapping[str, str],
    annotation: str = VAULT_ANNOTATION,
) -> ManagedSecret:
    """
    Build a managed secret from a decoded remote payload.

    Values are stored as UTF-8 bytes. The annotation mapping is created per call
    and never shared between secrets.

    Args:
        name: Local secret name
        source_id: Remote secret the payload was read from
        payload: Field name to string value
        annotation: Key of the ownership annotation

    Returns:
        ManagedSecret tagged with the source id
    """
    data: Dict[str, bytes] = {key: value.encode("utf-8") for key, value in payload.items()}
    return ManagedSecret(
        name=name,
        data=data,
        annotations={annotation: source_id},
    )
