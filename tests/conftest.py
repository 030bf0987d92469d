"""Shared fixtures: in-memory remote reader and Kubernetes secret store."""
import pytest

from vault_synchronizer.secrets.domains.config_loader import KubernetesSettings, SyncConfig
from vault_synchronizer.secrets.domains.errors import LocalStoreError, RemoteFetchError
from vault_synchronizer.secrets.domains.models import VAULT_ANNOTATION, LocalSecret


class FakeReader:
    """Remote store serving fixed payloads, recording every read."""

    def __init__(self, payloads=None):
        self.payloads = dict(payloads or {})
        self.calls = []

    def read(self, source_id):
        self.calls.append(source_id)
        if source_id not in self.payloads:
            raise RemoteFetchError(source_id, f"vault secret {source_id} not found")
        return dict(self.payloads[source_id])


class FakeStore:
    """Kubernetes secret store kept in a dict, with injectable failures."""

    def __init__(self):
        self.secrets = {}
        self.operations = []
        # (operation, name) -> exception; name None matches every name
        self.failures = {}

    def add(self, name, data=None, annotations=None):
        self.secrets[name] = {"data": dict(data or {}), "annotations": dict(annotations or {})}

    def add_managed(self, name, source_id, data=None):
        self.add(name, data, {VAULT_ANNOTATION: source_id})

    def _maybe_fail(self, operation, name=None):
        error = self.failures.get((operation, name)) or self.failures.get((operation, None))
        if error is not None:
            raise error

    def exists(self, name):
        self._maybe_fail("exists", name)
        return name in self.secrets

    def create(self, secret):
        self._maybe_fail("create", secret.name)
        if secret.name in self.secrets:
            raise LocalStoreError(f"secret {secret.name} already exists")
        self.operations.append(("create", secret.name))
        self.secrets[secret.name] = {"data": dict(secret.data), "annotations": dict(secret.annotations)}

    def replace(self, secret):
        self._maybe_fail("replace", secret.name)
        if secret.name not in self.secrets:
            raise LocalStoreError(f"secret {secret.name} not found")
        self.operations.append(("replace", secret.name))
        self.secrets[secret.name] = {"data": dict(secret.data), "annotations": dict(secret.annotations)}

    def list_secrets(self):
        self._maybe_fail("list")
        return [
            LocalSecret(name=name, annotations=dict(entry["annotations"]))
            for name, entry in self.secrets.items()
        ]

    def delete(self, name):
        self._maybe_fail("delete", name)
        self.operations.append(("delete", name))
        del self.secrets[name]

    def managed_names(self):
        return {
            name for name, entry in self.secrets.items()
            if VAULT_ANNOTATION in entry["annotations"]
        }


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def reader():
    return FakeReader({
        "secret/data/a": {"username": "alice", "password": "s3cret"},
        "secret/data/b": {"token": "abc"},
        "secret/data/c": {"key": "value"},
    })


@pytest.fixture
def token_file(tmp_path):
    path = tmp_path / "token"
    path.write_text("s.test-token\n")
    return path


@pytest.fixture
def make_config(token_file):
    """Build a SyncConfig without touching the environment."""
    def _make(secrets, token_path=None, backend="vault"):
        return SyncConfig(
            token_path=str(token_path or token_file),
            secrets=dict(secrets),
            kubernetes=KubernetesSettings(namespace="default"),
            backend=backend,
        )
    return _make
