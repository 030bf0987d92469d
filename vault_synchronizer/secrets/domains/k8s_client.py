"""Kubernetes secret store for the current namespace."""
import base64
import logging
from typing import List, Optional

from kubernetes import client, config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .errors import ConfigError, LocalStoreError
from .models import LocalSecret, ManagedSecret

logger = logging.getLogger(__name__)

_API_ERRORS = (ApiException, HTTPError)


def build_secret_body(secret: ManagedSecret, namespace: str) -> client.V1Secret:
    """Construct a V1Secret from a managed secret, base64-encoding its values."""
    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(
            name=secret.name,
            namespace=namespace,
            annotations=dict(secret.annotations),
        ),
        type="Opaque",
        data={
            key: base64.b64encode(value).decode("ascii") for key, value in secret.data.items()
        },
    )


class KubernetesSecretStore:
    """Reads, creates, replaces, lists and deletes secrets in one namespace."""

    def __init__(self, namespace: str, api: Optional[client.CoreV1Api] = None):
        self.namespace = namespace
        self._api = api

    @classmethod
    def from_environment(cls, namespace: str) -> "KubernetesSecretStore":
        """
        Connect using the in-cluster service account, falling back to kubeconfig.

        Raises:
            ConfigError: If neither configuration can be loaded
        """
        try:
            k8s_config.load_incluster_config()
        except k8s_config.ConfigException:
            logger.debug("Not running in a cluster, loading kubeconfig")
            try:
                k8s_config.load_kube_config()
            except (k8s_config.ConfigException, OSError) as e:
                raise ConfigError("failed to get k8s config") from e
        return cls(namespace, client.CoreV1Api())

    @property
    def api(self) -> client.CoreV1Api:
        if self._api is None:
            self._api = client.CoreV1Api()
        return self._api

    def exists(self, name: str) -> bool:
        """
        Check whether a secret exists. Only existence is checked, not content.

        Raises:
            LocalStoreError: On any API failure other than not found
        """
        try:
            self.api.read_namespaced_secret(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            raise LocalStoreError(f"failed to get secret {name}") from e
        except HTTPError as e:
            raise LocalStoreError(f"failed to get secret {name}") from e
        return True

    def create(self, secret: ManagedSecret) -> None:
        try:
            self.api.create_namespaced_secret(
                namespace=self.namespace,
                body=build_secret_body(secret, self.namespace),
            )
        except _API_ERRORS as e:
            raise LocalStoreError(f"failed to create secret {secret.name}") from e

    def replace(self, secret: ManagedSecret) -> None:
        """Overwrite an existing secret. Fields and annotations are not merged."""
        try:
            self.api.replace_namespaced_secret(
                name=secret.name,
                namespace=self.namespace,
                body=build_secret_body(secret, self.namespace),
            )
        except _API_ERRORS as e:
            raise LocalStoreError(f"failed to update secret {secret.name}") from e

    def list_secrets(self) -> List[LocalSecret]:
        try:
            secret_list = self.api.list_namespaced_secret(namespace=self.namespace)
        except _API_ERRORS as e:
            raise LocalStoreError(f"failed to list secrets in namespace {self.namespace}") from e
        return [
            LocalSecret(
                name=item.metadata.name,
                annotations=dict(item.metadata.annotations or {}),
            )
            for item in secret_list.items
        ]

    def delete(self, name: str) -> None:
        try:
            self.api.delete_namespaced_secret(name=name, namespace=self.namespace)
        except _API_ERRORS as e:
            raise LocalStoreError(f"failed to delete secret {name}") from e
