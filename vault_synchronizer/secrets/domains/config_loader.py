"""Configuration loader for vault-synchronizer."""
import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigError, CredentialError
from .models import DesiredEntry

logger = logging.getLogger(__name__)

DEFAULT_VAULT_ADDR = "https://127.0.0.1:8200"
DEFAULT_NAMESPACE_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"
SUPPORTED_BACKENDS = ("vault", "gcp")


@dataclass(frozen=True)
class VaultSettings:
    """Connection settings for the Vault remote store."""
    addr: str = DEFAULT_VAULT_ADDR
    namespace: Optional[str] = None
    # True/False, or a CA bundle path
    verify: Union[bool, str] = True
    # (client certificate, client key) for mutual TLS
    cert: Optional[Tuple[str, str]] = None
    timeout: Optional[int] = None


@dataclass(frozen=True)
class GCPSettings:
    """Connection settings for the GCP Secret Manager remote store."""
    project_id: Optional[str] = None


@dataclass(frozen=True)
class KubernetesSettings:
    """Target of the local store."""
    namespace: str


@dataclass(frozen=True)
class SyncConfig:
    """Everything a run needs, resolved once at startup."""
    token_path: str
    secrets: Mapping[str, str]
    kubernetes: KubernetesSettings
    backend: str = "vault"
    vault: VaultSettings = field(default_factory=VaultSettings)
    gcp: GCPSettings = field(default_factory=GCPSettings)
    config_path: Optional[str] = None

    def entries(self) -> List[DesiredEntry]:
        """Desired entries sorted by local name."""
        return [DesiredEntry(name, source_id) for name, source_id in sorted(self.secrets.items())]


def _base_name(source_id: str) -> str:
    """Last path segment of a source id, ignoring trailing slashes."""
    stripped = source_id.rstrip("/")
    if not stripped:
        return "/" if source_id else "."
    return stripped.rsplit("/", 1)[-1]


def parse_secrets(raw: Optional[str]) -> Dict[str, str]:
    """
    Parse a VAULT_SECRETS list into a mapping of local name to source id.

    Each comma separated entry is either ``source`` or ``source:local-name``.
    Without a local name, the last path segment of the source is used. When
    the same local name appears twice, the last entry wins.

    Args:
        raw: Comma separated list of entries

    Returns:
        Dict of Kubernetes secret name -> remote secret id

    Raises:
        ConfigError: If no valid entry is found
    """
    secrets: Dict[str, str] = {}
    for item in (raw or "").split(","):
        item = item.strip()
        if not item:
            continue
        parts = item.split(":")
        source_id = parts[0].strip()
        if not source_id:
            logger.warning(f"Ignoring entry without source: {item}")
            continue
        local_name = parts[1].strip() if len(parts) > 1 else ""
        local_name = local_name or _base_name(source_id)
        if local_name in secrets and secrets[local_name] != source_id:
            logger.debug(f"Secret {local_name} redefined: {secrets[local_name]} -> {source_id}")
        secrets[local_name] = source_id

    if not secrets:
        raise ConfigError("no secrets to synchronize - check VAULT_SECRETS")
    return secrets


def _load_yaml(config_path: str) -> Dict[str, Any]:
    """Load the optional YAML config file."""
    if not os.path.isfile(config_path):
        raise ConfigError(f"Configuration file not found at: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}") from e

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")
    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")

    logger.debug(f"Configuration file loaded from {config_path}")
    return config


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section in config must be a mapping")
    return section


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "t", "true", "yes"):
        return True
    if text in ("0", "f", "false", "no", ""):
        return False
    raise ConfigError(f"Invalid boolean for {name}: {value!r}")


_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600}


def _parse_timeout(value: Any, name: str) -> Optional[int]:
    """Timeout in seconds, given as an integer or with an s/m/h suffix."""
    if value is None or value == "":
        return None
    text = str(value).strip().lower()
    multiplier = 1
    if text and text[-1] in _DURATION_UNITS:
        multiplier = _DURATION_UNITS[text[-1]]
        text = text[:-1]
    try:
        seconds = int(text) * multiplier
    except ValueError:
        raise ConfigError(f"Invalid timeout for {name}: {value!r}") from None
    if seconds <= 0:
        raise ConfigError(f"Invalid timeout for {name}: {value!r}")
    return seconds


def _client_cert(vault_cfg: Dict[str, Any]) -> Optional[Tuple[str, str]]:
    cert = os.getenv("VAULT_CLIENT_CERT") or vault_cfg.get("client_cert")
    key = os.getenv("VAULT_CLIENT_KEY") or vault_cfg.get("client_key")
    if not cert and not key:
        return None
    if not (cert and key):
        raise ConfigError("VAULT_CLIENT_CERT and VAULT_CLIENT_KEY must be set together")
    return cert, key


def _secrets_value(value: Any) -> Optional[str]:
    """YAML accepts the same comma separated string as VAULT_SECRETS, or a list."""
    if value is None:
        return None
    if isinstance(value, list):
        return ",".join(str(item) for item in value)
    if isinstance(value, str):
        return value
    raise ConfigError("'secrets' in config must be a string or a list")


def read_namespace(namespace_path: str) -> str:
    """
    Read the current Kubernetes namespace from the service account mount.

    Raises:
        ConfigError: If the file cannot be read or is empty
    """
    try:
        with open(namespace_path, 'r') as f:
            namespace = f.read().strip()
    except OSError as e:
        raise ConfigError(f"could not get namespace from {namespace_path}") from e
    if not namespace:
        raise ConfigError(f"namespace file {namespace_path} is empty")
    return namespace


def load_config(config_path: Optional[str] = None) -> SyncConfig:
    """
    Load and validate configuration.

    Priority order (highest first):
    1. Environment variables (VAULT_TOKEN_PATH, VAULT_SECRETS, VAULT_ADDR, ...)
    2. Optional YAML file given by config_path or SYNCHRONIZER_CONFIG

    Args:
        config_path: Path to a YAML config file

    Returns:
        Resolved SyncConfig

    Raises:
        ConfigError: If a required setting is missing or invalid
    """
    config_path = config_path or os.getenv("SYNCHRONIZER_CONFIG")
    config: Dict[str, Any] = _load_yaml(config_path) if config_path else {}
    vault_cfg = _section(config, "vault")
    gcp_cfg = _section(config, "gcp")
    k8s_cfg = _section(config, "kubernetes")

    token_path = os.getenv("VAULT_TOKEN_PATH") or config.get("token_path")
    if not token_path:
        raise ConfigError("missing VAULT_TOKEN_PATH")

    secrets = parse_secrets(os.getenv("VAULT_SECRETS") or _secrets_value(config.get("secrets")))

    backend = os.getenv("SYNCHRONIZER_BACKEND") or config.get("backend") or "vault"
    if backend not in SUPPORTED_BACKENDS:
        raise ConfigError(
            f"Unsupported backend: {backend}\n"
            f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
        )

    skip_verify = os.getenv("VAULT_SKIP_VERIFY")
    if skip_verify is None:
        skip_verify = vault_cfg.get("skip_verify", False)
    cacert = os.getenv("VAULT_CACERT") or vault_cfg.get("cacert")
    verify: Union[bool, str] = True
    if _parse_bool(skip_verify, "VAULT_SKIP_VERIFY"):
        verify = False
    elif cacert:
        verify = cacert

    vault = VaultSettings(
        addr=os.getenv("VAULT_ADDR") or vault_cfg.get("addr") or DEFAULT_VAULT_ADDR,
        namespace=os.getenv("VAULT_NAMESPACE") or vault_cfg.get("namespace"),
        verify=verify,
        cert=_client_cert(vault_cfg),
        timeout=_parse_timeout(
            os.getenv("VAULT_CLIENT_TIMEOUT") or vault_cfg.get("timeout"), "VAULT_CLIENT_TIMEOUT"
        ),
    )

    gcp = GCPSettings(project_id=os.getenv("GCP_PROJECT") or gcp_cfg.get("project_id"))
    if backend == "gcp" and not gcp.project_id:
        raise ConfigError(
            "GCP backend requires a project ID.\n"
            "Set GCP_PROJECT or configure gcp.project_id in the config file."
        )

    namespace = os.getenv("SYNCHRONIZER_NAMESPACE") or k8s_cfg.get("namespace")
    if not namespace:
        namespace_path = (
            os.getenv("SYNCHRONIZER_NAMESPACE_PATH")
            or k8s_cfg.get("namespace_path")
            or DEFAULT_NAMESPACE_PATH
        )
        namespace = read_namespace(namespace_path)

    logger.debug(f"Using backend {backend}, namespace {namespace}, {len(secrets)} secret(s)")

    return SyncConfig(
        token_path=token_path,
        secrets=secrets,
        kubernetes=KubernetesSettings(namespace=namespace),
        backend=backend,
        vault=vault,
        gcp=gcp,
        config_path=config_path,
    )


def load_token(token_path: str) -> str:
    """
    Load the remote store credential written by the authenticator.

    Args:
        token_path: Path to the token (Vault) or service account JSON (GCP)

    Returns:
        File content with surrounding whitespace removed

    Raises:
        CredentialError: If the file is unreadable or empty
    """
    try:
        with open(token_path, 'r') as f:
            token = f.read().strip()
    except OSError as e:
        raise CredentialError(f"could not get vault token from {token_path}") from e
    if not token:
        raise CredentialError(f"vault token file {token_path} is empty")
    return token
