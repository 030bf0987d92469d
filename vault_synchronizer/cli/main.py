"""CLI entrypoint for vault-synchronizer."""
import sys
import argparse
import logging

from vault_synchronizer.secrets.domains.errors import (
    ConfigError,
    LocalWriteError,
    RemoteFetchError,
    SynchronizerError,
    format_error_chain,
)

VERSION = "0.1.0"

EXIT_OK = 0
EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2

# Configure logging to stderr
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _load_config(args):
    from vault_synchronizer.secrets.domains.config_loader import load_config

    try:
        return load_config(args.config)
    except ConfigError as e:
        raise ConfigError("failed to get config") from e


def _connect_store(config):
    from vault_synchronizer.secrets.domains.k8s_client import KubernetesSecretStore

    return KubernetesSecretStore.from_environment(config.kubernetes.namespace)


def cmd_sync(args):
    """Synchronize secrets from the remote store into the current namespace."""
    from vault_synchronizer.secrets.workflows.runner import run

    config = _load_config(args)
    store = _connect_store(config)

    try:
        outcome = run(config, store)
    except (RemoteFetchError, LocalWriteError) as e:
        raise SynchronizerError("failed to synchronize secrets") from e

    if not outcome.degraded:
        logger.info("secrets successfully synchronized")
    return EXIT_OK


def cmd_check(args):
    """Check that every configured secret exists, without contacting the remote store."""
    from vault_synchronizer.secrets.workflows.degraded_mode import check_secrets

    config = _load_config(args)
    store = _connect_store(config)
    check_secrets(config.secrets, store)
    logger.info(f"all {len(config.secrets)} secret(s) present in namespace {config.kubernetes.namespace}")
    return EXIT_OK


def cmd_config_show(args):
    """Show the resolved configuration. Secret values are never printed."""
    config = _load_config(args)

    print(f"Config file: {config.config_path or '(none)'}")
    print(f"Token path: {config.token_path}")
    print(f"Backend: {config.backend}")
    if config.backend == "vault":
        print(f"Vault address: {config.vault.addr}")
        if config.vault.namespace:
            print(f"Vault namespace: {config.vault.namespace}")
        print(f"TLS verify: {config.vault.verify}")
        if config.vault.cert:
            print(f"Client certificate: {config.vault.cert[0]}")
        if config.vault.timeout:
            print(f"Timeout: {config.vault.timeout}s")
    else:
        print(f"GCP project: {config.gcp.project_id}")
    print(f"Kubernetes namespace: {config.kubernetes.namespace}")
    print("Secrets:")
    for entry in config.entries():
        print(f"  {entry.local_name} <- {entry.source_id}")
    return EXIT_OK


def cmd_version(args):
    """Show version information."""
    print(f"vault-synchronizer {VERSION}")
    return EXIT_OK


def build_parser():
    parser = argparse.ArgumentParser(
        prog="vault-synchronizer",
        description="Synchronize Vault secrets into Kubernetes secrets of the current namespace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success (also when secrets were already present and the token was unavailable)
  1 - Runtime error (secret missing, remote read failed, Kubernetes write failed)
  2 - Configuration error

Environment variables:
  VAULT_TOKEN_PATH - Path to the token written by the authenticator (required)
  VAULT_SECRETS    - Comma separated list of <vault path>[:<secret name>] (required)
  VAULT_ADDR, VAULT_NAMESPACE, VAULT_CACERT, VAULT_SKIP_VERIFY - Vault connection
  VAULT_CLIENT_CERT, VAULT_CLIENT_KEY, VAULT_CLIENT_TIMEOUT - Vault mutual TLS and timeout
  SYNCHRONIZER_CONFIG    - Optional YAML config file (environment takes precedence)
  SYNCHRONIZER_BACKEND   - Remote store: vault (default) or gcp
  SYNCHRONIZER_NAMESPACE - Kubernetes namespace (default: service account namespace)
  GCP_PROJECT            - GCP project ID for the gcp backend
        """
    )
    parser.add_argument(
        "--config",
        help="Path to YAML config file (default: $SYNCHRONIZER_CONFIG)"
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only log warnings and errors"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "sync",
        help="Synchronize secrets (default)",
        description="""
Create or update one Kubernetes secret per configured Vault secret, then delete
secrets annotated with 'vault-secret' that are no longer configured.

If the Vault token cannot be read, the run only checks that every configured
secret already exists and succeeds if so.
        """
    )

    subparsers.add_parser(
        "check",
        help="Check that all configured secrets exist",
        description="Verify that every configured secret exists in the namespace. Vault is not contacted."
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Inspect vault-synchronizer configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    config_subparsers.add_parser(
        "show",
        help="Show resolved configuration",
        description="Display the configuration resolved from the config file and environment"
    )

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of vault-synchronizer"
    )

    return parser, config_parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (missing secret, remote read, Kubernetes write, etc.)
        2 - Configuration or usage errors
    """
    parser, config_parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    # No command means sync
    command = args.command or "sync"

    try:
        if command == "sync":
            code = cmd_sync(args)
        elif command == "check":
            code = cmd_check(args)
        elif command == "version":
            code = cmd_version(args)
        elif command == "config":
            if args.config_command == "show":
                code = cmd_config_show(args)
            else:
                config_parser.print_help()
                code = EXIT_CONFIG_ERROR
        else:
            parser.print_help()
            code = EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.error("Interrupted")
        code = EXIT_RUNTIME_ERROR
    except ConfigError as e:
        logger.error(format_error_chain(e))
        code = EXIT_CONFIG_ERROR
    except SynchronizerError as e:
        logger.error(format_error_chain(e))
        code = EXIT_RUNTIME_ERROR
    except Exception as e:
        logger.error(f"Error: {format_error_chain(e)}")
        code = EXIT_RUNTIME_ERROR

    sys.exit(code)


if __name__ == "__main__":
    main()
