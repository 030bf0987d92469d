"""Error taxonomy for vault-synchronizer.

Fatal errors abort the run and bubble up to the CLI. ``CleanupError`` is the only
non-fatal one: it is collected per obsolete secret and logged.
"""
from typing import Optional


class SynchronizerError(Exception):
    """Base class for all synchronizer errors."""
    pass


class ConfigError(SynchronizerError):
    """Configuration error exception."""
    pass


class CredentialError(SynchronizerError):
    """The remote store credential could not be loaded."""
    pass


class MissingSecretError(SynchronizerError):
    """A required secret is absent from the local store in degraded mode."""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"secret {name} does not exist")


class RemoteFetchError(SynchronizerError):
    """Reading a secret from the remote store failed."""

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        super().__init__(message)


class DecodeError(RemoteFetchError):
    """The remote payload did not have the expected field shape."""
    pass


class LocalStoreError(SynchronizerError):
    """A Kubernetes API call failed."""
    pass


class LocalWriteError(SynchronizerError):
    """Creating or updating a local secret failed."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)


class CleanupError(SynchronizerError):
    """Deleting an obsolete local secret failed."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(message)


def format_error_chain(exc: BaseException) -> str:
    """
    Render an exception and its causes as ``outer: inner: root``.

    Args:
        exc: Outermost exception

    Returns:
        Messages of the exception chain joined with ': '
    """
    messages = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = str(current) or type(current).__name__
        messages.append(message)
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None
    return ": ".join(messages)
