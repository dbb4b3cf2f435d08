"""Venue terminal core — storage package.

Read access to per-user venue credentials.  The core never writes
credential records; ``InMemoryCredentialStore.put_*`` exists for tests
and the CLI.
"""

from .credential_store import CredentialStore, InMemoryCredentialStore

__all__ = ["CredentialStore", "InMemoryCredentialStore"]
