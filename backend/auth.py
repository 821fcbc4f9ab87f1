"""
Auth collaborator contract.

Token issuance and expiry checks live outside this package; the console only
asks "who is calling, and with which bearer credential".
"""
from __future__ import annotations

import os
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class CredentialProvider(Protocol):

    def get_token(self) -> Optional[str]:
        """Current bearer credential, or None when signed out."""
        ...

    def get_identity(self) -> Optional[str]:
        """Stable caller identity for the signaling token, if known."""
        ...


class StaticCredentialProvider:
    """Fixed credential, for scripts and tests."""

    def __init__(self, token: Optional[str] = None, identity: Optional[str] = None):
        self._token = token
        self._identity = identity

    def get_token(self) -> Optional[str]:
        return self._token or None

    def get_identity(self) -> Optional[str]:
        return self._identity or None

    def set_token(self, token: Optional[str]) -> None:
        self._token = token


class EnvCredentialProvider:
    """Reads the credential from the environment on every call."""

    def __init__(self, token_var: str = "CALL_CONSOLE_TOKEN", identity_var: str = "CALL_CONSOLE_IDENTITY"):
        self.token_var = token_var
        self.identity_var = identity_var

    def get_token(self) -> Optional[str]:
        return os.environ.get(self.token_var) or None

    def get_identity(self) -> Optional[str]:
        return os.environ.get(self.identity_var) or None
