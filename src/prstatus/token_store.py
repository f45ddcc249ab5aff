import abc
import logging
import os
from typing import Dict, Optional

from prstatus import config
from prstatus.exceptions import SecretStoreError

logger = logging.getLogger("prstatus")


class TokenStore(abc.ABC):
    """Access token storage, keyed by application name."""

    application: str

    def __init__(self, application: str = config.APPLICATION_KEY):
        self.application = application

    @abc.abstractmethod
    async def lookup(self) -> Optional[str]:
        """Return the stored token, ``None`` if none is configured.

        Raises :class:`SecretStoreError` if the backend cannot be read.
        """

    @abc.abstractmethod
    async def store(self, token: str) -> None:
        """Persist ``token``; raises :class:`SecretStoreError` on failure."""


class EnvTokenStore(TokenStore):
    def __init__(
        self,
        variable: str = config.TOKEN_ENV_VAR,
        application: str = config.APPLICATION_KEY,
        environ=None,
    ):
        super().__init__(application)
        self.variable = variable
        self.environ = os.environ if environ is None else environ

    async def lookup(self) -> Optional[str]:
        try:
            token = self.environ.get(self.variable)
        except Exception as e:
            raise SecretStoreError(
                f"Failed to read {self.variable} for {self.application}"
            ) from e
        if token is None or token.strip() == "":
            return None
        return token.strip()

    async def store(self, token: str) -> None:
        if not token:
            raise SecretStoreError("Refusing to store an empty token")
        try:
            self.environ[self.variable] = token
        except Exception as e:
            raise SecretStoreError(
                f"Failed to store token in {self.variable} for {self.application}"
            ) from e
        logger.info("Stored token for %s in %s", self.application, self.variable)


class MemoryTokenStore(TokenStore):
    _tokens: Dict[str, str]

    def __init__(
        self, token: Optional[str] = None, application: str = config.APPLICATION_KEY
    ):
        super().__init__(application)
        self._tokens = {}
        if token:
            self._tokens[application] = token

    async def lookup(self) -> Optional[str]:
        return self._tokens.get(self.application)

    async def store(self, token: str) -> None:
        if not token:
            raise SecretStoreError("Refusing to store an empty token")
        self._tokens[self.application] = token
