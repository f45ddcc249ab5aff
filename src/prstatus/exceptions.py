from typing import Any, List, Mapping, Optional


class PrStatusError(Exception):
    kind: str = "unknown"


class FetchError(PrStatusError):
    kind = "transport"


class TransportError(FetchError):
    kind = "transport"
    status_code: Optional[int]

    def __init__(self, *args, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(*args)


class AuthError(FetchError):
    kind = "auth"
    status_code: int

    def __init__(self, *args, status_code: int = 401):
        self.status_code = status_code
        super().__init__(*args)


class GraphQLError(FetchError):
    kind = "graphql"
    errors: List[Mapping[str, Any]]

    def __init__(self, message: str, errors: Optional[List[Mapping[str, Any]]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class SecretStoreError(PrStatusError):
    kind = "secret_store"
