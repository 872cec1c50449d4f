"""
Authentication provider abstractions.

An 'AuthProvider' integrates with a FastAPI application to identify the current
user on every request. Sign-in itself happens at an external identity
provider; the toolkit only needs the resulting user id.

'HeaderAuthProvider' trusts an 'X-User-Id' header set by a gateway in front of
the service.
"""

from abc import ABC, abstractmethod

from fastapi import FastAPI, HTTPException, Request, status


class AuthProvider(ABC):
    """
    Abstract base class for authentication backends.

    Implementors must supply a FastAPI dependency that resolves to the current
    user ID ('get_current_user_id') and a setup hook that registers any routes
    and middleware they need ('bind_to_app').
    """

    @abstractmethod
    def get_current_user_id(self, request: Request) -> str:
        """FastAPI dependency that returns the authenticated user's ID.

        Raise 'HTTPException' with status 401 if the request is not authenticated.
        """
        pass

    @abstractmethod
    def bind_to_app(self, app: FastAPI) -> None:
        pass


class HeaderAuthProvider(AuthProvider):
    def __init__(self, header_name: str = "X-User-Id") -> None:
        self.header_name = header_name

    def get_current_user_id(self, request: Request) -> str:
        user_id = request.headers.get(self.header_name, "").strip()
        if not user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        return user_id

    def bind_to_app(self, app: FastAPI) -> None:
        # Nothing to register: the header is set upstream.
        return None
