"""
REST client for credential issuance.

The chat socket only consumes a token; this is where the token comes from:

    POST /login     {"email", "password"}              -> {"token", "username", "message"}
    POST /register  {"email", "username", "password"}  -> {"message"}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from chatshared.log import get_logger

logger = get_logger(__name__)


class AuthApiError(Exception):
    """Raised when login or registration does not succeed."""
    pass


@dataclass(frozen=True)
class LoginResult:
    token: str
    username: str
    message: str = ""


class AuthApiClient:

    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.BaseTransport] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _post(self, path: str, body: Dict[str, Any], failure: str) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(url, json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            detail = _server_message(exc.response)
            logger.warning("%s: HTTP %s from %s", failure, exc.response.status_code, url)
            raise AuthApiError(f"{failure}: {detail}" if detail else failure) from exc
        except httpx.RequestError as exc:
            logger.warning("%s: %s", failure, exc)
            raise AuthApiError(f"{failure}: {exc}") from exc
        except ValueError as exc:
            raise AuthApiError(f"{failure}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise AuthApiError(f"{failure}: unexpected response")
        return data

    def login(self, email: str, password: str) -> LoginResult:
        data = self._post("/login", {"email": email, "password": password}, "Login failed")
        token = data.get("token")
        username = data.get("username")
        if not isinstance(token, str) or not token or not isinstance(username, str):
            raise AuthApiError("Login failed: response has no token")
        return LoginResult(token=token, username=username, message=str(data.get("message", "")))

    def register(self, email: str, username: str, password: str) -> str:
        data = self._post("/register", {"email": email, "username": username, "password": password},
                          "Registration failed")
        return str(data.get("message", ""))


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return None
