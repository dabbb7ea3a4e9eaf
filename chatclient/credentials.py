from __future__ import annotations
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from chatshared.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredCredentials:
    token: str
    username: str


class CredentialStore:
    """Token and username kept between runs; only logout() removes them."""

    def __init__(self, base: Optional[Path] = None) -> None:
        self.base = base or (Path.home() / ".livechat" / "credentials.json")
        self._data: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        if not self.base.exists():
            return
        try:
            data = json.loads(self.base.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable credentials file %s: %s", self.base, e)
            return
        if isinstance(data, dict):
            self._data = {k: v for k, v in data.items() if isinstance(v, str)}

    def save(self) -> None:
        self.base.parent.mkdir(parents=True, exist_ok=True)
        self.base.write_text(json.dumps(self._data, indent=2))
        self.base.chmod(0o600)

    def set(self, token: str, username: str) -> None:
        self._data = {"token": token, "username": username}
        self.save()

    def get(self) -> Optional[StoredCredentials]:
        token = self._data.get("token", "")
        if not token:
            return None
        return StoredCredentials(token=token, username=self._data.get("username", ""))

    def logout(self) -> None:
        self._data = {}
        if self.base.exists():
            self.base.unlink()
        logger.info("Cleared stored credentials")
