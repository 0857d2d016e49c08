"""
Credential storage.

This module keeps the credential descriptor registered for each backend and
reads credential and key files from disk.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import aiofiles
from pydantic import ValidationError

from ..exceptions import CredentialError
from .base import AuthCredentials

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_DIR = Path.home() / ".app_publish" / "credentials"


async def read_secret_file(path: Union[str, Path], what: str = "key file") -> str:
    """
    Read a credential or key file.

    Raises:
        CredentialError: If the file does not exist or cannot be read
    """
    file_path = Path(path).expanduser()
    try:
        async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
            return await f.read()
    except FileNotFoundError as e:
        raise CredentialError(
            f"{what.capitalize()} not found: {file_path}",
            suggestion=f"Check that the {what} path in the store credentials is correct.",
        ) from e
    except OSError as e:
        raise CredentialError(f"Cannot read {what} {file_path}: {e}") from e


def parse_credentials(
    data: Union[AuthCredentials, Mapping[str, Any]],
    file_path: Optional[Path] = None,
) -> AuthCredentials:
    """
    Validate a credential descriptor.

    Raises:
        CredentialError: If the descriptor is malformed
    """
    if isinstance(data, AuthCredentials):
        if file_path is not None:
            return data.model_copy(update={"file_path": file_path})
        return data

    payload = dict(data)
    if file_path is not None:
        payload["file_path"] = file_path
    try:
        return AuthCredentials.model_validate(payload)
    except ValidationError as e:
        source = f" in {file_path}" if file_path else ""
        raise CredentialError(f"Malformed credentials{source}: {e}") from e


class CredentialStore:
    """In-memory map of backend id to credential descriptor."""

    def __init__(self) -> None:
        self._credentials: Dict[str, AuthCredentials] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def set(self, backend_id: str, credentials: AuthCredentials) -> None:
        """Register credentials, replacing any earlier registration."""
        now = time.time()
        created_at = self._metadata.get(backend_id, {}).get("created_at", now)
        self._credentials[backend_id] = credentials
        self._metadata[backend_id] = {
            "created_at": created_at,
            "updated_at": now,
            "type": credentials.type.value,
            "file_path": str(credentials.file_path) if credentials.file_path else None,
        }
        logger.debug("Stored %s credentials for %s", credentials.type.value, backend_id)

    def get(self, backend_id: str) -> Optional[AuthCredentials]:
        """Retrieve credentials, or None if never registered."""
        return self._credentials.get(backend_id)

    def remove(self, backend_id: str) -> bool:
        """Delete credentials for a backend."""
        if backend_id in self._credentials:
            del self._credentials[backend_id]
            self._metadata.pop(backend_id, None)
            return True
        return False

    def list_backends(self) -> List[str]:
        """List backend ids with registered credentials."""
        return list(self._credentials.keys())

    def metadata(self, backend_id: str) -> Dict[str, Any]:
        """Registration metadata for a backend."""
        return dict(self._metadata.get(backend_id, {}))

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._credentials

    def __len__(self) -> int:
        return len(self._credentials)

    async def load_file(self, backend_id: str, file_path: Union[str, Path]) -> AuthCredentials:
        """
        Load credentials for a backend from a JSON file.

        Args:
            backend_id: Backend the credentials belong to
            file_path: Path to a ``{"type": ..., "config": {...}}`` document

        Returns:
            The registered credentials

        Raises:
            CredentialError: If the file is missing or malformed
        """
        path = Path(file_path).expanduser()
        raw = await read_secret_file(path, "credentials file")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CredentialError(f"Credentials file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CredentialError(f"Credentials file {path} must contain a JSON object")

        credentials = parse_credentials(data, file_path=path)
        self.set(backend_id, credentials)
        return credentials

    async def load_directory(self, directory: Union[str, Path]) -> List[str]:
        """
        Load every ``<backend_id>.json`` file in a directory.

        Returns:
            Backend ids that were loaded
        """
        path = Path(directory).expanduser()
        if not path.is_dir():
            return []

        loaded = []
        for credential_file in sorted(path.glob("*.json")):
            await self.load_file(credential_file.stem, credential_file)
            loaded.append(credential_file.stem)

        logger.info("Loaded credentials for %d backend(s) from %s", len(loaded), path)
        return loaded
