"""Dropbox API v2 client for folder lookup, listing and temporary links."""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError

from dropbox_nodes.remote.models import (
    FIELD_CURSOR,
    FIELD_ENTRIES,
    FIELD_HAS_MORE,
    FIELD_ID,
    FIELD_LINK,
    RemoteEntry,
)

if TYPE_CHECKING:
    from dropbox_nodes.config import SourceConfig

logger = logging.getLogger(__name__)

DROPBOX_API_BASE_URL = "https://api.dropboxapi.com/2"

# Sentinel folder id meaning "the account root" in list_folder calls.
ROOT_FOLDER_ID = ""


class DropboxApiError(Exception):
    """Raised when the Dropbox API returns a non-2xx response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Dropbox API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RemoteLookupError(Exception):
    """Raised when a sync root path cannot be resolved to a folder id."""

    def __init__(self, path: str, message: str = "path not found") -> None:
        super().__init__(f"Cannot resolve {path!r}: {message}")
        self.path = path


class RemoteListError(Exception):
    """Raised when a folder listing call fails."""

    def __init__(self, path: str, message: str = "listing failed") -> None:
        super().__init__(f"Cannot list {path!r}: {message}")
        self.path = path


class RemoteLinkError(Exception):
    """Raised when a temporary download link cannot be issued."""

    def __init__(self, path: str, message: str = "link unavailable") -> None:
        super().__init__(f"Cannot get temporary link for {path!r}: {message}")
        self.path = path


class DropboxClient:
    """Authenticated client for the Dropbox HTTP API."""

    def __init__(self, access_token: str, base_url: str = DROPBOX_API_BASE_URL) -> None:
        """Initialise the client.

        Args:
            access_token: Dropbox OAuth2 access token.
            base_url: API base URL (overridable for tests).
        """
        self._access_token = access_token
        self._base_url = base_url

    def rpc(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Perform an authenticated RPC-style POST to the Dropbox API.

        Args:
            endpoint: Endpoint relative to the base URL (e.g. "files/list_folder").
            payload: JSON request body.

        Returns:
            Parsed JSON response body as a dict.

        Raises:
            DropboxApiError: If the API returns a non-2xx status code, is unreachable,
                or sends a body that is not a JSON object.
        """
        url = f"{self._base_url}/{endpoint}"
        req = urllib_request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib_request.urlopen(req) as resp:
                body = resp.read()
            data = json.loads(body)
        except HTTPError as exc:
            raw = exc.read()
            try:
                detail = json.loads(raw).get("error_summary", exc.reason)
            except Exception:
                detail = exc.reason
            logger.error("[rpc] dropbox api error; endpoint:%s;status:%d", endpoint, exc.code)
            raise DropboxApiError(exc.code, str(detail)) from exc
        except URLError as exc:
            logger.error("[rpc] dropbox api unreachable; endpoint:%s", endpoint)
            raise DropboxApiError(0, str(exc.reason)) from exc
        except (HTTPException, OSError, ValueError) as exc:
            # Truncated reads, dropped connections and non-JSON bodies on a 2xx.
            logger.error("[rpc] malformed dropbox response; endpoint:%s", endpoint)
            raise DropboxApiError(0, f"malformed response: {exc!r}") from exc
        if not isinstance(data, dict):
            logger.error("[rpc] unexpected dropbox response shape; endpoint:%s", endpoint)
            raise DropboxApiError(0, "response body is not a JSON object")
        return data

    def resolve_folder_id(self, path: str) -> str:
        """Resolve a folder path to its Dropbox folder id.

        Args:
            path: Remote folder path, or "" for the account root.

        Returns:
            The folder id, or ROOT_FOLDER_ID for the account root.

        Raises:
            RemoteLookupError: If the path does not exist or cannot be read.
        """
        if path == "":
            return ROOT_FOLDER_ID
        try:
            metadata = self.rpc("files/get_metadata", {"path": path})
        except DropboxApiError as exc:
            raise RemoteLookupError(path, exc.message) from exc
        folder_id = metadata.get(FIELD_ID)
        if not folder_id:
            raise RemoteLookupError(path, "metadata has no id")
        return str(folder_id)

    def list_entries(self, folder_id: str, recursive: bool) -> list[RemoteEntry]:
        """List the entries of a folder, following pagination cursors.

        Args:
            folder_id: Folder id from resolve_folder_id (or ROOT_FOLDER_ID).
            recursive: Include all descendants, not just direct children.

        Returns:
            All RemoteEntry objects in listing order.

        Raises:
            RemoteListError: If any listing page fails.
        """
        entries: list[RemoteEntry] = []
        try:
            response = self.rpc("files/list_folder", {"path": folder_id, "recursive": recursive})
            while True:
                entries.extend(RemoteEntry.from_api(raw) for raw in response.get(FIELD_ENTRIES, []))
                if not response.get(FIELD_HAS_MORE):
                    break
                response = self.rpc(
                    "files/list_folder/continue", {"cursor": response[FIELD_CURSOR]}
                )
        except DropboxApiError as exc:
            raise RemoteListError(folder_id, exc.message) from exc
        except KeyError as exc:
            raise RemoteListError(folder_id, "has_more without cursor") from exc
        except (AttributeError, TypeError) as exc:
            raise RemoteListError(folder_id, "malformed listing entries") from exc
        logger.info(
            "[list_entries] listed folder; folder_id:%s;recursive:%s;entry_count:%d",
            folder_id,
            recursive,
            len(entries),
        )
        return entries

    def get_temporary_download_url(self, path: str) -> str:
        """Issue a short-lived download URL for a remote file.

        Args:
            path: Remote file path (path_display).

        Returns:
            Temporary URL for byte retrieval.

        Raises:
            RemoteLinkError: If the file no longer exists or the link is missing.
        """
        try:
            response = self.rpc("files/get_temporary_link", {"path": path})
        except DropboxApiError as exc:
            raise RemoteLinkError(path, exc.message) from exc
        link = response.get(FIELD_LINK)
        if not link:
            raise RemoteLinkError(path, "response has no link")
        return str(link)


def dropbox_client_from_config(config: SourceConfig) -> DropboxClient:
    """Construct a DropboxClient from source configuration.

    Args:
        config: Source configuration instance.

    Returns:
        Configured DropboxClient instance.
    """
    return DropboxClient(access_token=config.access_token)
