"""Google Drive storage driver.

Runs with the caller's delegated OAuth credential. Reads (listing, metadata,
permission listing) are retried on transient errors; writes run exactly once.
"""

import io
import socket
import threading
from datetime import datetime
from typing import Dict, List, Optional

import google_auth_httplib2
import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from docfiler import DocFiler
from utils.retry import (
    retry_on_transient_error,
    is_transient_network_error,
    TRANSIENT_HTTP_STATUS_CODES,
)
from .base import (
    FOLDER_MIME_TYPE,
    FileRef,
    FolderRef,
    Permission,
    RemoteItem,
    StorageDriver,
    StorageError,
    StorageUnavailable,
)


SCOPES = ['https://www.googleapis.com/auth/drive']

_ITEM_FIELDS = "id, name, mimeType, size, createdTime, modifiedTime"


# ---------------------------------------------------------------------------
# Google Drive Retry Configuration
# ---------------------------------------------------------------------------

def _is_retryable_gdrive_error(exc: Exception) -> bool:
    """Determine if a Google Drive API error should be retried.

    Timeouts are final: the request may still be running server-side.
    """
    if isinstance(exc, HttpError):
        return exc.resp.status in TRANSIENT_HTTP_STATUS_CODES
    if isinstance(exc, (TimeoutError, socket.timeout)):
        return False
    return is_transient_network_error(exc)


def _log_retry(exc: Exception, attempt: int, delay: float) -> None:
    """Log when a retry is about to happen."""
    if isinstance(exc, HttpError):
        error_desc = f"HTTP {exc.resp.status}"
    else:
        error_desc = type(exc).__name__
    DocFiler.print_right(f"  [Retry] {error_desc} on attempt {attempt}, retrying in {delay:.1f}s...")


def _describe(exc: Exception) -> str:
    if isinstance(exc, HttpError):
        return f"HTTP {exc.resp.status}: {exc.reason}"
    return f"{type(exc).__name__}: {exc}"


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------

def _escape_query_value(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_query(parent_id: str, kind: Optional[str] = None,
                name: Optional[str] = None,
                name_contains: Optional[str] = None) -> str:
    """Build a Drive ``q`` expression for non-trashed children of a folder.

    Every interpolated value goes through _escape_query_value.
    """
    clauses = [f"'{_escape_query_value(parent_id)}' in parents", "trashed=false"]
    if kind == "folder":
        clauses.append(f"mimeType='{FOLDER_MIME_TYPE}'")
    elif kind == "file":
        clauses.append(f"mimeType!='{FOLDER_MIME_TYPE}'")
    elif kind is not None:
        raise ValueError(f"Unknown item kind: {kind}")
    if name is not None:
        clauses.append(f"name='{_escape_query_value(name)}'")
    if name_contains is not None:
        clauses.append(f"name contains '{_escape_query_value(name_contains)}'")
    return " and ".join(clauses)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _to_ref(item: Dict) -> RemoteItem:
    """Convert a Drive file resource to FolderRef/FileRef."""
    if item.get('mimeType') == FOLDER_MIME_TYPE:
        return FolderRef(id=item['id'], name=item['name'],
                         created_at=_parse_time(item.get('createdTime')))
    return FileRef(
        id=item['id'],
        name=item['name'],
        mime_type=item.get('mimeType'),
        size=int(item['size']) if item.get('size') else None,
        created_at=_parse_time(item.get('createdTime')),
        modified_at=_parse_time(item.get('modifiedTime')),
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def authenticate_gdrive(client_secrets_file: str,
                        token_file: str = "gdrive_token.json") -> bool:
    """Run the installed-app OAuth flow and save the user's credential.

    Opens a browser for the user to grant Drive access, then writes an
    authorized-user JSON file that GDriveDriver.from_token_file() can load.

    Returns:
        True if a token was written, False otherwise
    """
    try:
        flow = InstalledAppFlow.from_client_secrets_file(client_secrets_file, SCOPES)
        creds = flow.run_local_server(port=0)
    except Exception as e:
        print(f"Error: Google authentication failed: {e}")
        return False

    with open(token_file, 'w') as f:
        f.write(creds.to_json())
    print(f"Saved Google Drive credential to {token_file}")
    return True


class GDriveDriver(StorageDriver):
    """Storage driver for Google Drive.

    Uses a delegated user credential. Entity folders are created under
    root_folder_id.

    googleapiclient service objects are not thread-safe, so each thread
    builds its own on first use.
    """

    def __init__(self, root_folder_id: str, credentials: Credentials,
                 timeout: int = 300, max_retries: int = 5,
                 retry_base_delay: float = 1.0) -> None:
        """Initialize Google Drive storage driver.

        Args:
            root_folder_id: Drive folder ID to use as root
            credentials: The caller's delegated credential
            timeout: Per-request socket timeout in seconds
            max_retries: Retries for idempotent reads
            retry_base_delay: First backoff delay in seconds
        """
        self.root_folder_id = root_folder_id
        self.creds = credentials
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._local = threading.local()
        self._root_folder_name: Optional[str] = None

    @classmethod
    def from_token_file(cls, root_folder_id: str, token_file: str,
                        **kwargs) -> "GDriveDriver":
        """Build a driver from a saved authorized-user token file."""
        try:
            creds = Credentials.from_authorized_user_file(token_file, SCOPES)
            if creds.expired and creds.refresh_token:
                creds.refresh(Request())
        except Exception as e:
            raise StorageError(f"Failed to load Google credential from {token_file}: {e}")
        return cls(root_folder_id, creds, **kwargs)

    @classmethod
    def from_access_token(cls, root_folder_id: str, access_token: str,
                          **kwargs) -> "GDriveDriver":
        """Build a driver from a raw OAuth access token handed over by the identity provider."""
        return cls(root_folder_id, Credentials(token=access_token), **kwargs)

    def _service(self):
        service = getattr(self._local, 'service', None)
        if service is None:
            http = google_auth_httplib2.AuthorizedHttp(
                self.creds, http=httplib2.Http(timeout=self.timeout)
            )
            service = build('drive', 'v3', http=http, cache_discovery=False)
            self._local.service = service
        return service

    def _read(self, make_request, what: str):
        """Execute an idempotent request with retry."""
        @retry_on_transient_error(
            is_retryable=_is_retryable_gdrive_error,
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            max_delay=60.0,
            on_retry=_log_retry,
        )
        def execute():
            return make_request(self._service()).execute()

        try:
            return execute()
        except Exception as e:
            raise StorageUnavailable(f"Failed to {what}: {_describe(e)}") from e

    def _write(self, make_request, what: str):
        """Execute a non-idempotent request exactly once."""
        try:
            return make_request(self._service()).execute()
        except Exception as e:
            raise StorageUnavailable(f"Failed to {what}: {_describe(e)}") from e

    @property
    def display_name(self) -> str:
        if self._root_folder_name is None:
            try:
                item = self.get_item(self.root_folder_id)
                self._root_folder_name = item.name if item else self.root_folder_id
            except StorageError:
                return f"{self.root_folder_id} (Google Drive)"
        return f"{self._root_folder_name} (Google Drive)"

    @property
    def root_id(self) -> str:
        return self.root_folder_id

    def list_children(self, parent_id: str, kind: Optional[str] = None,
                      name: Optional[str] = None) -> List[RemoteItem]:
        return self._list(build_query(parent_id, kind=kind, name=name),
                          f"list children of {parent_id}")

    def _list(self, query: str, what: str) -> List[RemoteItem]:
        results: List[RemoteItem] = []
        page_token = None

        while True:
            response = self._read(lambda service: service.files().list(
                q=query,
                pageSize=100,
                orderBy="createdTime",
                fields=f"nextPageToken, files({_ITEM_FIELDS})",
                pageToken=page_token,
                supportsAllDrives=True,
                includeItemsFromAllDrives=True,
            ), what)

            results.extend(_to_ref(item) for item in response.get('files', []))

            page_token = response.get('nextPageToken')
            if not page_token:
                break

        return results

    def get_item(self, item_id: str) -> Optional[RemoteItem]:
        try:
            item = self._read(lambda service: service.files().get(
                fileId=item_id,
                fields=f"{_ITEM_FIELDS}, trashed",
                supportsAllDrives=True,
            ), f"get {item_id}")
        except StorageUnavailable as e:
            cause = e.__cause__
            if isinstance(cause, HttpError) and cause.resp.status == 404:
                return None
            raise

        if item.get('trashed'):
            return None
        return _to_ref(item)

    def search_files(self, text: str, parent_id: str) -> List[FileRef]:
        """Name-contains search across parent_id and all its subfolders."""
        results: List[FileRef] = []
        pending = [parent_id]
        while pending:
            current = pending.pop()
            for folder in self.list_children(current, kind="folder"):
                pending.append(folder.id)
            results.extend(self._list(
                build_query(current, kind="file", name_contains=text),
                f"search {current}",
            ))
        return results

    def create_folder(self, name: str, parent_id: str) -> FolderRef:
        body = {
            'name': name,
            'mimeType': FOLDER_MIME_TYPE,
            'parents': [parent_id],
        }
        item = self._write(lambda service: service.files().create(
            body=body,
            fields=_ITEM_FIELDS,
            supportsAllDrives=True,
        ), f"create folder '{name}'")
        return _to_ref(item)

    def create_file(self, name: str, parent_id: str, content: bytes,
                    mime_type: Optional[str] = None) -> FileRef:
        mime_type = mime_type or 'application/octet-stream'
        body = {'name': name, 'parents': [parent_id]}

        def make_request(service):
            media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=True)
            return service.files().create(
                body=body,
                media_body=media,
                fields=_ITEM_FIELDS,
                supportsAllDrives=True,
            )

        return _to_ref(self._write(make_request, f"upload '{name}'"))

    def move(self, item_id: str, new_parent_id: str) -> None:
        current = self._read(lambda service: service.files().get(
            fileId=item_id,
            fields="parents",
            supportsAllDrives=True,
        ), f"get parents of {item_id}")
        old_parents = ",".join(current.get('parents', []))

        self._write(lambda service: service.files().update(
            fileId=item_id,
            addParents=new_parent_id,
            removeParents=old_parents,
            fields="id, parents",
            supportsAllDrives=True,
        ), f"move {item_id}")

    def trash(self, item_id: str) -> None:
        self._write(lambda service: service.files().update(
            fileId=item_id,
            body={'trashed': True},
            supportsAllDrives=True,
        ), f"trash {item_id}")

    def share(self, item_id: str, email: str, role: str,
              notify: bool = True, message: Optional[str] = None) -> Permission:
        kwargs = {}
        if notify and message:
            kwargs['emailMessage'] = message
        result = self._write(lambda service: service.permissions().create(
            fileId=item_id,
            body={'type': 'user', 'role': role, 'emailAddress': email},
            sendNotificationEmail=notify,
            fields="id, role, type, emailAddress, displayName",
            supportsAllDrives=True,
            **kwargs,
        ), f"share {item_id} with {email}")
        return _to_permission(result)

    def list_permissions(self, item_id: str) -> List[Permission]:
        response = self._read(lambda service: service.permissions().list(
            fileId=item_id,
            fields="permissions(id, role, type, emailAddress, displayName)",
            supportsAllDrives=True,
        ), f"list permissions of {item_id}")
        return [_to_permission(p) for p in response.get('permissions', [])]

    def delete_permission(self, item_id: str, permission_id: str) -> None:
        self._write(lambda service: service.permissions().delete(
            fileId=item_id,
            permissionId=permission_id,
            supportsAllDrives=True,
        ), f"delete permission {permission_id}")

    def sanitize_filename(self, name: str) -> str:
        """Sanitize a filename for Google Drive.

        Google Drive is very permissive - only / is forbidden here, because
        file paths are recorded as /-joined segments.
        """
        return name.replace('/', '-').strip()


def _to_permission(item: Dict) -> Permission:
    return Permission(
        id=item['id'],
        role=item.get('role', ''),
        type=item.get('type', 'user'),
        email_address=item.get('emailAddress'),
        display_name=item.get('displayName'),
    )
