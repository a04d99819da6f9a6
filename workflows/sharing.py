"""Granting, listing and revoking user access to filed documents and folders.

No permission state is kept locally: every call goes to storage, so a
failure leaves nothing to roll back.
"""

from typing import List, Optional

from docfiler import DocFiler
from rich.markup import escape
from storage import ROLES, Permission, StorageDriver, StorageError
from . import activity_log
from .document_record import DocumentRecord
from .errors import DocumentNotFound, PermissionOperationFailure
from .metadata_store import MetadataStore

DEFAULT_ROLE = "reader"


def normalize_role(role: Optional[str]) -> str:
    """A valid role; anything unrecognised becomes 'reader'."""
    role = (role or "").strip().lower()
    return role if role in ROLES else DEFAULT_ROLE


def _document(store: MetadataStore, doc_id: str) -> DocumentRecord:
    record = store.find_by_id(doc_id)
    if record is None:
        raise DocumentNotFound(f"No document with id {doc_id}")
    return record


def share_item(driver: StorageDriver, item_id: str, email: str, role: str = DEFAULT_ROLE,
               store: Optional[MetadataStore] = None, user: Optional[str] = None,
               message: Optional[str] = None) -> Permission:
    """Give a user access to a file or folder and notify them by email.

    Raises:
        PermissionOperationFailure: Missing email, or storage refused the grant
    """
    email = (email or "").strip()
    if not email:
        raise PermissionOperationFailure("An email address is required to share")
    role = normalize_role(role)

    try:
        permission = driver.share(item_id, email, role, notify=True, message=message)
    except (StorageError, NotImplementedError) as e:
        raise PermissionOperationFailure(f"Could not share {item_id} with {email}: {e}") from e

    DocFiler.print_right(f"[green]Shared {escape(item_id)} with {escape(email)} as {role}[/green]")
    activity_log.log(store, activity_log.ACCESS_GRANTED, user=user,
                     item_id=item_id, email=email, role=role)
    return permission


def list_document_permissions(driver: StorageDriver, store: MetadataStore,
                              doc_id: str) -> List[Permission]:
    """Users with access to a document, excluding its owner.

    Raises:
        DocumentNotFound: Unknown document ID
        PermissionOperationFailure: Storage could not list permissions
    """
    record = _document(store, doc_id)
    try:
        permissions = driver.list_permissions(record.remote_file_id)
    except (StorageError, NotImplementedError) as e:
        raise PermissionOperationFailure(
            f"Could not list permissions for {record.file_name}: {e}"
        ) from e
    return [p for p in permissions if p.type == "user" and p.role != "owner"]


def revoke_access(driver: StorageDriver, store: MetadataStore, doc_id: str, email: str,
                  user: Optional[str] = None) -> Permission:
    """Remove a user's access to a document.

    Returns:
        The permission that was deleted

    Raises:
        DocumentNotFound: Unknown document ID
        PermissionOperationFailure: The user has no access, or storage failed
    """
    record = _document(store, doc_id)
    wanted = (email or "").strip().lower()
    permission = next(
        (p for p in list_document_permissions(driver, store, doc_id)
         if (p.email_address or "").lower() == wanted),
        None,
    )
    if permission is None:
        raise PermissionOperationFailure(f"{email} has no access to {record.file_name}")

    try:
        driver.delete_permission(record.remote_file_id, permission.id)
    except (StorageError, NotImplementedError) as e:
        raise PermissionOperationFailure(
            f"Could not revoke {email} on {record.file_name}: {e}"
        ) from e

    DocFiler.print_right(f"Revoked {escape(email)} on {escape(record.file_name)}")
    activity_log.log(store, activity_log.ACCESS_REVOKED, user=user,
                     entity_name=record.entity_name, document_id=doc_id, email=email)
    return permission
