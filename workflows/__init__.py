"""Workflow layer for docfiler.

Contains the filing logic:
- Classification: keys, category lists, financial years
- Path planning and folder resolution/materialization
- Metadata: records, SQLite store, recorder, activity log
- Views: folder-tree projection, search
- Housekeeping: duplicate-folder reconciliation, sharing
"""

from .errors import (
    FilingError,
    InvalidClassification,
    InvalidUpload,
    MetadataPersistFailure,
    DuplicateFolderDetected,
    PermissionOperationFailure,
    DocumentNotFound,
    EntityNotFound,
)
from .classification import (
    BUSINESS,
    PERSONAL,
    ENTITY_TYPES,
    BUSINESS_CATEGORIES,
    PERSONAL_CATEGORIES,
    MONTHLY_CATEGORIES,
    YEARLY_CATEGORIES,
    ClassificationKey,
    categories_for,
    financial_year_choices,
    provisioning_years,
    validate_classification,
)
from .path_planner import plan, file_path
from .folder_resolver import FolderResolver
from .materializer import EntityFolderStructure, HierarchyMaterializer
from .document_record import DocumentRecord, parse_tags
from .metadata_store import MetadataStore, MetadataStoreError
from .recorder import MetadataRecorder, Principal, RecordResult
from .tree_projector import TreeNode, project, project_live, project_metadata
from .reconciliation import Reconciler
from .search import SearchHit, search_documents
from .sharing import share_item, list_document_permissions, revoke_access
from .filing import (
    FilingService,
    FilingResult,
    UploadedFile,
    UploadExtras,
    UploadOutcome,
)


__all__ = [
    # Errors
    'FilingError',
    'InvalidClassification',
    'InvalidUpload',
    'MetadataPersistFailure',
    'DuplicateFolderDetected',
    'PermissionOperationFailure',
    'DocumentNotFound',
    'EntityNotFound',

    # Classification
    'BUSINESS',
    'PERSONAL',
    'ENTITY_TYPES',
    'BUSINESS_CATEGORIES',
    'PERSONAL_CATEGORIES',
    'MONTHLY_CATEGORIES',
    'YEARLY_CATEGORIES',
    'ClassificationKey',
    'categories_for',
    'financial_year_choices',
    'provisioning_years',
    'validate_classification',

    # Folders
    'plan',
    'file_path',
    'FolderResolver',
    'EntityFolderStructure',
    'HierarchyMaterializer',

    # Metadata
    'DocumentRecord',
    'parse_tags',
    'MetadataStore',
    'MetadataStoreError',
    'MetadataRecorder',
    'Principal',
    'RecordResult',

    # Views
    'TreeNode',
    'project',
    'project_live',
    'project_metadata',
    'SearchHit',
    'search_documents',

    # Sharing / housekeeping
    'share_item',
    'list_document_permissions',
    'revoke_access',
    'Reconciler',

    # Service
    'FilingService',
    'FilingResult',
    'UploadedFile',
    'UploadExtras',
    'UploadOutcome',
]
