"""Turning planned folder names into real folders."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

from docfiler import DocFiler
from rich.markup import escape
from storage import FolderRef
from .classification import (
    BUSINESS,
    MONTHLY_CATEGORIES,
    YEARLY_CATEGORIES,
    ClassificationKey,
    categories_for,
    provisioning_years,
    validate_classification,
)
from .folder_resolver import FolderResolver
from .path_planner import plan


@dataclass
class EntityFolderStructure:
    """Result of provisioning a new entity.

    Attributes:
        entity_folder: The entity's top-level folder
        category_folders: Category name -> folder, in category-list order
        entity_type: "business" or "personal"
        subfolders: Year/month folders keyed by path below the entity,
            e.g. "GST/2024-25/March"
    """
    entity_folder: FolderRef
    category_folders: Dict[str, FolderRef]
    entity_type: str
    subfolders: Dict[str, FolderRef] = field(default_factory=dict)

    @property
    def total_folders(self) -> int:
        return 1 + len(self.category_folders) + len(self.subfolders)


class HierarchyMaterializer:
    """Resolves folder name sequences level by level.

    Each level needs the ID of the level above, so one sequence is always
    walked in order. Independent sequences may run in parallel; the
    resolver's keyed locks keep shared prefixes from being duplicated.
    """

    def __init__(self, resolver: FolderResolver, max_workers: int = 4) -> None:
        self.resolver = resolver
        self.max_workers = max(1, max_workers)

    def materialize(self, segments: Sequence[str], root_id: str) -> FolderRef:
        """Resolve every segment under root_id and return the last folder."""
        return self.materialize_path(segments, root_id)[-1]

    def materialize_path(self, segments: Sequence[str], root_id: str) -> List[FolderRef]:
        """Like materialize() but returns the folder for every level."""
        if not segments:
            raise ValueError("Nothing to materialize: empty segment list")

        folders: List[FolderRef] = []
        parent_id = root_id
        for name in segments:
            folder = self.resolver.resolve(name, parent_id)
            folders.append(folder)
            parent_id = folder.id
        return folders

    def provision_entity(self, entity_name: str, entity_type: str, root_id: str,
                         today: Optional[date] = None) -> EntityFolderStructure:
        """Create the full standard folder tree for a new entity.

        Every category folder is created. Business entities also get the
        current and next financial year under GST, Income Tax, ROC, TDS and
        Accounts, and all twelve months under GST and TDS. Categories are
        provisioned concurrently (bounded by max_workers).
        """
        categories = categories_for(entity_type)
        key = validate_classification(ClassificationKey(entity_name), entity_type)
        entity_folder = self.resolver.resolve(key.entity_name, root_id)
        years = provisioning_years(today)

        DocFiler.print_right(
            f"Provisioning {entity_type} entity [bold]{escape(key.entity_name)}[/bold] "
            f"({len(categories)} categories)"
        )

        def provision_category(category: str) -> Tuple[FolderRef, Dict[str, FolderRef]]:
            category_folder = self.resolver.resolve(category, entity_folder.id)
            created: Dict[str, FolderRef] = {}
            for segments in self._category_paths(key.entity_name, category, entity_type, years):
                tail = segments[2:]
                refs = self.materialize_path(tail, category_folder.id)
                for depth, ref in enumerate(refs, 1):
                    created["/".join([category] + tail[:depth])] = ref
            return category_folder, created

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            results = list(pool.map(provision_category, categories))

        structure = EntityFolderStructure(
            entity_folder=entity_folder,
            category_folders={},
            entity_type=entity_type,
        )
        for category, (category_folder, created) in zip(categories, results):
            structure.category_folders[category] = category_folder
            structure.subfolders.update(created)

        DocFiler.print_right(
            f"[green]✓ {escape(key.entity_name)}: {structure.total_folders} folders ready[/green]"
        )
        return structure

    @staticmethod
    def _category_paths(entity_name: str, category: str, entity_type: str,
                        years: List[str]) -> List[List[str]]:
        """Planned paths to pre-create inside one category."""
        if entity_type != BUSINESS or category not in YEARLY_CATEGORIES:
            return []

        paths = []
        for fy in years:
            if category in MONTHLY_CATEGORIES:
                for month in range(1, 13):
                    paths.append(plan(ClassificationKey(entity_name, category, fy, month)))
            else:
                paths.append(plan(ClassificationKey(entity_name, category, fy)))
        return paths
