#!/usr/bin/env python3
"""DocFiler - Entity document filing assistant."""

import argparse
import mimetypes
import os
import sys
from typing import List, Optional

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from docfiler import DocFiler, __version__
from storage import StorageError, authenticate_gdrive, create_storage
from workflows import (
    ENTITY_TYPES,
    ClassificationKey,
    FilingError,
    FilingService,
    MetadataStore,
    Principal,
    TreeNode,
    UploadedFile,
    UploadExtras,
    financial_year_choices,
)
from workflows.tree_projector import LIVE, MODES


def build_service() -> FilingService:
    """Create the storage driver and metadata store and wire them together."""
    if not DocFiler.docstore_uri:
        raise ValueError(
            "DOCSTORE is not set. "
            "Example: DOCSTORE=gdrive:abc123, DOCSTORE=local:docstore or --docstore memory:"
        )
    driver = create_storage(
        DocFiler.docstore_uri,
        token_file=DocFiler.token_file,
        access_token=DocFiler.access_token,
        timeout=DocFiler.request_timeout,
    )
    store = MetadataStore(DocFiler.metadata_db)
    DocFiler.print_right(f"Docstore: {escape(driver.display_name)}")
    return FilingService(
        driver,
        store,
        max_tree_depth=DocFiler.max_tree_depth,
        provision_workers=DocFiler.provision_workers,
    )


def current_user() -> Principal:
    return Principal(email=DocFiler.user_email, name=DocFiler.user_name)


def render_tree(node: TreeNode) -> Tree:
    """Rich tree for a projected folder structure."""
    def label(n: TreeNode) -> str:
        if n.is_folder:
            return f"[bold blue]{escape(n.name)}[/bold blue] [dim]({n.file_count} files)[/dim]"
        size = f" [dim]{n.size} bytes[/dim]" if n.size is not None else ""
        return f"{escape(n.name)}{size}"

    def add(branch: Tree, n: TreeNode) -> None:
        for child in n.children:
            add(branch.add(label(child)), child)

    tree = Tree(label(node))
    add(tree, node)
    return tree


def cmd_create_entity(service: FilingService, args: argparse.Namespace) -> None:
    structure = service.create_entity(args.create_entity, args.entity_type,
                                      user=DocFiler.user_email)
    DocFiler.print_left(
        f"[green]✓ Entity ready:[/green] {escape(structure.entity_folder.name)} ({structure.entity_type})",
        f"  {len(structure.category_folders)} categories, {structure.total_folders} folders",
    )


def cmd_list_entities(service: FilingService) -> None:
    entities = service.list_entities()
    if not entities:
        DocFiler.print_left("No entities yet", "  Create one with --create-entity NAME")
        return
    for name in entities:
        DocFiler.output(escape(name))


def cmd_upload(service: FilingService, args: argparse.Namespace) -> int:
    if not args.entity:
        raise ValueError("--upload needs --entity")

    files = []
    for path in args.upload:
        with open(path, "rb") as f:
            content = f.read()
        mime_type, _ = mimetypes.guess_type(path)
        files.append(UploadedFile(os.path.basename(path), content, mime_type))

    key = ClassificationKey.from_fields(args.entity, args.category, args.year, args.month)
    extras = UploadExtras(
        description=args.description or "",
        tags=args.tags,
        custom_file_name=args.name,
    )
    outcomes = service.upload_many(key, files, extras, uploader=current_user())

    failed = [o for o in outcomes if o.status == "failed"]
    unrecorded = [o for o in outcomes if o.status == "filed_unrecorded"]
    DocFiler.print_right(
        f"\n{len(outcomes) - len(failed)} of {len(outcomes)} file(s) filed"
        + (f", {len(unrecorded)} without metadata" if unrecorded else "")
    )
    return 1 if failed else 0


def cmd_structure(service: FilingService, args: argparse.Namespace) -> int:
    node = service.get_structure(args.structure, args.mode)
    if node is None:
        DocFiler.print_left(f"[yellow]No documents for {escape(args.structure)}[/yellow]",
                            f"  ({args.mode} view)")
        return 1
    DocFiler.output(render_tree(node))
    return 0


def cmd_search(service: FilingService, args: argparse.Namespace) -> None:
    month = int(args.month) if args.month else None
    hits = service.search(args.search, entity_name=args.entity, financial_year=args.year,
                          month=month, category=args.category)

    table = Table(title=f"Search: {escape(args.search)}")
    table.add_column("Document")
    table.add_column("Path")
    table.add_column("ID", style="dim")
    for hit in hits:
        if hit.record is not None:
            table.add_row(escape(hit.name), escape(hit.record.file_path), hit.record.id)
        else:
            table.add_row(escape(hit.name), "[yellow](not recorded)[/yellow]", hit.remote_file_id)
    DocFiler.output(table)


def cmd_permissions(service: FilingService, doc_id: str) -> None:
    permissions = service.list_document_permissions(doc_id)
    if not permissions:
        DocFiler.output("Not shared with anyone")
    for permission in permissions:
        who = permission.email_address or permission.display_name or permission.id
        DocFiler.output(f"{escape(who)}  [dim]{permission.role}[/dim]")


def cmd_stats(service: FilingService, entity: Optional[str]) -> None:
    if entity:
        stats = service.entity_stats(entity)
        table = Table(title=f"{escape(entity)}: {stats['total_documents']} documents")
        table.add_column("Category")
        table.add_column("Documents", justify="right")
        table.add_column("Size (bytes)", justify="right")
        for row in stats["categories"]:
            table.add_row(escape(row["category"] or "(none)"), str(row["count"]),
                          str(row["total_size"]))
        DocFiler.output(table)
    else:
        stats = service.document_stats()
        DocFiler.output(
            f"{stats['total_documents']} documents, {stats['total_size']} bytes, "
            f"{stats['active_entities']} active entities"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Entity document filing utility")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    commands = parser.add_argument_group("commands")
    commands.add_argument("--auth-gdrive", metavar="CLIENT_SECRETS",
                          help="Authorize Google Drive access and save the token (one-time setup)")
    commands.add_argument("--create-entity", metavar="NAME",
                          help="Create an entity and its standard folder tree")
    commands.add_argument("--list-entities", action="store_true",
                          help="List entity folders")
    commands.add_argument("--upload", nargs="+", metavar="FILE",
                          help="Upload and file one or more documents (needs --entity)")
    commands.add_argument("--structure", metavar="ENTITY",
                          help="Show the folder tree of an entity")
    commands.add_argument("--search", metavar="QUERY",
                          help="Search documents")
    commands.add_argument("--share", metavar="ITEM_ID",
                          help="Share a file or folder (needs --email)")
    commands.add_argument("--permissions", metavar="DOC_ID",
                          help="List who has access to a document")
    commands.add_argument("--revoke", metavar="DOC_ID",
                          help="Revoke a user's access to a document (needs --email)")
    commands.add_argument("--reconcile", nargs="?", const="", metavar="ENTITY",
                          help="Merge duplicate folders (one entity, or all)")
    commands.add_argument("--stats", nargs="?", const="", metavar="ENTITY",
                          help="Document statistics (one entity, or overall)")
    commands.add_argument("--list-years", action="store_true",
                          help="List selectable financial years")

    options = parser.add_argument_group("options")
    options.add_argument("--entity-type", choices=ENTITY_TYPES, default="business",
                         help="Entity type for --create-entity (default: business)")
    options.add_argument("--entity", help="Entity name")
    options.add_argument("--category", help="Document category")
    options.add_argument("--year", help="Financial year, e.g. 2024-25")
    options.add_argument("--month", help="Month number 1-12 (GST/TDS only)")
    options.add_argument("--description", help="Document description")
    options.add_argument("--tags", help="Comma-separated tags")
    options.add_argument("--name", help="File name to store under (single upload only)")
    options.add_argument("--mode", choices=MODES, default=LIVE,
                         help="Structure source: live storage or recorded metadata")
    options.add_argument("--email", help="User email for --share/--revoke")
    options.add_argument("--role", default="reader",
                         help="Access role for --share: reader, commenter or writer")
    options.add_argument("--message", help="Note included in the share notification")
    options.add_argument("--docstore", help="Storage URI (overrides DOCSTORE)")
    options.add_argument("--db", help="Metadata database path (overrides METADATA_DB)")
    options.add_argument("--depth", type=int, help="Folder tree depth bound")
    options.add_argument("--quiet", action="store_true", help="Only print results")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run one CLI command. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    DocFiler.configure(args)

    # --auth-gdrive doesn't need DOCSTORE
    if args.auth_gdrive:
        return 0 if authenticate_gdrive(args.auth_gdrive, DocFiler.token_file) else 1

    if args.list_years:
        for year in financial_year_choices():
            DocFiler.output(year)
        return 0

    try:
        service = build_service()
        try:
            if args.create_entity:
                cmd_create_entity(service, args)
            elif args.list_entities:
                cmd_list_entities(service)
            elif args.upload:
                return cmd_upload(service, args)
            elif args.structure:
                return cmd_structure(service, args)
            elif args.search is not None:
                cmd_search(service, args)
            elif args.share:
                if not args.email:
                    raise ValueError("--share needs --email")
                service.share_item(args.share, args.email, args.role,
                                   user=DocFiler.user_email, message=args.message)
            elif args.permissions:
                cmd_permissions(service, args.permissions)
            elif args.revoke:
                if not args.email:
                    raise ValueError("--revoke needs --email")
                service.revoke_access(args.revoke, args.email, user=DocFiler.user_email)
            elif args.reconcile is not None:
                service.reconcile(args.reconcile or None, user=DocFiler.user_email)
            elif args.stats is not None:
                cmd_stats(service, args.stats or None)
            else:
                parser.print_help()
        finally:
            service.store.close()
    except (FilingError, StorageError) as e:
        DocFiler.output(f"[red]Error ({e.kind}): {escape(e.detail)}[/red]")
        return 1
    except (ValueError, OSError) as e:
        DocFiler.output(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
