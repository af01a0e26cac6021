from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from kg_docgraph.config.settings import settings
from kg_docgraph.errors import DocGraphError
from kg_docgraph.graph.enhance import MutationReport
from kg_docgraph.graph.export import default_export_name
from kg_docgraph.graph.io import save_snapshot
from kg_docgraph.graph.session import ViewSession
from kg_docgraph.store import LocalEntityStore, get_entity_store

app = typer.Typer(
    help="Inspect, clean up and export the combined knowledge graph."
)

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def open_store(store_dir: Optional[Path]) -> Any:
    """
    Open the entity store.

    If --store-dir is given, a local JSON store in that directory is used.
    Otherwise the backend configured in settings is used.
    """
    if store_dir is not None:
        return LocalEntityStore(store_dir)
    return get_entity_store()


def _open_view(
    store: Any,
    ids: Optional[List[str]],
    policy: Optional[str] = None,
    relink: bool = False,
) -> ViewSession:
    try:
        return ViewSession.from_store(
            store,
            ids or None,
            policy=policy,
            relink_duplicates=relink,
        )
    except DocGraphError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)


def _print_report(report: MutationReport) -> None:
    if report.ok:
        console.print(f"[green]{report.summary()}[/green]")
        return

    console.print(f"[yellow]{report.summary()}[/yellow]")
    for doc_id, error in report.failed:
        console.print(f"  [red]{doc_id}[/red]: {error}")
    raise typer.Exit(code=1)


IdsOption = typer.Option(
    None,
    "--id",
    "-i",
    help="Document id to include (repeatable). Defaults to all completed documents.",
)
StoreDirOption = typer.Option(
    None,
    "--store-dir",
    help="Use a local JSON entity store in this directory.",
)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("show")
def show(
    ids: Optional[List[str]] = IdsOption,
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Filter nodes by label or type."),
    relink: bool = typer.Option(False, "--relink", help="Rewrite edges onto deduplicated nodes."),
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Max number of nodes to display."),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """
    Show the combined graph: nodes with their documents, then relationships.
    """
    view = _open_view(open_store(store_dir), ids, relink=relink)
    graph = view.combined(query)

    table = Table(title=f"Nodes ({len(graph.nodes)})")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Documents")
    table.add_column("Passages", justify="right")

    for node in graph.nodes[:limit]:
        table.add_row(
            node.label or "",
            node.type or "",
            ", ".join(node.papers or []),
            str(len(node.source_passages)),
        )
    console.print(table)

    labels = {n.id: n.label for n in graph.nodes}
    rels = Table(title=f"Relationships ({len(graph.relationships)})")
    rels.add_column("Source")
    rels.add_column("Type")
    rels.add_column("Target")
    rels.add_column("Document")
    for rel in graph.relationships[:limit]:
        rels.add_row(
            labels.get(rel.source_id) or rel.source_id,
            rel.type or "",
            labels.get(rel.target_id) or rel.target_id,
            rel.paper_title or rel.paper_id or "",
        )
    console.print(rels)

    if view.stats.dropped_unlabeled:
        console.print(
            f"[yellow]{view.stats.dropped_unlabeled} node(s) without a label were skipped.[/yellow]"
        )


@app.command("stats")
def stats(
    ids: Optional[List[str]] = IdsOption,
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """Print node/relationship counts for the selected documents."""
    view = _open_view(open_store(store_dir), ids)
    data = view.statistics()

    table = Table(title="Graph statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key in (
        "documents",
        "total_nodes",
        "total_relationships",
        "duplicate_groups",
        "disconnected_nodes",
        "dropped_unlabeled",
        "dangling_relationships",
    ):
        table.add_row(key.replace("_", " "), str(data[key]))
    console.print(table)

    if data["node_type_counts"]:
        types = Table(title="Node types")
        types.add_column("Type")
        types.add_column("Count", justify="right")
        for name, count in sorted(data["node_type_counts"].items(), key=lambda kv: -kv[1]):
            types.add_row(name, str(count))
        console.print(types)


@app.command("duplicates")
def duplicates(
    ids: Optional[List[str]] = IdsOption,
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """List groups of nodes that share a label."""
    view = _open_view(open_store(store_dir), ids)
    groups = view.duplicates()

    if not groups:
        console.print("[green]No duplicate entities found.[/green]")
        return

    table = Table(title=f"Duplicate groups ({len(groups)})")
    table.add_column("Label")
    table.add_column("Count", justify="right")
    table.add_column("Documents")
    for group in groups:
        table.add_row(
            group.label,
            str(group.count),
            ", ".join(dict.fromkeys(n.paper_title or n.paper_id or "" for n in group.nodes)),
        )
    console.print(table)


@app.command("merge")
def merge(
    label: str = typer.Argument(..., help="Label of the duplicate group to merge."),
    ids: Optional[List[str]] = IdsOption,
    policy: Optional[str] = typer.Option(
        None,
        "--policy",
        "-p",
        help="Primary node policy: first_occurrence, most_connected or highest_confidence.",
    ),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """Merge one duplicate group into a single node."""
    store = open_store(store_dir)
    view = _open_view(store, ids, policy=policy)
    try:
        report = view.merge(store, label)
    except DocGraphError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    _print_report(report)


@app.command("orphans")
def orphans(
    ids: Optional[List[str]] = IdsOption,
    per_document: bool = typer.Option(
        False,
        "--per-document",
        help="Only count relationships from each node's own document.",
    ),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """List nodes that have no relationships."""
    view = _open_view(open_store(store_dir), ids)
    nodes = view.orphans(per_document=per_document)

    if not nodes:
        console.print("[green]No disconnected nodes found.[/green]")
        return

    table = Table(title=f"Disconnected nodes ({len(nodes)})")
    table.add_column("Id")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Document")
    for node in nodes:
        table.add_row(node.id or "", node.label or "", node.type or "", node.paper_title or "")
    console.print(table)


@app.command("prune")
def prune(
    ids: Optional[List[str]] = IdsOption,
    per_document: bool = typer.Option(False, "--per-document"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Delete without asking."),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """Delete every disconnected node from its document."""
    store = open_store(store_dir)
    view = _open_view(store, ids)
    nodes = view.orphans(per_document=per_document)

    if not nodes:
        console.print("[green]No disconnected nodes found.[/green]")
        return

    if not yes:
        typer.confirm(f"Delete {len(nodes)} disconnected node(s)?", abort=True)

    report = view.delete(store, nodes)
    _print_report(report)


@app.command("export")
def export(
    ids: Optional[List[str]] = IdsOption,
    query: Optional[str] = typer.Option(None, "--query", "-q"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file. Defaults to knowledge-graph-<date>.json in the exports directory.",
    ),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """Write the combined graph as a JSON snapshot."""
    view = _open_view(open_store(store_dir), ids)
    snapshot = view.export(query)

    path = output or settings.exports_dir / default_export_name()
    written = save_snapshot(snapshot, path)
    console.print(
        f"Exported {snapshot['metadata']['total_nodes']} nodes and "
        f"{snapshot['metadata']['total_relationships']} relationships to [bold]{written}[/bold]"
    )
