from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from kg_docgraph.cli.graph_cli import StoreDirOption, open_store
from kg_docgraph.config.settings import settings
from kg_docgraph.graph.schema import ProcessingStatus
from kg_docgraph.models.document import load_documents

app = typer.Typer(help="Browse uploaded documents.")

console = Console()


@app.command("list")
def list_documents(
    status: Optional[ProcessingStatus] = typer.Option(
        None, "--status", "-s", help="Only documents in this processing status."
    ),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """List documents, newest first."""
    store = open_store(store_dir)
    docs = load_documents(store.list(settings.DOCUMENT_ENTITY, sort="-created_date"))
    if status is not None:
        docs = [d for d in docs if d.processing_status == status]

    if not docs:
        console.print("No documents found.")
        return

    table = Table(title=f"Documents ({len(docs)})")
    table.add_column("Id")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    table.add_column("Nodes", justify="right")

    for doc in docs:
        n_nodes = len(doc.knowledge_graph.nodes) if doc.knowledge_graph else 0
        table.add_row(
            doc.id,
            doc.title or doc.file_name or "",
            doc.processing_status.value,
            f"{doc.processing_progress}%",
            str(n_nodes),
        )
    console.print(table)
