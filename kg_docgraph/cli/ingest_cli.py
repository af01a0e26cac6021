from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from kg_docgraph.cli.graph_cli import StoreDirOption, open_store
from kg_docgraph.ingest import process_files
from kg_docgraph.llm import PREDEFINED_SCHEMAS, LLMClient

app = typer.Typer(help="Upload files and extract their knowledge graphs.")

console = Console()


@app.command("files")
def ingest_files(
    files: List[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Files to ingest."),
    schema: str = typer.Option(
        "general",
        "--schema",
        help=f"Extraction schema: {', '.join(PREDEFINED_SCHEMAS)}.",
    ),
    model_name: Optional[str] = typer.Option(None, "--model", help="LLM model name to record."),
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """
    Process each file through upload, content extraction and knowledge
    graph extraction. Failures are reported per file.
    """
    if schema not in PREDEFINED_SCHEMAS:
        console.print(f"[red]Unknown schema:[/red] {schema}")
        raise typer.Exit(code=1)

    outcomes = process_files(
        open_store(store_dir),
        LLMClient(),
        files,
        schema=schema,
        model_name=model_name,
    )

    table = Table(title="Ingestion results")
    table.add_column("File")
    table.add_column("Document")
    table.add_column("Status")
    table.add_column("Error")
    for outcome in outcomes:
        colour = "green" if outcome.ok else "red"
        table.add_row(
            outcome.file_name,
            outcome.document_id or "-",
            f"[{colour}]{outcome.status.value}[/{colour}]",
            outcome.error or "",
        )
    console.print(table)

    if not all(o.ok for o in outcomes):
        raise typer.Exit(code=1)
