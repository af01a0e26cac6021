# kg_docgraph/cli/main.py

from __future__ import annotations

import logging

import typer

from kg_docgraph.cli import chat_cli, documents_cli, graph_cli, ingest_cli

logging.basicConfig(level=logging.WARNING)

app = typer.Typer(help="CLI tools for the document knowledge graph.")

app.add_typer(documents_cli.app, name="documents")
app.add_typer(graph_cli.app, name="graph")
app.add_typer(ingest_cli.app, name="ingest")
app.add_typer(chat_cli.app, name="chat")

if __name__ == "__main__":
    app()
