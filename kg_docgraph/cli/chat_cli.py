from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from kg_docgraph.chat.session import ChatSession
from kg_docgraph.cli.graph_cli import IdsOption, StoreDirOption, open_store
from kg_docgraph.config.settings import settings
from kg_docgraph.llm import LLMClient
from kg_docgraph.models.document import load_documents

app = typer.Typer(help="Ask questions about the uploaded documents.")

console = Console()


@app.command("ask")
def ask(
    question: str = typer.Argument(..., help="Question to ask."),
    ids: Optional[List[str]] = IdsOption,
    store_dir: Optional[Path] = StoreDirOption,
) -> None:
    """Answer a question from the completed documents and save the exchange."""
    store = open_store(store_dir)
    docs = load_documents(store.list(settings.DOCUMENT_ENTITY, sort="-created_date"))
    if ids:
        wanted = set(ids)
        docs = [d for d in docs if d.id in wanted]

    session = ChatSession.create(store, paper_ids=[d.id for d in docs])
    reply = session.send_message(LLMClient(), question, docs)

    console.print(reply.content)
    if reply.citations:
        console.print("\n[bold]Sources[/bold]")
        for citation in reply.citations:
            page = f" p.{citation.page}" if citation.page is not None else ""
            console.print(f"  - {citation.paper_title or citation.paper_id or '?'}{page}")
