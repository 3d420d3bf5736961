"""
Legal Assistant CLI - Command Line Interface
"""

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.markdown import Markdown
from rich.progress import Progress, SpinnerColumn, TextColumn
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

console = Console()

# Paths
BASE_DIR = Path(__file__).parent.resolve()
DATA_DIR = BASE_DIR / "data"
INDEX_DIR = DATA_DIR / "index"

DEFAULT_MODEL = "sentence-transformers/all-mpnet-base-v2"
METRICS = ["cosine", "dot", "l2"]


def _load_store(index_dir: str, model: str, metric: str):
    from legal_assistant.retrieval import CaseVectorStore, SimilarityMetric
    from legal_assistant.retrieval.embedder import CaseEmbedder

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Loading model...", total=None)
        embedder = CaseEmbedder(model_name=model)

        progress.update(task, description="Loading index...")
        store = CaseVectorStore(embedder, metric=SimilarityMetric(metric))
        store.load(index_dir)
    return store


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """Legal Assistant CLI - Case-law answers with LLM failover"""
    pass


@cli.command()
@click.argument("source", type=click.Path(exists=True))
@click.option("--index-dir", "-i", default=str(INDEX_DIR), help="Output directory for the index")
@click.option("--model", "-m", default=DEFAULT_MODEL, help="Embedding model name")
@click.option("--metric", type=click.Choice(METRICS), default="cosine", help="Similarity metric")
@click.option("--court", default=None, help="Court name for records built from PDFs")
def index(source: str, index_dir: str, model: str, metric: str, court: str | None):
    """Build the case index from a JSONL/JSON file or a directory of PDFs."""
    from legal_assistant.retrieval import (
        CaseVectorStore,
        SimilarityMetric,
        index_records,
        read_case_records,
        records_from_pdfs,
    )
    from legal_assistant.retrieval.embedder import CaseEmbedder

    source_path = Path(source)
    index_path = Path(index_dir)

    console.print(Panel.fit(
        "[bold blue]Building Case Index[/bold blue]\n"
        f"Model: {model}\n"
        f"Metric: {metric}\n"
        f"Source: {source_path}\n"
        f"Index: {index_path}",
        title="🔍 Indexing Cases"
    ))

    if source_path.is_dir():
        records = records_from_pdfs(source_path, court=court)
    else:
        records = read_case_records(source_path)

    if not records:
        console.print("[red]No case records found![/red]")
        return

    embedder = CaseEmbedder(model_name=model)
    store = CaseVectorStore(embedder, metric=SimilarityMetric(metric))
    added = index_records(store, records)
    store.save(index_path)

    table = Table(title="Index Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in store.get_stats().items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)

    console.print(f"\n[green]✓ {added} case(s) indexed to {index_path}[/green]")


@cli.command()
@click.argument("question")
@click.option("--index-dir", "-i", default=str(INDEX_DIR), help="Directory with the case index")
@click.option("--model", "-m", default=DEFAULT_MODEL, help="Embedding model")
@click.option("--metric", type=click.Choice(METRICS), default="cosine", help="Similarity metric")
@click.option("--verbose", "-v", is_flag=True, help="Show retrieved case excerpts")
def ask(question: str, index_dir: str, model: str, metric: str, verbose: bool):
    """Stream a grounded answer to a legal question."""
    from legal_assistant.chat import GREETING_RESPONSE, ContextAssembler, is_small_talk
    from legal_assistant.errors import LegalAssistantError
    from legal_assistant.retrieval import DocumentFetcher, EvidenceRetriever
    from legal_assistant.server.config import get_settings
    from legal_assistant.server.dependencies import build_gateway

    console.print(Panel.fit(f"[bold]{question}[/bold]", title="❓ Question"))

    if is_small_talk(question):
        console.print(GREETING_RESPONSE)
        return

    if not (Path(index_dir) / "config.json").exists():
        console.print("[red]Index not found! Run 'index' first.[/red]")
        return

    settings = get_settings()
    gateway = build_gateway(settings)
    if not gateway.is_available():
        console.print("[yellow]Set GEMINI_API_KEY or OPENAI_API_KEY to enable answer generation[/yellow]")
        return

    store = _load_store(index_dir, model, metric)
    config = settings.retrieval_config()
    config.metric = store.metric

    async def run():
        fetcher = DocumentFetcher(timeout=config.enrich_timeout)
        try:
            retriever = EvidenceRetriever(store, fetcher, config)
            result = await retriever.retrieve(question)

            if verbose:
                table = Table(show_header=True, header_style="bold")
                table.add_column("Case", style="cyan", width=40)
                table.add_column("Text", width=60)
                table.add_column("Score", justify="right", width=8)
                for c in result.candidates:
                    table.add_row(c.title, c.text[:200], f"{c.relevance_score:.3f}")
                console.print(table)

            messages = ContextAssembler().assemble(question, result.candidates, [])
            console.print("\n[bold green]Answer:[/bold green]")
            async for fragment in gateway.generate(messages):
                console.print(fragment, end="", markup=False, highlight=False)
            console.print()

            if result.sources:
                console.print("\n[bold yellow]📌 Sources:[/bold yellow]")
                for source in result.sources:
                    console.print(f"  • {source.case_title} [dim]{source.source_url}[/dim]")
        finally:
            await fetcher.aclose()

    try:
        asyncio.run(run())
    except LegalAssistantError as e:
        console.print(f"\n[red]Error: {e.message}[/red]")


@cli.command()
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option("--index-dir", "-i", default=str(INDEX_DIR), help="Directory with the case index")
@click.option("--model", "-m", default=DEFAULT_MODEL, help="Embedding model")
@click.option("--metric", type=click.Choice(METRICS), default="cosine", help="Similarity metric")
def summarize(document: str, index_dir: str, model: str, metric: str):
    """Summarize a judgment (.txt or .pdf) and list similar cases and statutes."""
    from legal_assistant.errors import LegalAssistantError
    from legal_assistant.retrieval import EvidenceRetriever
    from legal_assistant.retrieval.document_fetcher import extract_pdf_text
    from legal_assistant.server.config import get_settings
    from legal_assistant.server.dependencies import build_gateway
    from legal_assistant.summarizer import summarize_document

    path = Path(document)
    if path.suffix.lower() == ".pdf":
        text = extract_pdf_text(path.read_bytes())
    else:
        text = path.read_text(encoding="utf-8")

    settings = get_settings()
    gateway = build_gateway(settings)
    if not gateway.is_available():
        console.print("[yellow]Set GEMINI_API_KEY or OPENAI_API_KEY to enable summarization[/yellow]")
        return

    store = _load_store(index_dir, model, metric)
    config = settings.retrieval_config()
    config.metric = store.metric
    retriever = EvidenceRetriever(store, None, config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Summarizing...", total=None)
        try:
            result = asyncio.run(summarize_document(text, gateway, retriever))
        except LegalAssistantError as e:
            console.print(f"[red]Error: {e.message}[/red]")
            return

    console.print(Panel(Markdown(result.summary), title="📄 Summary", border_style="green"))

    if result.similar_cases:
        console.print("\n[bold cyan]📚 Similar Cases:[/bold cyan]")
        for case in result.similar_cases:
            console.print(f"  • {case.case_title} (score: {case.score:.3f})")

    if result.statutes:
        table = Table(title="Statutes")
        table.add_column("Statute", style="cyan", width=30)
        table.add_column("Explanation", width=70)
        for name, explanation in result.statutes.items():
            table.add_row(name, explanation)
        console.print(table)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address")
@click.option("--port", "-p", default=8000, help="Port")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, reload: bool):
    """Run the API server."""
    import uvicorn

    uvicorn.run("legal_assistant.server.main:app", host=host, port=port, reload=reload)


@cli.command()
@click.option("--index-dir", "-i", default=str(INDEX_DIR), help="Directory with the case index")
def stats(index_dir: str):
    """Show statistics about the case index."""
    import json

    config_path = Path(index_dir) / "config.json"
    metadata_path = Path(index_dir) / "cases_metadata.json"
    if not config_path.exists():
        console.print("[red]Index not found! Run 'index' first.[/red]")
        return

    with open(config_path) as f:
        config = json.load(f)
    with open(metadata_path, encoding="utf-8") as f:
        cases = len(json.load(f))

    table = Table(title="📊 Index Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Cases", str(cases))
    table.add_row("Embedding Dimension", str(config["embedding_dim"]))
    table.add_row("Similarity Metric", config.get("metric", "cosine"))
    table.add_row("Index Location", str(index_dir))
    console.print(table)


if __name__ == "__main__":
    cli()
