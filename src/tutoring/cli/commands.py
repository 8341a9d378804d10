"""CLI commands for the tutoring platform.

Commands:
- serve: Run the web API with uvicorn
- extract: Extract text from a worksheet or answer key file
- analyze: Analyse a worksheet against an answer key
- questions: Generate practice questions for weak topics
- check: Show configuration and LLM availability
"""

from pathlib import Path

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from tutoring.config import load_app_config
from tutoring.core.question_generator import QuestionGenerationError, generate_questions
from tutoring.core.text_extractor import ExtractedText, TextExtractionError, extract_text
from tutoring.core.worksheet_analyzer import analyze_worksheet
from tutoring.llm.client import LLMError, build_default_client

app = typer.Typer(
    name="tutor",
    help="Tutoring platform backend: API server and worksheet analysis tools.",
    no_args_is_help=True,
)

console = Console()


def _extract_or_exit(path: Path) -> ExtractedText:
    """Read and extract a file, or exit with a helpful error."""
    if not path.exists():
        console.print(f"[red]✗ File not found: {path}[/red]")
        raise typer.Exit(code=1)
    try:
        return extract_text(path.read_bytes(), path.name)
    except TextExtractionError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)


def _truncate(text: str, max_len: int = 120) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[:max_len - 3] + "..."


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (overrides config)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (overrides config)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the web API."""
    server = load_app_config().server
    effective_host = host or server.host
    effective_port = port or server.port

    console.print(f"[blue]Starting API on {effective_host}:{effective_port}[/blue]")
    uvicorn.run(
        "tutoring.web.api:app",
        host=effective_host,
        port=effective_port,
        reload=reload,
    )


@app.command()
def extract(
    file: Path = typer.Argument(..., help="PDF, DOCX, image or text file"),
    show_text: bool = typer.Option(True, "--text/--no-text", help="Print the extracted text"),
) -> None:
    """Extract text from a worksheet or answer key."""
    result = _extract_or_exit(file)
    metrics = result.metrics

    console.print(f"[green]✓ Extracted {metrics.total_chars} chars from {file.name}[/green]")
    console.print(f"  [dim]method:[/dim]   {metrics.method}")
    console.print(f"  [dim]pages:[/dim]    {metrics.total_pages}")
    console.print(f"  [dim]language:[/dim] {metrics.detected_language or 'unknown'}")
    if metrics.is_likely_scanned:
        console.print("  [yellow]⚠ PDF looks scanned; convert it to an image for OCR[/yellow]")

    if show_text:
        console.print()
        console.print(result.text)


@app.command()
def analyze(
    worksheet: Path = typer.Argument(..., help="Student worksheet file"),
    answer_key: Path | None = typer.Argument(None, help="Answer key file"),
    mock_fallback: bool = typer.Option(
        True, "--mock-fallback/--no-mock-fallback", help="Use the sample result if the LLM fails"
    ),
) -> None:
    """Analyse a worksheet, optionally against an answer key."""
    worksheet_text = _extract_or_exit(worksheet).text
    answer_key_text = _extract_or_exit(answer_key).text if answer_key else None

    client = build_default_client(load_app_config().llm)
    if client is None:
        console.print("[yellow]⚠ No LLM API key configured[/yellow]")

    try:
        result = analyze_worksheet(
            worksheet_text, answer_key_text, client, use_mock_on_failure=mock_fallback
        )
    except LLMError as e:
        console.print(f"[red]✗ Analysis failed: {e}[/red]")
        raise typer.Exit(code=1)

    if result.source == "fallback":
        console.print("[yellow]⚠ LLM unavailable, showing sample result[/yellow]")
    elif result.source == "text_fallback":
        console.print("[yellow]⚠ Reply was not JSON, parsed from free text[/yellow]")

    score = "n/a" if result.score is None else f"{result.score}/100"
    console.print(f"[green]✓ Score: {score}[/green]")
    console.print(f"  [dim]weak topics:[/dim] {', '.join(result.weak_topics) or '-'}")
    for suggestion in result.suggestions:
        console.print(f"  • {suggestion}")

    if result.questions:
        table = Table(title="Questions")
        table.add_column("#", justify="right")
        table.add_column("Question")
        table.add_column("Correct", justify="center")
        for q in result.questions:
            table.add_row(
                str(q.number),
                _truncate(q.question, 80),
                "[green]✓[/green]" if q.correct else "[red]✗[/red]",
            )
        console.print(table)


@app.command()
def questions(
    topics: list[str] = typer.Argument(..., help="Weak topics to practise"),
) -> None:
    """Generate one practice question per topic."""
    client = build_default_client(load_app_config().llm)
    if client is None:
        console.print("[yellow]⚠ No LLM API key configured, using placeholders[/yellow]")

    try:
        generated = generate_questions(topics, client)
    except QuestionGenerationError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title="Practice questions")
    table.add_column("Topic")
    table.add_column("Question")
    for item in generated:
        table.add_row(item["topic"], item["question"])
    console.print(table)


@app.command()
def check() -> None:
    """Show configuration and whether the LLM is reachable."""
    config = load_app_config()

    table = Table(title="Configuration")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("llm.provider", config.llm.provider)
    table.add_row("llm.model", config.llm.model)
    table.add_row("llm.api_key", "set" if config.llm.get_api_key() else "missing")
    table.add_row("backend.kind", config.backend.kind)
    table.add_row("backend.url", config.backend.get_url() or "missing")
    table.add_row("backend.key", "set" if config.backend.get_key() else "missing")
    table.add_row("server", f"{config.server.host}:{config.server.port}")
    console.print(table)

    client = build_default_client(config.llm)
    if client is not None and client.is_available():
        console.print(f"[green]✓ LLM reachable ({config.llm.provider})[/green]")
    else:
        console.print(f"[yellow]⚠ LLM not reachable ({config.llm.provider})[/yellow]")


if __name__ == "__main__":
    app()
