#!/usr/bin/env python3
"""
Validate a rewritten bullet against its original.

Runs the rewrite validator on one original/rewrite pair and prints the
verdict: semantic similarity, missing metrics, and fabricated terms. The
allowed vocabulary comes from the original, the optional resume text, and the
optional job description.

Examples:\n

    validate_rewrite.py "Reduced latency by 40% using caching" "Reduced latency by 40% via caching strategies"

    validate_rewrite.py "Built a REST API" "Built a Zylonix API" --requirements job.md

    validate_rewrite.py "$ORIGINAL" "$REWRITE" --strict --json
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from quiver.contexts.validation import HashingSimilarityProvider, RewriteValidator, build_allowed_vocabulary
from quiver.contexts.validation.extraction import extract_metrics, extract_technical_terms
from quiver.contexts.validation.logger import setup_validation_logger
from quiver.contexts.validation.validator import DEFAULT_THRESHOLD, STRICT_THRESHOLD
from quiver.utils.timestamp import now

load_dotenv()
LOGS_PATH = Path(os.getenv("LOGS_PATH", "outs/logs"))

app = typer.Typer(help="Validate a rewritten bullet against its original.", add_completion=False)


def _read_optional(path: Optional[Path]) -> str:
    if path is None:
        return ""
    if not path.exists():
        typer.secho(f"ERROR: File not found: {path}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@app.command()
def main(
    original: Annotated[str, typer.Argument(help="Original bullet text")],
    rewritten: Annotated[str, typer.Argument(help="Rewritten bullet text")],
    requirements: Annotated[
        Optional[Path],
        typer.Option("--requirements", "-r", help="Job description file added to the vocabulary"),
    ] = None,
    resume: Annotated[
        Optional[Path],
        typer.Option("--resume", help="Plain-text resume added to the vocabulary"),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help=f"Use the strict similarity threshold ({STRICT_THRESHOLD})"),
    ] = False,
    threshold: Annotated[
        Optional[float],
        typer.Option("--threshold", "-t", help="Explicit similarity threshold", min=0.0, max=1.0),
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the verdict as JSON")] = False,
    log: Annotated[bool, typer.Option("--log", help="Write a detailed validation log")] = False,
):
    """Validate one rewrite and exit non-zero unless it is accepted."""
    if threshold is None:
        threshold = STRICT_THRESHOLD if strict else DEFAULT_THRESHOLD

    provider = HashingSimilarityProvider()
    if log:
        log_file = setup_validation_logger(LOGS_PATH / f"validate_{now()}", provider.name)
        typer.echo(f"Logging to {log_file}")

    document_text = "\n".join(filter(None, [original, _read_optional(resume)]))
    vocabulary = build_allowed_vocabulary(document_text, _read_optional(requirements))

    validator = RewriteValidator(provider)
    verdict = validator.validate(original, rewritten, vocabulary, threshold=threshold)

    if as_json:
        typer.echo(json.dumps(verdict.to_dict(), indent=2))
    else:
        typer.echo("\n=== Original ===")
        typer.echo(f"  {original}")
        typer.echo(f"  metrics: {extract_metrics(original) or '(none)'}")
        typer.echo(f"  terms:   {extract_technical_terms(original) or '(none)'}")

        typer.echo("\n=== Rewrite ===")
        typer.echo(f"  {rewritten}")

        typer.echo("\n=== Checks ===")
        typer.echo(f"  Similarity:       {verdict.semantic_similarity:.3f} (threshold {verdict.threshold})")
        typer.echo(f"  Metrics kept:     {verdict.metrics_preserved}")
        if verdict.missing_metrics:
            typer.echo(f"    missing: {', '.join(verdict.missing_metrics)}")
        typer.echo(f"  Fabricated terms: {verdict.has_fabricated_terms}")
        if verdict.fabricated_terms:
            typer.echo(f"    found: {', '.join(verdict.fabricated_terms)}")

        color = typer.colors.GREEN if verdict.is_accepted else typer.colors.YELLOW
        typer.secho(f"\nVerdict: {verdict.verdict.value.upper()}", fg=color, bold=True)
        if verdict.reason:
            typer.echo(f"  {verdict.reason}")

    if not verdict.is_accepted:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
