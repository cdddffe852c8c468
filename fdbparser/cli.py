"""
CLI Interface
=============
Command-line interface for the test-bank parser.

Usage:
    python -m fdbparser parse <fdb_path> [options]
    python -m fdbparser batch <directory> [options]
    python -m fdbparser to-txt <fdb_path> [output]
    python -m fdbparser to-md <input> <output> [--images DIR]
    python -m fdbparser to-pdf <input> <output> [--images DIR] [--css FILE]
    python -m fdbparser validate <json_path>
"""

from __future__ import annotations

import json
import os
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import __version__
from .converters import (
    convert_fdb_to_txt,
    convert_markdown_to_pdf,
    convert_to_markdown,
    convert_to_pdf,
    fix_text_encoding,
)
from .encoding import detect_encoding, decode_text
from .engine import FDB_DIALECT, ParserConfig, ParserEngine
from .errors import MissingSectionError
from .images import normalize_image_extensions, sync_images
from .json_export import SHAPES, result_to_dict, save_json
from .tag_extractor import extract_tag, extract_tags, iter_numbered_blocks
from .validator import validate_test_data

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _parser_options(func):
    """Options shared by every command that parses a test."""
    func = click.option(
        "--encoding", "-e",
        default=None,
        help="Override encoding detection (e.g. cp1251, utf-8)",
    )(func)
    func = click.option(
        "--include-deleted",
        is_flag=True,
        default=False,
        help="Keep questions titled 'Deleted!'",
    )(func)
    func = click.option(
        "--debug",
        is_flag=True,
        default=False,
        help="Verbose diagnostics",
    )(func)
    func = click.option(
        "--log-level",
        default="WARNING",
        type=click.Choice(LOG_LEVELS),
        help="Logging level",
    )(func)
    return func


def _fail(message: str):
    console.print(f"[red]Error:[/] {message}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="fdb-parser")
def cli():
    """FDB Parser — legacy test-bank converter (text, Markdown, JSON, PDF)."""
    pass


@cli.command()
@click.argument("fdb_path", type=click.Path(exists=True))
@click.option("--output", "-o", default=None, help="Output JSON file")
@click.option(
    "--shape",
    default="canonical",
    type=click.Choice(SHAPES),
    help="JSON shape of the questions",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
@click.option("--log-file", default=None, help="Path to log file")
@_parser_options
def parse(
    fdb_path: str,
    output: str,
    shape: str,
    json_output: bool,
    log_file: str,
    encoding: str,
    include_deleted: bool,
    debug: bool,
    log_level: str,
):
    """Parse a test-bank file into structured JSON."""

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    try:
        config = ParserConfig(
            encoding=encoding,
            include_deleted=include_deleted,
            debug=debug,
            log_level=log_level,
            log_file=log_file,
        )
        result = ParserEngine(config).parse_file(fdb_path)
    except (FileNotFoundError, MissingSectionError) as e:
        _fail(str(e))
    except LookupError as e:
        _fail(f"Unknown encoding: {e}")

    payload = result_to_dict(result, shape=shape)

    if json_output:
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
        return

    output = output or str(Path(fdb_path).with_suffix(".json"))
    save_json(payload, Path(output))

    try:
        _display_results(result)
    except UnicodeEncodeError:
        # Windows console may not support special chars
        print(f"Parse complete: {len(result.data.questions)} questions")

    console.print(
        f"[green]Saved:[/] {output} "
        f"({len(result.data.questions)} questions, "
        f"{len(result.warnings)} warnings)"
    )


def _parse_one(path: str, config: ParserConfig):
    """Worker for batch mode; must stay importable at module level."""
    return ParserEngine(config).parse_file(path)


@cli.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--output", "-o", default="output", help="Output directory")
@click.option("--pattern", default="*.fdb", help="File glob inside the directory")
@click.option(
    "--parallel", "-j",
    default=1,
    type=int,
    help="Number of parallel parse workers (1 = sequential)",
)
@_parser_options
def batch(
    directory: str,
    output: str,
    pattern: str,
    parallel: int,
    encoding: str,
    include_deleted: bool,
    debug: bool,
    log_level: str,
):
    """Batch parse all test-bank files in a directory."""

    files = sorted(Path(directory).glob(pattern))
    if not files:
        console.print(f"[yellow]No files matching {pattern} in: {directory}[/]")
        return

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Batch Test-Bank Parser[/]\n"
            f"[dim]Found {len(files)} files in: {directory}[/]",
            border_style="cyan",
        )
    )
    console.print()

    config = ParserConfig(
        encoding=encoding,
        include_deleted=include_deleted,
        debug=debug,
        log_level=log_level,
    )
    results = []
    errors = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Processing files...", total=len(files))

        if parallel > 1:
            with ProcessPoolExecutor(max_workers=parallel) as pool:
                futures = {
                    pool.submit(_parse_one, str(f), config): f for f in files
                }
                for future in as_completed(futures):
                    path = futures[future]
                    try:
                        results.append((path, future.result()))
                    except Exception as e:
                        errors.append((path.name, str(e)))
                    progress.advance(task)
        else:
            for path in files:
                progress.update(task, description=f"Parsing: {path.name}")
                try:
                    results.append((path, _parse_one(str(path), config)))
                except Exception as e:
                    errors.append((path.name, str(e)))
                progress.advance(task)

    out_dir = Path(output)
    for path, result in results:
        save_json(result_to_dict(result), out_dir / f"{path.stem}.json")

    _display_batch_summary(
        sorted(((p.name, r) for p, r in results), key=lambda item: item[0]),
        errors,
    )


@cli.command()
@click.argument("fdb_path", type=click.Path(exists=True, dir_okay=False))
def info(fdb_path: str):
    """Display test-bank file information."""

    raw = Path(fdb_path).read_bytes()
    encoding = detect_encoding(raw)
    content = decode_text(raw, encoding)
    dialect = FDB_DIALECT

    tags = list(dict.fromkeys(
        (*dialect.header_tags, dialect.body_tag, dialect.group_tag)
    ))
    present = extract_tags(content, tags)
    body = extract_tag(content, dialect.body_tag)
    block_count = sum(1 for _ in iter_numbered_blocks(body)) if body else 0

    console.print()
    table = Table(title="Test-Bank File Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(fdb_path))
    table.add_row("File Size", f"{len(raw) / 1024:.1f} KB")
    table.add_row("Detected Encoding", encoding)
    table.add_row("Sections", ", ".join(present) or "(none)")
    table.add_row("Question Blocks", str(block_count))

    console.print(table)
    console.print()


@cli.command("to-txt")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", required=False)
@click.option("--encoding", "-e", default="cp1251", help="Code page of the payloads")
def to_txt(input_path: str, output_path: str, encoding: str):
    """Decode a test-bank file into tag-wrapped plain text."""
    try:
        written = convert_fdb_to_txt(input_path, output_path, encoding=encoding)
    except LookupError as e:
        _fail(f"Unknown encoding: {e}")
    console.print(f"[green]Successfully converted[/] {input_path} to {written}")


@cli.command("to-md")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path")
@click.option("--images", "image_dir", default=None, help="Directory holding the test images")
@_parser_options
def to_md(
    input_path: str,
    output_path: str,
    image_dir: str,
    encoding: str,
    include_deleted: bool,
    debug: bool,
    log_level: str,
):
    """Convert a test-bank file (raw or text form) to Markdown."""
    config = ParserConfig(
        encoding=encoding,
        include_deleted=include_deleted,
        debug=debug,
        log_level=log_level,
    )
    try:
        result = convert_to_markdown(input_path, output_path, image_dir, config)
    except MissingSectionError as e:
        _fail(str(e))
    except LookupError as e:
        _fail(f"Unknown encoding: {e}")
    _report_conversion(input_path, output_path, result)


@cli.command("to-pdf")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path")
@click.option("--images", "image_dir", default=None, help="Directory holding the test images")
@click.option("--css", "css_path", default=None, help="Custom stylesheet")
@click.option(
    "--keep-markdown",
    is_flag=True,
    default=False,
    help="Keep the intermediate Markdown file next to the PDF",
)
@_parser_options
def to_pdf(
    input_path: str,
    output_path: str,
    image_dir: str,
    css_path: str,
    keep_markdown: bool,
    encoding: str,
    include_deleted: bool,
    debug: bool,
    log_level: str,
):
    """Convert a test-bank file (raw or text form) to PDF."""
    config = ParserConfig(
        encoding=encoding,
        include_deleted=include_deleted,
        debug=debug,
        log_level=log_level,
    )
    try:
        result = convert_to_pdf(
            input_path,
            output_path,
            image_base_path=image_dir,
            css_path=css_path,
            keep_markdown=keep_markdown,
            config=config,
        )
    except (MissingSectionError, RuntimeError) as e:
        _fail(str(e))
    except LookupError as e:
        _fail(f"Unknown encoding: {e}")
    _report_conversion(input_path, output_path, result)


@cli.command("md-to-pdf")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path")
@click.option("--css", "css_path", default=None, help="Custom stylesheet")
@click.option("--base-dir", default=None, help="Directory images are resolved against")
def md_to_pdf(input_path: str, output_path: str, css_path: str, base_dir: str):
    """Render a Markdown file to PDF."""
    try:
        convert_markdown_to_pdf(input_path, output_path, css_path=css_path, base_dir=base_dir)
    except RuntimeError as e:
        _fail(str(e))
    console.print(f"[green]Successfully converted[/] {input_path} to {output_path}")


@cli.command()
@click.argument("json_path", type=click.Path(exists=True))
def validate(json_path: str):
    """Validate a previously exported JSON file."""

    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    # Accept both a bare test and a full parse result
    test = data.get("data", data)
    errors = validate_test_data(test)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Validation Report[/]\n"
            f"[dim]File: {json_path}[/]",
            border_style="cyan",
        )
    )

    if "validation" in data:
        _display_validation_table(data["validation"])

    if errors:
        for error in errors:
            console.print(f"  [red]✗[/] {error}")
        console.print()
        sys.exit(1)

    console.print("[green]✓ Structure is valid[/]")
    console.print()


@cli.command("fix-encoding")
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("output_path", required=False)
@click.option("--source", default="latin-1", help="Encoding the text was wrongly read with")
@click.option("--target", default="cp1251", help="Encoding the text really is in")
@click.option("--force", is_flag=True, default=False, help="Repair even if no issues are detected")
def fix_encoding(input_path: str, output_path: str, source: str, target: str, force: bool):
    """Repair Cyrillic text that was decoded with the wrong code page."""
    output_path = output_path or f"{input_path}.fixed.txt"
    try:
        repaired = fix_text_encoding(input_path, output_path, source, target, force)
    except LookupError as e:
        _fail(f"Unknown encoding: {e}")
    status = "fixed" if repaired else "no issues detected, copied"
    console.print(f"[green]Text encoding {status}:[/] {output_path}")


@cli.command("normalize-images")
@click.argument("image_dir", type=click.Path(exists=True, file_okay=False))
def normalize_images(image_dir: str):
    """Copy *.JPG images to lowercase *.jpg names."""
    mapping = normalize_image_extensions(image_dir)
    console.print(f"[green]Normalized[/] {len(mapping)} image files in {image_dir}")


@cli.command("sync-images")
@click.argument("root_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("subdirs", nargs=-1)
def sync_images_command(root_dir: str, subdirs: tuple[str, ...]):
    """Give every <root>/<subdir>/pics folder the union of all images."""
    copied = sync_images(root_dir, subdirs)
    if not copied:
        _fail("No pics directories found!")

    table = Table(title="Image Sync", border_style="cyan")
    table.add_column("Directory", style="bold")
    table.add_column("Copied", justify="right")
    for name, count in copied.items():
        table.add_row(name, str(count))
    console.print(table)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _report_conversion(input_path: str, output_path: str, result):
    console.print(
        f"[green]Successfully converted[/] {input_path} to {output_path} "
        f"({len(result.data.questions)} questions, {len(result.warnings)} warnings)"
    )
    for warning in result.warnings:
        console.print(f"  [yellow]⚠[/] {warning}")


def _display_results(result):
    """Display parse results in formatted tables."""
    console.print()

    data = result.data
    table = Table(title="Test Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Title", data.title)
    table.add_row("Author", data.author or "(not set)")
    table.add_row("Date", data.date or "(not set)")
    table.add_row("Source", result.source.file_name or "(text)")
    table.add_row("Encoding", result.source.encoding or "(n/a)")
    table.add_row("Questions", str(len(data.questions)))
    table.add_row("Categories", str(len(data.categories)))
    table.add_row("Total Points", str(data.total_points))
    if result.source.file_hash:
        table.add_row("File Hash", result.source.file_hash[:16] + "...")
    console.print(table)
    console.print()

    _display_validation_table(result.validation.model_dump())

    if result.warnings:
        warn_table = Table(title="Warnings", border_style="yellow")
        warn_table.add_column("#", justify="right")
        warn_table.add_column("Message")
        for i, warning in enumerate(result.warnings, 1):
            warn_table.add_row(str(i), warning)
        console.print(warn_table)
        console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    total = validation.get("total_blocks_detected", 0)
    success = validation.get("parsed_successfully", 0)
    rate = validation.get("success_rate", 0)

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    table.add_row(
        "Question Blocks Detected",
        str(total),
        "[green]✓[/]" if total > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Parsed Successfully",
        f"{success} ({rate}%)",
        "[green]✓[/]" if rate >= 90 else "[yellow]⚠[/]",
    )

    for label, key in (
        ("Skipped Questions", "skipped_question_ids"),
        ("Duplicate IDs", "duplicate_question_ids"),
        ("Questions Without Answers", "questions_without_answers"),
        ("Questions Without Correct Answer", "questions_without_correct_answers"),
        ("Unknown Category References", "unknown_category_references"),
    ):
        values = validation.get(key, [])
        table.add_row(label, str(len(values)), status_icon(len(values)))

    deleted = validation.get("deleted_question_ids", [])
    table.add_row("Soft-Deleted Questions", str(len(deleted)), "[dim]-[/]")

    console.print(table)
    console.print()


def _display_batch_summary(results, errors):
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Processing Summary", border_style="cyan")
    table.add_column("File", style="bold")
    table.add_column("Questions", justify="right")
    table.add_column("Success Rate", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Status", justify="center")

    total_questions = 0
    total_warnings = 0

    for name, result in results:
        q_count = len(result.data.questions)
        rate = result.validation.success_rate
        warning_count = len(result.warnings)

        total_questions += q_count
        total_warnings += warning_count

        status = "[green]✓[/]" if rate >= 90 else "[yellow]⚠[/]"
        table.add_row(name, str(q_count), f"{rate}%", str(warning_count), status)

    for name, error in errors:
        table.add_row(name, "-", "-", "-", "[red]✗ FAILED[/]")

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {total_questions} questions from "
        f"{len(results)} files, {total_warnings} warnings, "
        f"{len(errors)} failures"
    )
    console.print()


# ─── Entry point (for python -m fdbparser.cli) ────────────────────────────────


if __name__ == "__main__":
    cli()
