#!/usr/bin/env python3
"""
Command-line interface for rulegen.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv

from . import __version__
from .config import ConfigError, load_config
from .credentials import CREDENTIALS_FILE, clear_api_key, get_api_key, mask_api_key, store_api_key
from .formatters import FormatError
from .formatters.manager import format_manager
from .gemini_client import ModelClientError
from .generator import NoCandidatesError, NoRulesGeneratedError, RuleGenerator
from .logging_config import (
    LOG_FILES,
    LOG_LEVELS,
    get_log_directory,
    get_logger,
    log_file_name,
    setup_logging,
)


@click.group()
@click.version_option(__version__, "-V", "--version", prog_name="rulegen")
def cli():
    """rulegen - Generate AI coding rules from your codebase using Google Gemini."""
    pass


@cli.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False, dir_okay=True), default=".")
@click.option("--format", "format_spec", type=str, default=None,
              help="Output format(s): cursor, claude-md, agents-md, copilot, windsurf, a comma-separated list, or all")
@click.option("--model", type=str, default=None, help="Gemini model to use (default: gemini-2.5-flash-lite)")
@click.option("--max-files", type=click.IntRange(min=0), default=None, help="Max source files to include (default: 50)")
@click.option("--max-rules", type=click.IntRange(min=1), default=None, help="Max rules to keep (default: 8)")
@click.option("--api-key", type=str, default=None, help="Gemini API key (or set GEMINI_API_KEY)")
@click.option("--structured/--free-text", "structured", default=None,
              help="Ask the model for a JSON array instead of delimited text")
@click.option("--dry-run", is_flag=True, help="Preview rules without writing files")
@click.option("--verbose", "-v", is_flag=True, help="Show which files are sent to Gemini")
@click.option("--no-overwrite", is_flag=True, help="Keep existing rule files and write numbered copies")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default="INFO",
              help="File log level; VERBOSE adds per-call API details")
@click.option("--log-dir", type=click.Path(file_okay=False), default=None, help="Directory for log files")
def generate(directory: str, format_spec: Optional[str], model: Optional[str], max_files: Optional[int],
             max_rules: Optional[int], api_key: Optional[str], structured: Optional[bool], dry_run: bool,
             verbose: bool, no_overwrite: bool, log_level: str, log_dir: Optional[str]):
    """Scan DIRECTORY and generate coding rules (default: current directory)."""
    setup_logging(log_dir=Path(log_dir) if log_dir else None, log_level=log_level,
                  verbose_console=verbose)
    load_dotenv()

    try:
        config = load_config(Path(directory)).with_overrides(
            model=model,
            max_files=max_files,
            max_rules=max_rules,
            format=format_spec,
            structured_output=structured,
        )
        formats = format_manager.resolve_format_list(config.format)
    except (ConfigError, FormatError) as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    key = get_api_key(api_key)
    if not key:
        click.echo("❌ Error: No Gemini API key found.", err=True)
        click.echo("Set GEMINI_API_KEY, use --api-key <key>, or run 'rulegen config set-key'", err=True)
        click.echo("Get a free key at https://aistudio.google.com/apikey", err=True)
        sys.exit(1)

    try:
        asyncio.run(async_generate(directory, config, key, formats, dry_run, verbose, not no_overwrite))
    except (NoCandidatesError, NoRulesGeneratedError, ModelClientError, FormatError) as e:
        get_logger("cli").error("Generation failed", error=str(e), error_type=type(e).__name__)
        click.echo(f"\n❌ {e}", err=True)
        sys.exit(1)


async def async_generate(directory: str, config, api_key: str, formats, dry_run: bool,
                         verbose: bool, overwrite: bool):
    """Async implementation of the generate command."""
    generator = RuleGenerator(directory, config, api_key=api_key)

    # Phase 1: Scan
    click.echo(f"\n🔍 Scanning {generator.project_path}...")
    candidates = generator.scan()
    click.echo(f"  Found {len(candidates)} files")

    # Phase 2: Budget
    selection = generator.select(candidates)
    click.echo(f"  Selected {len(selection)} files for analysis")

    if verbose:
        click.echo("\n  Files sent to Gemini:")
        for f in selection:
            click.echo(f"    {f.relative_path} ({f.estimated_tokens:,} est. tokens)")

    click.echo(f"  Estimated tokens: ~{selection.total_tokens:,}")

    # Phase 3: Generate
    click.echo(f"\n🧠 Generating rules with {config.model}...")
    result = await generator.generate(selection)
    if result.usage.prompt_tokens:
        output_tokens = f"{result.usage.response_tokens:,}" if result.usage.response_tokens else "?"
        click.echo(f"  API usage: {result.usage.prompt_tokens:,} input, {output_tokens} output tokens")
    click.echo(f"  Generated {len(result.rules)} rules")

    # Phase 4: Write
    if dry_run:
        click.echo("\n--- DRY RUN (no files written) ---\n")
        for formatter_name in formats:
            content_map = format_manager.get_formatter(formatter_name).convert(result.rules)
            for filename, content in content_map.items():
                click.echo(f"=== {filename} ===")
                click.echo(content)
    else:
        project_path = generator.project_path
        written = format_manager.convert_and_save(result.rules, formats, project_path, project_path,
                                                  overwrite=overwrite)
        paths = [p for created in written.values() for p in created]
        click.echo(f"\n💾 Written {len(paths)} files:")
        for path in paths:
            click.echo(f"  ✓ {path}")

    click.echo("\n✅ Done!")


@cli.command("formats")
def list_formats():
    """List available output formats."""
    click.echo("\n📄 Available formats:")
    for name, info in sorted(format_manager.get_format_info().items()):
        click.echo(f"  {name:<10} {info['description']}")


@cli.command()
@click.option("--lines", "-n", type=click.IntRange(min=1), default=50, help="Number of lines to show")
@click.option("--type", "log_type", type=click.Choice(list(LOG_FILES)), default="main",
              help="Log to show: " + "|".join(LOG_FILES))
def logs(lines: int, log_type: str):
    """Show recent log entries."""
    log_file = get_log_directory() / log_file_name(log_type)

    if not log_file.exists():
        click.echo(f"Log file not found: {log_file}")
        return

    click.echo(f"📋 Showing {log_type} logs from {log_file}\n")
    with open(log_file, encoding="utf-8", errors="replace") as f:
        for line in f.readlines()[-lines:]:
            click.echo(line.rstrip("\n"))


@cli.group()
def config():
    """Manage the stored API key."""
    pass


@config.command("set-key")
@click.option("--key", type=str, help="API key (will prompt if not provided)")
def set_key(key: Optional[str]):
    """Store a Gemini API key."""
    if not key:
        click.echo("\n🔑 Setting Gemini API key")
        click.echo("You can get your API key from: https://aistudio.google.com/apikey")
        key = click.prompt("Please enter your Gemini API key", type=str, hide_input=True)

    path = store_api_key(key)
    click.echo("✅ Gemini API key stored securely")
    click.echo(f"🔑 Key: {mask_api_key(key)}")
    click.echo(f"📁 Stored in: {path}")


@config.command("show")
def show_config():
    """Show current configuration (with masked key)."""
    load_dotenv()
    click.echo("\n🔧 Current Configuration:")

    key = get_api_key()
    if key:
        click.echo(f"🔑 Gemini API Key: {mask_api_key(key)}")
    else:
        click.echo("🔑 Gemini API Key: Not set")

    effective = load_config(Path.cwd())
    click.echo(f"🤖 Model: {effective.model}")
    click.echo(f"📄 Format: {effective.format}")
    click.echo(f"📦 Max files: {effective.max_files}  Max rules: {effective.max_rules}")
    click.echo(f"📊 File token budget: {effective.token_ceiling:,}")
    click.echo(f"\n📁 Credentials stored in: {CREDENTIALS_FILE}")
    click.echo(f"📝 Logs: {get_log_directory()}")


@config.command("clear")
@click.option("--force", is_flag=True, help="Skip confirmation")
def clear_key(force: bool):
    """Clear the stored API key."""
    if not force and not click.confirm("Are you sure you want to clear the stored Gemini API key?"):
        click.echo("Cancelled.")
        return

    if clear_api_key():
        click.echo("🗑️  Cleared Gemini API key")
    else:
        click.echo("No stored key found.")


def main():
    """Entry point for the CLI application."""
    cli()


if __name__ == "__main__":
    main()
