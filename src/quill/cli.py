"""CLI entry point for Quill."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .config import load_config

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Quill - edit Markdown notes with plain-language commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


def _open(config: dict):
    from .conversation import ConversationStore, JsonFileDataStore
    from .vault import Vault

    vault = Vault(config["vault_path"])
    store = ConversationStore.from_config(config, JsonFileDataStore(config["data_path"]))
    return vault, store


def _note_path(vault, note: str) -> str:
    path = vault.find_file(note)
    if path is None:
        raise click.ClickException(f"Note not found in {vault.vault_path}: {note}")
    return path


@cli.command()
@click.argument("text")
def classify(text):
    """Classify TEXT as consultation, editing or ambiguous."""
    from .intent import classify_input, is_likely_command

    result = classify_input(text)
    console.print(f"[bold]{result.type}[/] (confidence {result.confidence:.1f})")
    if result.matched_patterns:
        console.print(f"  Matched: {', '.join(result.matched_patterns)}")
    if result.type == "ambiguous":
        console.print(f"  Looks like a command: {'yes' if is_likely_command(text) else 'no'}")


@cli.command()
@click.argument("text")
@click.option("--selection", is_flag=True, help="Parse as if text were selected")
def parse(text, selection):
    """Parse TEXT into one or more edit commands."""
    from .intent import CommandParser

    parser = CommandParser()
    table = Table(title="Commands")
    table.add_column("Action", style="cyan")
    table.add_column("Target", style="green")
    table.add_column("Location")
    table.add_column("Context", max_width=40)
    table.add_column("Valid")

    for command in parser.parse_multiple_commands(text, has_selection=selection):
        validation = parser.validate_command(command, has_selection=selection)
        valid = "[green]yes[/]" if validation.valid else f"[red]{validation.error}[/]"
        table.add_row(command.action, command.target, command.location or "", command.context or "", valid)

    console.print(table)


@cli.command()
@click.argument("note")
@click.argument("text")
@click.option("--selection", "-s", default=None, help="Selected text")
@click.option("--line", "-l", type=int, default=None, help="Cursor line (0-based)")
@click.pass_context
def prompt(ctx, note, text, selection, line):
    """Show the prompt that TEXT would produce for NOTE."""
    from .assistant import EditAssistant

    config = _get_config(ctx)
    vault, store = _open(config)
    with store:
        path = _note_path(vault, note)
        turn = EditAssistant(vault, store, None, config).handle_message(
            path, text, selection=selection, cursor_line=line, dry_run=True
        )

    if turn.command:
        console.print(f"[bold]Command:[/] {turn.command.action} → {turn.command.target}"
                      + (f" ({turn.command.location})" if turn.command.location else ""))
    for warning in turn.warnings:
        console.print(f"[yellow]{warning}[/]")
    if turn.prompt is None:
        console.print(f"[yellow]{turn.reply or 'No prompt built'}[/]")
        return
    console.print("\n[bold]SYSTEM[/]")
    console.print(turn.prompt.system_prompt, markup=False)
    console.print("\n[bold]USER[/]")
    console.print(turn.prompt.user_prompt, markup=False)


@cli.command()
@click.argument("note")
@click.pass_context
def context(ctx, note):
    """List the notes that would be pulled into context for NOTE."""
    from .context import AutoContextOptions, AutoContextResolver

    config = _get_config(ctx)
    vault, store = _open(config)
    with store:
        path = _note_path(vault, note)
        attached = store.get_context_documents(path)

    table = Table(title=f"Context for {path}")
    table.add_column("Note", style="cyan")
    table.add_column("Source")
    table.add_column("Tokens", justify="right", style="green")
    table.add_column("Notes", max_width=40)

    for doc in attached:
        table.add_row(doc.path + (f"#{doc.property}" if doc.property else ""), "attached", "", "")

    resolver = AutoContextResolver(vault, AutoContextOptions.from_config(config))
    for doc in resolver.build_auto_context(path, existing_paths=[path, *(d.path for d in attached)]):
        notes = []
        if doc.is_truncated:
            notes.append(f"truncated from {doc.full_token_count}")
        if doc.size_warning:
            notes.append("large")
        label = f"{doc.path}#{doc.section}" if doc.section else doc.path
        table.add_row(label, doc.source, str(doc.token_count), ", ".join(notes))

    console.print(table)


@cli.command()
@click.argument("note")
@click.argument("message")
@click.option("--selection", "-s", default=None, help="Selected text")
@click.option("--line", "-l", type=int, default=None, help="Cursor line (0-based)")
@click.option("--dry-run", is_flag=True, help="Build the prompt without calling Claude")
@click.pass_context
def ask(ctx, note, message, selection, line, dry_run):
    """Send MESSAGE about NOTE; edits are written back to the note."""
    from rich.markdown import Markdown
    from rich.panel import Panel

    from .assistant import EditAssistant
    from .completion import AnthropicCompleter

    config = _get_config(ctx)
    completer = None
    if not dry_run:
        try:
            completer = AnthropicCompleter(config)
        except ValueError as e:
            console.print(f"[red]{e}[/]")
            return

    vault, store = _open(config)
    with store:
        path = _note_path(vault, note)
        turn = EditAssistant(vault, store, completer, config).handle_message(
            path, message, selection=selection, cursor_line=line, dry_run=dry_run
        )

    for warning in turn.warnings:
        console.print(f"[yellow]{warning}[/]")

    if dry_run:
        console.print(f"[blue]{turn.kind}[/] (no request sent)")
        return

    if turn.kind == "consultation":
        console.print(Panel(Markdown(turn.reply or ""), title="Quill", border_style="green"))
    elif turn.kind == "edit":
        console.print(f"[green]✓ {turn.reply}[/]")
    elif turn.kind == "context":
        console.print(f"[blue]{turn.reply}[/]")
    else:
        console.print(f"[red]{turn.reply}[/]")


@cli.command()
@click.argument("note")
@click.option("--export", "export_path", default=None, help="Write the transcript to this Markdown file")
@click.pass_context
def history(ctx, note, export_path):
    """Show the conversation for NOTE."""
    config = _get_config(ctx)
    vault, store = _open(config)
    with store:
        path = _note_path(vault, note)
        if export_path:
            Path(export_path).write_text(store.export_conversation(path), encoding="utf-8")
            console.print(f"[green]✓ Exported to {export_path}[/]")
            return
        messages = store.get_recent_messages(path, store.max_messages_per_file)
        stats = store.get_stats(path)

    if not messages:
        console.print("[yellow]No conversation yet.[/]")
        return

    styles = {"user": "cyan", "assistant": "green", "system": "dim"}
    for msg in messages:
        console.print(f"[{styles[msg.role]}]{msg.role.upper()}[/]: {escape(msg.content)}")

    console.print(f"\n  Messages: {stats.message_count}")
    console.print(f"  Edits: {stats.edit_count}")
    if stats.most_used_command:
        console.print(f"  Most used command: {stats.most_used_command}")


@cli.command()
@click.argument("note")
@click.option("--context", "context_docs", is_flag=True, help="Detach context documents instead of clearing messages")
@click.pass_context
def clear(ctx, note, context_docs):
    """Clear the conversation (or attached context documents) for NOTE."""
    config = _get_config(ctx)
    vault, store = _open(config)
    with store:
        path = _note_path(vault, note)
        if context_docs:
            store.clear_context_documents(path)
            console.print(f"[green]✓ Cleared context documents for {path}[/]")
        else:
            store.clear_conversation(path)
            console.print(f"[green]✓ Cleared conversation for {path}[/]")


@cli.command()
@click.option("--days", type=float, default=None, help="Maximum age in days (default from config)")
@click.pass_context
def cleanup(ctx, days):
    """Remove conversations with no recent messages."""
    config = _get_config(ctx)
    _, store = _open(config)
    with store:
        max_age = int(days * 24 * 60 * 60 * 1000) if days is not None else None
        removed = store.cleanup_old_conversations(max_age)
    console.print(f"[green]✓ Removed {removed} conversation(s)[/]")


@cli.command()
@click.pass_context
def watch(ctx):
    """Watch the vault and carry conversations across note renames."""
    from .watcher import VaultWatcher

    config = _get_config(ctx)
    vault, store = _open(config)
    with store:
        VaultWatcher(vault, store).run()


if __name__ == "__main__":
    cli()
