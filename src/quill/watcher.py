"""Keeps conversations attached to notes that are renamed or moved."""

import time
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from rich.console import Console

from .conversation.store import ConversationStore
from .models import ContextDocumentRef
from .vault.index import Vault

console = Console()


class RenameHandler(FileSystemEventHandler):
    """Re-keys conversations and context references when a note moves."""

    def __init__(self, vault: Vault, store: ConversationStore):
        super().__init__()
        self.vault = vault
        self.store = store

    def _is_note(self, path: str) -> bool:
        return Path(path).suffix.lower() == ".md"

    def on_moved(self, event):
        if event.is_directory:
            return
        if not (self._is_note(event.src_path) and self._is_note(event.dest_path)):
            return
        self.handle_move(self.vault.relative(event.src_path), self.vault.relative(event.dest_path))

    def handle_move(self, old_path: str, new_path: str) -> bool:
        """Apply a rename to the store; True when a conversation moved."""
        moved = self.store.update_file_path(old_path, new_path)

        for owner in self.store.get_all_conversation_files():
            docs = self.store.get_context_documents(owner)
            if not any(d.path == old_path for d in docs):
                continue
            renamed = []
            seen = set()
            for doc in docs:
                path = new_path if doc.path == old_path else doc.path
                if (path, doc.property) in seen:
                    continue
                seen.add((path, doc.property))
                renamed.append(ContextDocumentRef(path=path, property=doc.property, added_at=doc.added_at))
            self.store.set_context_documents(owner, renamed)

        if moved:
            console.print(f"  [dim]Moved conversation: {old_path} -> {new_path}[/]")
        return moved


class VaultWatcher:
    """Watches the vault for renames (blocks until Ctrl+C)."""

    def __init__(self, vault: Vault, store: ConversationStore):
        self.vault = vault
        self.handler = RenameHandler(vault, store)
        self.observer = Observer()

    def run(self):
        self.observer.schedule(self.handler, str(self.vault.vault_path), recursive=True)
        self.observer.start()

        console.print(f"[bold]Watching {self.vault.vault_path} for renamed notes... (Ctrl+C to stop)[/]")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            console.print("\n[yellow]Stopping watcher...[/]")
            self.observer.stop()
        self.observer.join()
        console.print("[green]✓ Watcher stopped.[/]")
