"""Contracts with the hosting document environment.

The tracker core never touches files directly. It asks a :class:`DocumentStore`
for the full text of a document, rewrites the lines of one tracker block and
hands the whole text back. Writers against the same document are queued on a
per-locator lock.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, List

from typing_extensions import Protocol

from .documents import SectionBounds, dump_tracker, replace_section
from .entries import Tracker

logger = logging.getLogger(__name__)

RenameListener = Callable[[str, str], None]


class HostError(RuntimeError):
    pass


class DocumentNotFound(HostError, LookupError):
    pass


class HostWriteError(HostError):
    pass


class DocumentStore(Protocol):
    async def read(self, locator: str) -> str: ...

    async def write(self, locator: str, text: str) -> None: ...

    def lock(self, locator: str) -> asyncio.Lock: ...

    def list_documents(self) -> List[str]: ...


class Confirmer(Protocol):
    async def confirm(self, message: str) -> bool: ...


class StaticConfirmer:
    """Answers every confirmation request the same way."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.messages: List[str] = []

    async def confirm(self, message: str) -> bool:
        self.messages.append(message)
        return self.answer


class FileDocumentStore:
    """Markdown documents below a root directory."""

    def __init__(self, root: Path, suffix: str = ".md") -> None:
        self.root = Path(root)
        self.suffix = suffix
        self._locks: Dict[str, asyncio.Lock] = {}
        self._rename_listeners: List[RenameListener] = []

    def _resolve(self, locator: str) -> Path:
        root = self.root.resolve()
        path = (root / locator).resolve()
        if path != root and root not in path.parents:
            raise DocumentNotFound(f"Document '{locator}' is outside of {self.root}")
        return path

    def lock(self, locator: str) -> asyncio.Lock:
        key = str(self._resolve(locator))
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def read(self, locator: str) -> str:
        path = self._resolve(locator)
        if not path.is_file():
            raise DocumentNotFound(f"Document '{locator}' does not exist")
        return await asyncio.to_thread(path.read_text, encoding="utf-8")

    async def write(self, locator: str, text: str) -> None:
        path = self._resolve(locator)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, text, encoding="utf-8")
        except OSError as exc:
            raise HostWriteError(f"Document '{locator}' could not be written: {exc}") from exc

    def list_documents(self) -> List[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob(f"*{self.suffix}")
            if path.is_file()
        )

    def on_rename(self, listener: RenameListener) -> None:
        self._rename_listeners.append(listener)

    async def rename(self, old: str, new: str) -> None:
        source = self._resolve(old)
        target = self._resolve(new)
        if not source.is_file():
            raise DocumentNotFound(f"Document '{old}' does not exist")
        async with self.lock(old):
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                source.rename(target)
            except OSError as exc:
                raise HostWriteError(f"Document '{old}' could not be moved: {exc}") from exc
        for listener in list(self._rename_listeners):
            listener(old, new)


class LocatorRef:
    """Current location of a document, following renames reported by the store."""

    def __init__(self, store: FileDocumentStore, locator: str) -> None:
        self._locator = locator
        store.on_rename(self._follow)

    def _follow(self, old: str, new: str) -> None:
        if self._locator == old:
            self._locator = new

    def __call__(self) -> str:
        return self._locator


async def write_tracker(store: DocumentStore, locator: str, tracker: Tracker, bounds: SectionBounds) -> None:
    """Replace the tracker block at ``bounds``; the caller holds ``store.lock(locator)``."""
    content = await store.read(locator)
    try:
        updated = replace_section(content, bounds, dump_tracker(tracker))
    except ValueError as exc:
        raise HostWriteError(str(exc)) from exc
    await store.write(locator, updated)
    logger.info("Saved tracker at lines %d-%d of %s", bounds.line_start, bounds.line_end, locator)


async def save_tracker(store: DocumentStore, locator: str, tracker: Tracker, bounds: SectionBounds) -> None:
    """Replace the tracker block at ``bounds`` with a snapshot of ``tracker``.

    The bounds come from the caller's last read; if the document changed in
    between, the wrong lines are replaced. Read-modify-write callers should
    hold the lock across the read and use :func:`write_tracker` instead.
    """
    async with store.lock(locator):
        await write_tracker(store, locator, tracker, bounds)
