import logging
from typing import List, Optional, assert_never
from uuid import uuid4

from core.classifier import strip_simulated_header
from models import (
    ChapterDraft,
    DocumentStats,
    GenerationResult,
    MergeMode,
    OperationKind,
    ReferenceKind,
    WorldbuildingReference,
)
from utils.text_cleaner import count_words, estimate_reading_minutes, split_paragraphs

logger = logging.getLogger("novelforge.editor")

APPEND_SEPARATOR = "\n\n"


class EditHistory:
    """
    Linear undo history: an append-only list of content snapshots plus a
    cursor. ``cursor == -1`` means empty. Pushing after an undo drops the
    redo branch.
    """

    def __init__(self):
        self._entries: List[str] = []
        self._cursor: int = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    @property
    def current(self) -> Optional[str]:
        if self._cursor < 0:
            return None
        return self._entries[self._cursor]

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def push(self, content: str) -> bool:
        if self._cursor >= 0 and self._entries[self._cursor] == content:
            return False
        del self._entries[self._cursor + 1:]
        self._entries.append(content)
        self._cursor = len(self._entries) - 1
        return True

    def undo(self) -> Optional[str]:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> Optional[str]:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    def clear(self) -> None:
        self._entries = []
        self._cursor = -1


def mode_for(kind: OperationKind) -> Optional[MergeMode]:
    """How a result of ``kind`` merges into the draft; None when it does not."""
    if kind is OperationKind.GENERATE or kind is OperationKind.IMPROVE:
        return MergeMode.REPLACE
    if kind is OperationKind.CONTINUE:
        return MergeMode.APPEND
    if kind is OperationKind.IDEAS:
        return None
    assert_never(kind)


def format_reference(ref: WorldbuildingReference) -> str:
    kind = ref.kind
    if kind is ReferenceKind.CHARACTER:
        return f"\n\n[{ref.name}]\n{ref.description}\n"
    if kind is ReferenceKind.WORLD:
        return f"\n\n[World: {ref.name}]\n{ref.description}\n"
    if kind is ReferenceKind.MAGIC:
        return f"\n\n[Magic System: {ref.name}]\n{ref.description}\n"
    if kind is ReferenceKind.CULTIVATION:
        levels = ", ".join(ref.levels or [])
        return f"\n\n[Cultivation: {ref.name}]\nLevels: {levels}\n"
    assert_never(kind)


def compute_stats(content: str) -> DocumentStats:
    words = count_words(content)
    return DocumentStats(
        words=words,
        characters=len(content or ""),
        paragraphs=len(split_paragraphs(content)),
        reading_time=estimate_reading_minutes(words),
    )


class DraftEditingEngine:
    """
    Owns one chapter draft and its edit history.

    Typing goes through ``set_content`` and is checkpointed with ``commit``;
    every other mutation commits pending edits first and checkpoints its own
    result, so user-authored text stays reachable through undo/redo.
    """

    def __init__(self, draft: Optional[ChapterDraft] = None):
        self.draft = draft or ChapterDraft()
        self.history = EditHistory()
        self._ticket: Optional[str] = uuid4().hex
        self.history.push(self.draft.content)

    @property
    def content(self) -> str:
        return self.draft.content

    @property
    def closed(self) -> bool:
        return self._ticket is None

    @property
    def is_dirty(self) -> bool:
        return self.history.current != self.draft.content

    def ticket(self) -> Optional[str]:
        return self._ticket

    def set_content(self, text: str) -> None:
        self.draft.content = text or ""

    def commit(self) -> bool:
        return self.history.push(self.draft.content)

    def undo(self) -> bool:
        self.commit()
        previous = self.history.undo()
        if previous is None:
            return False
        self.draft.content = previous
        return True

    def redo(self) -> bool:
        # Committing pending typing after an undo drops the redo branch.
        self.commit()
        following = self.history.redo()
        if following is None:
            return False
        self.draft.content = following
        return True

    def apply_generation_result(
        self,
        result: GenerationResult,
        mode: Optional[MergeMode] = None,
        ticket: Optional[str] = None,
    ) -> bool:
        ticket = ticket if ticket is not None else result.draft_ticket
        if self.closed or (ticket is not None and ticket != self._ticket):
            logger.info(
                "stale generation result discarded kind=%s ticket=%s current=%s",
                result.kind.value,
                ticket,
                self._ticket,
            )
            return False

        mode = mode or mode_for(result.kind)
        if mode is None or result.content is None:
            return False

        addition = strip_simulated_header(result.content)
        self.commit()
        if mode is MergeMode.REPLACE:
            self.draft.content = addition
        elif mode is MergeMode.APPEND:
            self.draft.content = f"{self.draft.content}{APPEND_SEPARATOR}{addition}"
        else:
            assert_never(mode)
        self.commit()
        return True

    def insert_reference(self, ref: WorldbuildingReference, cursor_offset: Optional[int] = None) -> str:
        content = self.draft.content
        if cursor_offset is None:
            offset = len(content)
        else:
            offset = max(0, min(int(cursor_offset), len(content)))

        block = format_reference(ref)
        self.commit()
        self.draft.content = content[:offset] + block + content[offset:]
        self.commit()
        return block

    def stats(self) -> DocumentStats:
        return compute_stats(self.draft.content)

    def replace_draft(self, draft: ChapterDraft) -> str:
        self.draft = draft
        self.history.clear()
        self.history.push(draft.content)
        self._ticket = uuid4().hex
        return self._ticket

    def close(self) -> None:
        self._ticket = None
        self.history.clear()
