import unittest

from core.classifier import build_simulated_payload
from core.editor import DraftEditingEngine, EditHistory, format_reference, mode_for
from models import (
    ChapterDraft,
    GenerationResult,
    MergeMode,
    OperationKind,
    ReferenceKind,
    WorldbuildingReference,
)


def _result(content, kind=OperationKind.GENERATE, ticket=None) -> GenerationResult:
    return GenerationResult(kind=kind, content=content, provider_label="GPT (OpenAI) (gpt-4o)", draft_ticket=ticket)


class EditHistoryTest(unittest.TestCase):
    def test_empty_history(self):
        history = EditHistory()
        self.assertEqual(history.cursor, -1)
        self.assertIsNone(history.current)
        self.assertIsNone(history.undo())
        self.assertIsNone(history.redo())

    def test_push_identical_value_is_noop(self):
        history = EditHistory()
        self.assertTrue(history.push("a"))
        self.assertFalse(history.push("a"))
        self.assertEqual(len(history), 1)

    def test_push_after_undo_truncates_redo_branch(self):
        history = EditHistory()
        for value in ("a", "b", "c"):
            history.push(value)
        self.assertEqual(history.undo(), "b")
        self.assertEqual(history.undo(), "a")
        history.push("d")
        self.assertEqual(len(history), 2)
        self.assertFalse(history.can_redo)
        self.assertIsNone(history.redo())
        self.assertEqual(history.current, "d")

    def test_undo_stops_at_first_entry(self):
        history = EditHistory()
        history.push("only")
        self.assertFalse(history.can_undo)
        self.assertIsNone(history.undo())
        self.assertEqual(history.cursor, 0)


class DraftEditingEngineTest(unittest.TestCase):
    def _engine(self, content: str = "") -> DraftEditingEngine:
        return DraftEditingEngine(ChapterDraft(chapter_number="3", title="The Gate", content=content))

    def test_set_content_does_not_commit(self):
        engine = self._engine("start")
        engine.set_content("start plus typing")
        self.assertEqual(len(engine.history), 1)
        self.assertTrue(engine.is_dirty)
        self.assertTrue(engine.commit())
        self.assertFalse(engine.commit())
        self.assertEqual(len(engine.history), 2)

    def test_undo_restores_previous_commit(self):
        engine = self._engine("one")
        engine.set_content("two")
        engine.commit()
        self.assertTrue(engine.undo())
        self.assertEqual(engine.content, "one")

    def test_redo_after_undo_restores_pre_undo_content(self):
        engine = self._engine("one")
        engine.set_content("two")
        engine.commit()
        engine.undo()
        self.assertTrue(engine.redo())
        self.assertEqual(engine.content, "two")

    def test_undo_keeps_uncommitted_typing_reachable(self):
        engine = self._engine("committed")
        engine.set_content("typed but not committed")
        engine.undo()
        self.assertEqual(engine.content, "committed")
        engine.redo()
        self.assertEqual(engine.content, "typed but not committed")

    def test_redo_keeps_uncommitted_typing(self):
        engine = self._engine("A")
        engine.set_content("B")
        engine.commit()
        engine.undo()
        engine.set_content("A typed by user")
        self.assertFalse(engine.redo())
        self.assertEqual(engine.content, "A typed by user")
        self.assertEqual(engine.history.current, "A typed by user")
        engine.undo()
        self.assertEqual(engine.content, "A")

    def test_commit_after_undo_discards_redo(self):
        engine = self._engine("a")
        engine.set_content("b")
        engine.commit()
        engine.undo()
        engine.set_content("c")
        engine.commit()
        self.assertFalse(engine.redo())
        self.assertEqual(engine.content, "c")

    def test_out_of_range_undo_redo_are_noops(self):
        engine = self._engine("x")
        self.assertFalse(engine.undo())
        self.assertFalse(engine.redo())
        self.assertEqual(engine.content, "x")

    def test_replace_mode_overwrites_and_is_undoable(self):
        engine = self._engine("old text")
        self.assertTrue(engine.apply_generation_result(_result("new text"), MergeMode.REPLACE))
        self.assertEqual(engine.content, "new text")
        engine.undo()
        self.assertEqual(engine.content, "old text")

    def test_append_mode_uses_double_newline(self):
        engine = self._engine("X")
        engine.apply_generation_result(_result("Y", kind=OperationKind.CONTINUE), MergeMode.APPEND)
        self.assertEqual(engine.content, "X\n\nY")

    def test_mode_is_derived_from_kind(self):
        engine = self._engine("X")
        engine.apply_generation_result(_result("Y", kind=OperationKind.CONTINUE))
        self.assertEqual(engine.content, "X\n\nY")
        engine.apply_generation_result(_result("Z", kind=OperationKind.IMPROVE))
        self.assertEqual(engine.content, "Z")

    def test_replace_preserves_pending_typing_in_history(self):
        engine = self._engine("saved")
        engine.set_content("saved and typed")
        engine.apply_generation_result(_result("generated"))
        engine.undo()
        self.assertEqual(engine.content, "saved and typed")

    def test_simulated_header_never_reaches_the_draft(self):
        engine = self._engine("")
        raw = build_simulated_payload("provider=openai reason=missing_api_key", "Placeholder")
        engine.apply_generation_result(_result(raw))
        self.assertEqual(engine.content, "Placeholder")

    def test_ideas_results_are_not_merged(self):
        engine = self._engine("keep")
        result = GenerationResult(kind=OperationKind.IDEAS, ideas=["a", "b"])
        self.assertFalse(engine.apply_generation_result(result))
        self.assertEqual(engine.content, "keep")
        self.assertEqual(len(engine.history), 1)

    def test_stale_ticket_is_discarded(self):
        engine = self._engine("first chapter")
        ticket = engine.ticket()
        engine.replace_draft(ChapterDraft(chapter_number="4", content="second chapter"))
        self.assertFalse(engine.apply_generation_result(_result("late"), ticket=ticket))
        self.assertEqual(engine.content, "second chapter")

    def test_result_ticket_is_honoured(self):
        engine = self._engine("draft")
        self.assertTrue(engine.apply_generation_result(_result("fresh", ticket=engine.ticket())))
        self.assertEqual(engine.content, "fresh")

    def test_closed_engine_ignores_results(self):
        engine = self._engine("draft")
        engine.close()
        self.assertTrue(engine.closed)
        self.assertFalse(engine.apply_generation_result(_result("late")))


class InsertReferenceTest(unittest.TestCase):
    def setUp(self):
        self.engine = DraftEditingEngine(ChapterDraft(content="Hello world"))
        self.ref = WorldbuildingReference(kind=ReferenceKind.CHARACTER, name="Lin", description="A wandering swordsman.")
        self.block = "\n\n[Lin]\nA wandering swordsman.\n"

    def test_insert_at_zero_prepends(self):
        self.engine.insert_reference(self.ref, 0)
        self.assertEqual(self.engine.content, self.block + "Hello world")

    def test_insert_at_end_appends(self):
        self.engine.insert_reference(self.ref, len("Hello world"))
        self.assertEqual(self.engine.content, "Hello world" + self.block)

    def test_insert_in_the_middle(self):
        self.engine.insert_reference(self.ref, 5)
        self.assertEqual(self.engine.content, "Hello" + self.block + " world")

    def test_offsets_are_clamped(self):
        self.engine.insert_reference(self.ref, -10)
        self.assertTrue(self.engine.content.startswith(self.block))
        engine = DraftEditingEngine(ChapterDraft(content="abc"))
        engine.insert_reference(self.ref, 999)
        self.assertEqual(engine.content, "abc" + self.block)

    def test_missing_offset_inserts_at_end(self):
        self.engine.insert_reference(self.ref)
        self.assertEqual(self.engine.content, "Hello world" + self.block)

    def test_insert_is_undoable(self):
        self.engine.insert_reference(self.ref, 0)
        self.engine.undo()
        self.assertEqual(self.engine.content, "Hello world")

    def test_templates_per_kind(self):
        world = WorldbuildingReference(kind=ReferenceKind.WORLD, name="Azure Realm", description="Floating isles.")
        magic = WorldbuildingReference(kind=ReferenceKind.MAGIC, name="Runes", description="Carved power.")
        cultivation = WorldbuildingReference(
            kind=ReferenceKind.CULTIVATION,
            name="Nine Heavens",
            levels=["Qi Gathering", "Foundation", "Core Formation"],
        )
        self.assertEqual(format_reference(world), "\n\n[World: Azure Realm]\nFloating isles.\n")
        self.assertEqual(format_reference(magic), "\n\n[Magic System: Runes]\nCarved power.\n")
        self.assertEqual(
            format_reference(cultivation),
            "\n\n[Cultivation: Nine Heavens]\nLevels: Qi Gathering, Foundation, Core Formation\n",
        )

    def test_cultivation_without_levels(self):
        ref = WorldbuildingReference(kind=ReferenceKind.CULTIVATION, name="Empty")
        self.assertEqual(format_reference(ref), "\n\n[Cultivation: Empty]\nLevels: \n")


class StatsTest(unittest.TestCase):
    def test_empty_content(self):
        stats = DraftEditingEngine().stats()
        self.assertEqual(
            (stats.words, stats.characters, stats.paragraphs, stats.reading_time),
            (0, 0, 0, 0),
        )

    def test_three_words(self):
        stats = DraftEditingEngine(ChapterDraft(content="a b c")).stats()
        self.assertEqual(stats.words, 3)
        self.assertEqual(stats.characters, 5)
        self.assertEqual(stats.paragraphs, 1)
        self.assertEqual(stats.reading_time, 1)

    def test_reading_time_rounds_up(self):
        content = " ".join(["word"] * 450)
        self.assertEqual(DraftEditingEngine(ChapterDraft(content=content)).stats().reading_time, 3)

    def test_paragraphs_ignore_blank_segments(self):
        content = "First para.\n\n\n\nSecond para.\n  \nThird.\n\n   "
        stats = DraftEditingEngine(ChapterDraft(content=content)).stats()
        self.assertEqual(stats.paragraphs, 3)

    def test_stats_track_live_content(self):
        engine = DraftEditingEngine()
        engine.set_content("one two")
        self.assertEqual(engine.stats().words, 2)
        engine.set_content("one two three four")
        self.assertEqual(engine.stats().words, 4)


class ModeForTest(unittest.TestCase):
    def test_every_kind_has_a_mode_decision(self):
        self.assertIs(mode_for(OperationKind.GENERATE), MergeMode.REPLACE)
        self.assertIs(mode_for(OperationKind.IMPROVE), MergeMode.REPLACE)
        self.assertIs(mode_for(OperationKind.CONTINUE), MergeMode.APPEND)
        self.assertIsNone(mode_for(OperationKind.IDEAS))


if __name__ == "__main__":
    unittest.main()
