"""
Tests for UndoManager.
"""
from pyarranger.core.undo_manager import UndoManager


class TestUndoManager:
    """Tests for UndoManager functionality."""

    def test_initial_state(self, undo_manager):
        assert not undo_manager.can_undo
        assert not undo_manager.can_redo
        assert len(undo_manager) == 0

    def test_push_snapshot(self, undo_manager):
        undo_manager.push("Test", (1,))
        assert undo_manager.can_undo
        assert not undo_manager.can_redo
        assert undo_manager.undo_description == "Test"

    def test_undo_returns_pushed_snapshot(self, undo_manager):
        undo_manager.push("Edit", ("before",))
        assert undo_manager.undo(("after",)) == ("before",)

    def test_redo_returns_state_at_undo_time(self, undo_manager):
        undo_manager.push("Edit", ("before",))
        undo_manager.undo(("after",))
        assert undo_manager.redo(("before",)) == ("after",)
        assert undo_manager.can_undo

    def test_undo_moves_to_redo_stack(self, undo_manager):
        undo_manager.push("Test", ())
        undo_manager.undo(())
        assert not undo_manager.can_undo
        assert undo_manager.can_redo
        assert undo_manager.redo_description == "Test"

    def test_new_push_clears_redo(self, undo_manager):
        undo_manager.push("Action 1", (1,))
        undo_manager.undo((2,))
        assert undo_manager.can_redo

        undo_manager.push("Action 2", (1,))
        assert not undo_manager.can_redo

    def test_max_depth_drops_oldest(self):
        manager = UndoManager(max_depth=3)
        for i in range(5):
            manager.push(f"Action {i}", (i,))

        assert len(manager) == 3
        assert manager.undo(None) == (4,)
        assert manager.undo(None) == (3,)
        assert manager.undo(None) == (2,)
        assert manager.undo(None) is None

    def test_undo_empty_returns_none(self, undo_manager):
        assert undo_manager.undo(()) is None

    def test_redo_empty_returns_none(self, undo_manager):
        assert undo_manager.redo(()) is None

    def test_clear(self, undo_manager):
        undo_manager.push("Test 1", (1,))
        undo_manager.push("Test 2", (2,))
        undo_manager.undo((3,))
        undo_manager.clear()
        assert not undo_manager.can_undo
        assert not undo_manager.can_redo
