"""Tests for EditSession: operations, invariants and undo/redo."""

import pytest

from conftest import FakeDecoder
from pdftoolkit.config import HISTORY_LIMIT
from pdftoolkit.editor.page_model import SourceDocument
from pdftoolkit.editor.session import EditSession, SessionState
from pdftoolkit.utils.exceptions import DecodeError, OperationRejected


def _layout(session):
    """(source_index, rotation_delta) of every page, in order."""
    return [(p.source_index, p.rotation_delta) for p in session.pages]


class TestLoading:
    def test_new_session_is_empty(self):
        session = EditSession(decoder=FakeDecoder())
        assert session.state is SessionState.EMPTY
        assert session.page_count == 0
        assert session.source is None

    def test_load_creates_one_page_per_source_page(self, session):
        assert session.state is SessionState.READY
        assert session.page_ids == ["p-1", "p-2", "p-3", "p-4", "p-5"]
        assert _layout(session) == [(i, 0) for i in range(5)]
        assert session.selection == ()
        assert not session.can_undo
        assert not session.can_redo

    def test_load_keeps_native_rotations_on_source(self):
        session = EditSession(decoder=FakeDecoder(3, (0, 90, 270)))
        source = session.load_bytes(b"data")
        assert source.native_rotations == (0, 90, 270)
        assert all(p.rotation_delta == 0 for p in session.pages)
        assert session.effective_rotation_of("p-2") == 90

    def test_load_source_document_directly(self):
        session = EditSession(decoder=FakeDecoder())
        session.load(SourceDocument(data=b"x", page_count=2, native_rotations=(0, 0)))
        assert session.page_count == 2

    def test_decode_failure_on_empty_session_stays_empty(self):
        session = EditSession(decoder=FakeDecoder())
        with pytest.raises(DecodeError):
            session.load_bytes(b"garbage")
        assert session.state is SessionState.EMPTY
        assert session.page_count == 0

    def test_decode_failure_keeps_previous_document(self, session, fake_decoder):
        session.toggle_select("p-1")
        session.rotate("cw")
        before = session.pages

        with pytest.raises(DecodeError):
            session.load_bytes(b"garbage")

        assert session.state is SessionState.READY
        assert session.pages == before
        assert session.can_undo

    def test_unexpected_decoder_error_becomes_decode_error(self, session, fake_decoder):
        fake_decoder.fail_with = RuntimeError("boom")
        with pytest.raises(DecodeError):
            session.load_bytes(b"data")
        assert session.state is SessionState.READY

    def test_reload_resets_edit_state_but_not_ids(self, session):
        session.select_all()
        session.delete_selected()

        session.load_bytes(b"other")
        assert session.page_count == 5
        assert session.selection == ()
        assert not session.can_undo
        # ids are never reused within a session
        assert session.page_ids == ["p-6", "p-7", "p-8", "p-9", "p-10"]

    def test_reload_releases_previous_handle(self, session, fake_decoder):
        first = session.source.handle
        session.load_bytes(b"other")
        assert fake_decoder.released == [first]
        assert session.source.handle is not first

    def test_failed_reload_keeps_handle_open(self, session, fake_decoder):
        with pytest.raises(DecodeError):
            session.load_bytes(b"garbage")
        assert fake_decoder.released == []

    def test_caller_supplied_handle_is_not_released(self, fake_decoder):
        session = EditSession(decoder=fake_decoder)
        handle = object()
        session.load(SourceDocument(data=b"x", page_count=1, native_rotations=(0,), handle=handle))
        session.load_bytes(b"data")
        assert fake_decoder.released == []

    def test_zero_page_document_loads(self):
        session = EditSession(decoder=FakeDecoder(page_count=0))
        session.load_bytes(b"data")
        assert session.state is SessionState.READY
        assert session.page_count == 0


class TestRejections:
    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.reorder([]),
            lambda s: s.toggle_select("p-1"),
            lambda s: s.select_all(),
            lambda s: s.rotate("cw"),
            lambda s: s.delete_selected(),
            lambda s: s.duplicate_selected(),
            lambda s: s.undo(),
            lambda s: s.redo(),
            lambda s: s.begin_export(),
        ],
    )
    def test_operations_rejected_before_load(self, call):
        session = EditSession(decoder=FakeDecoder())
        with pytest.raises(OperationRejected) as excinfo:
            call(session)
        assert excinfo.value.reason == OperationRejected.NOT_LOADED

    def test_mutations_rejected_while_exporting(self, session):
        session.select_all()
        session.begin_export()
        try:
            with pytest.raises(OperationRejected) as excinfo:
                session.rotate("cw")
            assert excinfo.value.reason == OperationRejected.BUSY
            with pytest.raises(OperationRejected):
                session.load_bytes(b"data")
            with pytest.raises(OperationRejected):
                session.begin_export()
        finally:
            session.finish_export()
        assert session.state is SessionState.READY
        assert all(p.rotation_delta == 0 for p in session.pages)


class TestReorder:
    def test_reorder_applies_permutation(self, session):
        assert session.reorder(["p-5", "p-4", "p-3", "p-2", "p-1"]) is True
        assert session.page_ids == ["p-5", "p-4", "p-3", "p-2", "p-1"]
        assert [p.source_index for p in session.pages] == [4, 3, 2, 1, 0]

    def test_reorder_keeps_multiset_of_pages(self, session):
        session.toggle_select("p-2")
        session.rotate("cw")
        before = sorted(session.pages, key=lambda p: p.id)
        session.reorder(["p-3", "p-1", "p-2", "p-5", "p-4"])
        assert sorted(session.pages, key=lambda p: p.id) == before

    def test_reorder_with_unknown_id_rejected(self, session):
        before = session.pages
        with pytest.raises(OperationRejected):
            session.reorder(["p-1", "p-2", "p-3", "p-4", "p-99"])
        assert session.pages == before
        assert not session.can_undo

    def test_reorder_with_missing_id_rejected(self, session):
        with pytest.raises(OperationRejected):
            session.reorder(["p-1", "p-2", "p-3", "p-4"])

    def test_reorder_with_repeated_id_rejected(self, session):
        with pytest.raises(OperationRejected):
            session.reorder(["p-1", "p-1", "p-3", "p-4", "p-5"])

    def test_identical_order_is_noop(self, session):
        assert session.reorder(session.page_ids) is False
        assert not session.can_undo

    def test_move_pages(self, session):
        assert session.move_pages(["p-4", "p-5"], 0) is True
        assert session.page_ids == ["p-4", "p-5", "p-1", "p-2", "p-3"]

    def test_move_pages_clamps_target(self, session):
        session.move_pages(["p-1"], 99)
        assert session.page_ids == ["p-2", "p-3", "p-4", "p-5", "p-1"]

    def test_move_pages_unknown_id(self, session):
        with pytest.raises(OperationRejected):
            session.move_pages(["p-42"], 0)

    def test_reorder_keeps_selection(self, session):
        session.toggle_select("p-1")
        session.reorder(["p-2", "p-1", "p-3", "p-4", "p-5"])
        assert session.selection == ("p-1",)


class TestSelection:
    def test_toggle_select(self, session):
        assert session.toggle_select("p-3") is True
        assert session.selection == ("p-3",)
        assert session.toggle_select("p-3") is False
        assert session.selection == ()

    def test_toggle_unknown_id_rejected(self, session):
        with pytest.raises(OperationRejected):
            session.toggle_select("p-99")

    def test_selection_reported_in_list_order(self, session):
        session.toggle_select("p-4")
        session.toggle_select("p-1")
        assert session.selection == ("p-1", "p-4")

    def test_select_all_and_deselect_all(self, session):
        session.select_all()
        assert len(session.selection) == 5
        session.deselect_all()
        assert session.selection == ()

    def test_select_odd_uses_current_positions(self, session):
        session.reorder(["p-5", "p-4", "p-3", "p-2", "p-1"])
        session.select_odd()
        assert session.selection == ("p-5", "p-3", "p-1")

    def test_select_even(self, session):
        session.select_even()
        assert session.selection == ("p-2", "p-4")

    def test_selection_does_not_touch_history(self, session):
        session.select_all()
        session.toggle_select("p-1")
        assert not session.can_undo


class TestRotate:
    def test_rotate_selected_clockwise(self, session):
        session.toggle_select("p-2")
        assert session.rotate("cw") is True
        assert _layout(session) == [(0, 0), (1, 90), (2, 0), (3, 0), (4, 0)]

    def test_rotate_counter_clockwise(self, session):
        session.toggle_select("p-1")
        session.rotate("ccw")
        assert session.pages[0].rotation_delta == 270

    def test_four_rotations_restore_page_list(self, session):
        session.select_all()
        before = session.pages
        for _ in range(4):
            session.rotate("cw")
        assert session.pages == before

    def test_rotate_without_selection_is_noop(self, session):
        assert session.rotate("cw") is False
        assert not session.can_undo

    def test_rotate_invalid_direction(self, session):
        session.select_all()
        with pytest.raises(ValueError):
            session.rotate("up")
        assert not session.can_undo

    def test_effective_rotation_composes_native(self):
        session = EditSession(decoder=FakeDecoder(2, (90, 0)))
        session.load_bytes(b"data")
        session.select_all()
        session.rotate("cw")
        assert session.effective_rotation_of("p-1") == 180
        assert session.effective_rotation_of("p-2") == 90


class TestDelete:
    def test_delete_removes_selected(self, session):
        session.toggle_select("p-2")
        session.toggle_select("p-4")
        assert session.delete_selected() is True
        assert session.page_ids == ["p-1", "p-3", "p-5"]
        assert session.selection == ()

    def test_delete_length_law(self, session):
        session.select_odd()
        selected = len(session.selection)
        before = session.page_count
        session.delete_selected()
        assert session.page_count == before - selected

    def test_delete_without_selection_is_noop(self, session):
        assert session.delete_selected() is False
        assert session.page_count == 5

    def test_delete_all_allowed_by_default(self, session):
        session.select_all()
        session.delete_selected()
        assert session.page_count == 0
        assert session.state is SessionState.READY

    def test_delete_all_refused_when_disabled(self, fake_decoder):
        session = EditSession(decoder=fake_decoder, allow_delete_all=False)
        session.load_bytes(b"data")
        session.select_all()
        with pytest.raises(OperationRejected):
            session.delete_selected()
        assert session.page_count == 5
        assert len(session.selection) == 5


class TestDuplicate:
    def test_duplicate_inserts_copy_after_anchor(self, session):
        session.toggle_select("p-2")
        session.rotate("cw")
        assert session.duplicate_selected() is True

        assert session.page_count == 6
        anchor, copy = session.pages[1], session.pages[2]
        assert anchor.id == "p-2"
        assert copy.id == "p-6"
        assert copy.source_index == anchor.source_index
        assert copy.rotation_delta == anchor.rotation_delta == 90

    def test_duplicate_count_law(self, session):
        session.toggle_select("p-1")
        session.toggle_select("p-5")
        session.duplicate_selected(count_per_page=3)
        assert session.page_count == 5 + 2 * 3
        assert [p.source_index for p in session.pages] == [0, 0, 0, 0, 1, 2, 3, 4, 4, 4, 4]

    def test_adjacent_selection_copies_follow_each_anchor(self, session):
        session.toggle_select("p-2")
        session.toggle_select("p-3")
        session.duplicate_selected(count_per_page=2)
        assert session.page_ids == ["p-1", "p-2", "p-6", "p-7", "p-3", "p-8", "p-9", "p-4", "p-5"]
        assert [p.source_index for p in session.pages] == [0, 1, 1, 1, 2, 2, 2, 3, 4]

    def test_copies_are_not_selected(self, session):
        session.toggle_select("p-3")
        session.duplicate_selected()
        assert session.selection == ("p-3",)

    def test_copies_have_fresh_unique_ids(self, session):
        session.select_all()
        session.duplicate_selected()
        assert len(set(session.page_ids)) == session.page_count == 10

    def test_invalid_count(self, session):
        session.select_all()
        with pytest.raises(ValueError):
            session.duplicate_selected(count_per_page=0)

    def test_duplicate_without_selection_is_noop(self, session):
        assert session.duplicate_selected() is False


class TestUndoRedo:
    def test_undo_restores_previous_list(self, session):
        before = session.pages
        session.select_all()
        session.rotate("cw")
        assert session.undo() is True
        assert session.pages == before

    def test_undo_then_redo_round_trip(self, session):
        session.toggle_select("p-1")
        session.rotate("cw")
        after = session.pages
        session.undo()
        assert session.redo() is True
        assert session.pages == after

    def test_new_mutation_clears_redo(self, session):
        session.toggle_select("p-1")
        session.rotate("cw")
        session.undo()
        assert session.can_redo

        session.toggle_select("p-2")
        session.rotate("cw")
        assert not session.can_redo
        assert session.redo() is False

    def test_undo_clears_selection(self, session):
        session.toggle_select("p-1")
        session.rotate("cw")
        session.undo()
        assert session.selection == ()

    def test_empty_history_is_noop(self, session):
        assert session.undo() is False
        assert session.redo() is False

    def test_history_capped(self, session):
        session.toggle_select("p-1")
        for _ in range(HISTORY_LIMIT + 5):
            session.rotate("cw")

        undone = 0
        while session.undo():
            undone += 1
        assert undone == HISTORY_LIMIT

    def test_select_rotate_delete_undo_scenario(self, session):
        session.toggle_select("p-2")
        session.toggle_select("p-4")
        session.rotate("cw")
        session.delete_selected()
        assert session.page_ids == ["p-1", "p-3", "p-5"]

        session.undo()
        assert session.page_ids == ["p-1", "p-2", "p-3", "p-4", "p-5"]
        assert _layout(session) == [(0, 0), (1, 90), (2, 0), (3, 90), (4, 0)]

        session.undo()
        assert _layout(session) == [(i, 0) for i in range(5)]
        assert not session.can_undo

    def test_undo_of_duplicate_does_not_reuse_ids(self, session):
        session.toggle_select("p-1")
        session.duplicate_selected()
        session.undo()
        session.toggle_select("p-1")
        session.duplicate_selected()
        assert "p-7" in session.page_ids
        assert "p-6" not in session.page_ids
