"""Tests for the workspace coordinating pages, selection and autosave."""

import threading

import pytest

from pagenote.errors import InvalidParentError, PageCycleError, PersistenceError
from pagenote.workspace.autosave import SaveState
from pagenote.workspace.service import Workspace
from tests.helpers import BlockingStore, FakePageStore, make_page


class TestLoad:
    def test_load_builds_tree(self, workspace, store):
        store.pages = {page.id: page for page in [make_page("a"), make_page("b", parent_id="a", minutes=1)]}

        pages = workspace.load()

        assert {page.id for page in pages} == {"a", "b"}
        assert [page.id for page in workspace.tree.children_of("a")] == ["b"]

    def test_load_failure_reported_not_raised(self, workspace, store, reported_errors):
        store.fail_on.add("list_pages")

        assert workspace.load() is None
        assert len(reported_errors) == 1
        assert isinstance(reported_errors[0], PersistenceError)


class TestCreate:
    def test_blank_title_defaults_to_untitled(self, workspace, store):
        page = workspace.create_page(title="   ")

        assert page.title == "Untitled"
        assert store.calls_named("create_page") == [("create_page", "Untitled", None)]

    def test_child_creation_expands_parent_and_selects_child(self, workspace):
        parent = workspace.create_page(title="A")
        child = workspace.create_page(parent_id=parent.id, title="B")

        assert workspace.selection.is_expanded(parent.id)
        assert workspace.selection.active_id == child.id
        assert workspace.editor.session.page_id == child.id
        assert workspace.tree.children_of(parent.id) == [child]

    def test_unknown_parent_rejected(self, workspace, store):
        with pytest.raises(InvalidParentError):
            workspace.create_page(parent_id="missing")
        assert store.calls_named("create_page") == []

    def test_failure_leaves_collection_untouched(self, workspace, store, reported_errors):
        store.fail_on.add("create_page")

        assert workspace.create_page(title="A") is None
        assert workspace.pages == []
        assert workspace.selection.active_id is None
        assert len(reported_errors) == 1


class TestDelete:
    def test_deleting_active_page_clears_selection(self, workspace):
        page = workspace.create_page(title="A")

        assert workspace.delete_page(page.id)
        assert workspace.selection.active_id is None
        assert workspace.editor.session is None
        assert page.id not in workspace.tree

    def test_deleting_other_page_keeps_selection(self, workspace):
        other = workspace.create_page(title="Other")
        active = workspace.create_page(title="Active")

        assert workspace.delete_page(other.id)
        assert workspace.selection.active_id == active.id
        assert workspace.editor.session.page_id == active.id

    def test_children_become_orphans(self, workspace):
        parent = workspace.create_page(title="A")
        child = workspace.create_page(parent_id=parent.id, title="B")

        workspace.delete_page(parent.id)

        assert workspace.tree.orphans() == [child]
        assert workspace.tree.roots() == []

    def test_failed_delete_keeps_page(self, workspace, store, reported_errors):
        page = workspace.create_page(title="A")
        store.fail_on.add("delete_page")

        assert not workspace.delete_page(page.id)
        assert page.id in workspace.tree
        assert workspace.selection.active_id == page.id
        assert len(reported_errors) == 1


class TestMove:
    def test_move_under_descendant_rejected(self, workspace, store):
        a = workspace.create_page(title="A")
        b = workspace.create_page(parent_id=a.id, title="B")

        with pytest.raises(PageCycleError):
            workspace.move_page(a.id, b.id)
        with pytest.raises(PageCycleError):
            workspace.move_page(a.id, a.id)
        assert store.calls_named("move_page") == []

    def test_move_to_root_and_back(self, workspace):
        a = workspace.create_page(title="A")
        b = workspace.create_page(parent_id=a.id, title="B")

        moved = workspace.move_page(b.id, None)
        assert moved.parent_id is None
        assert [page.id for page in workspace.tree.roots()] == [a.id, b.id]

        workspace.selection.collapse(a.id)
        workspace.move_page(b.id, a.id)
        assert workspace.tree.children_of(a.id) == [workspace.tree.get(b.id)]
        assert workspace.selection.is_expanded(a.id)

    def test_move_to_unknown_parent(self, workspace):
        a = workspace.create_page(title="A")

        with pytest.raises(InvalidParentError):
            workspace.move_page(a.id, "missing")


class TestEditing:
    def test_child_autosave_scenario(self, workspace, store, scheduler):
        a = workspace.create_page(title="A")
        b = workspace.create_page(parent_id=a.id, title="B")
        assert workspace.selection.is_expanded(a.id)
        assert workspace.selection.active_id == b.id

        workspace.edit("content", "hello")
        scheduler.advance(2.5)

        assert store.calls_named("update_page") == [("update_page", b.id, "B", "hello")]
        assert workspace.tree.get(b.id).content == "hello"

    def test_switching_pages_abandons_pending_autosave(self, user, scheduler):
        store = FakePageStore(
            [
                make_page("x", title="X", content="old"),
                make_page("y", title="Y", content="", minutes=1),
            ]
        )
        workspace = Workspace(store, user, scheduler=scheduler)
        workspace.load()
        workspace.select_page("x")
        workspace.edit("content", "new")
        scheduler.advance(1.0)

        workspace.select_page("y")
        scheduler.advance(5.0)

        assert store.calls_named("update_page") == []
        assert store.pages["x"].content == "old"
        session = workspace.select_page("x")
        assert session.content == "old"
        workspace.close()

    def test_in_flight_write_for_closed_page_updates_background_record(self, user, scheduler):
        store = BlockingStore(
            [
                make_page("x", title="X", content="old"),
                make_page("y", title="Y", content="why", minutes=1),
            ]
        )
        workspace = Workspace(store, user, scheduler=scheduler)
        workspace.load()
        workspace.select_page("x")
        workspace.edit("content", "new")

        autosave = threading.Thread(target=scheduler.advance, args=(2.0,))
        autosave.start()
        assert store.entered.wait(5)
        session = workspace.select_page("y")
        store.release.set()
        autosave.join(5)

        assert workspace.tree.get("x").content == "new"
        assert workspace.editor.session is session
        assert session.page_id == "y"
        assert session.content == "why"
        assert session.persisted_content == "why"
        assert not session.dirty
        assert workspace.editor.status.state is SaveState.IDLE
        workspace.close()

    def test_reselecting_open_page_keeps_working_copy(self, workspace, store, scheduler):
        page = workspace.create_page(title="A")
        workspace.edit("content", "draft")

        session = workspace.select_page(page.id)
        scheduler.advance(2.0)

        assert session.content == "draft"
        assert store.calls_named("update_page") == [("update_page", page.id, "A", "draft")]

    def test_manual_save_updates_background_record(self, workspace):
        page = workspace.create_page(title="A")
        workspace.edit("title", "Renamed")

        saved = workspace.save()

        assert saved.title == "Renamed"
        assert workspace.tree.get(page.id).title == "Renamed"
        assert workspace.active_page.title == "Renamed"

    def test_select_unknown_page(self, workspace):
        with pytest.raises(KeyError):
            workspace.select_page("missing")

    def test_select_none_closes_editor(self, workspace):
        workspace.create_page(title="A")
        workspace.select_page(None)

        assert workspace.editor.session is None
        assert workspace.active_page is None

    def test_toggle_expanded(self, workspace):
        page = workspace.create_page(title="A")

        assert workspace.toggle_expanded(page.id) is True
        assert workspace.toggle_expanded(page.id) is False

    def test_close_resets_session_state(self, workspace, scheduler, store):
        page = workspace.create_page(title="A")
        workspace.toggle_expanded(page.id)
        workspace.edit("content", "pending")

        workspace.close()
        scheduler.advance(5.0)

        assert workspace.selection.active_id is None
        assert workspace.selection.expanded == frozenset()
        assert store.calls_named("update_page") == []
