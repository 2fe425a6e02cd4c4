"""Tests for transactional updates and change propagation."""

import gc
import logging

import pytest

from trellis import Collection, GenericAttribute, Record, TransactionOptions
from trellis.record import begin
from trellis.transactions import Transaction, commit, owner_key_of


class Tracked(Record):
    """Record that records the notifications it receives."""

    def initialize(self, values, options):
        self.calls = []
        self.forced = []

    def _notify_change_attr(self, key, options):
        self.calls.append(("attr", key))
        super()._notify_change_attr(key, options)

    def _notify_change(self, options):
        self.calls.append(("change",))
        super()._notify_change(options)

    def force_attribute_change(self, key, options=None):
        self.forced.append(key)
        super().force_attribute_change(key, options)


class Child(Tracked):
    attributes = {"n": 1}


class Parent(Tracked):
    attributes = {"child": Child, "title": ""}


class Item(Tracked):
    attributes = {"id": None, "label": ""}


class Items(Collection):
    model = Item


class Folder(Tracked):
    attributes = {"items": Items, "name": ""}


def changed_sibling(next, prev, record):
    # Skip the construction-time call
    if prev is not None:
        record.set({"b": next * 10})


class Linked(Tracked):
    attributes = {
        "a": GenericAttribute(0, change_handlers=[changed_sibling]),
        "b": 0,
    }


@pytest.fixture
def parent():
    return Parent()


class TestScopes:
    """Tests for opening and closing transaction scopes."""

    def test_reentrancy_guard(self, parent):
        """Only the first begin() owns the scope."""
        assert begin(parent) is True
        assert begin(parent) is False

        commit(parent)
        assert parent._transaction is False

    def test_snapshot_taken_once_per_scope(self):
        child = Child()

        assert begin(child) is True
        child.attributes["n"] = 5
        assert begin(child) is False
        assert child.previous("n") == 1

        commit(child)

    def test_transaction_is_abstract(self):
        with pytest.raises(TypeError):
            Transaction()

    def test_scope_closed_after_set(self, parent):
        parent.set({"title": "x"})
        assert parent._transaction is False
        assert parent.child._transaction is False


class TestSet:
    """Tests for multi-attribute updates."""

    def test_end_to_end_bubbling(self, parent):
        """A keyed child's change notifies the child, then the owner under the child's key."""
        child = parent.child

        child.set({"n": 2})

        assert child.n == 2
        assert child.calls == [("attr", "n"), ("change",)]
        assert parent.forced == ["child"]
        assert parent.calls == [("attr", "child"), ("change",)]
        assert parent.attributes["child"] is child

    def test_changes_notified_in_payload_order(self):
        class Pair(Tracked):
            attributes = {"x": 0, "y": 0}

        pair = Pair()
        pair.set({"y": 1, "x": 2})

        assert pair.calls == [("attr", "y"), ("attr", "x"), ("change",)]

    def test_empty_update_is_noop(self, parent):
        assert parent.create_transaction({}) is None

        parent.set({})

        assert parent.calls == []
        assert parent._is_dirty is False
        assert parent._transaction is False

    def test_equal_values_are_noop(self, parent):
        parent.child.set({"n": 1})

        assert parent.child.calls == []
        assert parent.calls == []
        assert parent.forced == []

    def test_none_values_ignored(self, parent):
        assert parent.set(None) is parent
        assert parent.calls == []

    def test_set_returns_self(self, parent):
        assert parent.set({"title": "x"}) is parent

    def test_unknown_attribute_warns_and_is_skipped(self, parent, caplog):
        with caplog.at_level(logging.WARNING, logger="trellis"):
            parent.set({"bogus": 1, "title": "kept"})

        assert "Unknown Attribute" in caplog.text
        assert "bogus" in caplog.text
        assert parent.title == "kept"
        assert "bogus" not in parent.attributes

    def test_incompatible_payload_rejected(self, parent, caplog):
        with caplog.at_level(logging.ERROR, logger="trellis"):
            result = parent.create_transaction(["title", "x"])

        assert result is None
        assert "Type Error" in caplog.text
        assert parent.title == ""
        assert parent._transaction is False
        assert parent.calls == []

    def test_silent_update(self, parent):
        parent.child.set({"n": 5}, TransactionOptions(silent=True))

        assert parent.child.n == 5
        assert parent.child.calls == []
        assert parent.calls == []
        assert parent.child._is_dirty is False


class TestDeepUpdate:
    """Tests for merge versus replace semantics."""

    def test_mapping_merges_into_existing_record(self, parent):
        child = parent.child

        parent.set({"child": {"n": 3}})

        assert parent.child is child
        assert child.n == 3
        assert child.calls == [("attr", "n"), ("change",)]
        assert parent.calls == [("attr", "child"), ("change",)]

    def test_nested_commit_does_not_bubble(self, parent):
        """The owner notifies the key itself; the child does not report back."""
        parent.set({"child": {"n": 3}})
        assert parent.forced == []

    def test_noop_merge_is_not_a_change(self, parent):
        parent.set({"child": {"n": 1}})

        assert parent.calls == []
        assert parent.child.calls == []

    def test_record_instance_replaces(self, parent):
        old = parent.child
        new = Child({"n": 9})

        parent.set({"child": new})

        assert parent.child is new
        assert parent.calls == [("attr", "child"), ("change",)]
        assert new.get_owner() is parent
        assert new._owner_key == "child"
        assert old.get_owner() is None

    def test_reset_forces_replacement(self, parent):
        old = parent.child

        parent.set({"child": {"n": 4}}, TransactionOptions(reset=True))

        assert parent.child is not old
        assert parent.child.n == 4
        assert parent.child.get_owner() is parent

    def test_property_setter_merges(self, parent):
        child = parent.child

        parent.child = {"n": 8}

        assert parent.child is child
        assert child.n == 8
        assert child.calls == [("attr", "n"), ("change",)]
        assert parent.calls == [("attr", "child"), ("change",)]
        assert parent.forced == []


class TestSetAttribute:
    """Tests for single-attribute updates through accessors."""

    def test_setter_notifies_and_bubbles(self, parent):
        parent.child.n = 7

        assert parent.child.calls == [("attr", "n"), ("change",)]
        assert parent.calls == [("attr", "child"), ("change",)]

    def test_setter_same_value_is_noop(self, parent):
        parent.child.n = 1
        assert parent.child.calls == []

    def test_change_handler_receives_updated_record(self):
        seen = []

        class Watched(Record):
            attributes = {
                "value": GenericAttribute(0, change_handlers=[lambda n, p, r: seen.append(r)]),
            }

        record = Watched()
        seen.clear()

        record.value = 1

        assert seen == [record]


class TestBatches:
    """Tests for grouping several updates into one transaction."""

    def test_one_notification_per_key(self, parent):
        def update(record):
            record.set({"title": "a"})
            record.set({"title": "b"})
            record.title = "c"
            record.child.set({"n": 2})
            record.child.set({"n": 3})

        parent.transaction(update)

        assert parent.title == "c"
        assert parent.calls == [("attr", "title"), ("attr", "child"), ("change",)]

    def test_children_notify_per_call(self, parent):
        with parent.batch():
            parent.child.n = 2
            parent.child.n = 3

        assert parent.child.calls == [("attr", "n"), ("change",), ("attr", "n"), ("change",)]
        assert parent.forced == ["child", "child"]
        assert parent.calls == [("attr", "child"), ("change",)]

    def test_nested_batches_share_scope(self, parent):
        with parent.batch():
            with parent.batch():
                parent.title = "x"
            assert parent.calls == []

        assert parent.calls == [("attr", "title"), ("change",)]

    def test_empty_batch_is_noop(self, parent):
        with parent.batch():
            pass

        assert parent.calls == []
        assert parent._transaction is False

    def test_exception_closes_scope(self, parent):
        with pytest.raises(RuntimeError):
            with parent.batch():
                parent.title = "x"
                raise RuntimeError("boom")

        assert parent._transaction is False
        assert parent.title == "x"
        assert parent.calls == [("attr", "title"), ("change",)]

    def test_change_handler_updates_sibling(self):
        """Reentrant updates from a change handler join the running transaction."""
        linked = Linked()

        linked.set({"a": 1})

        assert linked.b == 10
        assert linked.calls == [("attr", "b"), ("attr", "a"), ("change",)]


def reject_negative(value, options, prev, record):
    if value < 0:
        raise ValueError("negative")
    return value


class Note(Record):
    attributes = {"text": "", "count": GenericAttribute(0, transforms=[reject_negative])}


class Notebook(Tracked):
    attributes = {"note": Note, "title": ""}


@pytest.fixture
def note():
    return Note()


def recorded(record):
    events = []
    record.on("change", lambda record, options: events.append(record.text))
    return events


class TestFailures:
    """Tests that a raising update closes its scope and later updates still notify."""

    def test_undeclared_id_setter(self, note):
        with pytest.raises(KeyError):
            note.id = 5

        assert note._transaction is False

        events = recorded(note)
        note.set({"text": "after"})

        assert events == ["after"]

    def test_raising_listener(self, note):
        def fail(record, value, options):
            raise RuntimeError("listener")

        note.on("change:text", fail)
        with pytest.raises(RuntimeError):
            note.set({"text": "a"})

        assert note._transaction is False
        assert note.text == "a"

        note.off("change:text", fail)
        events = recorded(note)
        note.set({"text": "b"})

        assert events == ["b"]

    def test_raising_transform_in_set(self, note):
        with pytest.raises(ValueError):
            note.set({"text": "kept", "count": -1})

        assert note._transaction is False
        assert note.text == "kept"
        assert note.count == 0

        events = recorded(note)
        note.set({"count": 2})

        assert events == ["kept"]

    def test_raising_transform_in_setter(self, note):
        with pytest.raises(ValueError):
            note.count = -1

        assert note._transaction is False

        events = recorded(note)
        note.count = 1

        assert events == [""]

    def test_raising_deep_update_closes_every_scope(self):
        notebook = Notebook()

        with pytest.raises(ValueError):
            notebook.set({"title": "x", "note": {"count": -1}})

        assert notebook._transaction is False
        assert notebook.note._transaction is False
        assert notebook.calls == []

        notebook.set({"note": {"count": 3}})

        assert notebook.note.count == 3
        assert notebook.calls == [("attr", "note"), ("change",)]

    def test_raising_listener_inside_batch(self, note):
        def fail(record, options):
            raise RuntimeError("listener")

        note.on("change", fail)
        with pytest.raises(RuntimeError):
            with note.batch():
                note.text = "a"

        assert note._transaction is False

        note.off("change", fail)
        events = recorded(note)
        note.text = "b"

        assert events == ["b"]


class TestOwnership:
    """Tests for owner back references and upward propagation."""

    def test_keyed_owner(self, parent):
        assert parent.child.get_owner() is parent
        assert owner_key_of(parent.child) == "child"

    def test_collection_member_skips_collection(self):
        folder = Folder({"items": [{"id": 1}, {"id": 2}]})
        item = folder.items.get(1)

        assert item._owner is folder.items
        assert item._owner_key is None
        assert item.get_owner() is folder
        assert owner_key_of(item) == "items"

    def test_collection_member_change_bubbles_past_collection(self):
        folder = Folder({"items": [{"id": 1}]})
        item = folder.items.get(1)

        item.set({"label": "x"})

        assert item.calls == [("attr", "label"), ("change",)]
        assert folder.forced == ["items"]
        assert folder.calls == [("attr", "items"), ("change",)]

    def test_unowned_collection_member(self):
        items = Items([{"id": 1}])
        item = items.get(1)

        item.set({"label": "x"})

        assert item.get_owner() is None
        assert item.calls == [("attr", "label"), ("change",)]

    def test_owner_reference_is_weak(self):
        child = Child()
        holder = Parent({"child": child})
        assert child.get_owner() is holder

        del holder
        gc.collect()

        assert child.get_owner() is None
        child.set({"n": 2})
        assert child.n == 2

    def test_owned_elsewhere_is_shared(self, parent, caplog):
        child = parent.child

        with caplog.at_level(logging.WARNING, logger="trellis"):
            other = Parent({"child": child})

        assert "Ownership" in caplog.text
        assert other.child is child
        assert child.get_owner() is parent

    def test_bubbles_through_several_levels(self):
        class Root(Tracked):
            attributes = {"parent": Parent}

        root = Root()

        root.parent.child.n = 5

        assert root.parent.calls == [("attr", "child"), ("change",)]
        assert root.calls == [("attr", "parent"), ("change",)]

    def test_force_attribute_change(self, parent):
        parent.force_attribute_change("title")

        assert parent.calls == [("attr", "title"), ("change",)]

    def test_force_attribute_change_silent(self, parent):
        parent.force_attribute_change("title", TransactionOptions(silent=True))

        assert parent.calls == []
