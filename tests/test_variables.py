"""
Tests for the Variable Store

Copy-on-write semantics, declared defaults and diagnostics for
undeclared names.
"""

from funnel_logic.model import VariableDeclaration, VariableType
from funnel_logic.variables import VariableStore


def build_store() -> VariableStore:
    return VariableStore.initialize([
        VariableDeclaration("score", VariableType.NUMBER, 0),
        VariableDeclaration("plan", VariableType.STRING, "free"),
        VariableDeclaration("vip", VariableType.BOOLEAN, False),
    ])


class TestInitialize:

    def test_seeded_with_defaults(self):
        store = build_store()
        assert store.values() == {"score": 0, "plan": "free", "vip": False}

    def test_unknown_name_is_absent(self):
        store = build_store()
        assert store.get("missing") is None
        assert "missing" not in store
        assert "score" in store


class TestSet:

    def test_set_returns_new_store(self):
        """The original store is left untouched."""
        store = build_store()
        updated = store.set("score", 10)
        assert updated.get("score") == 10
        assert store.get("score") == 0

    def test_values_is_a_copy(self):
        store = build_store()
        values = store.values()
        values["score"] = 99
        assert store.get("score") == 0

    def test_undeclared_write_is_noop_with_diagnostic(self):
        store = build_store()
        updated = store.set("unknown", 1)
        assert "unknown" not in updated
        assert updated.values() == store.values()
        assert len(updated.diagnostics) == 1
        assert "unknown" in updated.diagnostics[0]
        assert store.diagnostics == ()

    def test_apply_in_order(self):
        store = build_store().apply({"score": 5, "plan": "pro"})
        assert store.get("score") == 5
        assert store.get("plan") == "pro"

    def test_reset(self):
        store = build_store().set("score", 42).reset()
        assert store.get("score") == 0

    def test_equality_by_values(self):
        assert build_store().set("score", 1) == build_store().set("score", 1)
        assert build_store() != build_store().set("score", 1)
