"""
Tests for bookkeeping.py.
Sidecar state and hoisting of legacy embedded keys.
"""
import pytest

from diagnosis.services.bookkeeping import (
    ModuleState,
    dump_module_state,
    hoist_bookkeeping,
    load_module_state,
    split_record,
)
from diagnosis.services.module_schema import MODULES


class TestSplitRecord:
    def test_embedded_keys_are_removed(self):
        answers, completed, step = split_record({"a": 1, "_completed": True, "_currentStep": 3})
        assert answers == {"a": 1}
        assert completed is True
        assert step == 3

    def test_clean_record(self):
        assert split_record({"a": 1}) == ({"a": 1}, None, None)

    def test_invalid_step_is_dropped(self):
        assert split_record({"_currentStep": -2})[2] is None
        assert split_record({"_currentStep": "3"})[2] is None

    @pytest.mark.parametrize("step", [float("inf"), float("-inf"), float("nan")])
    def test_non_finite_step_is_dropped(self, step):
        answers, completed, parsed = split_record({"a": 1, "_currentStep": step})
        assert answers == {"a": 1}
        assert parsed is None

    def test_non_dict(self):
        assert split_record("x") == ({}, None, None)


class TestModuleState:
    def test_from_garbage(self):
        assert ModuleState.from_dict(None) == ModuleState()
        assert ModuleState.from_dict({"high_water": 150, "step": True}) == ModuleState(high_water=100)

    def test_non_finite_values_from_storage(self):
        raw = {"step": float("inf"), "high_water": float("nan")}
        assert ModuleState.from_dict(raw) == ModuleState()

    def test_legacy_row_with_infinite_step_still_loads(self):
        clean, states = hoist_bookkeeping({"mentor": {"_currentStep": float("inf")}}, load_module_state(None))
        assert clean["mentor"] == {}
        assert states["mentor"].step is None

    def test_load_fills_every_module(self):
        states = load_module_state({"mentor": {"completed": True, "step": 2, "high_water": 40}})
        assert set(states) == set(MODULES)
        assert states["mentor"] == ModuleState(completed=True, step=2, high_water=40)
        assert states["delivery"] == ModuleState()

    def test_dump(self):
        dumped = dump_module_state(load_module_state({"mentee": {"step": 1}}))
        assert dumped["mentee"] == {"completed": False, "step": 1, "high_water": 0}


class TestHoistBookkeeping:
    def test_legacy_keys_move_to_sidecar(self):
        form_data = {"mentor": {"step1": {}, "_completed": True}, "method": {"_currentStep": 2}}
        clean, states = hoist_bookkeeping(form_data, load_module_state(None))
        assert clean["mentor"] == {"step1": {}}
        assert clean["method"] == {}
        assert states["mentor"].completed
        assert states["method"].step == 2
        assert set(clean) == set(MODULES)

    def test_sidecar_flag_is_not_cleared_by_record(self):
        states = load_module_state({"mentor": {"completed": True}})
        _, hoisted = hoist_bookkeeping({"mentor": {"_completed": False}}, states)
        assert hoisted["mentor"].completed

    def test_input_states_are_not_mutated(self):
        states = load_module_state(None)
        hoist_bookkeeping({"mentor": {"_completed": True}}, states)
        assert not states["mentor"].completed
