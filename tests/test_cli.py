from savings_blueprint.engine.rebalancer import AllocationState
from scripts.blueprint_cli import format_state, handle_command

FB = "Family Bank"


def _state():
    vehicles = {"401(k) Roth": 500.0, "HSA": 200.0, FB: 300.0}
    limits = {"401(k) Roth": 1958.33, "HSA": 358.33, FB: None}
    return AllocationState(
        vehicles=dict(vehicles), original=dict(vehicles), budget=1000.0, overflow=FB,
        limits=limits, groups={n: n for n in vehicles}, group_limits=dict(limits),
    )


def test_set_accepts_vehicle_names_with_spaces():
    state, message = handle_command(_state(), "set 401(k) Roth 650")
    assert state.vehicles["401(k) Roth"] == 650.0
    assert state.vehicles[FB] == 150.0
    assert "401(k) Roth" in message


def test_lock_budget_reset_and_quit():
    state, _ = handle_command(_state(), "lock HSA")
    assert "HSA" in state.locked
    assert "[locked]" in format_state(state)
    state, _ = handle_command(state, "budget $2,000")
    assert state.budget == 2000.0
    assert state.vehicles["HSA"] == 200.0
    state, _ = handle_command(state, "reset")
    assert state.locked == frozenset()
    state, message = handle_command(state, "quit")
    assert state is None
    assert message == "Bye!"


def test_bad_input_keeps_state():
    s = _state()
    state, message = handle_command(s, "set Pension 100")
    assert state is s
    assert "Unknown vehicle" in message
    state, message = handle_command(s, "set HSA lots")
    assert state is s
    assert "Invalid input" in message
    state, message = handle_command(s, "dance")
    assert "Unknown command" in message
