#!/usr/bin/env python3
# PURPOSE: Command-line interface to run a recommendation locally and adjust it interactively.
# CONTEXT: Mirrors what a front end does: one full recompute, then slider-style edits through
#          the rebalancer without re-running the waterfall.

import argparse
import json
import sys

from savings_blueprint.engine.rebalancer import (
    change_budget,
    init_state,
    reset_to_recommended,
    set_lock,
    update_vehicle,
)
from savings_blueprint.engine_io import error_to_string
from savings_blueprint.logging_setup import configure_logging
from savings_blueprint.model_interface.loader import load_catalog
from savings_blueprint.pipeline import handle_request

HELP = """commands:
  show                      print the current allocation
  set <vehicle> <amount>    move one vehicle to a monthly amount
  lock <vehicle>            keep a vehicle fixed while others rebalance
  unlock <vehicle>
  budget <amount>           change the monthly budget
  reset                     back to the recommendation, locks cleared
  quit"""


def format_state(state) -> str:
    lines = []
    width = max(len(n) for n in state.vehicles) if state.vehicles else 0
    for name, amount in state.vehicles.items():
        flag = " [locked]" if name in state.locked else ""
        limit = state.limits.get(name)
        cap = f"  (limit ${limit:,.2f})" if limit is not None else ""
        lines.append(f"  {name:<{width}}  ${amount:>10,.2f}{cap}{flag}")
    lines.append(f"  {'Total':<{width}}  ${state.total:>10,.2f} of ${state.budget:,.2f}")
    return "\n".join(lines)


def _split_amount(arg: str):
    """'401(k) Roth 500' -> ('401(k) Roth', 500.0)"""
    name, _, amount = arg.rpartition(" ")
    return name.strip(), float(amount.replace("$", "").replace(",", ""))


def handle_command(state, line: str):
    """
    Apply one CLI command to the session state.

    returns:
    - (state, message) – message is text to print; state is None when the user quits.
    """
    cmd, _, arg = line.strip().partition(" ")
    cmd = cmd.lower()
    arg = arg.strip()
    try:
        if cmd in ("", "show"):
            return state, format_state(state)
        if cmd in ("quit", "exit"):
            return None, "Bye!"
        if cmd == "help":
            return state, HELP
        if cmd == "set":
            name, amount = _split_amount(arg)
            state = update_vehicle(state, name, amount)
            return state, format_state(state)
        if cmd in ("lock", "unlock"):
            state = set_lock(state, arg, locked=(cmd == "lock"))
            return state, f"{arg} {cmd}ed."
        if cmd == "budget":
            state = change_budget(state, float(arg.replace("$", "").replace(",", "")))
            return state, format_state(state)
        if cmd == "reset":
            state = reset_to_recommended(state)
            return state, format_state(state)
    except KeyError as e:
        return state, f"Unknown vehicle: {e.args[0]}"
    except ValueError as e:
        return state, f"Invalid input: {error_to_string(e)}"
    return state, f"Unknown command '{cmd}'. Type 'help'."


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Savings blueprint: allocate a monthly budget across vehicles.")
    parser.add_argument("payload", help="JSON file with answers/facts/budget, or '-' for stdin")
    parser.add_argument("--catalog", help="catalog JSON path (defaults to BLUEPRINT_CATALOG or the bundled one)")
    parser.add_argument("--no-interactive", action="store_true", help="print the recommendation and exit")
    parser.add_argument("--log-format", choices=("json", "console"), help="log renderer (defaults to LOG_FORMAT or json)")
    args = parser.parse_args(argv)

    configure_logging(fmt=args.log_format)
    with (sys.stdin if args.payload == "-" else open(args.payload, "r", encoding="utf-8")) as f:
        payload = json.load(f)

    catalog = load_catalog(args.catalog)
    out = handle_request(payload, catalog)
    print(json.dumps(out, indent=2))
    if args.no_interactive or out["status"] != "ok":
        return 0 if out["status"] in ("ok", "cannot_allocate") else 1

    state = init_state(out["allocation"], out["eligible"], catalog.overflow_vehicle().name)
    print("\nInteractive mode. Type 'help' for commands, Ctrl+C to exit.")
    print(format_state(state))
    while state is not None:
        try:
            line = input("> ")
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            break
        state, message = handle_command(state, line)
        print(message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
