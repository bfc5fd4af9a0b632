from __future__ import annotations

import argparse
import logging
import sys

from .scenario import load_scenario
from .scheduler import TickScheduler


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(path: str):
    try:
        return load_scenario(path)
    except (OSError, ValueError) as exc:
        print(f"[patrol] cannot load {path}: {exc}", file=sys.stderr)
        return None


def cmd_run(args: argparse.Namespace) -> int:
    _configure_logging(args.log_level)
    scenario = _load(args.file)
    if scenario is None:
        return 1

    scheduler = TickScheduler()
    service = scenario.build_service()
    agent = scenario.build_agent(service)
    scheduler.add_tick(service.tick, name="kinematic")

    def on_reached(index: int) -> None:
        waypoint = agent.waypoints[index] if 0 <= index < len(agent.waypoints) else None
        label = waypoint.name if waypoint else "?"
        print(f"[{scheduler.now:8.2f}] reached {index} ({label})")

    agent.events.waypoint_reached.subscribe(on_reached)
    agent.events.path_found.subscribe(
        lambda: print(f"[{scheduler.now:8.2f}] path found -> {agent.current_waypoint_index}")
    )
    agent.events.path_blocked.subscribe(
        lambda: print(f"[{scheduler.now:8.2f}] path blocked ({agent.phase.value})")
    )
    agent.events.movement_complete.subscribe(
        lambda: print(f"[{scheduler.now:8.2f}] movement complete")
    )

    with agent.attach(scheduler):
        steps = scheduler.run(
            rate_hz=args.rate_hz,
            max_steps=args.steps,
            realtime=args.realtime,
            until=lambda: agent.is_done,
        )
        print(
            f"[patrol] {scenario.name}: steps={steps} t={scheduler.now:.2f}s "
            f"phase={agent.phase.value} index={agent.current_waypoint_index} "
            f"stuck={agent.stuck_count} repaths={agent.repath_count}"
        )
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    _configure_logging(args.log_level)
    scenario = _load(args.file)
    if scenario is None:
        return 1

    print(
        f"[patrol] {scenario.name}: {len(scenario.waypoints)} waypoints, "
        f"{len(scenario.obstacles)} obstacles, mode={scenario.agent.movement_mode.value}"
    )
    if not scenario.waypoints:
        print("[patrol] warning: no waypoints")
    for waypoint in scenario.off_surface_waypoints():
        print(f"[patrol] warning: {waypoint.name} is not on or near the surface")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="patrol", description="Waypoint navigation agent runner")
    sp = p.add_subparsers(dest="cmd", required=True)

    s = sp.add_parser("run", help="run a scenario on the kinematic service")
    s.add_argument("file")
    s.add_argument("--steps", type=int, default=1000, help="maximum number of ticks")
    s.add_argument("--rate-hz", type=float, default=50.0)
    s.add_argument("--realtime", action="store_true", help="sleep to match the tick rate")
    s.add_argument("--log-level", default="WARNING")
    s.set_defaults(fn=cmd_run)

    s = sp.add_parser("check", help="validate a scenario file")
    s.add_argument("file")
    s.add_argument("--log-level", default="WARNING")
    s.set_defaults(fn=cmd_check)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    raise SystemExit(args.fn(args))


if __name__ == "__main__":
    main()
