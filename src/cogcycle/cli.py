# src/cogcycle/cli.py
"""
Command-line interface for cogcycle.

Commands:
- ``run``     wake loop: one cognitive cycle every interval
- ``cycle``   run a single cycle and print its result
- ``goal``    add, list and change goals
- ``status``  goal statistics and the last journalled cycle
- ``config``  print the effective configuration

Goals and the cycle journal are always persisted by the CLI, since each
invocation is a separate process.  External services (memory tiers,
knowledge base, user model) are supplied with ``--collaborators
module:factory``, where the factory returns a
``cogcycle.autonomous.Collaborators`` (or an awaitable of one).
"""

import argparse
import asyncio
import importlib
import inspect
import json
import logging
import sys
from datetime import datetime
from typing import Any, List, Optional

from .autonomous import (
    Collaborators,
    CycleJournal,
    CycleOrchestrator,
    CycleResult,
    GoalPriority,
    GoalSource,
    GoalStatus,
    WakeScheduler,
)
from .config import CognitiveCycleConfig, load_config
from .exceptions import CogCycleError, ConfigError
from .logging_config import configure_logging, log_display

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

class OutputFormatter:
    """Formats CLI output as plain text or JSON."""

    def __init__(self, use_color: bool = True, json_output: bool = False):
        self.use_color = use_color and sys.stdout.isatty()
        self.json_output = json_output

    def _color(self, text: str, color: str) -> str:
        if not self.use_color:
            return text

        colors = {
            'green': '\033[92m',
            'red': '\033[91m',
            'yellow': '\033[93m',
            'bold': '\033[1m',
            'reset': '\033[0m'
        }
        return f"{colors.get(color, '')}{text}{colors['reset']}"

    def success(self, text: str) -> str:
        return self._color(f"✓ {text}", 'green')

    def error(self, text: str) -> str:
        return self._color(f"✗ {text}", 'red')

    def warning(self, text: str) -> str:
        return self._color(f"⚠ {text}", 'yellow')

    def header(self, text: str) -> str:
        return self._color(text, 'bold')

    def dump(self, data: Any) -> None:
        print(json.dumps(data, indent=2, default=str))


# =============================================================================
# SETUP HELPERS
# =============================================================================

def _load(config_path: Optional[str]) -> CognitiveCycleConfig:
    """Load the configuration with persistence forced on."""
    return load_config(config_path, overrides={"persistence": {"enabled": True}})


def _setup_logging(config: CognitiveCycleConfig, verbose: bool) -> None:
    logging_config = dict(config.logging)
    if verbose:
        logging_config["console_enabled"] = True
        logging_config["console_level"] = "DEBUG"
    configure_logging(app_name="cogcycle", config=logging_config)


async def _load_collaborators(target: Optional[str]) -> Optional[Collaborators]:
    """
    Resolve ``module:factory`` into a Collaborators bundle.

    Raises:
        ConfigError: If the factory cannot be imported or returns something else.
    """
    if not target:
        return None

    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ConfigError(f"Collaborators factory must be 'module:callable', got {target!r}")

    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot load collaborators factory {target!r}: {e}") from e

    collaborators = factory()
    if inspect.isawaitable(collaborators):
        collaborators = await collaborators
    if not isinstance(collaborators, Collaborators):
        raise ConfigError(
            f"Collaborators factory {target!r} returned {type(collaborators).__name__}, "
            "expected Collaborators"
        )
    return collaborators


async def _build(
    config: CognitiveCycleConfig, collaborators_target: Optional[str] = None
) -> CycleOrchestrator:
    collaborators = await _load_collaborators(collaborators_target)
    orchestrator = CycleOrchestrator.from_config(config, collaborators)
    await orchestrator.initialize()
    return orchestrator


def _print_cycle(result: CycleResult, formatter: OutputFormatter) -> None:
    if formatter.json_output:
        formatter.dump(result.to_dict())
        return

    print(formatter.header(f"Cycle {result.cycle_id}"))
    print("=" * 45)
    print(f"Goals evaluated:  {result.goals_evaluated} "
          f"({result.goals_completed} completed, {result.goals_stalled} stalled)")
    print(f"Tasks executed:   {result.tasks_executed} ({result.tasks_failed} failed)")
    print(f"Risk:             {result.risk_summary or 'no tasks'}")
    print(f"Budget:           {result.budget_used:.1f}/{result.budget_allocated:.0f} "
          f"({result.budget_utilization:.1f}%)")
    for rec in result.recommendations:
        print(f"  {formatter.warning(rec)}")
    for err in result.errors:
        print(f"  {formatter.error(err)}")


# =============================================================================
# CLI COMMANDS
# =============================================================================

async def cmd_run(config: CognitiveCycleConfig, interval: Optional[float],
                  cycles: Optional[int], collaborators: Optional[str],
                  formatter: OutputFormatter) -> int:
    """
    Run the wake loop until interrupted or *cycles* cycles have run.

    With ``wake.enabled = false`` no timer is started; one cycle runs and
    the command exits, as ``cycle`` would.

    Returns:
        Exit code
    """
    if not config.wake.enabled:
        print(formatter.warning("Wake timer disabled (wake.enabled = false); running one cycle"),
              file=sys.stderr)
        return await cmd_cycle(config, collaborators, formatter)

    orchestrator = await _build(config, collaborators)
    scheduler = WakeScheduler.from_config(orchestrator, config.wake, max_cycles=cycles)
    if interval is not None:
        scheduler.update_interval(interval)

    async def report(result: CycleResult) -> None:
        log_display(
            logger, logging.INFO,
            "Cycle %s finished: %d executed, %d failed, %.1f%% budget",
            result.cycle_id, result.tasks_executed, result.tasks_failed,
            result.budget_utilization,
        )

    scheduler.on_cycle_complete(report)
    log_display(logger, logging.INFO, "Wake loop started (every %.0fs)",
                scheduler.interval.total_seconds())

    await scheduler.start()
    try:
        await scheduler.wait_stopped()
    finally:
        await scheduler.stop()

    if formatter.json_output:
        formatter.dump(scheduler.get_status())
    return 0


async def cmd_cycle(config: CognitiveCycleConfig, collaborators: Optional[str],
                    formatter: OutputFormatter) -> int:
    """Run one cycle and print it.  Exit code 1 if the cycle recorded errors."""
    orchestrator = await _build(config, collaborators)
    result = await orchestrator.evaluate_cycle()
    if result is None:
        print(formatter.error("A cycle is already in progress"))
        return 1

    _print_cycle(result, formatter)
    return 1 if result.errors else 0


async def cmd_goal(config: CognitiveCycleConfig, parsed: argparse.Namespace,
                   formatter: OutputFormatter) -> int:
    """Goal subcommands."""
    orchestrator = await _build(config)
    store = orchestrator.goal_store

    if parsed.goal_command == "add":
        deadline = datetime.fromisoformat(parsed.deadline) if parsed.deadline else None
        goal = store.create(
            parsed.title,
            description=parsed.description,
            source=parsed.source,
            priority=parsed.priority,
            parent_goal_id=parsed.parent,
            deadline=deadline,
            success_criteria=parsed.criterion,
            autonomy_level=parsed.autonomy,
        )
        await store.flush()
        if formatter.json_output:
            formatter.dump(goal.to_dict())
        else:
            print(formatter.success(f"Created goal {goal.id}: {goal.title}"))
        return 0

    if parsed.goal_command == "list":
        goals = store.get_goals(status=parsed.status)
        if formatter.json_output:
            formatter.dump([g.to_dict() for g in goals])
            return 0
        if not goals:
            print("No goals")
            return 0
        for g in goals:
            print(f"{g.id}  [{g.status.value:<9}] {g.priority.value:<8} "
                  f"{g.progress:>4.0%}  {g.title}")
        return 0

    if parsed.goal_command == "progress":
        goal = store.update_progress(parsed.goal_id, parsed.value, note=parsed.note)
        ok = goal is not None
    elif parsed.goal_command == "pause":
        ok = store.pause(parsed.goal_id)
    elif parsed.goal_command == "resume":
        ok = store.resume(parsed.goal_id)
    elif parsed.goal_command == "complete":
        ok = store.complete(parsed.goal_id)
    elif parsed.goal_command == "abandon":
        ok = store.abandon(parsed.goal_id, reason=parsed.reason)
    else:
        print(formatter.error("Missing goal command"))
        return 2

    if not ok:
        print(formatter.error(f"Cannot {parsed.goal_command} goal {parsed.goal_id}"))
        return 1

    await store.flush()
    print(formatter.success(f"Goal {parsed.goal_id}: {parsed.goal_command} ok"))
    return 0


async def cmd_status(config: CognitiveCycleConfig, formatter: OutputFormatter) -> int:
    """Goal statistics and the last cycle from the journal."""
    orchestrator = await _build(config)
    stats = orchestrator.goal_store.stats()
    last = await CycleJournal(config.persistence.journal_path).last_entry()

    if formatter.json_output:
        formatter.dump({"goals": stats, "last_cycle": last})
        return 0

    print(formatter.header("cogcycle status"))
    print("=" * 45)
    print(f"Goals: {stats['total_goals']} "
          f"(average progress {stats['average_progress']:.0%})")
    for status, count in stats["by_status"].items():
        if count:
            print(f"  {status}: {count}")
    if last is None:
        print("Last cycle: none")
    else:
        print(f"Last cycle: {last['cycle_id']} at {last['evaluated_at']}")
        print(f"  {last['tasks_executed']} executed, {last['tasks_failed']} failed, "
              f"{last['budget_utilization']}% budget")
    return 0


def cmd_config(config: CognitiveCycleConfig) -> int:
    print(config.model_dump_json(indent=2))
    return 0


# =============================================================================
# MAIN CLI ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the cogcycle CLI."""
    parser = argparse.ArgumentParser(
        prog="cogcycle",
        description="Autonomous cognitive cycle scheduler"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
        default=None
    )
    parser.add_argument(
        "--verbose", "-v",
        help="Log everything to the console",
        action="store_true"
    )
    parser.add_argument(
        "--json",
        help="Output in JSON format",
        action="store_true"
    )
    parser.add_argument(
        "--no-color",
        help="Disable colored output",
        action="store_true"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run the wake loop")
    run_parser.add_argument("--interval", type=float, default=None,
                            help="Seconds between cycles (overrides config)")
    run_parser.add_argument("--cycles", type=int, default=None,
                            help="Stop after this many cycles")
    run_parser.add_argument("--collaborators", default=None,
                            help="module:factory returning a Collaborators bundle")

    # cycle command
    cycle_parser = subparsers.add_parser("cycle", help="Run a single cycle")
    cycle_parser.add_argument("--collaborators", default=None,
                              help="module:factory returning a Collaborators bundle")

    # goal command
    goal_parser = subparsers.add_parser("goal", help="Goal management")
    goal_sub = goal_parser.add_subparsers(dest="goal_command")

    add_parser = goal_sub.add_parser("add", help="Create a goal")
    add_parser.add_argument("title")
    add_parser.add_argument("--description", "-d", default="")
    add_parser.add_argument("--priority", "-p", default="medium",
                            choices=[p.value for p in GoalPriority])
    add_parser.add_argument("--source", default="user",
                            choices=[s.value for s in GoalSource])
    add_parser.add_argument("--deadline", default=None, help="ISO 8601 timestamp")
    add_parser.add_argument("--criterion", action="append", default=[],
                            help="Success criterion (repeatable)")
    add_parser.add_argument("--parent", default=None, help="Parent goal id")
    add_parser.add_argument("--autonomy", type=float, default=None)

    list_parser = goal_sub.add_parser("list", help="List goals")
    list_parser.add_argument("--status", default=None,
                             choices=[s.value for s in GoalStatus])

    progress_parser = goal_sub.add_parser("progress", help="Set goal progress")
    progress_parser.add_argument("goal_id")
    progress_parser.add_argument("value", type=float)
    progress_parser.add_argument("--note", default=None)

    for action in ("pause", "resume", "complete"):
        action_parser = goal_sub.add_parser(action, help=f"{action.capitalize()} a goal")
        action_parser.add_argument("goal_id")

    abandon_parser = goal_sub.add_parser("abandon", help="Abandon a goal")
    abandon_parser.add_argument("goal_id")
    abandon_parser.add_argument("--reason", default=None)

    # status / config commands
    subparsers.add_parser("status", help="Show goal and cycle status")
    subparsers.add_parser("config", help="Show the effective configuration")

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the cogcycle CLI.

    Args:
        args: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    formatter = OutputFormatter(
        use_color=not parsed.no_color,
        json_output=parsed.json
    )

    try:
        config = _load(parsed.config)
    except ConfigError as e:
        print(formatter.error(str(e)))
        return 1

    _setup_logging(config, parsed.verbose)

    try:
        if parsed.command == "run":
            return asyncio.run(cmd_run(
                config,
                interval=parsed.interval,
                cycles=parsed.cycles,
                collaborators=parsed.collaborators,
                formatter=formatter
            ))
        elif parsed.command == "cycle":
            return asyncio.run(cmd_cycle(
                config,
                collaborators=parsed.collaborators,
                formatter=formatter
            ))
        elif parsed.command == "goal":
            return asyncio.run(cmd_goal(config, parsed, formatter))
        elif parsed.command == "status":
            return asyncio.run(cmd_status(config, formatter))
        elif parsed.command == "config":
            return cmd_config(config)
        else:
            parser.print_help()
            return 0
    except KeyboardInterrupt:
        log_display(logger, logging.INFO, "Interrupted")
        return 130
    except (CogCycleError, ValueError) as e:
        print(formatter.error(str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
