"""issue-states entry point.

Two commands: check (validate a state list) and resolve (print the state of
issues given as metadata YAML files). Usage:

    issue-states check -s states.yaml
    issue-states resolve -s states.yaml issue-1.yaml issue-2.yaml
    issue-states resolve -s states.yaml --batch issues.yaml
"""

import argparse
import logging
import sys
from pathlib import Path

from issue_states.config import load_config
from issue_states.errors import AmbiguousStateError, ConfigurationError, IssueStatesError, StateFileError
from issue_states.loader import load_graph, load_metadata, load_metadata_batch
from issue_states.logging import setup_logging
from issue_states.resolution import Resolution, Resolver
from issue_states.values import Comparator

LOG = logging.getLogger("issue_states.main")

COMMANDS = ("check", "resolve")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI with optional subcommand (check | resolve)."""
    argv = argv if argv is not None else sys.argv[1:]
    sub = "check"
    rest = list(argv)
    if argv and argv[0] in COMMANDS:
        sub = argv[0]
        rest = argv[1:]

    parser = argparse.ArgumentParser(
        prog="issue-states",
        description="Issue states - validate state lists (check) or resolve issue states (resolve)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yaml"),
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--states",
        "-s",
        type=Path,
        default=None,
        help="YAML file with the state list (overrides resolver.states_file)",
    )
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Each metadata file maps issue keys to metadata",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Treat operators undefined for a value type as no match instead of failing",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Metadata YAML files (resolve)")
    parsed = parser.parse_args(rest)
    parsed.subcommand = sub
    return parsed


def _describe(outcome: Resolution | IssueStatesError) -> str:
    if isinstance(outcome, AmbiguousStateError):
        return "ambiguous: " + ", ".join(outcome.engaged)
    if isinstance(outcome, IssueStatesError):
        return f"error: {outcome}"
    return outcome.state or "(none)"


def main(argv: list[str] | None = None) -> int:
    """Entry point: dispatch to check or resolve."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (IssueStatesError, ValueError) as e:
        print(f"Invalid config: {e}", file=sys.stderr)
        return 2
    setup_logging(config.logging)

    states_path = args.states or config.resolver.states_file
    if states_path is None:
        print("No state list given (use --states or resolver.states_file)", file=sys.stderr)
        return 2

    try:
        graph = load_graph(states_path)
    except (ConfigurationError, StateFileError) as e:
        LOG.error("Invalid state list %s: %s", states_path, e)
        print(f"Invalid state list: {e}", file=sys.stderr)
        return 1

    if args.subcommand == "check":
        print(f"States OK: {len(graph)} states ({len(graph.counters)} counter-states)")
        return 0

    comparator = Comparator(strict=config.resolver.strict_types and not args.lenient)
    resolver = Resolver(graph, comparator, config.metadata_schema)
    failed = False
    for path in args.files:
        try:
            if args.batch:
                issues = load_metadata_batch(path, config.metadata_schema)
            else:
                issues = {"": load_metadata(path, config.metadata_schema)}
        except IssueStatesError as e:
            print(f"{path}: error: {e}")
            failed = True
            continue
        for key, outcome in resolver.resolve_all(issues).items():
            label = f"{path}:{key}" if key else str(path)
            print(f"{label}: {_describe(outcome)}")
            failed = failed or isinstance(outcome, IssueStatesError)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
