#!/usr/bin/env python3
"""Node agent command line.

Usage:
    node-agent [--config FILE] [-v] run        # reconcile until interrupted
    node-agent [--config FILE] [-v] once       # single reconciliation pass
    node-agent [--config FILE] [-v] diff       # show pending changes only
    node-agent [--config FILE] [-v] register   # create the local node record

Environment variables:
    NODE_AGENT_CONFIG=/etc/node-agent/config.yaml   Agent configuration file
    NODE_AGENT_LOG_LEVEL=DEBUG                      Log verbosity
"""
import argparse
import asyncio
import json
import logging
import sys

from .config import ConfigError, load_config
from .config_engine import ConfigEngine
from .scheduler import AgentRunner
from .sources.local import LocalNodeClient
from .utils.audit_log import setup_event_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node-agent",
        description="Reconcile files and systemd units on this node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run as a service
    node-agent --config /etc/node-agent/config.yaml run

    # Check what the next pass would change
    node-agent diff
""",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Agent configuration file (default: searched for)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Reconcile until interrupted")
    subparsers.add_parser("once", help="Run a single reconciliation pass")
    subparsers.add_parser("diff", help="Show pending changes without applying them")
    subparsers.add_parser("register", help="Create the local node record")

    return parser


def main(argv=None) -> int:
    """Main entry point for the node agent."""
    args = build_parser().parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else None)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    if args.command == "register":
        LocalNodeClient(config.node_state_path, config.node_name).register()
        return 0

    try:
        setup_event_logging(config.event_log_dir)
    except OSError as e:
        logger.warning(f"Event log disabled, cannot write to {config.event_log_dir}: {e}")

    engine = ConfigEngine.from_config(config)

    try:
        if args.command == "diff":
            print(asyncio.run(engine.preview()))
        elif args.command == "once":
            result = asyncio.run(AgentRunner(engine).run_once())
            print(json.dumps(result.to_dict(), indent=2))
        else:
            runner = AgentRunner(
                engine,
                retry_min_wait=config.retry_min_wait,
                retry_max_wait=config.retry_max_wait,
            )
            logger.info(f"Starting node agent for {config.node_name}")
            asyncio.run(runner.run_forever())
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
