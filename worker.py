#!/usr/bin/env python3
"""
Worker entrypoint for the project scoring agent.

Usage:
    python worker.py listen          # Poll the registry and score new projects until stopped
    python worker.py evaluate-all    # Score every currently unscored project once and exit
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from idol_agent.lib.errors import ConfigurationError
from idol_agent.lib.logger import configure_logger
from idol_agent.services.infrastructure.startup_service import StartupService

logger = configure_logger(__name__)


def setup_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AI agent that evaluates registry projects and commits their scores on-chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python worker.py listen
    python worker.py evaluate-all
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("listen", help="Listen for new projects")
    subparsers.add_parser("evaluate-all", help="Evaluate all existing projects")
    return parser


async def run_command(command: str) -> int:
    service = StartupService()

    try:
        if command == "listen":
            await service.run_standalone()
            return 0

        if await service.run_once():
            logger.info("All projects evaluated!")
            return 0
        logger.error("One-shot evaluation finished with failed projects")
        return 1

    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        logger.error(
            "Required: PROJECT_REGISTRY_ADDRESS, PRIVATE_KEY, MONAD_RPC_URL, ANTHROPIC_API_KEY"
        )
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = setup_argparser()
    args = parser.parse_args(argv)

    if args.command not in ("listen", "evaluate-all"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(run_command(args.command))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
        return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
