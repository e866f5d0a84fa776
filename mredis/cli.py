#!/usr/bin/env python3
"""
mredis Command Line Driver

Runs a series of commands through a MultiRedis client and prints the
results.

Usage:
    mredis --config mredis.json "set key1 0" "get key1"
    mredis --config mredis.json --debug "hset htable hkey1 100" "hgetall htable"
    python -m mredis.cli "get key1"          # default config (localhost:6379)

Environment Variables:
    MREDIS_CONFIG       - Config file used when --config is not given
    MREDIS_DEBUG        - Enable debug mode (true/false)
    MREDIS_LOG_LEVEL    - Log level when --debug is not given
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import List, Optional

from .client import MultiRedis
from .config.settings import build_config, load_config, settings
from .errors import ConfigError
from .protocol.parser import CommandLineParser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="mredis: sharded Redis client with a cache-aside layer",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "commands",
        nargs="+",
        help='Commands to run in order, e.g. "set key1 42"',
    )

    parser.add_argument(
        "--config",
        type=str,
        default=settings.CONFIG_PATH,
        help="JSON config file",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


async def run(client: MultiRedis, lines: List[str]) -> Optional[BaseException]:
    """
    Run commands in series, stopping at the first failure.

    Returns:
        The error that stopped the series, or None
    """
    parser = CommandLineParser()
    client.errors.subscribe(lambda err: print(f"Caught mredis error {err}"))

    error = None
    results = []
    for line in lines:
        try:
            invocation = parser.parse(line)
        except ValueError as e:
            error = e
            break
        try:
            value = await client.execute(invocation.command, invocation.args)
        except Exception as e:
            error = e
            break
        results.append(parser.format_result(invocation.command, invocation.args, value))

    print('-------------------------')
    print(f'mredis was called {client.call_count} times')
    print('[Results]')
    for line in results:
        print(line)
    print(f'[Error]\n{error}')
    return error


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line driver."""
    args = parse_args(argv)
    setup_logging(debug=args.debug)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config) if args.config else build_config()
    except ConfigError as e:
        logger.error(str(e))
        return 2

    if args.debug and not config.debug:
        config = dataclasses.replace(config, debug=True)

    try:
        client = MultiRedis(config)
    except ConfigError as e:
        logger.error(str(e))
        return 2

    async def session() -> Optional[BaseException]:
        async with client:
            return await run(client, args.commands)

    error = asyncio.run(session())
    return 1 if error else 0


if __name__ == "__main__":
    sys.exit(main())
