#!/usr/bin/env python3
"""Entry point for the retryable tracker.

Scans a parent-chain block range for retryable submissions to an Orbit chain
and prints the ones that are still pending, followed by the ones that were
auto-redeemed.
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from retryable_tracker.config import TrackerConfig
from retryable_tracker.report import format_report
from retryable_tracker.tracker import RetryableTracker


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Find pending retryables of an Orbit chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  PARENT_CHAIN_ID              - Chain id of the parent chain
  PARENT_CHAIN_RPC             - RPC endpoint for the parent chain (optional for known chains)
  PARENT_CHAIN_INBOX_ADDRESS   - Inbox contract of the rollup
  PARENT_CHAIN_BRIDGE_ADDRESS  - Bridge contract of the rollup
  ORBIT_CHAIN_ID               - Chain id of the Orbit chain
  ORBIT_CHAIN_RPC              - RPC endpoint for the Orbit chain
  ORBIT_CHAIN_NAME             - Display name (default: Orbit chain)
  ORBIT_CHAIN_DEPLOYMENT_BLOCK - Default --from-block
  MAX_CONCURRENT_LOOKUPS       - Retryables classified at once (default: 16)
  LOG_LEVEL                    - Logging level (can be overridden with --log-level)

Variables are also read from a .env file (see .env.example); values already
set in the environment take precedence.
        """
    )
    parser.add_argument(
        "--from-block",
        type=int,
        default=None,
        help="First parent chain block to scan (default: deployment block, 0 for earliest)"
    )
    parser.add_argument(
        "--to-block",
        type=int,
        default=0,
        help="Last parent chain block to scan (default: 0 for the current block)"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the report as JSON"
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Environment file to load before reading configuration (default: .env)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: LOG_LEVEL or INFO)"
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """Main entry point for the retryable tracker.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Raises:
        SystemExit: On configuration or runtime errors
    """
    args: argparse.Namespace = parse_args(argv)
    load_dotenv(args.env_file)
    setup_logging(args.log_level or os.environ.get("LOG_LEVEL", "INFO"))

    tracker: RetryableTracker | None = None
    try:
        tracker = RetryableTracker.from_env()
        from_block = (
            args.from_block if args.from_block is not None
            else tracker.config.child_chain.deployment_block
        )
        report = await tracker.find_pending_retryables(
            from_block=from_block,
            to_block=args.to_block,
        )

        if args.json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            for line in format_report(
                report,
                chain_name=tracker.config.child_chain.name,
                from_block=from_block or "earliest",
                to_block=args.to_block or "latest",
            ):
                print(line)

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error(f"Please check your environment variables or {args.env_file} (see .env.example):")
        for name, description in TrackerConfig.REQUIRED_ENV.items():
            logger.error(f"  - {name}: {description}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)

    finally:
        if tracker is not None:
            await tracker.close()


if __name__ == "__main__":
    asyncio.run(main())
