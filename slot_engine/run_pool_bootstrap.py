# slot_engine/run_pool_bootstrap.py
"""Pool bootstrap - makes sure the slot pool is ready before serving."""

import argparse
import logging
import sys

from slot_engine.container import slot_service
from slot_engine.core.errors import SlotError

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def bootstrap(rotate_credentials: bool = False) -> int:
    """
    Prepare the slot pool.

    - Creates the first account batch when the pool is empty
    - Optionally rotates credentials of every unassigned slot

    Returns the process exit code.
    """
    try:
        slot = slot_service.ensure_pool_ready()
        logger.info(f"Slot pool ready (next candidate: {slot.display_name} @ {slot.account_label})")

        if rotate_credentials:
            rotated = slot_service.rotate_all_credentials()
            logger.info(f"Rotated {rotated} credential(s)")

        overview = slot_service.pool_overview()
        logger.info(
            f"Accounts: {overview.accounts} | Slots: {overview.total} | "
            f"Assignable: {overview.assignable}"
        )
        return 0

    except SlotError as e:
        logger.error(f"Failed to initialize slot pool: {e}", exc_info=True)
        return 1


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Prepare the slot pool")
    parser.add_argument(
        "--rotate-credentials",
        action="store_true",
        help="rotate credentials of every slot not held by a customer",
    )
    args = parser.parse_args()

    sys.exit(bootstrap(rotate_credentials=args.rotate_credentials))


if __name__ == "__main__":
    main()
