"""
Offline counter audit / repair.

Recomputes every denormalized counter from its relationship rows and
reports mismatches. With --fix the drifted counters are overwritten in a
single transaction. This is the only supported way to rewrite a counter
wholesale; run it out of the request path (cron, maintenance window).

  socialgraph-repair            # audit only, exit 1 if drift found
  socialgraph-repair --fix      # audit and repair, exit 0
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from socialgraph.config import Settings
from socialgraph.counters import CounterDrift, CounterReconciler
from socialgraph.database import Store

logger = logging.getLogger(__name__)


async def run(store: Store, fix: bool) -> list[CounterDrift]:
    reconciler = CounterReconciler()
    async with store.transaction() as session:
        if fix:
            drifts = await reconciler.repair(session)
        else:
            drifts = await reconciler.audit(session)

    for drift in drifts:
        logger.warning(
            "%s %s.%s cached=%d actual=%d",
            drift.row_id, drift.table, drift.field.value, drift.cached, drift.actual,
        )
    return drifts


async def _main(settings: Settings, fix: bool) -> int:
    store = Store.from_settings(settings)
    try:
        drifts = await run(store, fix)
    finally:
        await store.dispose()

    if not drifts:
        logger.info("All counters consistent")
        return 0
    if fix:
        logger.info("Repaired %d counter(s)", len(drifts))
        return 0
    logger.warning("%d counter(s) drifted; rerun with --fix to repair", len(drifts))
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0].strip())
    parser.add_argument("--fix", action="store_true", help="overwrite drifted counters")
    parser.add_argument("--database-url", default="", help="override the configured store URL")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )

    settings = Settings()
    if args.database_url:
        settings = settings.model_copy(update={"database_url_override": args.database_url})

    return asyncio.run(_main(settings, args.fix))


if __name__ == "__main__":
    sys.exit(main())
