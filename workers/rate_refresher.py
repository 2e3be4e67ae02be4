import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from api.dependencies import build_rate_service, cleanup_dependencies, deps, init_dependencies
from config.logging import setup_logging
from config.settings import Settings, get_settings
from domain.models.currency import RefreshResult

logger = logging.getLogger(__name__)

RefreshCycle = Callable[[], Awaitable[RefreshResult]]


class RateRefreshWorker:
    """Refreshes every currency's USD value on a fixed interval.

    Runs apart from the API process so box totals convert with fresh rates
    regardless of request traffic.
    """

    def __init__(self, refresh: RefreshCycle, update_interval: int = 3600):
        self.refresh = refresh
        self.update_interval = update_interval
        self.is_running = False
        self._stop_event = asyncio.Event()

    async def update_cycle(self) -> RefreshResult:
        cycle_start = datetime.now()
        result = await self.refresh()
        duration = (datetime.now() - cycle_start).total_seconds()
        logger.info(
            f'Refresh cycle completed in {duration:.2f}s: '
            f'{result.updated_count} currencies updated, {len(result.errors)} provider errors'
        )
        for error in result.errors:
            logger.warning(f'Provider error: {error}')
        return result

    async def _sleep(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.update_interval)
        except TimeoutError:
            pass

    async def run(self) -> None:
        self.is_running = True
        self._stop_event.clear()
        logger.info(f'Rate refresh worker started, interval {self.update_interval}s')

        cycle_count = 0
        while self.is_running:
            cycle_count += 1
            logger.info(f'Cycle #{cycle_count}')
            try:
                await self.update_cycle()
            except asyncio.CancelledError:
                logger.info('Worker received cancellation signal')
                break
            except Exception as e:
                logger.error(f'Error in worker cycle: {e}', exc_info=True)

            if self.is_running:
                await self._sleep()

        logger.info('Rate refresh worker stopped')

    def stop(self) -> None:
        """Gracefully stop the worker"""
        logger.info('Stopping rate refresh worker...')
        self.is_running = False
        self._stop_event.set()


def make_refresh_cycle(settings: Settings) -> RefreshCycle:
    async def refresh() -> RefreshResult:
        if deps.db is None or deps.providers is None:
            raise RuntimeError('Dependencies not initialized')
        async with deps.db.session() as session:
            service = build_rate_service(session, settings, deps.providers, deps.rate_cache)
            result = await service.update_all_currency_values()
            pruned = await service.attempts.delete_older_than(
                timedelta(days=settings.RATE_ATTEMPT_RETENTION_DAYS)
            )
        if pruned:
            logger.info(f'Pruned {pruned} stale rate attempts')
        return result

    return refresh


async def main():
    """Entry point for running the worker."""
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    init_dependencies(settings)
    await deps.db.create_tables()

    worker = RateRefreshWorker(
        refresh=make_refresh_cycle(settings),
        update_interval=settings.RATE_REFRESH_INTERVAL_SECONDS,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    try:
        await worker.run()
    finally:
        await cleanup_dependencies()
        logger.info('Cleanup completed')


if __name__ == '__main__':
    asyncio.run(main())
