"""
Category transfer unit.
Exports one category from the source page by page and upserts each record
into the destination on a bounded worker pool.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from core.config import settings

from .categories import MigrationCategory
from .domain import (
    CATEGORY_COMPLETED,
    CATEGORY_FAILED,
    CategoryProgress,
    MigrationOptions,
)
from .errors import (
    AccountAccessError,
    MigrationError,
    PlatformUnreachableError,
    RecordRejectedError,
    RetryExhaustedError,
)
from .importers import TransferContext, build_importer, record_name
from .providers.base import BaseCRMProvider, Page
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[MigrationCategory, CategoryProgress], Awaitable[None]]

CANCELLED_NOTE = "Interrupted by cancellation"


class CancelToken:
    """Cooperative cancel flag checked at record and category boundaries"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled


class CategoryTransferUnit:
    """Migrate exactly one category per call"""

    def __init__(
        self,
        retry: Optional[RetryPolicy] = None,
        page_size: Optional[int] = None,
        concurrency: Optional[int] = None,
    ):
        self.retry = retry or RetryPolicy.from_settings()
        self.page_size = page_size or settings.MIGRATION_PAGE_SIZE
        self.concurrency = concurrency or settings.MIGRATION_WORKER_CONCURRENCY

    async def export_pages(self, provider: BaseCRMProvider, category: MigrationCategory) -> AsyncIterator[Page]:
        """
        Yield the category's non-empty pages in order.

        A page that stays unreadable after retries means the source account is
        unusable, so it is raised as PlatformUnreachableError.
        """
        skip = 0
        while True:
            try:
                page = await self.retry.call(
                    lambda: provider.list_page(category, skip, self.page_size),
                    f"Export {category.label}",
                )
            except RetryExhaustedError as e:
                raise PlatformUnreachableError(f"Could not read {category.label} from source: {e}") from e

            if page.items:
                yield page
            if not page.items or not page.has_more:
                return
            skip += len(page.items)

    async def export_all(self, provider: BaseCRMProvider, category: MigrationCategory) -> List[Dict[str, Any]]:
        records: List[Dict[str, Any]] = []
        async for page in self.export_pages(provider, category):
            records.extend(page.items)
        return records

    async def transfer(
        self,
        category: MigrationCategory,
        source: BaseCRMProvider,
        destination: BaseCRMProvider,
        options: MigrationOptions,
        cancel_token: CancelToken,
        progress: CategoryProgress,
        context: Optional[TransferContext] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CategoryProgress:
        """
        Run export, transform and upsert for one category.

        Per-record faults are counted in `progress` and logged to the context's
        error log. AccountAccessError propagates after the category is marked
        failed. Returns `progress` in a terminal status.
        """
        context = context or TransferContext()
        importer = build_importer(category, source, destination, options, context, self.retry)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def import_one(record: Dict[str, Any]):
            async with semaphore:
                if cancel_token.is_cancelled:
                    return
                try:
                    await importer.import_record(record)
                except AccountAccessError:
                    raise
                except MigrationError as e:
                    self._record_failure(category, record, str(e) or e.__class__.__name__, progress, context)
                    logger.info(f"Record failed in {category.value}: {record_name(record)}: {e}")
                except Exception as e:
                    # Source record shaped differently than the importer expects
                    self._record_failure(category, record, f"{e.__class__.__name__}: {e}", progress, context)
                    logger.exception(f"Unexpected error importing {category.value} record {record_name(record)}")
                else:
                    progress.record_success()

        progress.start()
        await self._notify(on_progress, category, progress)

        try:
            async for page in self.export_pages(source, category):
                if cancel_token.is_cancelled:
                    break
                if page.total is not None:
                    progress.grow_total(int(page.total))
                tasks = [asyncio.create_task(import_one(record)) for record in page.items]
                try:
                    await asyncio.gather(*tasks)
                except BaseException:
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
                    raise
                await self._notify(on_progress, category, progress)
                if cancel_token.is_cancelled:
                    break
        except AccountAccessError as e:
            progress.add_error(str(e))
            progress.finish(CATEGORY_FAILED)
            raise
        except RecordRejectedError as e:
            # Export endpoint refused the request; nothing more to read here
            logger.warning(f"Export of {category.value} rejected: {e}")
            progress.add_error(f"Export failed: {e}")
            progress.finish(CATEGORY_FAILED)
            return progress

        if cancel_token.is_cancelled and progress.processed < progress.total:
            progress.add_error(CANCELLED_NOTE)
            progress.finish(CATEGORY_FAILED)
        else:
            progress.finish(CATEGORY_COMPLETED)
        return progress

    @staticmethod
    def _record_failure(
        category: MigrationCategory,
        record: Dict[str, Any],
        message: str,
        progress: CategoryProgress,
        context: TransferContext,
    ):
        progress.record_failure(f"{record_name(record)}: {message}")
        context.log_error(category, record, message)

    @staticmethod
    async def _notify(callback: Optional[ProgressCallback], category: MigrationCategory, progress: CategoryProgress):
        if callback is not None:
            await callback(category, progress)
