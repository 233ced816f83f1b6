"""
Source analyzer: per-category record counts and a duration estimate.
"""

import asyncio
import logging
from typing import Dict, Mapping, Optional, Tuple

from core.config import settings

from .categories import CATALOG, MigrationCategory, estimate_minutes
from .domain import AccountCredentials, AnalysisResult
from .errors import AccountAccessError, MigrationError
from .providers import ProviderFactory, default_provider_factory
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


class SourceAnalyzer:
    """Count every catalog category in the source with bounded fan-out"""

    def __init__(
        self,
        provider_factory: Optional[ProviderFactory] = None,
        retry: Optional[RetryPolicy] = None,
        concurrency: Optional[int] = None,
    ):
        self.provider_factory = provider_factory or default_provider_factory
        self.retry = retry or RetryPolicy.from_settings()
        self.concurrency = concurrency or settings.ANALYZER_CONCURRENCY

    async def analyze(
        self,
        source: AccountCredentials,
        previous_counts: Optional[Mapping[str, int]] = None,
    ) -> AnalysisResult:
        """
        Count records per category. Counts are advisory: a category that cannot
        be read contributes 0 and a warning, never an error.

        Args:
            source: Validated source credentials.
            previous_counts: Counts from an earlier analysis, used to flag changes.
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        provider = self.provider_factory(source)

        async def count_one(category: MigrationCategory) -> Tuple[MigrationCategory, int, Optional[str]]:
            async with semaphore:
                try:
                    count = await self.retry.call(lambda: provider.count(category), f"Count {category.label}")
                    return category, count, None
                except AccountAccessError as e:
                    if e.status_code == 403:
                        return category, 0, f"No permission to read {category.label}"
                    return category, 0, f"Could not read {category.label}: {e}"
                except MigrationError as e:
                    logger.warning(f"Count failed for {category.value}: {e}")
                    return category, 0, f"Could not fetch {category.label}"

        try:
            results = await asyncio.gather(*(count_one(category) for category in CATALOG))
        finally:
            await provider.close()

        counts: Dict[MigrationCategory, int] = {}
        warnings = []
        for category, count, warning in results:
            counts[category] = count
            if warning:
                warnings.append(warning)

        if previous_counts:
            for category in CATALOG:
                previous = previous_counts.get(category.value)
                if previous is not None and previous != counts[category]:
                    warnings.append(
                        f"{category.label[0].upper()}{category.label[1:]} changed since the last analysis: {previous} -> {counts[category]}"
                    )

        return AnalysisResult(
            data_counts=counts,
            estimated_duration=estimate_minutes(counts),
            warnings=warnings,
        )


source_analyzer = SourceAnalyzer()
