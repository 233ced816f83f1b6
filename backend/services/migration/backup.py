"""
Backup exporter.
Full read-only export of a source location into one JSON-ready snapshot.
No job is created and no destination is involved.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .analyzer import SourceAnalyzer
from .categories import CATALOG
from .domain import AccountCredentials
from .errors import RecordRejectedError
from .providers import ProviderFactory, default_provider_factory
from .transfer import CategoryTransferUnit

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"


class BackupExporter:
    """Export every catalog category from the source"""

    def __init__(
        self,
        provider_factory: Optional[ProviderFactory] = None,
        analyzer: Optional[SourceAnalyzer] = None,
        transfer_unit: Optional[CategoryTransferUnit] = None,
    ):
        self.provider_factory = provider_factory or default_provider_factory
        self.analyzer = analyzer or SourceAnalyzer(self.provider_factory)
        self.transfer_unit = transfer_unit or CategoryTransferUnit()

    async def export(self, source: AccountCredentials) -> Dict[str, Any]:
        """
        Build the snapshot document.

        Raises:
            AccountAccessError: the source rejected the key or became unreachable.
        """
        analysis = await self.analyzer.analyze(source)
        warnings = list(analysis.warnings)

        snapshot: Dict[str, Any] = {
            "exportedAt": datetime.utcnow().isoformat() + "Z",
            "sourceTenantId": source.tenant_id,
            "version": SNAPSHOT_VERSION,
            "dataCounts": analysis.counts_by_name(),
            "warnings": warnings,
        }

        provider = self.provider_factory(source)
        try:
            for category in CATALOG:
                try:
                    snapshot[category.value] = await self.transfer_unit.export_all(provider, category)
                except RecordRejectedError as e:
                    logger.warning(f"Backup could not export {category.value}: {e}")
                    warnings.append(f"Could not export {category.label}")
                    snapshot[category.value] = []
        finally:
            await provider.close()

        logger.info(
            f"Backup exported for {source.tenant_id}: "
            f"{sum(len(snapshot[c.value]) for c in CATALOG)} records"
        )
        return snapshot


backup_exporter = BackupExporter()
