"""
Credential validator: probes a source/destination pair concurrently.
"""

import asyncio
import logging
from typing import Optional

from .domain import AccountCheck, AccountCredentials, ValidationResult
from .errors import (
    AccountAccessError,
    PlatformUnreachableError,
    RecordNotFoundError,
    RetryExhaustedError,
    TransientPlatformError,
)
from .providers import ProviderFactory, default_provider_factory
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

MALFORMED = "API key and location ID are required"
UNAUTHORIZED = "API key is invalid or not authorized for this location"
NOT_FOUND = "Location not found for this API key"
UNREACHABLE = "Could not reach the platform, please try again"
UNEXPECTED = "Account could not be verified"


class CredentialValidator:
    """Reachability and permission probe for both accounts of a job"""

    def __init__(self, provider_factory: Optional[ProviderFactory] = None, retry: Optional[RetryPolicy] = None):
        self.provider_factory = provider_factory or default_provider_factory
        # Short backoff; the operator is waiting on this check
        self.retry = retry or RetryPolicy(max_attempts=2, base_delay=0.5, max_delay=2.0)

    async def validate(self, source: AccountCredentials, destination: AccountCredentials) -> ValidationResult:
        source_check, destination_check = await asyncio.gather(
            self.check_account(source),
            self.check_account(destination),
        )

        warnings = []
        if source.tenant_id and source.tenant_id == destination.tenant_id:
            warnings.append("Source and destination are the same location; records will be duplicated in place")

        return ValidationResult(
            source_account=source_check,
            destination_account=destination_check,
            warnings=warnings,
        )

    async def check_account(self, credentials: AccountCredentials) -> AccountCheck:
        """Never raises; every failure becomes isValid=False with a generic message"""
        if not credentials.is_well_formed:
            return AccountCheck(is_valid=False, error=MALFORMED)

        provider = self.provider_factory(credentials)
        try:
            location = await self.retry.call(provider.get_location, "Location probe")
            return AccountCheck(is_valid=True, location_name=location.name)
        except AccountAccessError as e:
            if isinstance(e, PlatformUnreachableError):
                return AccountCheck(is_valid=False, error=UNREACHABLE)
            return AccountCheck(is_valid=False, error=UNAUTHORIZED)
        except RecordNotFoundError:
            return AccountCheck(is_valid=False, error=NOT_FOUND)
        except (RetryExhaustedError, TransientPlatformError):
            return AccountCheck(is_valid=False, error=UNREACHABLE)
        except Exception as e:
            logger.exception(f"Unexpected error validating location {credentials.tenant_id}: {e}")
            return AccountCheck(is_valid=False, error=UNEXPECTED)
        finally:
            await provider.close()


credential_validator = CredentialValidator()
