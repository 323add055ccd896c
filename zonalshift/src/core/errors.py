#!/usr/bin/env python3
"""
Error taxonomy for the zonal shift reconciler

Parse-time errors end the HTTP request. Reconciliation-time errors end either
one pool's mutation or, when nothing could be read, the whole pass.
"""

from typing import Optional


class ZonalShiftError(Exception):
    """Base class for all reconciler errors"""


# Ingestion

class MalformedPayload(ZonalShiftError):
    """The delivered payload is not a usable notification (HTTP 400)"""


class EmbeddedEventInvalid(ZonalShiftError):
    """An SNS notification's inner Message is not a JSON document (HTTP 500)"""


class ConfirmationFailed(ZonalShiftError):
    """The subscription confirmation GET did not succeed (HTTP 500)"""


class DispatchRejected(ZonalShiftError):
    """The worker pool is saturated and cannot admit the event (HTTP 503)"""


# Zone resolution

class ProviderUnavailable(ZonalShiftError):
    """The cloud provider could not be queried for the zone list"""


class ZoneNotFound(ZonalShiftError):
    """The zone to move away from is not part of the region's topology"""

    def __init__(self, region: str, away_from: str, match_on: str):
        self.region = region
        self.away_from = away_from
        self.match_on = match_on
        super().__init__(
            f"No zone with {match_on} '{away_from}' in region {region}"
        )


class NoHealthyZones(ZonalShiftError):
    """Excluding the shifted zone leaves nothing to schedule into"""


# Node pool store

class ListFailed(ZonalShiftError):
    """Node pools could not be read from the cluster"""


class PoolNotFound(ZonalShiftError):
    """A node pool disappeared between listing and re-fetching"""


class UpdateFailed(ZonalShiftError):
    """A node pool create or update was rejected"""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class PoolAlreadyExists(UpdateFailed):
    """Create hit an existing node pool of the same name"""


class ConflictRetryable(UpdateFailed):
    """Update presented a stale resource version"""
