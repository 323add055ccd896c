#!/usr/bin/env python3
"""
Zone resolver: the zones of a region that remain eligible for scheduling
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import ProviderUnavailable, ZoneNotFound, NoHealthyZones

logger = logging.getLogger(__name__)

MATCH_ZONE_ID = "zone-id"
MATCH_ZONE_NAME = "zone-name"

# Local Zones and Wavelength Zones are never scheduling targets
ZONE_TYPE_AVAILABILITY_ZONE = "availability-zone"


@dataclass(frozen=True)
class Zone:
    """An availability zone as reported by EC2"""
    zone_id: str
    zone_name: str

    def key(self, match_on: str) -> str:
        return self.zone_id if match_on == MATCH_ZONE_ID else self.zone_name


class ZoneResolver:
    """
    Resolves the healthy zone set for a region

    The zone list is fetched from EC2 on every call. Exactly one zone is
    excluded: the one whose identifier, in the configured identifier space
    (zone id or zone name), equals the shift's awayFrom value.
    """

    def __init__(
        self,
        match_on: str = MATCH_ZONE_ID,
        client_factory: Optional[Callable[[str], Any]] = None,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        max_attempts: int = 3
    ):
        """
        Initialize zone resolver

        Args:
            match_on: "zone-id" or "zone-name", the identifier awayFrom carries
            client_factory: Builds an EC2 client for a region
            connect_timeout: EC2 connect timeout in seconds
            read_timeout: EC2 read timeout in seconds
            max_attempts: Total attempts per EC2 call, retries included
        """
        if match_on not in (MATCH_ZONE_ID, MATCH_ZONE_NAME):
            raise ValueError(f"match_on must be '{MATCH_ZONE_ID}' or '{MATCH_ZONE_NAME}', got '{match_on}'")
        self.match_on = match_on
        self.boto_config = Config(
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            retries={"max_attempts": max_attempts, "mode": "standard"}
        )
        self.client_factory = client_factory or self._default_client

    def _default_client(self, region: str):
        return boto3.client("ec2", region_name=region, config=self.boto_config)

    def list_zones(self, region: str) -> List[Zone]:
        """Fetch the region's current availability zones"""
        try:
            ec2 = self.client_factory(region)
            response = ec2.describe_availability_zones(
                Filters=[
                    {"Name": "region-name", "Values": [region]},
                    {"Name": "zone-type", "Values": [ZONE_TYPE_AVAILABILITY_ZONE]}
                ]
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to describe availability zones in {region}: {e}")
            raise ProviderUnavailable(f"Describing availability zones in {region} failed: {e}") from e

        zones = [
            Zone(zone_id=az["ZoneId"], zone_name=az["ZoneName"])
            for az in response.get("AvailabilityZones", [])
            if az.get("ZoneId") and az.get("ZoneName")
            and az.get("ZoneType", ZONE_TYPE_AVAILABILITY_ZONE) == ZONE_TYPE_AVAILABILITY_ZONE
        ]
        logger.info(f"Retrieved {len(zones)} AZs from EC2 API for {region}")
        return zones

    def resolve(self, region: str, away_from: str) -> List[str]:
        """
        Zones that remain eligible after excluding away_from

        Args:
            region: Region to resolve
            away_from: Identifier of the zone to exclude

        Returns:
            Remaining zone names, sorted ascending

        Raises:
            ProviderUnavailable: EC2 could not be queried
            ZoneNotFound: no zone in the region carries away_from
            NoHealthyZones: away_from was the only zone
        """
        zones = self.list_zones(region)

        excluded = [z for z in zones if z.key(self.match_on) == away_from]
        if not excluded:
            raise ZoneNotFound(region, away_from, self.match_on)

        healthy = sorted({z.zone_name for z in zones if z.key(self.match_on) != away_from})
        for zone in excluded:
            logger.info(f"Excluding AZ {zone.zone_name} ({zone.zone_id}) as it matches awayFrom {away_from}")
        if not healthy:
            raise NoHealthyZones(f"No zones left in {region} after excluding {away_from}")

        logger.info(f"Healthy zones for {region}: {healthy}")
        return healthy
