"""
Tests for the zone resolver, using botocore's Stubber in place of EC2
"""

from unittest.mock import MagicMock

import boto3
import pytest
from botocore.stub import Stubber

from core.errors import ProviderUnavailable, ZoneNotFound, NoHealthyZones
from core.zones import ZoneResolver, MATCH_ZONE_NAME

US_EAST_1 = [
    {"ZoneName": "us-east-1c", "ZoneId": "use1-az4", "RegionName": "us-east-1", "State": "available"},
    {"ZoneName": "us-east-1a", "ZoneId": "use1-az1", "RegionName": "us-east-1", "State": "available"},
    {"ZoneName": "us-east-1b", "ZoneId": "use1-az2", "RegionName": "us-east-1", "State": "available"},
]


@pytest.fixture
def ec2():
    client = boto3.client(
        "ec2",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber


def _stub_zones(stubber, zones, region="us-east-1"):
    stubber.add_response(
        "describe_availability_zones",
        {"AvailabilityZones": zones},
        {"Filters": [
            {"Name": "region-name", "Values": [region]},
            {"Name": "zone-type", "Values": ["availability-zone"]},
        ]},
    )


class TestZoneResolver:
    """Healthy zone resolution"""

    def test_excludes_zone_by_name(self, ec2):
        client, stubber = ec2
        _stub_zones(stubber, US_EAST_1)
        resolver = ZoneResolver(match_on=MATCH_ZONE_NAME, client_factory=lambda region: client)

        assert resolver.resolve("us-east-1", "us-east-1b") == ["us-east-1a", "us-east-1c"]

    def test_excludes_zone_by_id_by_default(self, ec2):
        client, stubber = ec2
        _stub_zones(stubber, US_EAST_1)
        resolver = ZoneResolver(client_factory=lambda region: client)

        assert resolver.resolve("us-east-1", "use1-az2") == ["us-east-1a", "us-east-1c"]

    def test_result_is_sorted_by_name(self, ec2):
        client, stubber = ec2
        _stub_zones(stubber, US_EAST_1)
        resolver = ZoneResolver(client_factory=lambda region: client)

        zones = resolver.resolve("us-east-1", "use1-az1")
        assert zones == sorted(zones) == ["us-east-1b", "us-east-1c"]

    def test_identifier_from_the_other_space_is_not_found(self, ec2):
        client, stubber = ec2
        _stub_zones(stubber, US_EAST_1)
        resolver = ZoneResolver(client_factory=lambda region: client)

        with pytest.raises(ZoneNotFound) as exc_info:
            resolver.resolve("us-east-1", "us-east-1b")
        assert exc_info.value.match_on == "zone-id"

    def test_single_zone_region_has_no_healthy_zones(self, ec2):
        client, stubber = ec2
        _stub_zones(stubber, US_EAST_1[:1])
        resolver = ZoneResolver(client_factory=lambda region: client)

        with pytest.raises(NoHealthyZones):
            resolver.resolve("us-east-1", "use1-az4")

    def test_api_error_is_provider_unavailable(self, ec2):
        client, stubber = ec2
        stubber.add_client_error(
            "describe_availability_zones",
            service_error_code="UnauthorizedOperation",
            service_message="You are not authorized to perform this operation.",
            http_status_code=403,
        )
        resolver = ZoneResolver(client_factory=lambda region: client)

        with pytest.raises(ProviderUnavailable):
            resolver.resolve("us-east-1", "use1-az2")

    def test_zones_are_fetched_on_every_call(self):
        client = MagicMock()
        client.describe_availability_zones.side_effect = [
            {"AvailabilityZones": US_EAST_1},
            {"AvailabilityZones": US_EAST_1[:2]},
        ]
        factory = MagicMock(return_value=client)
        resolver = ZoneResolver(client_factory=factory)

        assert resolver.resolve("us-east-1", "use1-az4") == ["us-east-1a", "us-east-1b"]
        assert resolver.resolve("us-east-1", "use1-az4") == ["us-east-1a"]
        assert factory.call_count == 2
        factory.assert_called_with("us-east-1")

    def test_local_and_wavelength_zones_are_not_healthy_targets(self):
        client = MagicMock()
        client.describe_availability_zones.return_value = {"AvailabilityZones": US_EAST_1 + [
            {"ZoneName": "us-east-1-bos-1a", "ZoneId": "use1-bos1-az1", "ZoneType": "local-zone"},
            {"ZoneName": "us-east-1-wl1-bos-wlz-1", "ZoneId": "use1-wl1-bos-wlz1", "ZoneType": "wavelength-zone"},
        ]}
        resolver = ZoneResolver(client_factory=lambda region: client)

        assert resolver.resolve("us-east-1", "use1-az2") == ["us-east-1a", "us-east-1c"]
        filters = client.describe_availability_zones.call_args.kwargs["Filters"]
        assert {"Name": "zone-type", "Values": ["availability-zone"]} in filters

    def test_rejects_unknown_match_key(self):
        with pytest.raises(ValueError):
            ZoneResolver(match_on="zone-arn")
