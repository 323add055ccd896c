#!/usr/bin/env python3
"""
Pydantic models for inbound zonal shift notifications
"""

from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator


class SNSEnvelope(BaseModel):
    """SNS HTTP(S) delivery envelope"""
    type: Optional[str] = Field(None, alias="Type", description="Notification or SubscriptionConfirmation")
    message_id: Optional[str] = Field(None, alias="MessageId")
    topic_arn: Optional[str] = Field(None, alias="TopicArn")
    message: Optional[str] = Field(None, alias="Message", description="Embedded event document as a JSON string")
    subscribe_url: Optional[str] = Field(None, alias="SubscribeURL")
    timestamp: Optional[str] = Field(None, alias="Timestamp")
    signature_version: Optional[str] = Field(None, alias="SignatureVersion")
    signature: Optional[str] = Field(None, alias="Signature")
    signing_cert_url: Optional[str] = Field(None, alias="SigningCertURL")

    class Config:
        populate_by_name = True
        extra = "ignore"


class ShiftMetadata(BaseModel):
    """detail.metadata of a zonal shift event"""
    away_from: Optional[str] = Field(None, alias="awayFrom", description="Zone to move capacity away from")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "ignore"


class ShiftDetail(BaseModel):
    """detail block of a zonal shift event"""
    version: Optional[str] = None
    data: Optional[Any] = None
    metadata: ShiftMetadata = Field(default_factory=ShiftMetadata)

    class Config:
        extra = "ignore"


class EventBridgeEvent(BaseModel):
    """Direct EventBridge event document"""
    version: Optional[str] = None
    id: Optional[str] = None
    detail_type: Optional[str] = Field(None, alias="detail-type")
    source: Optional[str] = None
    account: Optional[str] = None
    time: Optional[str] = None
    region: Optional[str] = None
    resources: List[str] = Field(default_factory=list)
    detail: ShiftDetail = Field(default_factory=ShiftDetail)

    class Config:
        populate_by_name = True
        extra = "ignore"


class ShiftEvent(BaseModel):
    """Canonical zonal shift event handed to the reconciler"""
    region: str = Field(..., description="Region the shift applies to")
    away_from: str = Field(..., description="Zone identifier to stop scheduling into")

    # Provenance, not used for decisions
    event_id: Optional[str] = Field(None, description="EventBridge event id")
    time: Optional[str] = Field(None, description="Event time as sent by the provider")
    source: Optional[str] = Field(None, description="Event source, e.g. aws.arc-zonal-shift")
    detail_type: Optional[str] = Field(None, description="EventBridge detail-type")
    notes: Optional[str] = Field(None, description="Free-form notes from detail.metadata")

    @field_validator("region", "away_from")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @classmethod
    def from_eventbridge(cls, event: EventBridgeEvent) -> "ShiftEvent":
        """Build the canonical event; raises pydantic.ValidationError on missing fields"""
        return cls(
            region=event.region or "",
            away_from=event.detail.metadata.away_from or "",
            event_id=event.id,
            time=event.time,
            source=event.source,
            detail_type=event.detail_type,
            notes=event.detail.metadata.notes
        )


class ConfirmationRequired(BaseModel):
    """Outcome of normalizing a SubscriptionConfirmation envelope"""
    subscribe_url: str
    topic_arn: Optional[str] = None
    message_id: Optional[str] = None
