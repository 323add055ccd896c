#!/usr/bin/env python3
"""
Event normalizer: turns a delivered payload into a canonical ShiftEvent

A payload is either an SNS envelope (top-level "Type" field) or a direct
EventBridge event document. normalize() returns a ShiftEvent or a
ConfirmationRequired, and raises a tagged error otherwise; a partially
populated event is never returned.
"""

import json
import logging
from typing import Any, Dict, Union

from pydantic import ValidationError

from core.errors import MalformedPayload, EmbeddedEventInvalid
from models.events import SNSEnvelope, EventBridgeEvent, ShiftEvent, ConfirmationRequired

logger = logging.getLogger(__name__)

SUBSCRIPTION_CONFIRMATION = "SubscriptionConfirmation"
NOTIFICATION = "Notification"

NormalizedPayload = Union[ShiftEvent, ConfirmationRequired]


def _load_object(raw: Union[bytes, str]) -> Dict[str, Any]:
    """Decode a JSON object; raises ValueError for anything else"""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    document = json.loads(raw)
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return document


def _is_envelope(document: Dict[str, Any]) -> bool:
    value = document.get("Type")
    return isinstance(value, str) and bool(value)


def _event_from_document(document: Dict[str, Any]) -> ShiftEvent:
    try:
        event = EventBridgeEvent.model_validate(document)
        return ShiftEvent.from_eventbridge(event)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "document" for err in e.errors())
        raise MalformedPayload(f"Event is missing or has invalid fields: {fields}") from e


def _from_envelope(document: Dict[str, Any]) -> NormalizedPayload:
    try:
        envelope = SNSEnvelope.model_validate(document)
    except ValidationError as e:
        raise MalformedPayload(f"Invalid SNS envelope: {e.error_count()} field error(s)") from e

    if envelope.type == SUBSCRIPTION_CONFIRMATION:
        if not envelope.subscribe_url:
            raise MalformedPayload("SubscriptionConfirmation without SubscribeURL")
        logger.info(f"Subscription confirmation requested for topic {envelope.topic_arn}")
        return ConfirmationRequired(
            subscribe_url=envelope.subscribe_url,
            topic_arn=envelope.topic_arn,
            message_id=envelope.message_id
        )

    if envelope.type == NOTIFICATION:
        try:
            inner = _load_object(envelope.message or "")
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"SNS message {envelope.message_id} does not embed a JSON event: {e}")
            raise EmbeddedEventInvalid(f"Invalid event format in SNS message: {e}") from e
        event = _event_from_document(inner)
        logger.info(f"SNS notification {envelope.message_id} carries event {event.event_id}")
        return event

    raise MalformedPayload(f"Unsupported envelope type: {envelope.type}")


def normalize(raw: Union[bytes, str]) -> NormalizedPayload:
    """
    Normalize a delivered payload

    Args:
        raw: Request body as received

    Returns:
        ShiftEvent for a zonal shift, ConfirmationRequired for an SNS handshake

    Raises:
        MalformedPayload: body is not a usable notification
        EmbeddedEventInvalid: SNS Message field is not a JSON document
    """
    try:
        document = _load_object(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedPayload(f"Invalid message format: {e}") from e

    if _is_envelope(document):
        return _from_envelope(document)

    event = _event_from_document(document)
    logger.info(
        f"Direct event received - ID: {event.event_id}, Type: {event.detail_type}, "
        f"Region: {event.region}, AwayFrom: {event.away_from}"
    )
    return event
