#!/usr/bin/env python3
"""
Dispatcher: runs reconciliation passes off the ingestion path

Events are handed to a bounded thread pool and the caller returns at once.
Admission is capped at max_workers + queue_size outstanding events; beyond
that the event is rejected so the sender redelivers later.
"""

import concurrent.futures
import logging
import re
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from core.errors import MalformedPayload, ConfirmationFailed, DispatchRejected
from core.logging_config import log_context
from core.metrics import DISPATCH_REJECTED, record_result
from core.reconciler import NodePoolReconciler
from models.events import ShiftEvent, ConfirmationRequired
from models.results import ReconcileResult

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_HOST_PATTERN = r"^sns\.[a-z0-9-]+\.amazonaws\.com(\.cn)?$"


class EventDispatcher:
    """Submits shift events to a worker pool and handles SNS handshakes"""

    def __init__(
        self,
        reconciler: NodePoolReconciler,
        max_workers: int = 4,
        queue_size: int = 32,
        history_size: int = 100,
        confirm_timeout: float = 10.0,
        allowed_host_pattern: str = DEFAULT_ALLOWED_HOST_PATTERN,
        http_session: Optional[requests.Session] = None
    ):
        """
        Initialize dispatcher

        Args:
            reconciler: Reconciler each event is passed to
            max_workers: Concurrent reconciliation passes
            queue_size: Events allowed to wait for a free worker
            history_size: Finished results kept for the history endpoint
            confirm_timeout: Timeout for the subscription confirmation GET
            allowed_host_pattern: Regex a SubscribeURL host must match
            http_session: requests session used for the confirmation GET
        """
        self.reconciler = reconciler
        self.max_workers = max_workers
        self.queue_size = queue_size
        self.confirm_timeout = confirm_timeout
        self.allowed_host = re.compile(allowed_host_pattern)
        self.http = http_session or requests.Session()

        self.thread_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="zonal-shift"
        )
        self._slots = threading.BoundedSemaphore(max_workers + queue_size)
        self._lock = threading.Lock()
        self._history: deque = deque(maxlen=history_size)
        self._in_flight = 0
        self._completed = 0
        self._rejected = 0

        logger.info(f"EventDispatcher initialized with max_workers={max_workers}, queue_size={queue_size}")

    def submit(self, event: ShiftEvent) -> concurrent.futures.Future:
        """
        Queue an event for reconciliation and return immediately

        Raises:
            DispatchRejected: no capacity left
        """
        if not self._slots.acquire(blocking=False):
            self._reject(event, "worker pool saturated")

        try:
            future = self.thread_pool.submit(self._run, event)
        except RuntimeError as e:
            self._slots.release()
            self._reject(event, str(e))

        with self._lock:
            self._in_flight += 1
        future.add_done_callback(self._release)
        logger.info(f"Queued event {event.event_id} for {event.region} (away from {event.away_from})")
        return future

    def _reject(self, event: ShiftEvent, reason: str) -> None:
        with self._lock:
            self._rejected += 1
        DISPATCH_REJECTED.inc()
        logger.warning(f"Rejected event {event.event_id}: {reason}")
        raise DispatchRejected(f"Cannot accept event {event.event_id}: {reason}")

    def _release(self, _future: concurrent.futures.Future) -> None:
        with self._lock:
            self._in_flight -= 1
            self._completed += 1
        self._slots.release()

    def _run(self, event: ShiftEvent) -> ReconcileResult:
        with log_context(event_id=event.event_id or "-"):
            logger.info("Starting node pool reconciliation")
            try:
                result = self.reconciler.reconcile(event)
            except Exception as e:
                logger.error(f"Unexpected error reconciling node pools: {e}", exc_info=True)
                result = ReconcileResult(
                    event_id=event.event_id,
                    region=event.region,
                    away_from=event.away_from,
                    error=f"unexpected: {e}",
                    finished_at=datetime.now(timezone.utc)
                )
            record_result(result)
            with self._lock:
                self._history.append(result)
            logger.info(f"Completed node pool reconciliation with status {result.status}")
            return result

    def confirm_subscription(self, confirmation: ConfirmationRequired) -> None:
        """
        Issue the SNS subscription confirmation GET

        Raises:
            MalformedPayload: SubscribeURL is not an https SNS endpoint
            ConfirmationFailed: request failed or returned a non-2xx status
        """
        url = confirmation.subscribe_url
        parsed = urlparse(url)
        if parsed.scheme != "https" or not self.allowed_host.match(parsed.hostname or ""):
            logger.warning(f"Refusing to confirm subscription at untrusted URL host {parsed.hostname}")
            raise MalformedPayload(f"SubscribeURL host {parsed.hostname} is not an allowed SNS endpoint")

        logger.info(f"Processing subscription confirmation for {confirmation.topic_arn}")
        try:
            response = self.http.get(url, timeout=self.confirm_timeout)
        except requests.RequestException as e:
            logger.error(f"Subscription confirmation failed: {e}")
            raise ConfirmationFailed(f"Failed to confirm subscription: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Subscription confirmation returned HTTP {response.status_code}")
            raise ConfirmationFailed(f"Failed to confirm subscription: HTTP {response.status_code}")
        logger.info("Subscription confirmed successfully")

    def history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Most recent results first"""
        with self._lock:
            results = list(self._history)
        return [r.to_dict() for r in reversed(results)][:max(limit, 0)]

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "max_workers": self.max_workers,
                "queue_size": self.queue_size,
                "in_flight": self._in_flight,
                "completed": self._completed,
                "rejected": self._rejected
            }

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down dispatcher")
        self.thread_pool.shutdown(wait=wait)
