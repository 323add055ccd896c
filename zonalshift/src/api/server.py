#!/usr/bin/env python3
"""
FastAPI server module for the zonal shift ingestion endpoint
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool

from core.dispatcher import EventDispatcher
from core.errors import MalformedPayload, EmbeddedEventInvalid, ConfirmationFailed, DispatchRejected
from core.metrics import NOTIFICATIONS
from core.normalizer import normalize
from models.events import ConfirmationRequired

logger = logging.getLogger(__name__)

SERVICE_NAME = "Zonal Shift Reconciler"
SERVICE_VERSION = "1.0.0"


class APIServer:
    """FastAPI server receiving zonal shift notifications"""

    def __init__(self, dispatcher: EventDispatcher, config: Optional[Dict[str, Any]] = None):
        """
        Initialize API server

        Args:
            dispatcher: EventDispatcher events are handed to
            config: Public configuration summary for the status endpoint
        """
        self.dispatcher = dispatcher
        self.config = config or {}
        self.app = FastAPI(
            title=f"{SERVICE_NAME} API",
            description="Receives zonal shift notifications and reconciles Karpenter node pools",
            version=SERVICE_VERSION
        )
        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes"""

        @self.app.get("/")
        async def root():
            """Root endpoint"""
            return {
                "service": SERVICE_NAME,
                "version": SERVICE_VERSION,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint"""
            return {
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "dispatcher": self.dispatcher.get_status()
            }

        @self.app.get("/status")
        async def get_status():
            """Configuration summary and dispatcher counters"""
            return {
                "config": self.config,
                "dispatcher": self.dispatcher.get_status(),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        @self.app.get("/history")
        async def get_history(limit: int = Query(50, ge=1)):
            """Recent reconciliation results"""
            results = self.dispatcher.history(limit)
            return {"results": results, "count": len(results), "limit": limit}

        @self.app.post("/sns")
        async def handle_sns(request: Request):
            """Receive an SNS delivery or a direct EventBridge event"""
            body = await request.body()
            logger.info(f"Request received ({len(body)} bytes)")

            try:
                payload = normalize(body)
            except MalformedPayload as e:
                NOTIFICATIONS.labels(kind="malformed").inc()
                logger.warning(f"Rejecting malformed payload: {e}")
                raise HTTPException(status_code=400, detail=str(e))
            except EmbeddedEventInvalid as e:
                NOTIFICATIONS.labels(kind="embedded_invalid").inc()
                raise HTTPException(status_code=500, detail=str(e))

            if isinstance(payload, ConfirmationRequired):
                NOTIFICATIONS.labels(kind="confirmation").inc()
                try:
                    await run_in_threadpool(self.dispatcher.confirm_subscription, payload)
                except MalformedPayload as e:
                    raise HTTPException(status_code=400, detail=str(e))
                except ConfirmationFailed as e:
                    raise HTTPException(status_code=500, detail=str(e))
                return {"status": "confirmed", "topic_arn": payload.topic_arn}

            NOTIFICATIONS.labels(kind="event").inc()
            try:
                self.dispatcher.submit(payload)
            except DispatchRejected as e:
                raise HTTPException(status_code=503, detail=str(e))

            return {"status": "accepted", "event_id": payload.event_id}

    def run(self, host: str = "0.0.0.0", port: int = 8080):
        """Run the API server"""
        logger.info(f"Starting API server on {host}:{port}")
        uvicorn.run(self.app, host=host, port=port, log_level="info")
