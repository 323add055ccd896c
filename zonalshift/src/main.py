#!/usr/bin/env python3
"""
Zonal Shift Reconciler - Main Entry Point
Moves Karpenter node pools away from an availability zone under zonal shift
"""

import os
import sys
from typing import Optional

from prometheus_client import start_http_server

# Add src to path for absolute imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.logging_config import setup_logging, get_logger
from core.zones import ZoneResolver
from core.reconciler import NodePoolReconciler
from core.dispatcher import EventDispatcher
from database import KubernetesNodePoolRepository, NodeClassRef, create_custom_objects_api
from api.server import APIServer
from config import Settings


class ZonalShiftService:
    """Main service that wires the reconciler, dispatcher and API server"""

    def __init__(self, config_path: Optional[str] = None, dry_run: bool = False):
        """Initialize the service"""
        if config_path and os.path.exists(config_path):
            self.settings = Settings.load_from_yaml_with_env_override(config_path)
        else:
            self.settings = Settings()

        if dry_run:
            self.settings.reconciler.dry_run = True

        setup_logging(
            level=self.settings.logging.level,
            log_file=self.settings.logging.file,
            enable_colors=self.settings.logging.enable_colors,
            log_format=self.settings.logging.format
        )
        self.logger = get_logger(__name__)

        self.repository = self._init_repository()
        self.resolver = ZoneResolver(
            match_on=self.settings.zones.match_on,
            connect_timeout=self.settings.aws.connect_timeout,
            read_timeout=self.settings.aws.read_timeout,
            max_attempts=self.settings.aws.max_attempts
        )

        reconciler_settings = self.settings.reconciler
        self.reconciler = NodePoolReconciler(
            repository=self.repository,
            resolver=self.resolver,
            zone_key=self.settings.zones.zone_key,
            bootstrap_pools=reconciler_settings.bootstrap_pools,
            template_pool=reconciler_settings.template_pool,
            failover_pool_name=reconciler_settings.failover_pool_name,
            default_node_class=NodeClassRef(
                name=reconciler_settings.default_node_class_name,
                kind=reconciler_settings.default_node_class_kind,
                group=reconciler_settings.default_node_class_group
            ),
            dry_run=reconciler_settings.dry_run
        )

        self.dispatcher = EventDispatcher(
            self.reconciler,
            max_workers=self.settings.dispatcher.max_workers,
            queue_size=self.settings.dispatcher.queue_size,
            history_size=self.settings.dispatcher.history_size,
            confirm_timeout=self.settings.sns.confirm_timeout,
            allowed_host_pattern=self.settings.sns.allowed_host_pattern
        )

        self.api_server = APIServer(self.dispatcher, self.settings.get_public_config())

        self.logger.info("Zonal Shift Reconciler initialized")
        if reconciler_settings.dry_run:
            self.logger.info("Dry-run mode enabled, node pools will not be written")
        if self.settings.debug:
            self.logger.info(f"Debug mode enabled. Settings: {self.settings.model_dump()}")

    def _init_repository(self) -> KubernetesNodePoolRepository:
        """Initialize the Kubernetes node pool repository"""
        kube = self.settings.kubernetes
        try:
            custom_api = create_custom_objects_api(kube.in_cluster, kube.kubeconfig_path)
        except Exception as e:
            self.logger.error(f"Failed to initialize Kubernetes client: {e}")
            sys.exit(1)

        self.logger.info("Kubernetes client initialized successfully")
        return KubernetesNodePoolRepository(
            custom_api,
            group=kube.nodepool_group,
            version=kube.nodepool_version,
            plural=kube.nodepool_plural,
            request_timeout=kube.request_timeout
        )

    def run(self):
        """Start the metrics server and serve the API until stopped"""
        self.logger.info("Starting Zonal Shift Reconciler...")

        start_http_server(self.settings.api.metrics_port)
        self.logger.info(f"Prometheus metrics server started on :{self.settings.api.metrics_port}")

        self.api_server.run(host=self.settings.api.host, port=self.settings.api.port)

    def cleanup(self):
        """Let queued passes finish before exiting"""
        try:
            self.dispatcher.shutdown(wait=True)
            self.logger.info("Cleanup completed")
        except Exception as e:
            self.logger.error(f"Error during cleanup: {e}")


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description='Zonal Shift Reconciler')
    parser.add_argument(
        '--config',
        default=os.getenv('CONFIG_PATH', '/app/config/config.yaml'),
        help='Path to configuration file'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Compute node pool changes without writing them'
    )

    args = parser.parse_args()

    service = ZonalShiftService(args.config, dry_run=args.dry_run)

    try:
        service.run()
    except KeyboardInterrupt:
        service.logger.info("Received keyboard interrupt")
    except Exception as e:
        service.logger.error(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        service.cleanup()


if __name__ == "__main__":
    main()
