#!/usr/bin/env python3
"""
Configuration settings using Pydantic for environment variable loading
"""

import os
from typing import Optional, Dict, Any, List

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration settings"""
    in_cluster: bool = os.getenv("KUBERNETES_IN_CLUSTER", "true").lower() == "true"
    kubeconfig_path: Optional[str] = os.getenv("KUBECONFIG_PATH", None)
    nodepool_group: str = os.getenv("NODEPOOL_GROUP", "karpenter.sh")
    nodepool_version: str = os.getenv("NODEPOOL_VERSION", "v1")
    nodepool_plural: str = os.getenv("NODEPOOL_PLURAL", "nodepools")
    request_timeout: float = float(os.getenv("KUBERNETES_REQUEST_TIMEOUT", "10"))

    class Config:
        extra = "ignore"


class AWSSettings(BaseSettings):
    """AWS client configuration settings"""
    connect_timeout: float = float(os.getenv("AWS_CONNECT_TIMEOUT", "5"))
    read_timeout: float = float(os.getenv("AWS_READ_TIMEOUT", "10"))
    max_attempts: int = int(os.getenv("AWS_MAX_ATTEMPTS", "3"))

    class Config:
        extra = "ignore"


class ZoneSettings(BaseSettings):
    """Availability zone matching settings"""
    # "zone-id" (use1-az2) or "zone-name" (us-east-1b)
    match_on: str = os.getenv("ZONE_MATCH_ON", "zone-id")
    zone_key: str = os.getenv("ZONE_REQUIREMENT_KEY", "topology.kubernetes.io/zone")

    class Config:
        extra = "ignore"


class ReconcilerSettings(BaseSettings):
    """Node pool reconciliation settings"""
    bootstrap_pools: List[str] = Field(
        default_factory=lambda: _env_list("RECONCILER_BOOTSTRAP_POOLS", "general-purpose,system")
    )
    template_pool: str = os.getenv("RECONCILER_TEMPLATE_POOL", "general-purpose")
    failover_pool_name: str = os.getenv("RECONCILER_FAILOVER_POOL_NAME", "zonal-shift-{region}")
    default_node_class_name: str = os.getenv("RECONCILER_NODE_CLASS_NAME", "default")
    default_node_class_kind: str = os.getenv("RECONCILER_NODE_CLASS_KIND", "NodeClass")
    default_node_class_group: str = os.getenv("RECONCILER_NODE_CLASS_GROUP", "eks.amazonaws.com")
    dry_run: bool = os.getenv("RECONCILER_DRY_RUN", "false").lower() == "true"

    class Config:
        extra = "ignore"


class DispatcherSettings(BaseSettings):
    """Background dispatch settings"""
    max_workers: int = int(os.getenv("DISPATCHER_MAX_WORKERS", "4"))
    queue_size: int = int(os.getenv("DISPATCHER_QUEUE_SIZE", "32"))
    history_size: int = int(os.getenv("DISPATCHER_HISTORY_SIZE", "100"))

    class Config:
        extra = "ignore"


class SNSSettings(BaseSettings):
    """SNS subscription handshake settings"""
    confirm_timeout: float = float(os.getenv("SNS_CONFIRM_TIMEOUT", "10"))
    allowed_host_pattern: str = os.getenv(
        "SNS_ALLOWED_HOST_PATTERN",
        r"^sns\.[a-z0-9-]+\.amazonaws\.com(\.cn)?$"
    )

    class Config:
        extra = "ignore"


class APISettings(BaseSettings):
    """HTTP listener settings"""
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))
    metrics_port: int = int(os.getenv("METRICS_PORT", "9091"))

    class Config:
        extra = "ignore"


class LoggingSettings(BaseSettings):
    """Logging configuration settings"""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - [event=%(event_id)s pool=%(pool)s] - %(message)s"
    )
    file: Optional[str] = os.getenv("LOG_FILE", None)
    enable_colors: bool = os.getenv("LOG_COLORS", "true").lower() == "true"

    class Config:
        extra = "ignore"


class Settings(BaseSettings):
    """Main settings class that includes all sub-settings"""
    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Component settings
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    zones: ZoneSettings = Field(default_factory=ZoneSettings)
    reconciler: ReconcilerSettings = Field(default_factory=ReconcilerSettings)
    dispatcher: DispatcherSettings = Field(default_factory=DispatcherSettings)
    sns: SNSSettings = Field(default_factory=SNSSettings)
    api: APISettings = Field(default_factory=APISettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def get_public_config(self) -> Dict[str, Any]:
        """Settings summary safe to expose over the status endpoint"""
        return {
            "environment": self.environment,
            "zones": {
                "match_on": self.zones.match_on,
                "zone_key": self.zones.zone_key
            },
            "reconciler": {
                "bootstrap_pools": list(self.reconciler.bootstrap_pools),
                "template_pool": self.reconciler.template_pool,
                "failover_pool_name": self.reconciler.failover_pool_name,
                "dry_run": self.reconciler.dry_run
            },
            "dispatcher": {
                "max_workers": self.dispatcher.max_workers,
                "queue_size": self.dispatcher.queue_size
            },
            "nodepools": f"{self.kubernetes.nodepool_group}/{self.kubernetes.nodepool_version}"
                         f"/{self.kubernetes.nodepool_plural}"
        }

    @classmethod
    def load_from_yaml_with_env_override(cls, yaml_path: str) -> "Settings":
        """Load settings from YAML file and override with environment variables"""
        import yaml

        yaml_config = {}
        if os.path.exists(yaml_path):
            with open(yaml_path, 'r') as f:
                # Process environment variables in YAML
                yaml_content = f.read()
                for key, value in os.environ.items():
                    yaml_content = yaml_content.replace(f"${{{key}}}", value)
                yaml_config = yaml.safe_load(yaml_content) or {}

        return Settings(
            environment=yaml_config.get("environment", "development"),
            debug=yaml_config.get("debug", False),
            kubernetes=KubernetesSettings(**yaml_config.get("kubernetes", {})),
            aws=AWSSettings(**yaml_config.get("aws", {})),
            zones=ZoneSettings(**yaml_config.get("zones", {})),
            reconciler=ReconcilerSettings(**yaml_config.get("reconciler", {})),
            dispatcher=DispatcherSettings(**yaml_config.get("dispatcher", {})),
            sns=SNSSettings(**yaml_config.get("sns", {})),
            api=APISettings(**yaml_config.get("api", {})),
            logging=LoggingSettings(**yaml_config.get("logging", {}))
        )


# Global settings instance
settings = Settings()
