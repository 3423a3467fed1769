"""
Kube Actuator - K8s Executor Configuration
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache

from shared.constants import ServiceName, Timing


class Settings(BaseSettings):
    """Application settings."""

    service_name: str = Field(default=ServiceName.K8S_EXECUTOR.value)
    service_version: str = Field(default="0.1.0")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8004)
    debug: bool = Field(default=False)

    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    # Kubernetes
    k8s_in_cluster: bool = Field(
        default=True,
        description="Use in-cluster config"
    )
    k8s_kubeconfig: str = Field(
        default="",
        description="Path to kubeconfig file"
    )
    watch_namespace: str = Field(
        default="",
        description="Namespace to watch for new pods (empty = all)"
    )
    watch_scheduler_name: str = Field(
        default="",
        description="Only publish pods requesting this scheduler (empty = any)"
    )

    # Scaling policy
    scale_delta: int = Field(
        default=1,
        ge=1,
        description="Replicas added on provision / removed on unbind"
    )
    scale_out_timeout_seconds: float = Field(
        default=float(Timing.SCALE_OUT_TIMEOUT_SECONDS),
        gt=0,
        description="How long a scale-out waits for the new pod"
    )
    strict_owner_match: bool = Field(
        default=False,
        description="Fail when more than one controller selects a pod"
    )

    # Action records
    action_history_limit: int = Field(
        default=500,
        description="Max action records kept in memory"
    )

    # Completion reporting to the analysis service
    action_report_url: str = Field(
        default="",
        description="Base URL of the analysis service (empty = do not report)"
    )
    action_report_username: str = Field(default="")
    action_report_password: str = Field(default="")
    action_report_verify_tls: bool = Field(default=True)
    report_max_attempts: int = Field(default=3, ge=1)
    report_base_delay: float = Field(default=1.0)

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
