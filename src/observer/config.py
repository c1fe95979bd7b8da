from __future__ import annotations

from uuid import uuid4

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OBSERVER_", env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = "observer"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 8080

    # Instance ID for distributed deployments
    instance_id: str = Field(default_factory=lambda: str(uuid4())[:8])

    # Database
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
    db_hostname: str = Field(default="localhost", validation_alias="DB_HOSTNAME")
    db_username: str = Field(default="observer", validation_alias="DB_USERNAME")
    db_password: str = Field(default="observer", validation_alias="DB_PASSWORD")
    db_name: str = Field(default="observer", validation_alias="DB_NAME")
    db_pool_size: int = Field(default=10, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, validation_alias="DB_MAX_OVERFLOW")
    db_query_timeout: float = Field(default=5.0, validation_alias="DB_QUERY_TIMEOUT")
    db_list_timeout: float = Field(default=30.0, validation_alias="DB_LIST_TIMEOUT")

    # Peer cache
    cache_self: str = Field(default="http://localhost:8080", validation_alias="CACHE_SELF")
    cache_peers: str = Field(default="", validation_alias="CACHE_PEERS")
    cache_group: str = Field(default="observer", validation_alias="CACHE_GROUP")
    cache_main_bytes: int = Field(default=10 * 1024 * 1024, validation_alias="CACHE_MAIN_BYTES")
    cache_hot_bytes: int = Field(default=10 * 1024 * 1024 // 8, validation_alias="CACHE_HOT_BYTES")
    cache_ttl_seconds: float = Field(default=300.0, validation_alias="CACHE_TTL_SECONDS")
    cache_replicas: int = Field(default=50, validation_alias="CACHE_REPLICAS")
    cache_peer_timeout: float = Field(default=5.0, validation_alias="CACHE_PEER_TIMEOUT")
    cache_wait_timeout: float = Field(default=10.0, validation_alias="CACHE_WAIT_TIMEOUT")

    # Observability
    enable_tracing: bool = Field(default=True, validation_alias="ENABLE_TRACING")
    otlp_endpoint: str | None = Field(default=None, validation_alias="OTLP_ENDPOINT")
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Latency and error injection on the document routes
    enable_fault_injection: bool = Field(default=True, validation_alias="ENABLE_FAULT_INJECTION")

    @property
    def resolved_database_url(self) -> str:
        """Database URL, assembled from the DB_* parts when DATABASE_URL is unset."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+asyncpg://{self.db_username}:{self.db_password}"
            f"@{self.db_hostname}:5432/{self.db_name}"
        )

    @property
    def peer_urls(self) -> list[str]:
        """Static peer set, always containing this instance."""
        peers = [p.strip().rstrip("/") for p in self.cache_peers.split(",") if p.strip()]
        self_url = self.cache_self.rstrip("/")
        if self_url not in peers:
            peers.insert(0, self_url)
        return list(dict.fromkeys(peers))


settings = Settings()
