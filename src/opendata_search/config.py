"""Centralized configuration for opendata-search using Pydantic Settings."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilityCollectorConfig(BaseModel):
    """Configuration for OTLP export."""

    model_config = {"extra": "forbid"}

    enabled: Annotated[bool, Field(description="Enable OTLP export to an external collector")] = False

    otlp_protocol: Annotated[Literal["http", "grpc"], Field(description="OTLP transport protocol")] = "grpc"

    collector_endpoint: Annotated[
        str,
        Field(
            description="OTLP collector endpoint (HTTP uses /v1/traces)",
            examples=["http://localhost:4317", "http://localhost:4318/v1/traces"],
        ),
    ] = "http://localhost:4317"

    headers: dict[str, str] = Field(default_factory=dict, description="Optional headers for OTLP requests")

    timeout_seconds: Annotated[int, Field(ge=1, le=60, description="OTLP exporter timeout in seconds")] = 10

    grpc_insecure: Annotated[bool, Field(description="Allow insecure gRPC (plaintext) connections")] = True

    resource_attributes: dict[str, str] = Field(
        default_factory=dict, description="Additional OpenTelemetry resource attributes"
    )


class Settings(BaseSettings):
    """Strictly typed configuration loaded from environment variables.

    Index names, backend connection details and HTTP limits are validated
    once at startup; the search core receives the resolved values through
    constructor arguments rather than reading the environment itself.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Backend connection
    elasticsearch_url: str = Field(default="http://localhost:9200", description="Search engine base URL")
    elasticsearch_request_timeout: int = Field(default=30, ge=1, description="Backend request timeout in seconds")
    elasticsearch_max_retries: int = Field(
        default=0, ge=0, description="Transport-level retries performed by the client (the core never retries)"
    )

    # Indices
    datasets_index_id: str = Field(default="datasets", description="Index holding dataset documents")
    regions_index_id: str = Field(default="regions", description="Index holding region shapes")
    publishers_index_id: str = Field(default="publishers", description="Index holding publisher facet values")
    formats_index_id: str = Field(default="formats", description="Index holding format facet values")
    regions_mapping_type: str | None = Field(
        default=None, description="Mapping type sent with indexed-shape lookups (legacy clusters only)"
    )

    # Query construction
    spatial_field: str = Field(default="spatial.geoJson", description="Dataset field holding the spatial extent")
    geometry_path: str = Field(default="geometry", description="Region document path holding its geometry")
    region_boost_candidate_limit: int = Field(
        default=50, ge=1, description="Maximum regions considered when boosting free text"
    )
    facet_candidate_min_fetch: int = Field(
        default=10, ge=1, description="Minimum facet candidates fetched before re-sorting by hit count"
    )
    relaxed_minimum_should_match: str = Field(
        default="50%", description="minimum_should_match used by the relaxed (match-part) strategy"
    )

    # HTTP surface
    api_host: str = Field(default="127.0.0.1", description="HTTP server host")
    api_port: int = Field(default=6102, ge=1, le=65535, description="HTTP server port")
    default_limit: int = Field(default=10, ge=0, description="Default page size")
    max_limit: int = Field(default=100, ge=1, description="Largest page size a caller may request")
    default_facet_size: int = Field(default=10, ge=0, description="Default facet size for dataset searches")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON logs")

    observability: ObservabilityCollectorConfig = Field(default_factory=ObservabilityCollectorConfig)

    @model_validator(mode="after")
    def _check_limits(self) -> "Settings":
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"DEFAULT_LIMIT ({self.default_limit}) must not exceed MAX_LIMIT ({self.max_limit})"
            )
        return self

    def clamp_limit(self, limit: int | None) -> int:
        """Resolve a caller-supplied page size against the configured bounds."""
        if limit is None:
            return self.default_limit
        return max(0, min(limit, self.max_limit))
