"""Configuration management using Pydantic Settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class ServerConfig(BaseSettings):
    """Stand-in cloud configuration with environment variable support."""

    # Core server settings
    host: str = Field(default="127.0.0.1", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to bind the server to")

    # Account served by the identity endpoints
    username: str = Field(default="demo", description="Accepted user name")
    api_key: str = Field(default="secret", description="Accepted password / API key")
    tenant: str = Field(default="demo-project", description="Accepted tenant name")

    regions: str = Field(
        default="DFW,ORD",
        description="Comma-separated regions published in the service catalog",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern="^(DEBUG|INFO|WARNING|ERROR)$",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or console)",
        pattern="^(json|console)$",
    )

    enable_docs: bool = Field(
        default=True, description="Enable FastAPI automatic documentation"
    )

    @field_validator("regions")
    @classmethod
    def validate_regions(cls, v: str) -> str:
        if not [region for region in v.split(",") if region.strip()]:
            raise ValueError("at least one region is required")
        return v

    @property
    def region_list(self) -> list[str]:
        return [region.strip() for region in self.regions.split(",") if region.strip()]

    model_config = {
        "env_prefix": "SERVER_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


def get_config() -> ServerConfig:
    """Get server configuration instance."""
    return ServerConfig()
