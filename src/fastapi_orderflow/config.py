"""FastAPI adapter configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OrderflowConfig(BaseSettings):
    """Runtime config for the orderflow adapter."""

    model_config = SettingsConfigDict(env_prefix="ORDERFLOW_")

    default_currency: str = Field(default="USD", min_length=3, max_length=3)
    default_page_size: int = Field(default=50, gt=0)
    max_page_size: int = Field(default=200, gt=0)
    webhook_secret: str = ""
    webhook_signature_header: str = "x-webhook-signature"
