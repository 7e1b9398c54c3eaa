"""
Configuration management for the booking backend.
Secrets for the payment gateway, mail and push providers come from the environment.
"""
from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Storage
    database_path: str = "data/travel_together.db"

    # Sessions
    session_secret: str = "change-me-in-production"
    session_cookie_name: str = "session"
    session_expires_days: int = 5
    session_cookie_secure: bool = False
    id_token_secret: str = "change-me-in-production"
    id_token_algorithm: str = "HS256"
    id_token_audience: str = "lets-travel-together"
    admin_emails: str = ""

    # Razorpay
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    payment_currency: str = "INR"

    # SendGrid
    sendgrid_api_key: str = ""
    sendgrid_base_url: str = "https://api.sendgrid.com/v3"
    from_email: str = "bookings@letstraveltogether.in"

    # Firebase Cloud Messaging
    # Service account credentials for the HTTP v1 API
    fcm_project_id: str = ""
    fcm_client_email: str = ""
    fcm_private_key: str = ""
    fcm_token_uri: str = "https://oauth2.googleapis.com/token"
    fcm_base_url: str = "https://fcm.googleapis.com/v1"
    push_icon: str = "/logo.png"

    # LLM Configuration (profile photo alt text)
    llm_provider: Literal["openai", "openrouter", "ollama", "mock"] = "mock"
    llm_api_key: str = "ollama"
    llm_base_url: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 300

    # Server Configuration
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def admin_email_list(self) -> list[str]:
        return [email.strip().lower() for email in self.admin_emails.split(",") if email.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_llm_config(config: Settings = settings) -> dict:
    """Get LLM configuration based on provider."""
    llm = {
        "api_key": config.llm_api_key,
        "model": config.llm_model,
        "max_tokens": config.llm_max_tokens,
    }

    if config.llm_provider == "ollama":
        llm["base_url"] = config.llm_base_url or "http://localhost:11434/v1"
    elif config.llm_provider == "openrouter":
        llm["base_url"] = config.llm_base_url or "https://openrouter.ai/api/v1"
    else:  # openai
        llm["base_url"] = config.llm_base_url or "https://api.openai.com/v1"

    return llm
