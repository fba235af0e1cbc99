"""Configuration management for the trip generator."""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    gemini_api_key: str = ""
    google_places_api_key: str = ""

    # Gemini Settings
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1"
    gemini_models: List[str] = [
        "gemini-2.5-flash-lite",  # Fastest, lightweight
        "gemini-2.5-flash",
        "gemini-2.5-pro",  # Most capable
    ]
    gemini_temperature: float = 0.7
    gemini_top_k: int = 40
    gemini_top_p: float = 0.95
    gemini_max_output_tokens: int = 16384
    gemini_timeout: float = 120.0  # seconds
    min_response_chars: int = 500

    # Google Places Settings
    places_api_base: str = "https://places.googleapis.com/v1"
    places_timeout: float = 10.0  # seconds
    photo_max_width: int = 400

    # Generation Settings
    enrichment_concurrency: int = 10
    detail_max_attempts: int = 1
    trips_collection: str = "UserTrips"

    # Server Settings
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    websocket_timeout: int = 600  # seconds without an update before a trip stream closes

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"

    def sampling_config(self) -> dict:
        """Generation config sent with every Gemini request."""
        return {
            "temperature": self.gemini_temperature,
            "topK": self.gemini_top_k,
            "topP": self.gemini_top_p,
            "maxOutputTokens": self.gemini_max_output_tokens,
        }

    def model_candidates(self) -> List[str]:
        return list(self.gemini_models)


# Global settings instance
settings = Settings()
