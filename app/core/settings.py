"""
Core settings and environment variables for Emergency Report Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """
    
    # Application
    APP_NAME: str = "Emergency Report Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    
    # CORS - Frontend URLs allowed to access this API
    # Public form and admin console dev servers. In production set this to your exact origin(s).
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"
    
    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    
    # Mock DB mode for local development without Firebase credentials
    USE_MOCK_DB: bool = False
    MOCK_DB_PATH: Optional[str] = None  # None keeps the mock DB in memory only
    
    # Abuse controls
    # Short default for demos; production deployments should use minutes.
    COOLDOWN_SECONDS: float = 5.0
    
    # Device identity cookie (soft moderation key, NOT authentication)
    DEVICE_COOKIE_NAME: str = "deviceId"
    DEVICE_COOKIE_MAX_AGE_DAYS: int = 365
    
    # Sweep reports against device block flags when the app starts
    RECONCILE_BLOCKS_ON_STARTUP: bool = False
    
    # How long startup waits for each live view to receive its first snapshot
    VIEW_READY_TIMEOUT_SECONDS: float = 10.0
    
    @property
    def cooldown_ms(self) -> int:
        return int(self.COOLDOWN_SECONDS * 1000)
    
    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


# Global settings instance
settings = Settings()
