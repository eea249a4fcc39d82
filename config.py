"""
Application settings for the Chef Meals API

Values come from the environment or a local .env file.
"""
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Server
    PORT: int = 3000
    CLIENT_URL: Optional[str] = None
    CLIENT_URL2: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Database Configuration
    DATABASE_URL: Optional[str] = Field(
        None, validation_alias=AliasChoices("DATABASE_URL", "MONGODB_URI")
    )
    DATABASE_NAME: str = "mealsDB"

    # Payment Configuration
    STRIPE_SECRET_KEY: Optional[str] = Field(
        None, validation_alias=AliasChoices("STRIPE_SECRET_KEY", "STRIPE_KEY")
    )
    PAYMENT_CURRENCY: str = "usd"

    # Identity provider: path to a service account file, or the same JSON base64-encoded
    FIREBASE_SERVICE_ACCOUNT: Optional[str] = None
    FB_SERVICE_KEY: Optional[str] = None

    # Require a verified token on every route except the health checks and login
    PROTECT_ALL_ROUTES: bool = False

    @property
    def allowed_origins(self) -> List[str]:
        origins = [url for url in (self.CLIENT_URL, self.CLIENT_URL2) if url]
        return origins or ["*"]

    @property
    def client_url(self) -> str:
        return self.CLIENT_URL or "http://localhost:5173"


def get_settings() -> Settings:
    return Settings()
