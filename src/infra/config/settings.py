from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "Qwestive"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Security Settings
    JWT_SECRET_KEY: str = "change-me-in-production-use-a-32-byte-secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    TOKEN_BLACKLIST_EXPIRE_MARGIN_MINUTES: int = 5  # Extra time to keep blacklisted tokens

    # Rate Limiting
    SUSPICIOUS_IP_THRESHOLD: int = 5  # failed attempts before blocking
    IP_BLOCK_DURATION: int = 15  # minutes

    # Endpoint-specific rate limits (requests per minute)
    RATE_LIMIT_AUTH_CHECK_IN: int = 10
    RATE_LIMIT_AUTH_VERIFY: int = 5
    RATE_LIMIT_AUTH_REFRESH: int = 10
    RATE_LIMIT_AUTH_LOGOUT: int = 20
    RATE_LIMIT_HOLDINGS_REFRESH: int = 6  # Each refresh fans out to the RPC node
    RATE_LIMIT_DEFAULT: int = 60

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development
        "https://qwestive.io",
    ]

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    # Record Store Settings
    STORE_BACKEND: str = "redis"  # redis or memory
    RECORD_KEY_PREFIX: str = "record:"

    # Solana Settings
    SOLANA_RPC_URL: str = "https://api.devnet.solana.com"
    SOLANA_COMMITMENT: str = "confirmed"

    # HTTP Client Settings
    HTTP_DEFAULT_TIMEOUT: float = 10.0
    HTTP_SOLANA_RPC_TIMEOUT: float = 15.0
    HTTP_MAX_CONNECTIONS: int = 100
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 20

    # Check-in Settings
    NONCE_MIN: int = 100000
    NONCE_MAX: int = 999999
    LOGIN_MESSAGE_TEMPLATE: str = "Sign this message to login into {app_name}."
    SIGNUP_MESSAGE_TEMPLATE: str = "Sign this message to signup into {app_name}."

    # Profile Settings
    USERNAME_MIN_LENGTH: int = 4
    USERNAME_MAX_LENGTH: int = 20
    DEFAULT_PROFILE_IMAGE: str = (
        "https://firebasestorage.googleapis.com/v0/b/qwestive-beta-prod.appspot.com/o/"
        "defaultImages%2FprofileImage%2FprofilePic.png?alt=media"
    )
    DEFAULT_COVER_IMAGE: str = (
        "https://firebasestorage.googleapis.com/v0/b/qwestive-beta-prod.appspot.com/o/"
        "defaultImages%2FcoverImage%2FcoverPic.png?alt=media"
    )

    # Holdings Settings
    COLLECTION_ID_SCHEME: str = "legacy"  # legacy (32-bit string hash) or digest (64-bit blake2b)

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
