import os
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


class Settings:
    @staticmethod
    def _get_int(name: str, default: int) -> int:
        return int(os.getenv(name, str(default)))

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        return float(os.getenv(name, str(default)))

    @staticmethod
    def _get_bool(name: str, default: bool) -> bool:
        raw = os.getenv(name)
        if raw is None:
            return default
        return raw.strip().lower() in {"1", "true", "yes", "on"}

    @property
    def APP_ENV(self) -> str:
        # development | production
        return os.getenv("APP_ENV", "development").strip().lower()

    @property
    def BASE_URL(self) -> str:
        return os.getenv("BASE_URL", "http://localhost:8000")

    @property
    def FRONTEND_URL(self) -> str:
        return os.getenv("FRONTEND_URL", "http://localhost:5173")

    @property
    def DATABASE_URL(self) -> str:
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise ValueError("DATABASE_URL is required")
        return database_url

    @property
    def DB_CONNECT_RETRIES(self) -> int:
        return self._get_int("DB_CONNECT_RETRIES", 5)

    @property
    def DB_CONNECT_RETRY_DELAY_SECONDS(self) -> int:
        return self._get_int("DB_CONNECT_RETRY_DELAY_SECONDS", 2)

    @property
    def JWT_SECRET(self) -> str:
        return os.getenv("JWT_SECRET", "change-me-in-production")

    @property
    def JWT_ALGORITHM(self) -> str:
        return os.getenv("JWT_ALGORITHM", "HS256")

    @property
    def JWT_EXPIRE_MINUTES(self) -> int:
        return self._get_int("JWT_EXPIRE_MINUTES", 60)

    @property
    def PAYPAL_CLIENT_ID(self) -> str:
        return os.getenv("PAYPAL_CLIENT_ID", "")

    @property
    def PAYPAL_CLIENT_SECRET(self) -> str:
        return os.getenv("PAYPAL_CLIENT_SECRET", "")

    @property
    def PAYPAL_MODE(self) -> str:
        return os.getenv("PAYPAL_MODE", "sandbox").strip().lower()

    @property
    def PAYPAL_TIMEOUT_SECONDS(self) -> float:
        return self._get_float("PAYPAL_TIMEOUT_SECONDS", 15.0)

    @property
    def PAYPAL_AMOUNT_MISMATCH_POLICY(self) -> str:
        # warn | reject
        return os.getenv("PAYPAL_AMOUNT_MISMATCH_POLICY", "warn").strip().lower()

    @property
    def STRICT_STATUS_TRANSITIONS(self) -> bool:
        return self._get_bool("STRICT_STATUS_TRANSITIONS", True)

    @property
    def SMTP_HOST(self) -> str:
        return os.getenv("SMTP_HOST", "")

    @property
    def SMTP_PORT(self) -> int:
        return self._get_int("SMTP_PORT", 587)

    @property
    def SMTP_USER(self) -> str:
        return os.getenv("SMTP_USER", "")

    @property
    def SMTP_PASSWORD(self) -> str:
        return os.getenv("SMTP_PASSWORD", "")

    @property
    def SMTP_USE_TLS(self) -> bool:
        return self._get_bool("SMTP_USE_TLS", True)

    @property
    def SMTP_FROM_EMAIL(self) -> str:
        return os.getenv("SMTP_FROM_EMAIL", "")

    @property
    def SMTP_FROM_NAME(self) -> str:
        return os.getenv("SMTP_FROM_NAME", "Auto Speed Shop")

    @property
    def NOTIFICATION_BATCH_SIZE(self) -> int:
        return self._get_int("NOTIFICATION_BATCH_SIZE", 10)

    @property
    def NOTIFICATION_MAX_RETRIES(self) -> int:
        return self._get_int("NOTIFICATION_MAX_RETRIES", 3)

    @property
    def CORS_ORIGINS(self) -> str:
        return os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")


settings = Settings()

# Validate critical settings
if settings.JWT_SECRET == "change-me-in-production":
    import warnings
    warnings.warn("JWT_SECRET is using default value. Change it in production!", UserWarning)
