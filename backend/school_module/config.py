import os
from dataclasses import dataclass

from dotenv import load_dotenv


BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

load_dotenv(dotenv_path=os.path.join(BACKEND_DIR, ".env"))


def _csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("SCHOOL_DATABASE_URL", f"sqlite:///{os.path.join(BACKEND_DIR, 'school.db')}")
    jwt_secret: str = os.getenv("SCHOOL_JWT_SECRET", os.getenv("JWT_SECRET", "change-me-in-production"))
    jwt_algorithm: str = os.getenv("SCHOOL_JWT_ALGORITHM", "HS256")
    jwt_exp_minutes: int = int(os.getenv("SCHOOL_JWT_EXP_MINUTES", "60"))
    bcrypt_rounds: int = int(os.getenv("SCHOOL_BCRYPT_ROUNDS", "12"))
    upload_dir: str = os.getenv("SCHOOL_UPLOAD_DIR", os.path.join(BACKEND_DIR, "uploads"))
    public_dir: str = os.getenv("SCHOOL_PUBLIC_DIR", os.path.join(BACKEND_DIR, "public"))
    license_expiry: str = os.getenv("SCHOOL_LICENSE_EXPIRY", "2099-12-31")
    dev_reset_code: str = os.getenv("SCHOOL_DEV_RESET_CODE", "DEV-2024-RESET")
    reset_token_ttl_minutes: int = int(os.getenv("SCHOOL_RESET_TOKEN_TTL_MINUTES", "60"))
    notification_feed_limit: int = int(os.getenv("SCHOOL_NOTIFICATION_FEED_LIMIT", "50"))
    default_admin_username: str = os.getenv("SCHOOL_DEFAULT_ADMIN_USERNAME", "admin")
    default_admin_password: str = os.getenv("SCHOOL_DEFAULT_ADMIN_PASSWORD", "admin123")
    default_admin_email: str = os.getenv("SCHOOL_DEFAULT_ADMIN_EMAIL", "admin@school.com")
    default_admin_name: str = os.getenv("SCHOOL_DEFAULT_ADMIN_NAME", "School Director")
    cors_origins: tuple[str, ...] = _csv(os.getenv("SCHOOL_CORS_ORIGINS", "*"))
    smtp_host: str = os.getenv("SMTP_SERVER", "smtp.gmail.com")
    smtp_port: int = int(os.getenv("SMTP_PORT", "587"))
    smtp_username: str = os.getenv("SMTP_EMAIL", "")
    smtp_password: str = os.getenv("SMTP_PASSWORD", "").replace(" ", "")


settings = Settings()
