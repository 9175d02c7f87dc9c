# app/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "barangay-portal")
    FIREBASE_STORAGE_BUCKET: str = os.getenv("FIREBASE_STORAGE_BUCKET", "barangay-portal.firebasestorage.app")
    FIREBASE_SERVICE_ACCOUNT_PATH: str = os.getenv(
        "FIREBASE_SERVICE_ACCOUNT_PATH",
        "firebase-service-account.json",
    )
    # Web API key for the password sign-in REST endpoint
    FIREBASE_WEB_API_KEY: str | None = os.getenv("FIREBASE_WEB_API_KEY")

    # Email notifier (SendGrid)
    SENDGRID_API_KEY: str | None = os.getenv("SENDGRID_API_KEY")
    FROM_EMAIL: str = os.getenv("FROM_EMAIL", "noreply@barangay.gov")
    FROM_NAME: str = os.getenv("FROM_NAME", "Barangay Portal")
    EMAIL_MOCK_MODE: bool = os.getenv("EMAIL_MOCK_MODE", "true").lower() == "true"
    SUPPORT_EMAIL: str = os.getenv("SUPPORT_EMAIL", "Admin1@barangay.gov")

    # Upload limits, enforced before anything reaches the storage bucket
    MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))
    MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "10"))

    # Signed-in sessions (and their profile listeners) idle longer than this are ended
    SESSION_IDLE_TTL_SECONDS: int = int(os.getenv("SESSION_IDLE_TTL_SECONDS", "1800"))

    # Frontend URL used for sign-in / status page redirects
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Timezone for date display in analytics (UTC+8 for the Philippines)
    TZ_OFFSET: int = int(os.getenv("TZ_OFFSET", "8"))


settings = Settings()
