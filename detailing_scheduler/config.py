import os
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application configuration from environment variables"""

    # App
    app_name: str = "Detailing Scheduler"
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./detailing_scheduler.db")
    transaction_retries: int = int(os.getenv("TRANSACTION_RETRIES", "3"))

    # Scheduling
    slot_interval_minutes: int = int(os.getenv("SLOT_INTERVAL_MINUTES", "30"))
    default_open_time: str = os.getenv("DEFAULT_OPEN_TIME", "09:00")
    default_close_time: str = os.getenv("DEFAULT_CLOSE_TIME", "17:00")
    min_duration_minutes: int = int(os.getenv("MIN_DURATION_MINUTES", "15"))
    max_duration_minutes: int = int(os.getenv("MAX_DURATION_MINUTES", "720"))
    reschedule_notice_hours: int = int(os.getenv("RESCHEDULE_NOTICE_HOURS", "24"))
    cancellation_deadline_hours: int = int(os.getenv("CANCELLATION_DEADLINE_HOURS", "24"))
    duration_warning_minutes: int = int(os.getenv("DURATION_WARNING_MINUTES", "15"))

    # Background jobs
    enable_scheduler: bool = os.getenv("ENABLE_SCHEDULER", "True").lower() == "true"
    reminder_lead_hours: int = int(os.getenv("REMINDER_LEAD_HOURS", "24"))

    # Twilio
    twilio_account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    twilio_auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    twilio_phone_number: str = os.getenv("TWILIO_PHONE_NUMBER", "")
    business_display_name: str = os.getenv("BUSINESS_DISPLAY_NAME", "Auto Detailing Service")

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
