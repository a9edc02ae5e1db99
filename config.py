import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class"""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    DEBUG = os.getenv("DEBUG", "True") == "True"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # SQLAlchemy configuration
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///review_scheduler.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session security
    SESSION_COOKIE_HTTPONLY = True  # Prevent JavaScript access to session cookie
    SESSION_COOKIE_SAMESITE = "Lax"

    if os.getenv("SESSION_COOKIE_SAMESITE"):
        SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE")

    # Review delays per difficulty, in minutes (Wait is always 0)
    REVIEW_DELAY_HARD_MINUTES = int(os.getenv("REVIEW_DELAY_HARD_MINUTES", 4 * 60))
    REVIEW_DELAY_MEDIUM_MINUTES = int(os.getenv("REVIEW_DELAY_MEDIUM_MINUTES", 24 * 60))
    REVIEW_DELAY_EASY_MINUTES = int(os.getenv("REVIEW_DELAY_EASY_MINUTES", 3 * 24 * 60))

    # Reject operations for learners the store does not know about
    ENFORCE_LEARNER_EXISTS = os.getenv("ENFORCE_LEARNER_EXISTS", "True") == "True"

    # Default daily goals (learners may override their own)
    DAILY_WORDS_GOAL = int(os.getenv("DAILY_WORDS_GOAL", 10))
    DAILY_MINUTES_GOAL = int(os.getenv("DAILY_MINUTES_GOAL", 15))
    DAILY_QUESTIONS_GOAL = int(os.getenv("DAILY_QUESTIONS_GOAL", 5))

    # Notification sweep
    SWEEP_DELIVERY_TIMEOUT_SECONDS = float(os.getenv("SWEEP_DELIVERY_TIMEOUT_SECONDS", 10))
    SWEEP_MAX_WORKERS = int(os.getenv("SWEEP_MAX_WORKERS", 4))
    SECONDS_PER_REVIEW_ITEM = int(os.getenv("SECONDS_PER_REVIEW_ITEM", 30))

    # Shared secret for the external cron trigger
    CRON_SECRET_TOKEN = os.getenv("CRON_SECRET_TOKEN")


class DevelopmentConfig(Config):
    """Development environment configuration"""

    DEBUG = True
    SESSION_COOKIE_SECURE = False  # Allow HTTP in development


class ProductionConfig(Config):
    """Production environment configuration"""

    DEBUG = False
    SESSION_COOKIE_SECURE = True  # Require HTTPS in production

    # Cross-domain frontend needs SameSite=None together with Secure=True
    SESSION_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "None")

    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SECURE = True
    REMEMBER_COOKIE_SAMESITE = os.getenv("SESSION_COOKIE_SAMESITE", "None")
    REMEMBER_COOKIE_DURATION = 2592000  # 30 days in seconds
    REMEMBER_COOKIE_PATH = "/"

    SESSION_COOKIE_PATH = "/"

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


class TestingConfig(Config):
    """Testing environment configuration"""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SESSION_COOKIE_SECURE = False
    ENFORCE_LEARNER_EXISTS = True
    CRON_SECRET_TOKEN = "test-cron-token"
    SWEEP_DELIVERY_TIMEOUT_SECONDS = 2.0


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
