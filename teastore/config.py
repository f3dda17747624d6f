import os
from datetime import timedelta


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-session-secret-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    API_UTC_OFFSET_HOURS = int(os.getenv("API_UTC_OFFSET_HOURS", "3"))

    # pricing
    FIRST_ORDER_DISCOUNT_PERCENT = int(os.getenv("FIRST_ORDER_DISCOUNT_PERCENT", "20"))
    TOTAL_MISMATCH_TOLERANCE = os.getenv("TOTAL_MISMATCH_TOLERANCE", "1")

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'teastore.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-session-secret"
    JWT_SECRET_KEY = "test-jwt-secret-that-is-long-enough-for-hs256"
    LOG_LEVEL = "DEBUG"

    @staticmethod
    def init_app(app):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "connect_args": {"check_same_thread": False},
        }
