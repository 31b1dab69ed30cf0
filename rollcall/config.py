# config.py
import os


def _flag(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///attendance.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TESTING = os.environ.get("TESTING", "0") == "1"

    # Keep one signing secret in one place; supplied by the deployment
    JWT_SECRET = os.environ.get("JWT_SECRET", "jwt_secret_please_change_before_deploying")

    # Nonce rotation bounds how long a photographed code stays usable
    TOKEN_ROTATION_ENABLED = _flag("TOKEN_ROTATION_ENABLED", True)
    TOKEN_ROTATION_SECONDS = int(os.environ.get("TOKEN_ROTATION_SECONDS", "10"))

    # Redemptions within this many seconds of opening count as present, later ones as late
    GRACE_PERIOD_SECONDS = int(os.environ.get("GRACE_PERIOD_SECONDS", "300"))
    DEFAULT_SESSION_SECONDS = int(os.environ.get("DEFAULT_SESSION_SECONDS", "3600"))

    LOG_LEVEL = (os.environ.get("LOG_LEVEL") or "INFO").upper()
    LOG_FILE = os.environ.get("LOG_FILE")

    # course id -> enrolled identities, read by StaticRoster
    COURSE_ROSTERS = {
        "CS101": [
            "ahillpranav.ct23@bitsathy.ac.in",
            "dharshini.ct23@bitsathy.ac.in",
            "thanisha.ct23@bitsathy.ac.in",
        ],
    }


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET = "test-signing-secret-0123456789abcdef"
    TOKEN_ROTATION_ENABLED = False
    LOG_FILE = None
