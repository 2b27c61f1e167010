import os


os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret-key")
os.environ.setdefault("USE_SQLITE", "1")

from .settings import *  # noqa: E402,F401,F403


# A file-backed test database lets threaded tests share one database.
DATABASES["default"]["TEST"] = {"NAME": BASE_DIR / "test_db.sqlite3"}  # noqa: F405

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

RESERVE_RETRY_BACKOFF = 0.01

LOGGING["loggers"]["reservations"]["level"] = "WARNING"  # noqa: F405
