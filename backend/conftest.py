# Test environment defaults, applied before any washbay module reads settings.
import os

os.environ.setdefault("ENVIRONMENT", "test")
# Import-time engine only; tests bind their own engines
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")
