import os

# Settings are loaded at import time and require a store credential
os.environ.setdefault("DATABASE_PASSWORD", "test-service-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
