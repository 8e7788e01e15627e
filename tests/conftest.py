import os
import sys

# Settings are read at import time; configure before anything imports app.*
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-enough-length-0123456789")
os.environ.setdefault("LOG_LEVEL", "WARNING")

sys.path.append(os.getcwd())
