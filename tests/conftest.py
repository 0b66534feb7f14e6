import os

# The app module builds its engine at import time; keep tests off PostgreSQL.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
