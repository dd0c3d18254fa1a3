"""Import all SQLAlchemy ORM models so Alembic sees a complete metadata graph."""

from __future__ import annotations

# Import ORM modules for side effects so models register with Base.metadata.
import app.schema.notifications  # noqa: F401
import app.schema.plans  # noqa: F401
import app.schema.sql  # noqa: F401
