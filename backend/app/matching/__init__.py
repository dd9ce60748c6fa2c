"""Group-scoped profile matching."""

from app.matching.api import router
from app.matching.domain.container import configure, configure_openai, configure_postgres

__all__ = ["router", "configure", "configure_openai", "configure_postgres"]
