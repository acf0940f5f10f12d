"""Read-only HTTP API over the traffic ledger."""
from .auth import require_api_key
from .routes import router

__all__ = ["require_api_key", "router"]
