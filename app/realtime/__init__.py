# Server-side real-time hub
from .connection_manager import ConnectionManager

__all__ = ["ConnectionManager"]
