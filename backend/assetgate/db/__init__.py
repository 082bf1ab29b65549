from .models import AssetRecord, Base
from .session import create_engine, create_session_factory, init_db

__all__ = [
    "AssetRecord",
    "Base",
    "create_engine",
    "create_session_factory",
    "init_db",
]
