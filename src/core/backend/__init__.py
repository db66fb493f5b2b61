from src.core.backend.client import AccountingBackendClient, get_backend

__all__ = ["AccountingBackendClient", "get_backend"]
