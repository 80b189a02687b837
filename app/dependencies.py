from fastapi import Request

from services.storage import Storage


def get_storage(request: Request) -> Storage:
    """FastAPI dependency: the store injected by create_app()."""
    return request.app.state.storage
