from typing import Optional

from fastapi import Request

from jeopardy_trainer.core.services.database import get_db_service as _get_db_service


def get_db_service():
    # Delegate to the core database singleton so tests and the API share the
    # same DatabaseService instance.
    return _get_db_service()


def get_db():
    service = get_db_service()
    session = service.get_session()
    try:
        yield session
    finally:
        session.close()


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
