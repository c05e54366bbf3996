from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from booking_schemas import Requester
from errors import Unauthenticated
from lifecycle import BookingLifecycle, build_lifecycle
from persistence.repository import SqlBookingRepository


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> SqlBookingRepository:
    return SqlBookingRepository(db)


def get_lifecycle(request: Request, repository: SqlBookingRepository = Depends(get_repository)) -> BookingLifecycle:
    return build_lifecycle(repository, request.app.state.gateway, request.app.state.settings)


def get_requester(
    x_user_id: Optional[str] = Header(default=None),
    repository: SqlBookingRepository = Depends(get_repository),
) -> Requester:
    """
    The authenticating proxy in front of us forwards the user id.
    Role and email always come from the profiles table.
    """
    if not x_user_id:
        raise Unauthenticated("Missing X-User-Id header")
    requester = repository.get_requester(x_user_id)
    if requester is None:
        raise Unauthenticated(f"Unknown user {x_user_id}")
    return requester
