"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from pymongo.database import Database

from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError
from ..realtime.change_feed import ChangeFeed, get_change_feed
from ..repositories.mongo_client import get_database
from ..repositories.profile_repo import ProfileRepository
from ..services.notification_hub import NotificationHub
from ..utils.jwt import get_current_user
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


# Process-wide notification hub (one session per user)
_notification_hub: Optional[NotificationHub] = None


def get_database_dep() -> Database:
    """Application database; tests override this with an in-memory one"""
    return get_database()


def get_change_feed_dep() -> ChangeFeed:
    return get_change_feed()


def get_notification_hub_dep(
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
) -> NotificationHub:
    global _notification_hub
    if _notification_hub is None:
        _notification_hub = NotificationHub(database, feed)
    return _notification_hub


def close_notification_hub() -> None:
    global _notification_hub
    if _notification_hub is not None:
        _notification_hub.close()
        _notification_hub = None


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """Use the caller's correlation ID or generate a new one"""
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


def get_current_user_dep(
    authorization: Optional[str] = Header(None),
    database: Database = Depends(get_database_dep),
    feed: ChangeFeed = Depends(get_change_feed_dep)
) -> ActorContext:
    """
    Resolve the acting user from the Authorization header

    Raises:
        HTTPException: 401 if token is invalid or missing
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "AUTHENTICATION_ERROR", "message": "Authorization header is missing"}},
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        return get_current_user(authorization, ProfileRepository(database, feed))
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )
