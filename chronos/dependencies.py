"""FastAPI dependencies shared by the routers."""
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from chronos.config import settings
from chronos.database import get_database
from chronos.services.entry_store import EntryStore
from chronos.services.listing_service import ListingService
from chronos.services.stats_service import StatsService
from chronos.services.timer_service import TimerService
from chronos.utils.auth import verify_access_token
from chronos.utils.clock import Clock, utc_now

security = HTTPBearer(auto_error=False)


async def get_current_owner(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Dependency to get the authenticated owner ID from the bearer token.

    Raises:
        HTTPException: If token is missing or invalid (401)
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return verify_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


def get_clock() -> Clock:
    """Dependency for the wall clock; overridden in tests."""
    return utc_now


def get_entry_store(
    db=Depends(get_database),
    clock: Clock = Depends(get_clock),
) -> EntryStore:
    return EntryStore(
        db,
        clock=clock,
        enforce_references=settings.enforce_reference_integrity,
    )


def get_timer_service(store: EntryStore = Depends(get_entry_store)) -> TimerService:
    return TimerService(store)


def get_listing_service(store: EntryStore = Depends(get_entry_store)) -> ListingService:
    return ListingService(store)


def get_stats_service(store: EntryStore = Depends(get_entry_store)) -> StatsService:
    return StatsService(store, timezone=ZoneInfo(settings.stats_timezone))
