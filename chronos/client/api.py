"""HTTP client for the time entry API."""
from typing import Optional

import httpx

from chronos.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    TimeEntryError,
    ValidationError,
)
from chronos.models.time_entry import (
    RunningTimerUpdate,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryList,
    TimeEntryUpdate,
    TimeStats,
)

_STATUS_ERRORS: dict[int, type[TimeEntryError]] = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
}


def _detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    return detail if isinstance(detail, str) else response.reason_phrase


def _raise_for_status(
    response: httpx.Response,
    conflict: type[TimeEntryError] = ConflictError,
) -> None:
    """
    Raise the typed error matching a failed response.

    409 means different things per route: a second running timer for
    start/create, an already stopped entry for stop. Statuses without a
    typed counterpart raise httpx.HTTPStatusError.
    """
    if response.is_success:
        return

    if response.status_code == 409:
        raise conflict(_detail(response))

    error_cls = _STATUS_ERRORS.get(response.status_code)
    if error_cls is not None:
        raise error_cls(_detail(response))

    response.raise_for_status()


class TimeEntriesClient:
    """Async client for the /time-entries routes."""

    def __init__(self, http: httpx.AsyncClient, prefix: str = "/time-entries"):
        """
        Args:
            http: Client already configured with base_url and auth headers
            prefix: Route prefix of the time entry API
        """
        self.http = http
        self.prefix = prefix

    def _url(self, path: str = "") -> str:
        return f"{self.prefix}{path}"

    async def start(
        self,
        description: Optional[str] = None,
        project_ref: Optional[str] = None,
        task_ref: Optional[str] = None,
    ) -> TimeEntry:
        """Start a timer. Not safe to retry without checking get_running first."""
        response = await self.http.post(
            self._url("/start"),
            json={"description": description, "project_ref": project_ref, "task_ref": task_ref},
        )
        _raise_for_status(response)
        return TimeEntry.model_validate(response.json())

    async def restart(
        self,
        description: Optional[str] = None,
        project_ref: Optional[str] = None,
        task_ref: Optional[str] = None,
    ) -> TimeEntry:
        response = await self.http.post(
            self._url("/restart"),
            json={"description": description, "project_ref": project_ref, "task_ref": task_ref},
        )
        _raise_for_status(response)
        return TimeEntry.model_validate(response.json())

    async def stop(self, entry_id: str) -> TimeEntry:
        response = await self.http.patch(self._url(f"/{entry_id}/stop"))
        _raise_for_status(response, conflict=InvalidStateError)
        return TimeEntry.model_validate(response.json())

    async def stop_current(self) -> TimeEntry:
        response = await self.http.post(self._url("/stop"))
        _raise_for_status(response, conflict=InvalidStateError)
        return TimeEntry.model_validate(response.json())

    async def get_running(self) -> Optional[TimeEntry]:
        response = await self.http.get(self._url("/current"))
        _raise_for_status(response)
        data = response.json()
        return TimeEntry.model_validate(data) if data else None

    async def update_running(self, timer_update: RunningTimerUpdate) -> TimeEntry:
        response = await self.http.patch(
            self._url("/current"),
            json=timer_update.model_dump(mode="json", exclude_unset=True),
        )
        _raise_for_status(response, conflict=InvalidStateError)
        return TimeEntry.model_validate(response.json())

    async def create(self, entry_create: TimeEntryCreate) -> TimeEntry:
        response = await self.http.post(
            self._url(),
            json=entry_create.model_dump(mode="json", exclude_none=True),
        )
        _raise_for_status(response)
        return TimeEntry.model_validate(response.json())

    async def get(self, entry_id: str) -> TimeEntry:
        response = await self.http.get(self._url(f"/{entry_id}"))
        _raise_for_status(response)
        return TimeEntry.model_validate(response.json())

    async def update(self, entry_id: str, entry_update: TimeEntryUpdate) -> TimeEntry:
        response = await self.http.patch(
            self._url(f"/{entry_id}"),
            json=entry_update.model_dump(mode="json", exclude_unset=True),
        )
        _raise_for_status(response)
        return TimeEntry.model_validate(response.json())

    async def delete(self, entry_id: str) -> None:
        response = await self.http.delete(self._url(f"/{entry_id}"))
        _raise_for_status(response)

    async def list(self, filters: TimeEntryFilters) -> TimeEntryList:
        response = await self.http.get(
            self._url(),
            params=filters.model_dump(mode="json", exclude_none=True),
        )
        _raise_for_status(response)
        return TimeEntryList.model_validate(response.json())

    async def stats(self) -> TimeStats:
        response = await self.http.get(self._url("/stats"))
        _raise_for_status(response)
        return TimeStats.model_validate(response.json())
