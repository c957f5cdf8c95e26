"""Entry store - authoritative persistence for time entries.

Every read and write is scoped to an owner. The store enforces:

- at most one running entry per owner, through the unique sparse index on
  ``active_owner`` (see ``chronos.database.ensure_indexes``);
- ``end_time`` strictly after ``start_time`` whenever it is set;
- ``duration`` recomputed from the stored bounds on every write.
"""
import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from chronos.database import TIME_ENTRIES
from chronos.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from chronos.models.time_entry import (
    MAX_DESCRIPTION_LENGTH,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryFilters,
    TimeEntryUpdate,
)
from chronos.utils.clock import Clock, elapsed_seconds, from_storage, to_storage, utc_now, whole_seconds
from chronos.utils.listing import build_listing_pipeline

logger = logging.getLogger(__name__)

# Bounded retries for updates racing with another writer on the same entry.
MAX_UPDATE_ATTEMPTS = 3

RUNNING_TIMER_EXISTS = (
    "User already has a running timer. Stop the current timer before starting a new one"
)


class EntryStore:
    """Owner-scoped CRUD over the time_entries collection."""

    def __init__(self, db, clock: Clock = utc_now, enforce_references: bool = False):
        """Initialize store with database connection."""
        self.db = db
        self.time_entries = db[TIME_ENTRIES]
        self.projects = db["projects"]
        self.tasks = db["tasks"]
        self.clock = clock
        self.enforce_references = enforce_references

    def _doc_to_entry(self, doc: dict) -> TimeEntry:
        """
        Convert database document to TimeEntry model.
        """
        return TimeEntry(
            _id=str(doc["_id"]),
            user_id=doc["user_id"],
            description=doc.get("description"),
            project_ref=doc.get("project_ref"),
            task_ref=doc.get("task_ref"),
            start_time=from_storage(doc["start_time"]),
            end_time=from_storage(doc.get("end_time")),
            duration=doc.get("duration"),
            created_at=from_storage(doc["created_at"]),
            updated_at=from_storage(doc["updated_at"]),
        )

    @staticmethod
    def _object_id(entry_id: str) -> ObjectId:
        # A malformed id is reported like any other unknown id.
        try:
            return ObjectId(entry_id)
        except (InvalidId, TypeError):
            raise NotFoundError("Time entry not found")

    @staticmethod
    def _duration(start_time: datetime, end_time: Optional[datetime]) -> Optional[int]:
        if end_time is None:
            return None
        return whole_seconds(start_time, end_time)

    @staticmethod
    def _validate_description(description: Optional[str]) -> None:
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
            )

    @staticmethod
    def _validate_range(start_time: datetime, end_time: Optional[datetime]) -> None:
        if end_time is not None and end_time <= start_time:
            raise ValidationError("End time must be after start time")

    @staticmethod
    def _validate_not_future(start_time: datetime, now: datetime) -> None:
        if start_time > now:
            raise ValidationError("Start time cannot be in the future")

    async def _validate_reference(
        self,
        owner: str,
        collection,
        ref: Optional[str],
        label: str,
    ) -> None:
        """
        Check a project/task reference.

        Only the id format is checked unless reference integrity is enforced,
        in which case the referenced document must exist for this owner.
        """
        if ref is None:
            return

        if not ObjectId.is_valid(ref):
            raise ValidationError(f"Invalid {label} reference format")

        if not self.enforce_references:
            return

        found = await collection.find_one({"_id": ObjectId(ref), "user_id": owner})
        if not found:
            raise ValidationError(f"{label.capitalize()} not found")

    async def create(self, owner: str, entry_create: TimeEntryCreate) -> TimeEntry:
        """
        Create a completed or running time entry.

        Args:
            owner: Authenticated owner ID
            entry_create: Entry draft; no end_time means the entry is running

        Returns:
            Created time entry

        Raises:
            ValidationError: Bad description/reference, future start, or end <= start
            ConflictError: Draft is running and the owner already has a running entry
        """
        now = self.clock()
        self._validate_description(entry_create.description)
        await self._validate_reference(owner, self.projects, entry_create.project_ref, "project")
        await self._validate_reference(owner, self.tasks, entry_create.task_ref, "task")

        start_time = to_storage(entry_create.start_time)
        end_time = to_storage(entry_create.end_time)
        self._validate_not_future(start_time, to_storage(now))
        self._validate_range(start_time, end_time)

        entry_doc = {
            "user_id": owner,
            "description": entry_create.description,
            "project_ref": entry_create.project_ref,
            "task_ref": entry_create.task_ref,
            "start_time": start_time,
            "end_time": end_time,
            "duration": self._duration(start_time, end_time),
            "created_at": to_storage(now),
            "updated_at": to_storage(now),
        }
        if end_time is None:
            # Claims the owner's running slot; the insert fails if it is taken.
            entry_doc["active_owner"] = owner

        try:
            result = await self.time_entries.insert_one(entry_doc)
        except DuplicateKeyError:
            logger.info("Rejected second running timer for owner %s", owner)
            raise ConflictError(RUNNING_TIMER_EXISTS)

        entry_doc["_id"] = result.inserted_id
        return self._doc_to_entry(entry_doc)

    async def get(self, owner: str, entry_id: str) -> TimeEntry:
        """
        Get a time entry by ID.

        Raises:
            NotFoundError: If the entry does not exist for this owner
        """
        doc = await self.time_entries.find_one({
            "_id": self._object_id(entry_id),
            "user_id": owner,
        })

        if not doc:
            raise NotFoundError("Time entry not found")

        return self._doc_to_entry(doc)

    async def get_running(self, owner: str) -> Optional[TimeEntry]:
        """Return the owner's running entry, or None when idle."""
        doc = await self.time_entries.find_one({
            "user_id": owner,
            "end_time": None,
        })

        if not doc:
            return None

        return self._doc_to_entry(doc)

    async def update(
        self,
        owner: str,
        entry_id: str,
        entry_update: TimeEntryUpdate,
    ) -> TimeEntry:
        """
        Apply a partial update and recompute the duration.

        The write is conditional on the time bounds that were validated, so
        a concurrent change to the same entry forces a re-read instead of
        being overwritten with a stale merge.

        Args:
            owner: Authenticated owner ID
            entry_id: Time entry ID
            entry_update: Fields to change; unset fields are left alone

        Returns:
            Updated time entry

        Raises:
            NotFoundError: If the entry does not exist for this owner
            ValidationError: If the merged entry breaks end > start or a field is invalid
            ConflictError: If the entry kept changing underneath the update
        """
        object_id = self._object_id(entry_id)
        fields = entry_update.model_fields_set

        if "start_time" in fields and entry_update.start_time is None:
            raise ValidationError("Start time cannot be cleared")
        if "end_time" in fields and entry_update.end_time is None:
            raise ValidationError("End time cannot be cleared; start a new timer instead")
        if "description" in fields:
            self._validate_description(entry_update.description)
        if "project_ref" in fields:
            await self._validate_reference(owner, self.projects, entry_update.project_ref, "project")
        if "task_ref" in fields:
            await self._validate_reference(owner, self.tasks, entry_update.task_ref, "task")

        for _ in range(MAX_UPDATE_ATTEMPTS):
            existing = await self.time_entries.find_one({
                "_id": object_id,
                "user_id": owner,
            })

            if not existing:
                raise NotFoundError("Time entry not found")

            now = to_storage(self.clock())
            start_time = existing["start_time"]
            end_time = existing.get("end_time")

            if "start_time" in fields:
                start_time = to_storage(entry_update.start_time)
                self._validate_not_future(start_time, now)
            if "end_time" in fields:
                end_time = to_storage(entry_update.end_time)

            self._validate_range(start_time, end_time)

            update_doc = {
                "start_time": start_time,
                "end_time": end_time,
                "duration": self._duration(start_time, end_time),
                "updated_at": now,
            }
            for name in ("description", "project_ref", "task_ref"):
                if name in fields:
                    update_doc[name] = getattr(entry_update, name)

            update = {"$set": update_doc}
            if end_time is not None:
                # Completing a running entry through update frees the slot.
                update["$unset"] = {"active_owner": ""}

            updated_doc = await self.time_entries.find_one_and_update(
                {
                    "_id": object_id,
                    "user_id": owner,
                    "start_time": existing["start_time"],
                    "end_time": existing.get("end_time"),
                },
                update,
                return_document=ReturnDocument.AFTER,
            )

            if updated_doc:
                return self._doc_to_entry(updated_doc)

            logger.debug("Time entry %s changed during update, retrying", entry_id)

        raise ConflictError("Time entry was modified concurrently, retry the update")

    async def stop(self, owner: str, entry_id: str) -> TimeEntry:
        """
        Stop a running entry at the current time.

        Raises:
            NotFoundError: If the entry does not exist for this owner
            InvalidStateError: If the entry is already stopped
        """
        object_id = self._object_id(entry_id)

        existing = await self.time_entries.find_one({
            "_id": object_id,
            "user_id": owner,
        })

        if not existing:
            raise NotFoundError("Time entry not found")
        if existing.get("end_time") is not None:
            raise InvalidStateError("Timer is not currently running")

        end_time = to_storage(self.clock())
        self._validate_range(existing["start_time"], end_time)

        updated_doc = await self.time_entries.find_one_and_update(
            {"_id": object_id, "user_id": owner, "end_time": None},
            {
                "$set": {
                    "end_time": end_time,
                    "duration": self._duration(existing["start_time"], end_time),
                    "updated_at": end_time,
                },
                "$unset": {"active_owner": ""},
            },
            return_document=ReturnDocument.AFTER,
        )

        # Stopped or deleted by another request after the read above.
        if not updated_doc:
            raise InvalidStateError("Timer is not currently running")

        return self._doc_to_entry(updated_doc)

    async def delete(self, owner: str, entry_id: str) -> None:
        """
        Delete a time entry (hard delete).

        Deleting a running entry releases the owner's running slot in the
        same write.

        Raises:
            NotFoundError: If the entry does not exist for this owner
        """
        result = await self.time_entries.delete_one({
            "_id": self._object_id(entry_id),
            "user_id": owner,
        })

        if result.deleted_count == 0:
            raise NotFoundError("Time entry not found")

    async def query(
        self,
        owner: str,
        filters: TimeEntryFilters,
        page: int,
        page_size: int,
    ) -> tuple[list[TimeEntry], int, int]:
        """
        Run a filtered, sorted, paginated listing.

        Args:
            owner: Authenticated owner ID
            filters: Predicate and sort
            page: 1-indexed page, already clamped
            page_size: Page size, already clamped

        Returns:
            (entries on the page, total_count, total_duration) where the
            totals cover the full filtered set and a running entry counts
            its elapsed time so far
        """
        pipeline = build_listing_pipeline(owner, filters, page, page_size)
        cursor = self.time_entries.aggregate(pipeline)
        results = await cursor.to_list(length=None)
        facets = results[0] if results else {}

        totals = facets.get("totals") or [{}]
        total_count = totals[0].get("count", 0)
        total_duration = totals[0].get("duration", 0)

        now = self.clock()
        for running in facets.get("running", []):
            total_duration += elapsed_seconds(from_storage(running["start_time"]), now)

        entries = [self._doc_to_entry(doc) for doc in facets.get("entries", [])]
        return entries, total_count, total_duration

    async def find_started_between(
        self,
        owner: str,
        lower: datetime,
        upper: datetime,
    ) -> list[TimeEntry]:
        """Entries whose start_time falls in [lower, upper)."""
        cursor = self.time_entries.find({
            "user_id": owner,
            "start_time": {"$gte": to_storage(lower), "$lt": to_storage(upper)},
        })
        docs = await cursor.to_list(length=None)
        return [self._doc_to_entry(doc) for doc in docs]
