"""Tests for Pydantic models."""
from datetime import datetime, timedelta, timezone


class TestTimeEntryModel:
    """Tests for TimeEntry model."""

    def _entry(self, **overrides):
        from chronos.models.time_entry import TimeEntry

        start = datetime(2025, 11, 12, 8, 0, tzinfo=timezone.utc)
        fields = {
            "_id": "abc123",
            "user_id": "user123",
            "start_time": start,
            "created_at": start,
            "updated_at": start,
        }
        fields.update(overrides)
        return TimeEntry(**fields)

    def test_serializes_id_and_is_running(self):
        """Test the wire shape uses id and reports is_running."""
        data = self._entry().model_dump(by_alias=True, mode="json")

        assert data["id"] == "abc123"
        assert data["is_running"] is True
        assert data["duration"] is None
        assert data["start_time"].endswith("Z")

    def test_parses_wire_shape(self):
        """Test a serialized entry parses back by field name."""
        from chronos.models.time_entry import TimeEntry

        entry = self._entry(
            end_time=datetime(2025, 11, 12, 9, 0, tzinfo=timezone.utc),
            duration=3600,
        )

        parsed = TimeEntry.model_validate(entry.model_dump(by_alias=True, mode="json"))

        assert parsed.id == "abc123"
        assert parsed.is_running is False
        assert parsed.duration == 3600

    def test_elapsed_uses_duration_when_completed(self):
        """Test completed entries report their stored duration."""
        entry = self._entry(
            end_time=datetime(2025, 11, 12, 9, 0, tzinfo=timezone.utc),
            duration=3600,
        )

        assert entry.elapsed(datetime(2030, 1, 1, tzinfo=timezone.utc)) == 3600

    def test_elapsed_running_uses_now(self):
        """Test running entries report time since start."""
        entry = self._entry()

        assert entry.elapsed(entry.start_time + timedelta(minutes=3)) == 180


class TestTimeEntryUpdateModel:
    """Tests for partial update semantics."""

    def test_absent_and_null_are_distinguished(self):
        """Test only sent fields are marked as set."""
        from chronos.models.time_entry import TimeEntryUpdate

        update = TimeEntryUpdate.model_validate({"description": None})

        assert update.model_fields_set == {"description"}
        assert update.model_dump(exclude_unset=True) == {"description": None}


class TestTimeStatsModel:
    """Tests for TimeStats."""

    def test_degraded_not_serialized(self):
        """Test the degraded flag stays internal."""
        from chronos.models.time_entry import TimeStats

        data = TimeStats(degraded=True).model_dump()

        assert "degraded" not in data
        assert data["today"] == 0
