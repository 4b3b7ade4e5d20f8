"""
Tests for incident creation, lifecycle mutations and listing.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import select, update

from app.core.errors import InputNotValidError, ResourceNotFoundError
from app.crud.incident import (
    EXTEND_ATTEMPTS,
    close_incident,
    count_incidents,
    create_incident,
    extend_incident_end_time,
    get_incident,
    get_incidents,
)
from app.models import Incident, Priority
from app.schemas import IncidentFilters
from tests.factories import line_incident, stop_incident


# ============================================
# Creation
# ============================================

class TestCreateIncident:
    """Anchor validation and defaults"""

    @pytest.mark.asyncio
    async def test_line_incident_created_with_one_hour_window(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())

        assert incident.id is not None
        assert incident.line_id == "L1"
        assert incident.line_direction == "North"
        assert incident.stop_id is None
        assert incident.latitude == 50.06
        assert incident.longitude == 19.93
        assert incident.start_time == clock.now()
        assert incident.end_time == incident.start_time + timedelta(hours=1)
        assert incident.created_by == "u-1"
        assert incident.created_at == clock.now()

    @pytest.mark.asyncio
    async def test_stop_incident_without_location(self, db, transport, clock):
        incident = await create_incident(db, obj_in=stop_incident(), user_id="u-1", now=clock.now())

        assert incident.stop_id == "S1"
        assert incident.line_id is None
        assert incident.latitude is None
        assert incident.longitude is None

    @pytest.mark.asyncio
    async def test_both_anchors_rejected(self, db, transport, clock):
        with pytest.raises(InputNotValidError) as exc_info:
            await create_incident(db, obj_in=line_incident(stop_id="S1"), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "both_anchors"
        assert exc_info.value.value == {"line_id": "L1", "stop_id": "S1"}

    @pytest.mark.asyncio
    async def test_no_anchor_rejected(self, db, transport, clock):
        with pytest.raises(InputNotValidError) as exc_info:
            await create_incident(db, obj_in=line_incident(line_id=None), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "missing_anchor"

    @pytest.mark.asyncio
    async def test_blank_anchor_counts_as_missing(self, db, transport, clock):
        with pytest.raises(InputNotValidError) as exc_info:
            await create_incident(db, obj_in=line_incident(line_id="  "), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "missing_anchor"

    @pytest.mark.asyncio
    async def test_line_incident_requires_location(self, db, transport, clock):
        with pytest.raises(InputNotValidError) as exc_info:
            await create_incident(db, obj_in=line_incident(longitude=None), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "missing_location"
        assert exc_info.value.value["latitude"] == 50.06
        assert exc_info.value.value["longitude"] is None

    @pytest.mark.asyncio
    async def test_line_incident_requires_direction(self, db, transport, clock):
        with pytest.raises(InputNotValidError) as exc_info:
            await create_incident(db, obj_in=line_incident(line_direction=None), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "missing_direction"

    @pytest.mark.asyncio
    async def test_unknown_line(self, db, transport, clock):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await create_incident(db, obj_in=line_incident(line_id="nope"), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "line_not_found"
        assert str(exc_info.value) == "Line not found"

    @pytest.mark.asyncio
    async def test_unknown_stop(self, db, transport, clock):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await create_incident(db, obj_in=stop_incident(stop_id="nope"), user_id="u-1", now=clock.now())

        assert exc_info.value.reason == "stop_not_found"

    @pytest.mark.asyncio
    async def test_rejected_payload_is_not_persisted(self, db, transport, clock):
        with pytest.raises(InputNotValidError):
            await create_incident(db, obj_in=line_incident(stop_id="S1"), user_id="u-1", now=clock.now())

        assert await count_incidents(db, now=clock.now()) == 0


class TestCoordinateParsing:
    """Coordinates may arrive as strings"""

    def test_numeric_strings_are_parsed(self):
        payload = line_incident(latitude="50.06", longitude=" 19.93 ")

        assert payload.latitude == 50.06
        assert payload.longitude == 19.93

    def test_blank_string_means_missing(self):
        assert line_incident(latitude="").latitude is None

    def test_garbage_is_rejected(self):
        with pytest.raises(ValidationError, match="latitude must be a number"):
            line_incident(latitude="north-ish")

    def test_out_of_range_is_rejected(self):
        with pytest.raises(ValidationError, match="longitude must be between"):
            line_incident(longitude=200)


# ============================================
# Close / extend
# ============================================

class TestCloseIncident:

    @pytest.mark.asyncio
    async def test_close_sets_end_time_to_now(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        clock.advance(timedelta(minutes=10))

        assert await close_incident(db, incident.id, now=clock.now()) is True

        incident = await get_incident(db, incident.id)
        assert incident.end_time == clock.now()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        await close_incident(db, incident.id, now=clock.now())
        closed_at = clock.now()
        clock.advance(timedelta(minutes=5))

        assert await close_incident(db, incident.id, now=clock.now()) is False

        incident = await get_incident(db, incident.id)
        assert incident.end_time == closed_at

    @pytest.mark.asyncio
    async def test_close_incident_without_end_time(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        await db.execute(update(Incident).where(Incident.id == incident.id).values(end_time=None))
        await db.commit()

        assert await close_incident(db, incident.id, now=clock.now()) is True
        assert (await get_incident(db, incident.id)).end_time == clock.now()


class TestExtendIncident:

    @pytest.mark.asyncio
    async def test_extend_adds_hours_to_end_time(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        original_end = incident.end_time

        new_end = await extend_incident_end_time(db, incident.id, 2, now=clock.now())

        assert new_end == original_end + timedelta(hours=2)
        assert (await get_incident(db, incident.id)).end_time == new_end

    @pytest.mark.asyncio
    async def test_extend_without_end_time_is_noop(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        await db.execute(update(Incident).where(Incident.id == incident.id).values(end_time=None))
        await db.commit()

        assert await extend_incident_end_time(db, incident.id, 1, now=clock.now()) is None
        assert (await get_incident(db, incident.id)).end_time is None

    @pytest.mark.asyncio
    async def test_extend_closed_incident_is_noop(self, db, transport, clock):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        await close_incident(db, incident.id, now=clock.now())

        assert await extend_incident_end_time(db, incident.id, 1, now=clock.now()) is None
        assert (await get_incident(db, incident.id)).end_time == clock.now()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("hours", [0, -1])
    async def test_extend_requires_positive_hours(self, db, transport, clock, hours):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())

        with pytest.raises(InputNotValidError) as exc_info:
            await extend_incident_end_time(db, incident.id, hours, now=clock.now())

        assert exc_info.value.reason == "invalid_hours"

    @pytest.mark.asyncio
    async def test_extend_unknown_incident_is_noop(self, db, clock):
        assert await extend_incident_end_time(db, 999, 1, now=clock.now()) is None



class TestExtendRaces:
    """Another session writes end_time between the extend's read and its update"""

    @staticmethod
    def interleave(monkeypatch, db, write):
        execute = db.execute

        async def execute_then_write(statement, *args, **kwargs):
            result = await execute(statement, *args, **kwargs)
            if getattr(statement, "is_select", False):
                await write()
            return result

        monkeypatch.setattr(db, "execute", execute_then_write)

    @pytest.mark.asyncio
    async def test_concurrent_close_wins(self, db, session_factory, transport, clock, monkeypatch):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        closes = []

        async def close_once():
            if not closes:
                async with session_factory() as other:
                    closes.append(await close_incident(other, incident.id, now=clock.now()))

        self.interleave(monkeypatch, db, close_once)

        assert await extend_incident_end_time(db, incident.id, 1, now=clock.now()) is None

        monkeypatch.undo()
        assert closes == [True]
        assert (await get_incident(db, incident.id)).end_time == clock.now()

    @pytest.mark.asyncio
    async def test_gives_up_after_repeated_conflicts(self, db, session_factory, transport, clock, monkeypatch):
        incident = await create_incident(db, obj_in=line_incident(), user_id="u-1", now=clock.now())
        original_end = incident.end_time

        async def nudge():
            async with session_factory() as other:
                current = await other.scalar(select(Incident.end_time).where(Incident.id == incident.id))
                await other.execute(
                    update(Incident)
                    .where(Incident.id == incident.id)
                    .values(end_time=current + timedelta(minutes=1))
                )
                await other.commit()

        self.interleave(monkeypatch, db, nudge)

        assert await extend_incident_end_time(db, incident.id, 1, now=clock.now()) is None

        monkeypatch.undo()
        stored = await get_incident(db, incident.id)
        assert stored.end_time == original_end + timedelta(minutes=EXTEND_ATTEMPTS)


# ============================================
# Listing
# ============================================

class TestFindIncidents:

    async def _seed(self, db, clock):
        created = []
        for payload in (
            line_incident(priority=Priority.LOW),
            line_incident(line_id="L2", line_direction="South", latitude=50.0720, longitude=20.0370),
            stop_incident(priority=Priority.CRITICAL),
            stop_incident(stop_id="S3"),
        ):
            created.append(await create_incident(db, obj_in=payload, user_id="u-1", now=clock.now()))
            clock.advance(timedelta(minutes=1))
        return created

    @pytest.mark.asyncio
    async def test_oldest_first(self, db, transport, clock):
        created = await self._seed(db, clock)

        incidents = await get_incidents(db, now=clock.now())

        assert [i.id for i in incidents] == [i.id for i in created]

    @pytest.mark.asyncio
    async def test_filter_by_anchor(self, db, transport, clock):
        created = await self._seed(db, clock)

        by_line = await get_incidents(db, IncidentFilters(line_id="L2"), now=clock.now())
        by_stop = await get_incidents(db, IncidentFilters(stop_id="S1"), now=clock.now())
        by_direction = await get_incidents(db, IncidentFilters(line_direction="North"), now=clock.now())

        assert [i.id for i in by_line] == [created[1].id]
        assert [i.id for i in by_stop] == [created[2].id]
        assert [i.id for i in by_direction] == [created[0].id]

    @pytest.mark.asyncio
    async def test_filter_by_priority(self, db, transport, clock):
        created = await self._seed(db, clock)

        incidents = await get_incidents(db, IncidentFilters(priority=Priority.CRITICAL), now=clock.now())

        assert [i.id for i in incidents] == [created[2].id]

    @pytest.mark.asyncio
    async def test_filter_by_activity(self, db, transport, clock):
        created = await self._seed(db, clock)
        await close_incident(db, created[0].id, now=clock.now())
        await db.execute(update(Incident).where(Incident.id == created[3].id).values(end_time=None))
        await db.commit()
        clock.advance(timedelta(seconds=1))

        active = await get_incidents(db, IncidentFilters(is_active=True), now=clock.now())
        inactive = await get_incidents(db, IncidentFilters(is_active=False), now=clock.now())

        assert [i.id for i in active] == [created[1].id, created[2].id, created[3].id]
        assert [i.id for i in inactive] == [created[0].id]

    @pytest.mark.asyncio
    async def test_expired_window_counts_as_inactive(self, db, transport, clock):
        created = await self._seed(db, clock)
        clock.advance(timedelta(hours=2))

        active = await get_incidents(db, IncidentFilters(is_active=True), now=clock.now())

        assert active == []
        assert await count_incidents(db, IncidentFilters(is_active=False), now=clock.now()) == len(created)

    @pytest.mark.asyncio
    async def test_filter_by_radius_uses_stop_location(self, db, transport, clock):
        created = await self._seed(db, clock)

        # around Teatr Bagatela: the line incident at (50.06, 19.93) and the S1 incident
        nearby = await get_incidents(
            db,
            IncidentFilters(latitude=50.0637, longitude=19.9327, radius_meters=500),
            now=clock.now(),
        )

        assert [i.id for i in nearby] == [created[0].id, created[2].id]

    @pytest.mark.asyncio
    async def test_paging_and_count(self, db, transport, clock):
        created = await self._seed(db, clock)

        page = await get_incidents(db, skip=1, limit=2, now=clock.now())

        assert [i.id for i in page] == [created[1].id, created[2].id]
        assert await count_incidents(db, now=clock.now()) == 4
