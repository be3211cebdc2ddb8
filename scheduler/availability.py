"""
Technician Availability Management.

This module answers the binary question: "Can Technician X work at Time Y?"
It owns the recurring weekly slots and the time-off workflow that
overrides them.
"""

import logging
from collections import defaultdict
from datetime import date as date_type, datetime
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from models import (
    MINUTES_PER_DAY,
    AvailabilityBlock,
    AvailabilitySlot,
    EventType,
    TechnicianProfile,
    TimeOffRequest,
    TimeOffStatus,
)
from .errors import AvailabilityValidationError, TimeOffValidationError
from .events import EventOutbox
from .ids import IdGenerator, uuid_ids
from .timeutils import day_bounds, iter_days

logger = logging.getLogger(__name__)

SlotInput = Union[AvailabilitySlot, dict]


def merge_slots(slots: Iterable[AvailabilitySlot]) -> List[AvailabilitySlot]:
    """
    Collapse overlapping or touching slots into one interval per run, per day.
    Output is sorted by (day, start) and never overlaps.
    """
    by_day: Dict[int, List[AvailabilitySlot]] = defaultdict(list)
    for slot in slots:
        by_day[slot.day_of_week].append(slot)

    merged: List[AvailabilitySlot] = []
    for day in sorted(by_day):
        ordered = sorted(by_day[day], key=lambda s: (s.start_minute, s.end_minute))
        current = ordered[0].model_copy()

        for slot in ordered[1:]:
            if slot.start_minute <= current.end_minute:
                current.end_minute = max(current.end_minute, slot.end_minute)
            else:
                merged.append(current)
                current = slot.model_copy()
        merged.append(current)

    return merged


class AvailabilityManager:
    """
    Weekly availability, time-off records and time-off requests.
    """

    def __init__(self, schedule_store, id_generator: IdGenerator = uuid_ids):
        self.store = schedule_store
        self.new_id = id_generator
        self.outbox = EventOutbox()

        # Requests live here until reviewed; approved ones become store records.
        self.time_off_requests: Dict[str, TimeOffRequest] = {}

    # --- Weekly Availability ---

    def set_availability(self, technician_id: str, slots: Iterable[SlotInput]) -> List[AvailabilitySlot]:
        """
        Replace a technician's weekly availability.
        All slots are validated before anything is written.
        """
        validated = [self._validate_slot(technician_id, i, raw) for i, raw in enumerate(slots)]

        merged = merge_slots(validated)
        for slot in merged:
            slot.technician_id = technician_id
            if not slot.id:
                slot.id = self.new_id()

        self.store.set_availability(technician_id, merged)
        logger.info(f"Availability set for {technician_id}: {len(validated)} slots -> {len(merged)} merged")

        self.outbox.record(
            EventType.AVAILABILITY_UPDATED,
            technician_id=technician_id,
            slot_count=len(merged),
        )
        return merged

    def get_availability(self, technician_id: str) -> List[AvailabilitySlot]:
        slots = self.store.get_availability(technician_id)
        return sorted(slots, key=lambda s: (s.day_of_week, s.start_minute))

    def _validate_slot(self, technician_id: str, index: int, raw: SlotInput) -> AvailabilitySlot:
        if isinstance(raw, AvailabilitySlot):
            data = raw.model_dump()
        else:
            data = dict(raw)
        data.setdefault("technician_id", technician_id)

        try:
            slot = AvailabilitySlot.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            raise AvailabilityValidationError(index, first.get("msg", str(e))) from e

        # Models built with model_construct skip validation, so re-check here.
        if not 0 <= slot.day_of_week <= 6:
            raise AvailabilityValidationError(index, f"day_of_week {slot.day_of_week} out of range")
        if not (0 <= slot.start_minute <= MINUTES_PER_DAY and 0 <= slot.end_minute <= MINUTES_PER_DAY):
            raise AvailabilityValidationError(index, "minutes must be within [0, 1440]")
        if slot.start_minute >= slot.end_minute:
            raise AvailabilityValidationError(index, "start must be before end")
        return slot

    # --- Availability Queries ---

    def is_available(self, technician_id: str, day: date_type, start_minute: int, end_minute: int) -> bool:
        """
        True if a weekly slot fully contains [start, end] on that weekday
        and no time-off touches the day.
        """
        day_start, day_end = day_bounds(day)
        if self.store.get_time_off(technician_id, day_start, day_end):
            logger.debug(f"{technician_id} has time off on {day}")
            return False

        weekday = day.weekday()
        for slot in self.store.get_availability(technician_id):
            if slot.day_of_week != weekday:
                continue
            # Slot must contain the interval, not merely intersect it
            if slot.start_minute <= start_minute and slot.end_minute >= end_minute:
                return True
        return False

    def get_availability_blocks(
        self,
        technician_id: str,
        range_start: date_type,
        range_end: date_type
    ) -> List[AvailabilityBlock]:
        """
        Materialize the weekly pattern onto every calendar day in the range.
        A day under time-off becomes a single unavailable block.
        """
        slots = self.store.get_availability(technician_id)
        blocks: List[AvailabilityBlock] = []

        for day in iter_days(range_start, range_end):
            day_start, day_end = day_bounds(day)
            time_off = self.store.get_time_off(technician_id, day_start, day_end)
            if time_off:
                blocks.append(AvailabilityBlock(
                    technician_id=technician_id,
                    date=day,
                    start_minute=0,
                    end_minute=MINUTES_PER_DAY,
                    available=False,
                    reason=time_off[0].reason or "Time off",
                ))
                continue

            day_slots = sorted(
                (s for s in slots if s.day_of_week == day.weekday()),
                key=lambda s: s.start_minute,
            )
            for slot in day_slots:
                blocks.append(AvailabilityBlock(
                    technician_id=technician_id,
                    date=day,
                    start_minute=slot.start_minute,
                    end_minute=slot.end_minute,
                ))

        return blocks

    def get_available_technicians(
        self,
        user_id: str,
        day: date_type,
        start_minute: int,
        end_minute: int
    ) -> List[TechnicianProfile]:
        return [
            tech for tech in self.store.get_active_technicians(user_id)
            if self.is_available(tech.id, day, start_minute, end_minute)
        ]

    # --- Time-Off Workflow ---

    def request_time_off(self, technician_id: str, start: datetime, end: datetime, reason: str = "") -> TimeOffRequest:
        if start >= end:
            raise TimeOffValidationError("Time-off end must be after start")

        request = TimeOffRequest(
            id=self.new_id(),
            technician_id=technician_id,
            start=start,
            end=end,
            reason=reason,
        )
        self.time_off_requests[request.id] = request
        logger.info(f"Time-off requested by {technician_id}: {start} -> {end}")

        self.outbox.record(
            EventType.TIME_OFF_REQUESTED,
            request_id=request.id,
            technician_id=technician_id,
        )
        return request

    def approve_time_off(self, request_id: str, approved_by: str) -> Optional[TimeOffRequest]:
        reviewed = self._review(request_id, TimeOffStatus.APPROVED, approved_by)
        if not reviewed:
            return None

        self.store.add_time_off(reviewed.technician_id, reviewed.start, reviewed.end, reviewed.reason)
        self.outbox.record(
            EventType.TIME_OFF_APPROVED,
            request_id=request_id,
            technician_id=reviewed.technician_id,
            approved_by=approved_by,
        )
        return reviewed

    def deny_time_off(self, request_id: str, denied_by: str) -> Optional[TimeOffRequest]:
        reviewed = self._review(request_id, TimeOffStatus.DENIED, denied_by)
        if not reviewed:
            return None

        self.outbox.record(
            EventType.TIME_OFF_DENIED,
            request_id=request_id,
            technician_id=reviewed.technician_id,
            denied_by=denied_by,
        )
        return reviewed

    def _review(self, request_id: str, status: TimeOffStatus, reviewer: str) -> Optional[TimeOffRequest]:
        request = self.time_off_requests.get(request_id)
        if not request or request.is_terminal:
            logger.warning(f"Time-off request {request_id} is missing or already reviewed")
            return None

        reviewed = request.model_copy(update={
            "status": status,
            "reviewed_at": datetime.now(),
            "reviewed_by": reviewer,
        })
        self.time_off_requests[request_id] = reviewed
        return reviewed

    def get_pending_time_off_requests(self) -> List[TimeOffRequest]:
        return [r for r in self.time_off_requests.values() if r.status == TimeOffStatus.PENDING]

    def add_time_off(self, technician_id: str, start: datetime, end: datetime, reason: str = "") -> None:
        """Administrative entry that skips the request workflow."""
        if start >= end:
            raise TimeOffValidationError("Time-off end must be after start")

        self.store.add_time_off(technician_id, start, end, reason)
        self.outbox.record(EventType.TIME_OFF_ADDED, technician_id=technician_id)

    def remove_time_off(self, technician_id: str, start: datetime) -> bool:
        removed = self.store.remove_time_off(technician_id, start)
        if removed:
            self.outbox.record(EventType.TIME_OFF_REMOVED, technician_id=technician_id)
        return removed
