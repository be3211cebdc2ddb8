"""
Main Execution Script for the Technician Session Scheduler.
Loads (or generates) a demo roster, optimizes next week and exports the drafts.
"""

import os
import logging
from datetime import date, timedelta
import json

from generators.data_factory import DataGenerator
from models import (
    TechnicianProfile,
    AvailabilitySlot,
    Client,
    Authorization,
    OptimizationRequest,
    OptimizationPriorities,
)
from scheduler.config import SchedulerConfig
from scheduler.service import SchedulingService
from scheduler.timeutils import day_name, format_minutes
from stores import (
    InMemoryScheduleStore,
    InMemoryAppointmentStore,
    InMemoryAuthorizationStore,
    InMemoryClientStore,
    RecordingEventSink,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
CACHE_FILENAME = "roster_data.json"
EXPORT_FILENAME = "schedule_export.json"
USE_CACHE = True  # Set to False to force new AI generation
USER_ID = "practice_demo"
API_KEY = os.environ.get("GOOGLE_API_KEY")
# ---------------------

ROSTER_MODELS = {
    "technicians": TechnicianProfile,
    "availability": AvailabilitySlot,
    "clients": Client,
    "authorizations": Authorization,
}


def save_roster(roster: dict, filename: str):
    """Save generated data so we don't re-query the LLM every time."""
    serializable = {key: [item.model_dump(mode='json') for item in items] for key, items in roster.items()}

    with open(filename, 'w') as f:
        json.dump(serializable, f, indent=2)
    logger.info(f"Saved roster to {filename}")


def load_cached_roster(filename: str):
    """
    Load the roster JSON and re-hydrate the pydantic models.
    Returns None when the cache is missing or unreadable.
    """
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"Cache file {filename} not found or invalid. Falling back to Generator.")
        return None

    roster = {
        key: [model.model_validate(item) for item in data.get(key, [])]
        for key, model in ROSTER_MODELS.items()
    }
    logger.info(
        f"Cache Loaded: {len(roster['technicians'])} technicians, {len(roster['clients'])} clients."
    )
    return roster


def seed_service(roster: dict, config: SchedulerConfig) -> SchedulingService:
    schedule_store = InMemoryScheduleStore()
    client_store = InMemoryClientStore(roster["clients"])
    authorization_store = InMemoryAuthorizationStore(roster["authorizations"])

    service = SchedulingService(
        schedule_store,
        client_store,
        InMemoryAppointmentStore(),
        authorization_store,
        config=config,
    )

    for tech in roster["technicians"]:
        service.create_technician(tech)
        slots = [s for s in roster["availability"] if s.technician_id == tech.id]
        if slots:
            service.set_availability(tech.id, slots)
    return service


def export_schedules(schedules, result, filename: str):
    """
    Serializes the saved drafts plus run metrics for downstream tools.
    """
    data = {
        "metrics": result.metrics.model_dump(mode='json'),
        "unassigned_clients": result.unassigned_clients,
        "warnings": result.warnings,
        "schedules": [s.model_dump(mode='json') for s in schedules],
    }
    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info(f"Exported {len(schedules)} schedules to {filename}")


def main():
    if not API_KEY and not USE_CACHE:
        logger.error("GOOGLE_API_KEY not found. Please set it via 'export GOOGLE_API_KEY=...'")
        return

    config = SchedulerConfig.from_env()
    today = date.today()
    week_start = SchedulingService.week_start_for(today) + timedelta(days=7)

    # --- PHASE 1: DATA ACQUISITION (Cache vs. GenAI) ---
    roster = load_cached_roster(CACHE_FILENAME) if USE_CACHE else None

    if not roster or not roster["technicians"]:
        if not API_KEY:
            logger.error("No cached roster and no GOOGLE_API_KEY. Exiting.")
            return
        generator = DataGenerator(api_key=API_KEY)
        logger.info("--- Phase 1: Generative AI Data Fetch ---")
        roster, cost = generator.generate_roster(USER_ID, technician_count=5, client_count=12, start_date=today)
        logger.info(f"Total Estimated LLM Cost: ${cost:.4f}")
        save_roster(roster, CACHE_FILENAME)

    if not roster["clients"]:
        logger.error("No clients available. Exiting.")
        return

    # --- PHASE 2: OPTIMIZATION ---
    logger.info(f"--- Phase 2: Optimizing week of {week_start} ---")
    service = seed_service(roster, config)
    request = OptimizationRequest(
        user_id=USER_ID,
        week_start=week_start,
        priorities=OptimizationPriorities(minimize_travel_time=1.0, balance_workload=1.0),
    )
    result = service.optimize_schedules(request)
    saved = service.save_optimized_schedules(result, replace=True)

    # --- PHASE 3: REPORTING ---
    metrics = result.metrics
    print("\n" + "=" * 50)
    print("WEEKLY SCHEDULE REPORT")
    print("=" * 50)
    print(f"Sessions placed:     {metrics.total_sessions}")
    print(f"Hours scheduled:     {metrics.total_hours:.1f}")
    print(f"Utilization:         {metrics.utilization_percent:.1f}%")
    print(f"Preferences met:     {metrics.preferences_met_percent:.1f}%")
    print(f"Workload variance:   {metrics.workload_variance:.2f}")

    for schedule in saved:
        print(f"\n{schedule.technician_id} ({schedule.scheduled_hours:.1f}h)")
        for a in sorted(schedule.assignments, key=lambda a: (a.day_of_week, a.start_minute)):
            print(
                f"  {day_name(a.day_of_week)} {format_minutes(a.start_minute)}-"
                f"{format_minutes(a.end_minute)}  {a.client_id} @ {a.location or '-'}"
            )

    shortfalls = result.events[0].payload.get("shortfalls", []) if result.events else []
    if shortfalls:
        print("\nSHORTFALLS")
        for s in shortfalls:
            print(f"  [{s['status']}] {s['client_name']}: {s['sessions_assigned']}/{s['sessions_needed']} sessions")

    if result.warnings:
        print("\nWARNINGS")
        for warning in result.warnings:
            print(f"  - {warning}")

    stats = service.get_scheduling_stats(USER_ID, week_start)
    print(f"\nStats: {stats}")

    sink = RecordingEventSink()
    delivered = service.dispatch_events(sink)
    logger.info(f"Delivered {delivered} events")

    # --- PHASE 4: EXPORT ---
    export_schedules(saved, result, EXPORT_FILENAME)
    print("\nRun Complete.")


if __name__ == "__main__":
    main()
