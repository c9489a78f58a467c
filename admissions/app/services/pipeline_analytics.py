"""Read-only pipeline report: stage counts, funnel, demand and stage durations."""

import math
from collections import Counter, defaultdict
from itertools import groupby

from sqlalchemy.orm import Session

from admissions.app.core.time import as_utc
from admissions.app.models.waitlist_entry import WaitlistEntry, WaitlistStage
from admissions.app.services.audit_log import list_tenant_history
from admissions.app.services.stage_machine import ACTIVE_STAGES

SECONDS_PER_DAY = 24 * 60 * 60

TOURS_COMPLETED_STAGES = frozenset(
    {
        WaitlistStage.TOUR_COMPLETED,
        WaitlistStage.OFFERED,
        WaitlistStage.ACCEPTED,
        WaitlistStage.ENROLLED,
        WaitlistStage.DECLINED,
    }
)
OFFERS_MADE_STAGES = frozenset(
    {WaitlistStage.OFFERED, WaitlistStage.ACCEPTED, WaitlistStage.ENROLLED, WaitlistStage.DECLINED}
)
OFFERS_ACCEPTED_STAGES = frozenset({WaitlistStage.ACCEPTED, WaitlistStage.ENROLLED})


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _ranked(counter: Counter, key: str) -> list[dict]:
    # Counter.most_common keeps first-seen order among equal counts
    return [{key: label, "count": count} for label, count in counter.most_common()]


def average_days_per_stage(history) -> dict[str, int]:
    """Average time spent in each exited stage, in whole days.

    ``history`` must be ordered by entry and then by sequence. For every pair of
    consecutive records the time between them is attributed to the stage the
    earlier record entered.
    """
    durations: dict[str, list[float]] = defaultdict(list)
    for _, records in groupby(history, key=lambda record: record.waitlist_entry_id):
        records = list(records)
        for current, following in zip(records, records[1:]):
            elapsed = as_utc(following.created_at) - as_utc(current.created_at)
            durations[WaitlistStage(current.to_stage).value].append(elapsed.total_seconds() / SECONDS_PER_DAY)
    return {stage: round_half_up(sum(days) / len(days)) for stage, days in durations.items()}


def get_pipeline_analytics(db: Session, tenant_id: str) -> dict:
    entries = (
        db.query(WaitlistEntry)
        .filter(WaitlistEntry.tenant_id == tenant_id, WaitlistEntry.deleted_at.is_(None))
        .order_by(WaitlistEntry.id.asc())
        .all()
    )

    stage_counts = {stage.value: 0 for stage in WaitlistStage}
    programs: Counter = Counter()
    sources: Counter = Counter()
    for entry in entries:
        stage_counts[WaitlistStage(entry.stage).value] += 1
        programs[entry.requested_program or "Unspecified"] += 1
        sources[entry.how_heard_about_us or "Unknown"] += 1

    def count_in(stages) -> int:
        return sum(stage_counts[stage.value] for stage in stages)

    inquiries = len(entries)
    enrolled = stage_counts[WaitlistStage.ENROLLED.value]

    return {
        "stage_counts": stage_counts,
        "total_active": count_in(ACTIVE_STAGES),
        "conversion_funnel": {
            "inquiries": inquiries,
            "tours_completed": count_in(TOURS_COMPLETED_STAGES),
            "offers_made": count_in(OFFERS_MADE_STAGES),
            "offers_accepted": count_in(OFFERS_ACCEPTED_STAGES),
            "enrolled": enrolled,
            "conversion_rate_pct": round_half_up(enrolled / inquiries * 100) if inquiries else 0,
        },
        "demand_by_program": _ranked(programs, "program"),
        "referral_sources": _ranked(sources, "source"),
        "avg_days_per_stage": average_days_per_stage(list_tenant_history(db, tenant_id)),
    }
