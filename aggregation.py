"""
Dashboard and home-page aggregates.

Everything here is a pure transform over lists fetched from the
repositories; nothing is cached between calls.
"""
import logging
import math
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from schemas import (
    GRADES,
    NOTE_LABEL,
    UNITS,
    Dashboard,
    HeadmasterNote,
    MonthlyGroup,
    RecentUpdate,
    Supervision,
    SupervisionKind,
    Teacher,
    TrendSeries,
)

logger = logging.getLogger(__name__)

# Short month names as rendered by the id-ID locale
MONTHS = ["Jan", "Feb", "Mar", "Apr", "Mei", "Jun", "Jul", "Agu", "Sep", "Okt", "Nov", "Des"]

RECENT_LIMIT = 5


def parse_date(value) -> Optional[datetime]:
    """Naive UTC datetime for an ISO date/datetime string, None if unparsable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def month_label(year: int, month: int) -> str:
    return f"{MONTHS[month - 1]} {year}"


def _round1(value: float) -> float:
    # half-up, not banker's rounding
    return math.floor(value * 10 + 0.5) / 10


def group_by_month(supervisions: Iterable[Supervision]) -> List[MonthlyGroup]:
    """Count and average score per calendar month, oldest month first."""
    scores = defaultdict(list)
    for s in supervisions:
        parsed = parse_date(s.date)
        if parsed is None:
            logger.debug("Skipping supervision %s with unparsable date %r", s.id, s.date)
            continue
        scores[(parsed.year, parsed.month)].append(s.score)

    return [
        MonthlyGroup(
            label=month_label(year, month),
            year=year,
            month=month,
            total=len(values),
            avgScore=_round1(sum(values) / len(values)),
        )
        for (year, month), values in sorted(scores.items())
    ]


def build_trend_series(
    admin: Sequence[MonthlyGroup],
    kbm: Sequence[MonthlyGroup],
    classic: Sequence[MonthlyGroup],
) -> TrendSeries:
    """
    Align the monthly groups of the three supervision kinds on one timeline.

    The x-axis is the union of months present in any kind, in chronological
    order. A kind with no supervisions in a month gets 0 for both its count
    and its average.
    """
    indexed = [{(g.year, g.month): g for g in groups} for groups in (admin, kbm, classic)]
    months = sorted(set().union(*indexed))

    def counts(by_month):
        return [by_month[m].total if m in by_month else 0 for m in months]

    def averages(by_month):
        return [by_month[m].avgScore if m in by_month else 0 for m in months]

    admin_idx, kbm_idx, classic_idx = indexed
    return TrendSeries(
        labels=[month_label(*m) for m in months],
        admin=counts(admin_idx),
        kbm=counts(kbm_idx),
        classic=counts(classic_idx),
        adminAvg=averages(admin_idx),
        kbmAvg=averages(kbm_idx),
        classicAvg=averages(classic_idx),
    )


def _supervision_update(kind: SupervisionKind, s: Supervision) -> RecentUpdate:
    return RecentUpdate(
        type=kind.value,
        label=kind.label,
        id=s.id,
        teacherId=s.teacherId,
        teacherName=s.teacherName,
        unit=s.unit,
        date=s.date,
        score=s.score,
        grade=s.grade,
    )


def merge_recent_updates(
    admin: Iterable[Supervision],
    kbm: Iterable[Supervision],
    classic: Iterable[Supervision],
    notes: Iterable[HeadmasterNote],
    teachers: Iterable[Teacher],
    limit: int = RECENT_LIMIT,
) -> List[RecentUpdate]:
    """Most recent supervisions and headmaster notes, newest first."""
    units = {t.id: t.unit for t in teachers}

    updates = []
    for kind, items in (
        (SupervisionKind.admin, admin),
        (SupervisionKind.kbm, kbm),
        (SupervisionKind.classic, classic),
    ):
        updates.extend(_supervision_update(kind, s) for s in items)
    updates.extend(
        RecentUpdate(
            type="note",
            label=NOTE_LABEL,
            id=n.id,
            teacherId=n.teacherId,
            teacherName=n.teacherName,
            unit=units.get(n.teacherId),
            date=n.date,
            categories=n.categories,
            note=n.note,
        )
        for n in notes
    )

    # Unparsable dates sort after every real date and keep their relative order.
    dated, undated = [], []
    for u in updates:
        parsed = parse_date(u.date)
        if parsed is None:
            undated.append(u)
        else:
            dated.append((parsed, u))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return ([u for _, u in dated] + undated)[:limit]


def compute_grade_distribution(supervisions: Iterable[Supervision]) -> Dict[str, int]:
    counts = {g: 0 for g in GRADES}
    for s in supervisions:
        if s.grade in counts:
            counts[s.grade] += 1
    return counts


def count_teachers_by_unit(teachers: Iterable[Teacher]) -> Dict[str, int]:
    counts = {u: 0 for u in UNITS}
    for t in teachers:
        counts[t.unit] += 1
    return counts


def build_dashboard(
    teachers: Sequence[Teacher],
    admin: Sequence[Supervision],
    kbm: Sequence[Supervision],
    classic: Sequence[Supervision],
    unit_filter: Optional[str] = None,
) -> Dashboard:
    """Everything the dashboard screen shows, for one unit or for all of them."""
    if unit_filter:
        admin = [s for s in admin if s.unit == unit_filter]
        kbm = [s for s in kbm if s.unit == unit_filter]
        classic = [s for s in classic if s.unit == unit_filter]
        shown = [t for t in teachers if t.unit == unit_filter]
    else:
        shown = list(teachers)

    return Dashboard(
        teacherCount=len(shown),
        teachersByUnit=count_teachers_by_unit(teachers),
        supervisionCounts={
            SupervisionKind.admin.value: len(admin),
            SupervisionKind.kbm.value: len(kbm),
            SupervisionKind.classic.value: len(classic),
        },
        gradeDistribution=compute_grade_distribution([*admin, *kbm, *classic]),
        trends=build_trend_series(group_by_month(admin), group_by_month(kbm), group_by_month(classic)),
    )
