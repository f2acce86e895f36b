# layofftracker/services/layoff_stats.py
"""
Read-only aggregates over layoff events for the dashboard and analytics pages.

Grouping is done in SQL with ``func.count`` / ``func.sum`` where the column
allows it. Period buckets are built from (year, month) groups so the same
queries run on MySQL and SQLite.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import extract, func

from layofftracker import db
from layofftracker.models import utcnow
from layofftracker.models_companies import Company, LayoffEvent

RECENT_DAYS = 30
RECENT_LIMIT = 20
TREND_PERIODS = 12
TIMEFRAMES = ("month", "quarter", "year")

_employees = func.coalesce(func.sum(LayoffEvent.affected_employees), 0)


def dashboard_stats(now=None) -> Dict[str, int]:
    """Company count and number of layoff events in the last 30 days."""
    now = now or utcnow()
    total = db.session.query(func.count(Company.id)).scalar() or 0
    recent = (
        db.session.query(func.count(LayoffEvent.id))
        .filter(LayoffEvent.event_date >= now - timedelta(days=RECENT_DAYS))
        .scalar()
        or 0
    )
    return {"total": int(total), "recentLayoffs": int(recent)}


def recent_layoffs(limit: int = RECENT_LIMIT) -> List[Dict[str, Any]]:
    rows = (
        db.session.query(LayoffEvent, Company.name)
        .join(Company, LayoffEvent.company_id == Company.id)
        .order_by(LayoffEvent.event_date.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": e.id,
            "title": e.title,
            "description": e.description,
            "affectedEmployees": e.affected_employees,
            "eventDate": e.event_date.isoformat(),
            "severity": e.severity,
            "company": name,
        }
        for e, name in rows
    ]


def _by_company_column(column, key: str) -> List[Dict[str, Any]]:
    count = func.count(LayoffEvent.id)
    rows = (
        db.session.query(column, count.label("count"), _employees.label("employees"))
        .select_from(LayoffEvent)
        .join(Company, LayoffEvent.company_id == Company.id)
        .filter(column.isnot(None))
        .group_by(column)
        .order_by(count.desc(), column)
        .all()
    )
    return [{key: value, "count": int(n), "employees": int(emp or 0)} for value, n, emp in rows]


def historical_data() -> Dict[str, List[Dict[str, Any]]]:
    """
    Layoff totals broken down four ways.

    Returns:
        Dict with ``byYear`` (newest first), ``byIndustry`` and ``byState``
        (most events first) and ``byJobTitle`` (most mentioned first)
    """
    year = extract("year", LayoffEvent.event_date)
    by_year = (
        db.session.query(year.label("year"), func.count(LayoffEvent.id), _employees)
        .group_by(year)
        .order_by(year.desc())
        .all()
    )

    # job titles live in a JSON list per event, so they are counted here
    titles = Counter()
    for (job_titles,) in db.session.query(LayoffEvent.affected_job_titles).filter(
        LayoffEvent.affected_job_titles.isnot(None)
    ):
        titles.update(t for t in (job_titles or []) if isinstance(t, str) and t)

    return {
        "byYear": [{"year": int(y), "count": int(n), "employees": int(emp or 0)} for y, n, emp in by_year],
        "byIndustry": _by_company_column(Company.industry, "industry"),
        "byState": _by_company_column(Company.state, "state"),
        "byJobTitle": [
            {"jobTitle": t, "count": n}
            for t, n in sorted(titles.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
    }


def _bucket(timeframe: str, y: int, m: int) -> tuple:
    if timeframe == "year":
        return (y,)
    if timeframe == "quarter":
        return (y, (m - 1) // 3 + 1)
    return (y, m)


def _label(timeframe: str, key: tuple) -> str:
    if timeframe == "year":
        return f"{key[0]:04d}"
    if timeframe == "quarter":
        return f"{key[0]:04d}-{key[1]}"
    return f"{key[0]:04d}-{key[1]:02d}"


def layoff_trends(timeframe: str = "month", periods: int = TREND_PERIODS) -> List[Dict[str, Any]]:
    """
    Event and employee totals per month ("2024-07"), quarter ("2024-3") or
    year ("2024"), newest first.

    Raises:
        ValueError: unknown timeframe
    """
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"timeframe must be one of {', '.join(TIMEFRAMES)}")

    year = extract("year", LayoffEvent.event_date)
    month = extract("month", LayoffEvent.event_date)
    rows = (
        db.session.query(year, month, func.count(LayoffEvent.id), _employees)
        .group_by(year, month)
        .all()
    )

    buckets: Dict[tuple, List[int]] = defaultdict(lambda: [0, 0])
    for y, m, n, emp in rows:
        totals = buckets[_bucket(timeframe, int(y), int(m))]
        totals[0] += int(n)
        totals[1] += int(emp or 0)

    return [
        {"period": _label(timeframe, key), "count": buckets[key][0], "employees": buckets[key][1]}
        for key in sorted(buckets, reverse=True)[:periods]
    ]
