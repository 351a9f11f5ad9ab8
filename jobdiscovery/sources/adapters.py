"""One adapter per source, each producing a fully populated ``Posting``."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping

from jobdiscovery.core.errors import TransformError
from jobdiscovery.core.models import (
    LIVENESS_ACTIVE,
    LIVENESS_STALE,
    LIVENESS_UNKNOWN,
    SOURCE_CACHED,
    SOURCE_INTERNAL,
    SOURCE_LIVE,
    WORK_TYPES,
    Posting,
    parse_timestamp,
)
from jobdiscovery.utils.text import (
    detect_work_type,
    extract_requirements,
    extract_skills,
    normalize_location,
    normalize_whitespace,
    normalize_work_type,
    strip_markup,
)

LIVENESS_STATES = {LIVENESS_ACTIVE, LIVENESS_STALE, LIVENESS_UNKNOWN}


def _json_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = json.loads(value)
    if not isinstance(value, list):
        raise TransformError(f"expected a list, got {type(value).__name__}")
    return [str(v) for v in value if str(v).strip()]


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _common_fields(row: Mapping[str, Any]) -> dict[str, Any]:
    title = normalize_whitespace(str(row["title"] or ""))
    company = normalize_whitespace(str(row["company"] or ""))
    if not title or not company:
        raise TransformError(f"row {row['id']} is missing title or company")
    work_type = normalize_work_type(row["work_type"]) or "onsite"
    liveness = (row["liveness_status"] or LIVENESS_UNKNOWN).lower()
    return {
        "title": title,
        "company": company,
        "description": row["description"] or "",
        "skills": _json_list(row["skills"]),
        "requirements": _json_list(row["requirements"]),
        "location": row["location"] or "",
        "work_type": work_type if work_type in WORK_TYPES else "onsite",
        "salary_min": _optional_int(row["salary_min"]),
        "salary_max": _optional_int(row["salary_max"]),
        "trust_score": max(0, min(100, int(row["trust_score"] if row["trust_score"] is not None else 50))),
        "liveness_status": liveness if liveness in LIVENESS_STATES else LIVENESS_UNKNOWN,
    }


def internal_posting_from_row(row: Mapping[str, Any]) -> Posting:
    try:
        fields = _common_fields(row)
        # employer postings are trusted unless the row says otherwise
        if row["trust_score"] is None:
            fields["trust_score"] = 100
        if not row["liveness_status"]:
            fields["liveness_status"] = LIVENESS_ACTIVE
        return Posting(
            id=f"internal:{row['id']}",
            source=SOURCE_INTERNAL,
            posted_date=parse_timestamp(row["posted_date"]),
            expires_at=parse_timestamp(row["expires_at"]),
            external_url=row["external_url"],
            **fields,
        )
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise TransformError(f"malformed internal row: {exc}") from exc


def cached_posting_from_row(row: Mapping[str, Any]) -> Posting:
    try:
        fields = _common_fields(row)
        if not row["external_id"]:
            raise TransformError(f"cached row {row['id']} has no external id")
        return Posting(
            id=f"{row['source']}:{row['external_id']}",
            source=SOURCE_CACHED,
            posted_date=parse_timestamp(row["posted_date"]),
            external_id=str(row["external_id"]),
            provider=row["source"],
            external_url=row["external_url"],
            **fields,
        )
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise TransformError(f"malformed cached row: {exc}") from exc


def live_posting_from_record(
    record: Mapping[str, Any],
    provider: str,
    trust_score: int,
    now: datetime,
    description_limit: int = 5000,
) -> Posting:
    """Turn one raw discovery record into a ``Posting``.

    The provider returns an id, a source/company label, an apply URL and a
    job_information block whose description carries markup. Location, workplace
    type and posting date are optional and fall back to derived values.
    """
    if not isinstance(record, Mapping):
        raise TransformError("record is not an object")
    info = record.get("job_information") or {}
    if not isinstance(info, Mapping):
        raise TransformError("job_information is not an object")
    external_id = record.get("id")
    apply_url = record.get("apply_url")
    title = normalize_whitespace(str(info.get("title") or ""))
    if not external_id or not apply_url or not title:
        raise TransformError(f"record {external_id!r} lacks id, apply_url or title")

    try:
        description = strip_markup(str(info.get("description") or ""))[:description_limit]
        company = normalize_whitespace(str(record.get("source") or "")) or "Unknown Company"
        work_type = normalize_work_type(_optional_str(info, "workplace_type")) or detect_work_type(description)
        posted = parse_timestamp(record.get("posted_at") or info.get("posted_at")) or now
        return Posting(
            id=f"{provider}:{external_id}",
            source=SOURCE_LIVE,
            title=title,
            company=company,
            description=description,
            skills=extract_skills(f"{title} {description}"),
            requirements=extract_requirements(description),
            location=normalize_location(_optional_str(info, "location"), work_type),
            work_type=work_type,
            salary_min=_salary(info, "salary_min"),
            salary_max=_salary(info, "salary_max"),
            posted_date=posted,
            external_id=str(external_id),
            provider=provider,
            external_url=str(apply_url),
            trust_score=trust_score,
            liveness_status=LIVENESS_UNKNOWN,
        )
    except (KeyError, IndexError, TypeError, AttributeError, ValueError) as exc:
        raise TransformError(f"malformed record {external_id!r}: {exc}") from exc


def _optional_str(info: Mapping[str, Any], key: str) -> str | None:
    value = info.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TransformError(f"{key} is not a string: {type(value).__name__}")
    return value


def _salary(info: Mapping[str, Any], key: str) -> int | None:
    try:
        return _optional_int(info.get(key))
    except (TypeError, ValueError):
        return None
