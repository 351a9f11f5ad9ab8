from __future__ import annotations

from datetime import datetime

from jobdiscovery.core.models import (
    LABEL_JUST_POSTED,
    LABEL_RECENT,
    LABEL_STALE,
    LABEL_THIS_WEEK,
    Freshness,
    Posting,
)
from jobdiscovery.utils.config import FreshnessSettings

SECONDS_PER_DAY = 86400


def days_old(posted: datetime, now: datetime) -> int:
    elapsed = (now - posted).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def label_for(days: int, settings: FreshnessSettings = FreshnessSettings()) -> str:
    if days <= settings.just_posted_days:
        return LABEL_JUST_POSTED
    if days <= settings.this_week_days:
        return LABEL_THIS_WEEK
    if days <= settings.recent_days:
        return LABEL_RECENT
    return LABEL_STALE


class FreshnessClassifier:
    """Age label plus validity.

    Internal postings stay valid until ``expires_at`` whatever their age, and are
    treated as brand new when they carry no posted date. External postings are
    valid only inside the freshness window.
    """

    def __init__(self, settings: FreshnessSettings | None = None) -> None:
        self.settings = settings or FreshnessSettings()

    def classify(self, posting: Posting, now: datetime) -> Freshness:
        age = days_old(posting.posted_date, now) if posting.posted_date else 0
        label = label_for(age, self.settings)
        if posting.is_internal:
            valid = posting.expires_at is not None and now < posting.expires_at
        else:
            valid = posting.posted_date is not None and age <= self.settings.external_window_days
        return Freshness(days_old=age, label=label, valid=valid)
