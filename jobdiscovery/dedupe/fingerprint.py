from __future__ import annotations

import re

from jobdiscovery.core.models import Posting

SENIORITY_QUALIFIERS = {"senior", "junior", "lead", "staff", "principal"}

_WORD = re.compile(r"[a-z0-9]+")


def normalize_part(text: str) -> str:
    words = _WORD.findall((text or "").lower())
    return "".join(w for w in words if w not in SENIORITY_QUALIFIERS)


def fingerprint(company: str, title: str) -> str:
    return f"{normalize_part(company)}_{normalize_part(title)}"


def posting_fingerprint(posting: Posting) -> str:
    return fingerprint(posting.company, posting.title)
