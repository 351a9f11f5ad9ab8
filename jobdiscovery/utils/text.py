from __future__ import annotations

import re

from bs4 import BeautifulSoup

REQUIREMENTS_PLACEHOLDER = "See job description for detailed requirements."

COMMON_SKILLS = [
    # Tech
    "JavaScript", "TypeScript", "React", "Node.js", "Python", "Java", "Go", "Rust",
    "AWS", "Docker", "Kubernetes", "PostgreSQL", "MongoDB", "Redis", "SQL",
    "HTML", "CSS", "Vue.js", "Angular", "Express", "Django", "Flask",
    "Git", "CI/CD", "GraphQL", "REST", "API", "Microservices",
    "Machine Learning", "AI", "Data Science", "Analytics",
    # Hospitality and food service
    "Line Cook", "Prep Cook", "Bartender", "Barista", "Food Preparation", "Food Safety",
    "ServSafe", "HACCP", "POS Systems", "Cash Handling", "Cashier", "Hospitality",
    # Trades and construction
    "Electrical", "Plumbing", "Carpentry", "Welding", "HVAC", "Construction", "Warehouse",
    "Forklift Operation", "Blueprint Reading", "OSHA",
    # Healthcare
    "Certified Nursing Assistant", "CNA", "Medical Assistant", "Phlebotomy",
    "CPR Certified", "BLS Certified", "Patient Care", "EMR", "HIPAA Compliance",
    # Retail and customer service
    "Retail Sales", "Sales", "Customer Service", "Call Center", "Receptionist",
    "Data Entry", "Inventory Management", "Merchandising",
    # Transportation
    "Delivery Driver", "Truck Driver", "CDL",
    # Cleaning, maintenance, security
    "Janitorial", "Housekeeping", "Maintenance", "Security Guard", "First Aid",
    # General
    "Microsoft Office", "Excel", "Communication", "Teamwork", "Leadership",
    "Time Management", "Problem Solving", "Attention to Detail",
]

MAX_EXTRACTED_SKILLS = 10
MAX_REQUIREMENTS = 5

_SKILL_PATTERNS = [
    (skill, re.compile(rf"(?<![a-zA-Z]){re.escape(skill)}(?![a-zA-Z])", re.IGNORECASE))
    for skill in COMMON_SKILLS
]

_REQUIREMENT_PATTERNS = [
    re.compile(r"\b\d+\s*\+?\s*(?:-\s*\d+\s*)?(?:years?|yrs?)\b", re.IGNORECASE),
    re.compile(r"\b(?:bachelor'?s?|master'?s?|ph\.?d\.?|associate'?s? degree|degree|diploma|ged)\b", re.IGNORECASE),
    re.compile(r"^\s*(?:required|requirements?)\s*:", re.IGNORECASE),
    re.compile(r"\b(?:must have|must be|required|qualifications?|proficien(?:t|cy) (?:in|with)|experience with)\b", re.IGNORECASE),
]


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def strip_markup(html: str) -> str:
    if not html:
        return ""
    return normalize_whitespace(BeautifulSoup(html, "html.parser").get_text(" "))


def extract_skills(text: str, limit: int = MAX_EXTRACTED_SKILLS) -> list[str]:
    found = [skill for skill, pattern in _SKILL_PATTERNS if pattern.search(text)]
    return found[:limit]


def split_sentences(text: str) -> list[str]:
    parts = re.split(r"(?<=[.!?])\s+|\n+|(?<=\S)\s+(?=(?:Required|Requirements?)\s*:)", text)
    return [normalize_whitespace(p) for p in parts if p and len(p.strip()) > 10]


def extract_requirements(text: str, limit: int = MAX_REQUIREMENTS) -> list[str]:
    """Pick requirement-like sentences; never returns an empty list."""
    found: list[str] = []
    for sentence in split_sentences(text):
        if any(pattern.search(sentence) for pattern in _REQUIREMENT_PATTERNS):
            found.append(sentence.rstrip(".!?").strip())
        if len(found) >= limit:
            break
    return found or [REQUIREMENTS_PLACEHOLDER]


def detect_work_type(text: str) -> str:
    lower = text.lower()
    if "remote" in lower and "hybrid" in lower:
        return "hybrid"
    if "remote" in lower:
        return "remote"
    if "hybrid" in lower:
        return "hybrid"
    return "onsite"


def normalize_work_type(value: str | None) -> str | None:
    if not value:
        return None
    lower = value.strip().lower().replace("-", "").replace(" ", "")
    if lower in {"remote", "wfh"}:
        return "remote"
    if lower == "hybrid":
        return "hybrid"
    if lower in {"onsite", "inoffice", "office"}:
        return "onsite"
    return None


def normalize_location(location: str | None, work_type: str, default: str = "United States") -> str:
    place = normalize_whitespace(location or "") or default
    if work_type == "remote":
        return place if place.lower().startswith("remote") else f"Remote ({place})"
    if work_type == "hybrid":
        return f"Hybrid - {place}"
    return place


def normalize_skill(skill: str) -> str:
    return normalize_whitespace(skill).lower()
