from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryPatternCategory:
    name: str
    pattern: re.Pattern[str]
    probes: tuple[str, ...] = tuple()
    probe_gate: re.Pattern[str] | None = None

    def matches(self, query: str) -> bool:
        return bool(self.pattern.search(query))

    def probes_for(self, query: str) -> tuple[str, ...]:
        if self.probe_gate is not None and not self.probe_gate.search(query):
            return tuple()
        return self.probes


def _category(
    name: str,
    pattern: str,
    probes: list[str] | tuple[str, ...] = (),
    probe_gate: str | None = None,
) -> QueryPatternCategory:
    return QueryPatternCategory(
        name=name,
        pattern=re.compile(pattern, re.IGNORECASE),
        probes=tuple(probes),
        probe_gate=re.compile(probe_gate, re.IGNORECASE) if probe_gate else None,
    )


# Short tabular content (schedules, fee tables) is lexically distinctive but
# semantically diffuse; these categories push such queries toward keyword search.
DEFAULT_QUERY_PATTERNS: tuple[QueryPatternCategory, ...] = (
    _category(
        "schedule",
        r"series|schedule|dates|when.*conducted|test.*schedule",
        ["NET TEST SCHEDULE TABLE Series"],
        probe_gate=r"series|NET",
    ),
    _category(
        "maths_course",
        r"math.*course|mathematics.*course|pre.*medical.*course",
        ["Mathematics course Pre Medical connected.nust.edu.pk"],
    ),
    _category(
        "entry_test",
        r"NET.*test|engineering.*NET|NET.*engineering|subjects.*NET|NET.*subjects|weightings",
        ["SUBJECTS INCLUDED IN NET WITH WEIGHTINGS Engineering Mathematics Physics"],
    ),
    _category(
        "fee",
        r"fee|fees|tuition|cost|charges|price|payment|financial",
        [
            "Fee Structure National Students Tuition Admission Processing Security Deposit"
        ],
    ),
    _category(
        "pre_medical_eligibility",
        r"pre.*med|pre.*medical.*engineering|pre.*medical.*apply",
        [
            "Pre-Medical group equivalent qualification applying Engineering "
            "mandatory Mathematics course 8 weeks"
        ],
    ),
    _category(
        "result_announcement",
        r"result|results|announcement|announced|upload",
        ["Result NET-2026 Series uploaded login account"],
        probe_gate=r"NET|series",
    ),
    _category(
        "bioinformatics",
        r"bioinformatics|bioinformatic",
        ["BS Bioinformatics NET-Engineering additional registration fee separate"],
    ),
    _category(
        "eligibility",
        r"eligibility|eligible|apply|admission|FSc.*arts|ICS|pre.*engineering|criteria",
        [
            "NET-Engineering HSSC Pre-Engineering Pre-Medical ICS group candidates "
            "seeking admission",
            "standard defined streams academic background Mathematics Physics "
            "Chemistry Biology Computer Science",
        ],
    ),
)


def match_categories(
    query: str,
    categories: tuple[QueryPatternCategory, ...] = DEFAULT_QUERY_PATTERNS,
) -> tuple[QueryPatternCategory, ...]:
    return tuple(category for category in categories if category.matches(query))


def load_query_patterns(path: str | None) -> tuple[QueryPatternCategory, ...]:
    """Load pattern categories from a JSON list, falling back to the defaults.

    Each row needs ``name`` and ``pattern``; ``probes`` (list of strings) and
    ``probe_gate`` (regex) are optional.
    """
    if not path:
        return DEFAULT_QUERY_PATTERNS
    pattern_file = Path(path)
    if not pattern_file.exists():
        LOGGER.warning(
            "Query pattern file not found; using built-in patterns",
            extra={"query_patterns_path": path},
        )
        return DEFAULT_QUERY_PATTERNS

    payload = json.loads(pattern_file.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError("Query pattern file must be a JSON array of objects")

    categories: list[QueryPatternCategory] = []
    for row in payload:
        if not isinstance(row, dict):
            continue
        name = row.get("name")
        pattern = row.get("pattern")
        probes = row.get("probes", [])
        probe_gate = row.get("probe_gate")
        if not isinstance(name, str) or not isinstance(pattern, str):
            continue
        if not isinstance(probes, list) or not all(
            isinstance(item, str) for item in probes
        ):
            continue
        if probe_gate is not None and not isinstance(probe_gate, str):
            continue
        categories.append(_category(name, pattern, probes, probe_gate))
    return tuple(categories)
