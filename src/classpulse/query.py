"""Summary: Provider search-query composition for student communication.

Importance: Produces the exact Gmail search strings used by every aggregation call.
Alternatives: Filter messages locally after listing the whole mailbox.
"""

from __future__ import annotations

from typing import Iterable

from classpulse.models import Direction, QuerySpec, TimeWindow


DEFAULT_STUDENT_KEYWORDS: tuple[str, ...] = (
    "workshop",
    "student",
    "class",
    "course",
    "assignment",
    "homework",
    "project",
    "lesson",
    "session",
    "training",
    "enrollment",
    "registration",
    "question",
    "help",
    "support",
)


def build_spec(
    window: TimeWindow | None,
    direction: Direction,
    domains: Iterable[str] = (),
    keywords: Iterable[str] = (),
) -> QuerySpec:
    """Summary: Build an immutable query spec, substituting default keywords.

    Importance: Guarantees the keyword clause is never empty.
    Alternatives: Let callers supply the defaults themselves.
    """

    unquoted = (keyword.replace('"', "").strip() for keyword in keywords)
    cleaned_keywords = tuple(keyword for keyword in unquoted if keyword)
    cleaned_domains = tuple(domain.strip() for domain in domains if domain.strip())
    return QuerySpec(
        window=window,
        direction=direction,
        domain_filter=cleaned_domains,
        keyword_filter=cleaned_keywords or DEFAULT_STUDENT_KEYWORDS,
    )


def compose(
    window: TimeWindow | None,
    direction: Direction,
    domains: Iterable[str] = (),
    keywords: Iterable[str] = (),
) -> str:
    """Summary: Compose a provider query string from its parts.

    Importance: Pure and deterministic so the prior window differs only by dates.
    Alternatives: Cache composed strings per request.
    """

    return render(build_spec(window, direction, domains, keywords))


def render(spec: QuerySpec) -> str:
    """Summary: Render a QuerySpec as ``<dates> (<domains> OR (<keywords>)) <direction>``.

    Importance: Domain and keyword clauses are OR-joined, never intersected.
    Alternatives: Emit separate queries per domain and merge ids locally.
    """

    keywords = spec.keyword_filter or DEFAULT_STUDENT_KEYWORDS
    keyword_clause = " OR ".join(f'"{keyword}"' for keyword in keywords)
    domain_clause = " OR ".join(
        f"from:{domain} OR to:{domain}" for domain in spec.domain_filter
    )
    if domain_clause:
        filter_clause = f"({domain_clause} OR ({keyword_clause}))"
    else:
        filter_clause = f"({keyword_clause})"
    parts = [date_range_clause(spec.window), filter_clause, direction_clause(spec.direction)]
    return " ".join(part for part in parts if part)


def date_range_clause(window: TimeWindow | None) -> str:
    if window is None:
        return ""
    return f"after:{int(window.start.timestamp())} before:{int(window.end.timestamp())}"


def direction_clause(direction: Direction) -> str:
    if direction is Direction.SENT:
        return "in:sent"
    if direction is Direction.RECEIVED:
        return "-in:sent"
    return ""
