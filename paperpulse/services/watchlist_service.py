"""Watchlist matching and validation.

Matching is pure: ``watchlist_matches`` answers "does this watchlist fire
for this paper", ``watchlist_points`` returns the weighted points the
scorer accumulates.  Both apply the same rules:

* category restriction first (only when both sides declare categories);
* ``keyword`` / ``institution``: whole-word, case-insensitive match on
  ``title + " " + abstract``;
* ``author``: equality after lowercasing and whitespace collapsing;
* ``benchmark``: equality with a structured benchmark entry, or the
  keyword rule.
"""

from typing import Any, Iterable, Optional

from paperpulse.config import ScoringConfig
from paperpulse.exceptions import WatchlistValidationError
from paperpulse.models.paper import PaperSignals
from paperpulse.models.watchlist import WATCHLIST_TYPES, Watchlist
from paperpulse.utils.text import dedupe, includes_token, normalize_name

NAME_MIN, NAME_MAX = 2, 64
TERM_MIN, TERM_MAX = 2, 64
TERMS_MAX = 20


def _terms(watchlist: Watchlist) -> list[str]:
    return [t.strip() for t in watchlist.terms or [] if t and t.strip()]


def passes_category_restriction(signals: PaperSignals, watchlist: Watchlist) -> bool:
    """False when both sides list categories and they share none."""
    if watchlist.categories and signals.categories:
        return any(c in watchlist.categories for c in signals.categories)
    return True


def term_matches(signals: PaperSignals, kind: str, term: str) -> bool:
    """Whether a single term of a watchlist of type *kind* hits the paper."""
    text = f"{signals.title} {signals.abstract}"
    if kind == "author":
        wanted = normalize_name(term)
        return any(normalize_name(a) == wanted for a in signals.authors)
    if kind == "benchmark":
        wanted = term.lower()
        if any(b.lower() == wanted for b in signals.benchmarks):
            return True
        return includes_token(text, term)
    return includes_token(text, term)


def watchlist_matches(signals: PaperSignals, watchlist: Watchlist) -> bool:
    """Does any term of the watchlist match the paper?"""
    if not passes_category_restriction(signals, watchlist):
        return False
    return any(term_matches(signals, watchlist.type, t) for t in _terms(watchlist))


def term_weight(kind: str, config: ScoringConfig) -> float:
    if kind == "author":
        return config.author_weight
    if kind == "benchmark":
        return config.benchmark_weight
    return config.keyword_weight


def watchlist_points(
    signals: PaperSignals,
    watchlists: Iterable[Watchlist],
    config: ScoringConfig,
) -> float:
    """Sum of type weights over every matching term of every watchlist."""
    points = 0.0
    for wl in watchlists:
        terms = _terms(wl)
        if not terms or not passes_category_restriction(signals, wl):
            continue
        weight = term_weight(wl.type, config)
        points += sum(weight for t in terms if term_matches(signals, wl.type, t))
    return points


def matching_watchlist_ids(signals: PaperSignals, watchlists: Iterable[Watchlist]) -> list[str]:
    """Ids of the watchlists that match the paper, in input order."""
    return [wl.id for wl in watchlists if wl.id and watchlist_matches(signals, wl)]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_watchlist(data: dict[str, Any], existing: Optional[Watchlist] = None) -> Watchlist:
    """Build a :class:`Watchlist` from a client payload.

    With *existing*, missing keys keep their current values (partial update).

    Raises:
        WatchlistValidationError: If type, name, terms or categories are invalid
    """
    base = existing or Watchlist(type="keyword", name="")
    kind = data.get("type", base.type if existing else None)
    if kind not in WATCHLIST_TYPES:
        raise WatchlistValidationError(
            f"type must be one of: {', '.join(WATCHLIST_TYPES)}"
        )

    name = str(data.get("name", base.name) or "").strip()
    if not NAME_MIN <= len(name) <= NAME_MAX:
        raise WatchlistValidationError(f"name must be {NAME_MIN}-{NAME_MAX} characters")

    raw_terms = data.get("terms", base.terms)
    if isinstance(raw_terms, str):
        raw_terms = raw_terms.split(",")
    if not isinstance(raw_terms, list):
        raise WatchlistValidationError("terms must be a list of strings")
    terms = dedupe(str(t).strip() for t in raw_terms if str(t).strip())
    if not 1 <= len(terms) <= TERMS_MAX:
        raise WatchlistValidationError(f"terms must contain 1-{TERMS_MAX} entries")
    for term in terms:
        if not TERM_MIN <= len(term) <= TERM_MAX:
            raise WatchlistValidationError(
                f"term {term!r} must be {TERM_MIN}-{TERM_MAX} characters"
            )

    raw_categories = data.get("categories", base.categories) or []
    if isinstance(raw_categories, str):
        raw_categories = raw_categories.split(",")
    if not isinstance(raw_categories, list):
        raise WatchlistValidationError("categories must be a list of strings")
    categories = dedupe(str(c).strip() for c in raw_categories if str(c).strip())

    return Watchlist(
        type=kind,
        name=name,
        terms=terms,
        categories=categories,
        id=base.id,
        user_id=base.user_id,
        created_at=base.created_at,
    )
