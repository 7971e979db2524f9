# ==============================================================================
# dealer_reports/ingest/matcher.py
# ------------------------------------------------------------------------------
# Matches advisor/technician names printed in DMS reports to the store's
# team members, and report columns to scorecard KPI names.
# ==============================================================================

import logging
from dataclasses import dataclass
from typing import Optional

from rapidfuzz.distance import Levenshtein

from dealer_reports import db
from dealer_reports.models import ScorecardUserAlias, TeamMember

FUZZY_MATCH_THRESHOLD = 0.85


@dataclass
class UserMatchResult:
    team_member_id: Optional[int] = None
    matched_name: Optional[str] = None
    match_type: Optional[str] = None  # 'alias', 'exact', 'fuzzy'
    confidence: float = 0.0


def fuzzy_name_match(name1, name2):
    """Similarity score between two person names, from 0 to 1."""
    n1 = name1.lower().strip()
    n2 = name2.lower().strip()
    if n1 == n2:
        return 1.0
    if n1 in n2 or n2 in n1:
        return 0.9

    words1 = [w for w in n1.split() if len(w) > 1]
    words2 = [w for w in n2.split() if len(w) > 1]
    if len(words1) >= 2 and len(words2) >= 2:
        first_match = words1[0] == words2[0]
        last_match = words1[-1] == words2[-1]
        if first_match and last_match:
            return 0.95
        if last_match:
            return 0.8
        if first_match:
            return 0.7

    return Levenshtein.normalized_similarity(n1, n2)


def match_users_by_names(names, store_id):
    """
    Resolves each report name to a team member: a saved alias first, then an
    exact (case-insensitive) name, then the best fuzzy match above the threshold.

    Returns:
        dict: report name -> UserMatchResult (empty result when nothing matched).
    """
    aliases = {
        a.alias_name.lower().strip(): a
        for a in ScorecardUserAlias.query.filter_by(store_id=store_id).all()
    }
    members = TeamMember.query.filter_by(store_id=store_id).all()

    results = {}
    for name in names:
        normalized = name.lower().strip()

        alias = aliases.get(normalized)
        if alias is not None:
            results[name] = UserMatchResult(alias.team_member_id, alias.alias_name, 'alias', 1.0)
            continue

        exact = next((m for m in members if m.full_name.lower().strip() == normalized), None)
        if exact is not None:
            results[name] = UserMatchResult(exact.id, exact.full_name, 'exact', 1.0)
            continue

        best, best_score = None, 0.0
        for member in members:
            score = fuzzy_name_match(name, member.full_name)
            if score > FUZZY_MATCH_THRESHOLD and score > best_score:
                best, best_score = member, score
        if best is not None:
            results[name] = UserMatchResult(best.id, best.full_name, 'fuzzy', best_score)
        else:
            logging.info(f"[Matcher] No team member found for '{name}'")
            results[name] = UserMatchResult()

    return results


def create_user_alias(store_id, alias_name, team_member_id, created_by=None):
    """Saves (or repoints) an alias so the name matches directly next time."""
    alias = ScorecardUserAlias.query.filter_by(store_id=store_id, alias_name=alias_name).first()
    if alias is None:
        alias = ScorecardUserAlias(store_id=store_id, alias_name=alias_name)
        db.session.add(alias)
    alias.team_member_id = team_member_id
    alias.created_by = created_by
    db.session.commit()
    return alias


# CSR report column -> KPI name, per pay type
STANDARD_COLUMN_MAPPINGS = {
    'total': {
        'sold hrs': 'Total Hours',
        '#so': "Total RO's",
        'lab sold': 'Total Labour Sales',
        'e.l.r.': 'Total ELR',
    },
    'customer': {
        'sold hrs': 'CP Hours',
        '#so': "CP RO's",
        'lab sold': 'CP Labour Sales',
        'e.l.r.': 'CP ELR',
        'parts sold': 'CP Parts Sales',
    },
    'warranty': {
        'sold hrs': 'Warranty Hours',
        '#so': "Warranty RO's",
        'lab sold': 'Warranty Labour Sales',
    },
    'internal': {
        'sold hrs': 'Internal Hours',
        '#so': "Internal RO's",
        'lab sold': 'Internal Labour Sales',
    },
}


def get_standard_kpi_name(source_column, pay_type):
    mappings = STANDARD_COLUMN_MAPPINGS.get(pay_type.lower().strip())
    if not mappings:
        return None
    return mappings.get(source_column.lower().strip())


def advisor_kpi_values(advisor):
    """Flattens an advisor's metrics into {KPI name: value} using the standard mappings."""
    values = {}
    for pay_type, metrics in advisor.metrics.items():
        for column, value in metrics.items():
            kpi = get_standard_kpi_name(column, pay_type)
            if kpi:
                values[kpi] = value
    return values
