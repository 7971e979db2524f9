# tests/test_matcher.py

import pytest

from dealer_reports.ingest.matcher import (
    advisor_kpi_values, create_user_alias, fuzzy_name_match, get_standard_kpi_name, match_users_by_names,
)
from dealer_reports.ingest.records import AdvisorData
from dealer_reports.models import ScorecardUserAlias, Store, TeamMember


@pytest.fixture
def team(clean_db):
    db = clean_db
    store = Store(name="Murray Chevrolet", brand="Chevrolet")
    db.session.add(store)
    db.session.flush()
    members = {
        name: TeamMember(full_name=name, store_id=store.id)
        for name in ("Kayla Bender", "Samuel Lee", "Pat Quinn")
    }
    db.session.add_all(members.values())
    db.session.commit()
    return store, members


def test_fuzzy_name_match_scores():
    assert fuzzy_name_match("Kayla Bender", " kayla bender ") == 1.0
    assert fuzzy_name_match("Kayla", "Kayla Bender") == 0.9
    assert fuzzy_name_match("Kayla M Bender", "Kayla J. Bender") == 0.95
    assert fuzzy_name_match("Sam Lee", "Samuel Lee") == 0.8
    assert 0 <= fuzzy_name_match("Zed", "Kayla Bender") < 0.5


def test_match_users_by_names(team):
    store, members = team

    results = match_users_by_names(["KAYLA BENDER", "Kayla J Bender", "Nobody Here"], store.id)

    assert results["KAYLA BENDER"].match_type == "exact"
    assert results["KAYLA BENDER"].team_member_id == members["Kayla Bender"].id
    assert results["Kayla J Bender"].match_type == "fuzzy"
    assert results["Kayla J Bender"].confidence == 0.95
    assert results["Nobody Here"].team_member_id is None


def test_alias_wins_and_can_be_repointed(team, clean_db):
    store, members = team

    create_user_alias(store.id, "Sam Lee", members["Samuel Lee"].id, created_by="admin")
    result = match_users_by_names(["sam lee"], store.id)["sam lee"]
    assert result.match_type == "alias"
    assert result.team_member_id == members["Samuel Lee"].id

    create_user_alias(store.id, "Sam Lee", members["Pat Quinn"].id)
    assert ScorecardUserAlias.query.filter_by(store_id=store.id).count() == 1
    assert match_users_by_names(["Sam Lee"], store.id)["Sam Lee"].team_member_id == members["Pat Quinn"].id


def test_get_standard_kpi_name():
    assert get_standard_kpi_name("Sold Hrs", "Customer") == "CP Hours"
    assert get_standard_kpi_name("#SO", "total") == "Total RO's"
    assert get_standard_kpi_name("Parts Sold", "warranty") is None
    assert get_standard_kpi_name("Sold Hrs", "sublet") is None


def test_advisor_kpi_values():
    advisor = AdvisorData("Advisor 1 - Kayla Bender", "Kayla Bender", "1")
    advisor.metrics["customer"].update({"Sold Hrs": 95.5, "Lab Sold": 12000.0, "Misc": 1.0})
    advisor.metrics["total"]["#SO"] = 50.0

    assert advisor_kpi_values(advisor) == {
        "CP Hours": 95.5,
        "CP Labour Sales": 12000.0,
        "Total RO's": 50.0,
    }
