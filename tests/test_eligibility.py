import pytest

from tourbook.schemas.catalog import Actor, ComplementaryOffer, MembershipTier, TargetAudience
from tourbook.services.eligibility_service import (
    audience_allows,
    coupon_eligibility,
    is_eligible,
    max_selectable,
    tier_for_total_spent,
)


def _actor(role="tourist", tier=MembershipTier.NONE):
    return Actor(id="u1", name="A", role=role, tier=tier)


def _offer(audience):
    return ComplementaryOffer(id=1, host_id="h1", name="Perk", target_audience=audience)


def _tourist_levels(*levels):
    return TargetAudience(for_tourist=True, tourist_levels=frozenset(levels))


@pytest.mark.parametrize("levels,expected", [((1,), True), ((2,), True), ((3,), False), ((2, 3), True)])
def test_silver_tourist_boundary(levels, expected):
    silver = _actor(tier=MembershipTier.SILVER)
    assert is_eligible(_offer(_tourist_levels(*levels)), silver) is expected


def test_agency_may_claim_tourist_perks():
    agency = _actor(role="agency", tier=MembershipTier.BRONZE)
    assert is_eligible(_offer(_tourist_levels(1)), agency)


def test_agency_only_offer_above_agency_tier():
    agency = _actor(role="agency", tier=MembershipTier.BRONZE)
    rule = TargetAudience(for_agency=True, agency_levels=frozenset({2}))
    assert not is_eligible(_offer(rule), agency)
    assert is_eligible(_offer(rule), _actor(role="agency", tier=MembershipTier.SILVER))


def test_agency_without_level_map_allows_any_agency():
    rule = TargetAudience(for_agency=True)
    assert is_eligible(_offer(rule), _actor(role="agency"))
    assert not is_eligible(_offer(rule), _actor(role="tourist", tier=MembershipTier.GOLD))


def test_no_rule_means_everyone():
    assert is_eligible(_offer(None), _actor(role="host"))


def test_tourist_flag_without_level_map_grants_nothing():
    rule = TargetAudience(for_tourist=True)
    assert not is_eligible(_offer(rule), _actor(tier=MembershipTier.GOLD))


def test_empty_level_map_requires_nothing():
    rule = TargetAudience(for_tourist=True, tourist_levels=frozenset())
    assert is_eligible(_offer(rule), _actor(tier=MembershipTier.NONE))


def test_host_never_matches_audience_rule():
    assert not audience_allows(_tourist_levels(1), _actor(role="host", tier=MembershipTier.GOLD))


def test_target_audience_parse_is_lenient():
    assert TargetAudience.parse("{not json") is None
    assert TargetAudience.parse("[1, 2]") is None
    rule = TargetAudience.parse('{"forTourist": true, "touristLevels": {"level1": false, "level2": true}}')
    assert rule.for_tourist
    assert rule.tourist_levels == frozenset({2})
    assert rule.agency_levels is None


def test_target_audience_json_round_trip():
    rule = TargetAudience(for_tourist=True, tourist_levels=frozenset({1, 3}), for_agency=True)
    assert TargetAudience.parse(rule.to_json()) == rule


@pytest.mark.parametrize("tier,cap", [(0, 0), (1, 1), (2, 2), (3, 3)])
def test_max_selectable_by_tier(tier, cap):
    assert max_selectable(MembershipTier(tier)) == cap


def test_max_selectable_override_wins():
    assert max_selectable(MembershipTier.NONE, 4) == 4
    assert max_selectable(MembershipTier.GOLD, 1) == 1


@pytest.mark.parametrize("raw,tier", [
    (2, MembershipTier.SILVER), ("gold", MembershipTier.GOLD), ("level1", MembershipTier.BRONZE),
    ("3", MembershipTier.GOLD), ("default", MembershipTier.NONE), (9, MembershipTier.NONE), (None, MembershipTier.NONE),
])
def test_membership_tier_parse(raw, tier):
    assert MembershipTier.parse(raw) is tier


def test_tier_for_total_spent():
    assert tier_for_total_spent(0) is MembershipTier.NONE
    assert tier_for_total_spent(1) is MembershipTier.BRONZE
    assert tier_for_total_spent(999_999) is MembershipTier.BRONZE
    assert tier_for_total_spent(1_000_000) is MembershipTier.SILVER
    assert tier_for_total_spent(3_000_000) is MembershipTier.GOLD


def test_coupon_eligibility_reason_for_low_tier():
    ok, reason = coupon_eligibility(_tourist_levels(3), _actor(tier=MembershipTier.SILVER))
    assert not ok
    assert "Bạc" in reason and "Vàng" in reason


def test_coupon_eligibility_agency_only_code():
    ok, reason = coupon_eligibility(TargetAudience(for_agency=True), _actor())
    assert not ok
    assert "Đại lý" in reason


def test_coupon_eligibility_matches_audience_allows():
    rule = _tourist_levels(1)
    assert coupon_eligibility(rule, _actor(role="agency", tier=MembershipTier.BRONZE)) == (True, "")
    assert coupon_eligibility(None, _actor()) == (True, "")
