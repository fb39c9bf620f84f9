import pytest

from services import heuristics


@pytest.mark.parametrize("tvl,apy", [
    ("0.00", None),
    ("999999.99", "0"),
    ("500000.00", "50"),
    ("12.34", "49.9"),
])
def test_small_pool_with_modest_apy_scores_fifty(tvl, apy):
    verdict = heuristics.protocol_risk(tvl, apy)
    assert verdict["risk_score"] == 50
    assert verdict["risk_level"] == "medium"


def test_extreme_apy_stacks_both_increments():
    assert heuristics.protocol_risk("2000000.00", "150")["risk_score"] == 30 + 25 + 15
    assert heuristics.protocol_risk("100.00", "101")["risk_score"] == 30 + 20 + 25 + 15


def test_high_apy_alone_adds_twenty_five():
    verdict = heuristics.protocol_risk("2000000.00", "75")
    assert verdict["risk_score"] == 55
    assert verdict["risk_level"] == "medium"


@pytest.mark.parametrize("tvl,apy", [
    ("1.00", "500"), ("5000000.00", None), ("999.00", "60"), ("1000000.00", "100"),
])
def test_trust_index_mirrors_score(tvl, apy):
    verdict = heuristics.protocol_risk(tvl, apy)
    assert verdict["trust_index"] == max(0, 100 - verdict["risk_score"])
    assert verdict["confidence"] == 75


def test_level_boundaries():
    assert heuristics.risk_level_for(39) == "low"
    assert heuristics.risk_level_for(40) == "medium"
    assert heuristics.risk_level_for(69) == "medium"
    assert heuristics.risk_level_for(70) == "high"


def test_protocol_analysis_text():
    verdict = heuristics.protocol_risk("500000.00", "0")
    assert verdict["analysis"] == (
        "Based on TVL of $500000.00 and 0% APY, this protocol shows medium risk "
        "characteristics. Lower TVL indicates less liquidity depth."
    )
    assert verdict["recommendations"] == "Maintain current position with regular monitoring."


def test_high_risk_recommendation_and_healthy_tvl_text():
    verdict = heuristics.protocol_risk("2500000.00", "120.5")
    assert verdict["risk_level"] == "high"
    assert "120.5% APY" in verdict["analysis"]
    assert verdict["analysis"].endswith("Healthy TVL suggests good liquidity.")
    assert verdict["recommendations"] == "Consider reducing exposure or diversifying to lower-risk pools."


def test_position_insight_flags_majority_high_risk():
    insight = heuristics.position_insight([
        {"risk_level": "high"}, {"risk_level": "high"}, {"risk_level": "low"},
    ])
    assert insight["title"] == "High-Risk Concentration Detected"
    assert insight["severity"] == "warning"


def test_position_insight_exactly_half_is_healthy():
    insight = heuristics.position_insight([{"risk_level": "high"}, {"risk_level": "medium"}])
    assert insight["title"] == "Portfolio Health Looks Good"
    assert insight["severity"] == "info"


def test_explanation_factor_buckets():
    explanation = heuristics.risk_explanation(
        "USDC/SOMI Pool", 80, "high", "2000000.00", "75", trust_index=30, confidence=90
    )
    factors = {f["factor"]: f for f in explanation["key_factors"]}

    assert factors["Trust Index"]["impact"] == "High"
    assert factors["Trust Index"]["explanation"] == "Trust index of 30/100 suggests elevated caution warranted."
    assert factors["TVL Analysis"]["impact"] == "Low"
    assert factors["APY Sustainability"]["impact"] == "High"
    assert factors["APY Sustainability"]["explanation"].startswith("Extremely high APY of 75%")
    assert explanation["summary"] == (
        "USDC/SOMI Pool shows high risk with a score of 80/100 based on TVL, APY, and trust metrics analysis."
    )
    assert "High confidence in this assessment" in explanation["technical_analysis"]
    assert explanation["recommendation"].startswith("Exercise caution.")


def test_explanation_without_apy():
    explanation = heuristics.risk_explanation(
        "Pool", 45, "medium", "10.00", None, trust_index=55, confidence=75
    )
    factors = {f["factor"]: f for f in explanation["key_factors"]}

    assert factors["Trust Index"]["impact"] == "Medium"
    assert factors["TVL Analysis"]["impact"] == "Medium"
    assert factors["APY Sustainability"]["impact"] == "Medium"
    assert factors["APY Sustainability"]["explanation"] == "APY data not available for comprehensive analysis."
    assert explanation["recommendation"].startswith("Monitor closely.")


@pytest.mark.parametrize("score,bucket", [
    (71, "elevated"), (70, "moderate"), (41, "moderate"), (40, "low"), (0, "low"),
])
def test_short_explanation_buckets(score, bucket):
    assert heuristics.short_explanation(score) == (
        f"Risk score of {score}/100 indicates {bucket} risk levels for this protocol."
    )


def test_infinite_apy_still_scores():
    verdict = heuristics.protocol_risk("10", "1e999")
    assert verdict["risk_score"] == 90
    assert "Infinity% APY" in verdict["analysis"]
    assert heuristics.format_number(float("-inf")) == "-Infinity"
