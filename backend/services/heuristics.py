#!/usr/bin/env python3
"""
Deterministic risk heuristics.

Used whenever the hosted model is unavailable. Every function here is a pure
function of its arguments so the same inputs always give the same verdict.
"""

import math
from typing import Dict, List, Optional

LOW_TVL_THRESHOLD = 1_000_000
HIGH_APY_THRESHOLD = 50
EXTREME_APY_THRESHOLD = 100
FALLBACK_CONFIDENCE = 75


def parse_number(value) -> float:
    """Lenient float parse; unparsable input becomes NaN and fails every comparison"""
    if value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def format_number(value: float) -> str:
    """Render a number the way it reads in prose: 12.0 -> '12', 12.5 -> '12.5'"""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value):
        return str(int(value))
    return repr(value)


def risk_level_for(score: int) -> str:
    if score < 40:
        return "low"
    if score < 70:
        return "medium"
    return "high"


def protocol_risk(tvl: str, apy: Optional[str] = None) -> Dict:
    tvl_value = parse_number(tvl)
    apy_value = parse_number(apy) if apy else 0.0

    score = 30
    if tvl_value < LOW_TVL_THRESHOLD:
        score += 20
    if apy_value > HIGH_APY_THRESHOLD:
        score += 25
    if apy_value > EXTREME_APY_THRESHOLD:
        score += 15

    level = risk_level_for(score)
    liquidity_note = (
        "Lower TVL indicates less liquidity depth."
        if tvl_value < LOW_TVL_THRESHOLD
        else "Healthy TVL suggests good liquidity."
    )

    return {
        "risk_score": score,
        "risk_level": level,
        "confidence": FALLBACK_CONFIDENCE,
        "trust_index": max(0, 100 - score),
        "analysis": (
            f"Based on TVL of ${tvl} and {format_number(apy_value)}% APY, "
            f"this protocol shows {level} risk characteristics. {liquidity_note}"
        ),
        "recommendations": (
            "Consider reducing exposure or diversifying to lower-risk pools."
            if level == "high"
            else "Maintain current position with regular monitoring."
        ),
    }


def position_insight(positions: List[Dict]) -> Dict:
    high_risk_count = sum(1 for p in positions if p.get("risk_level") == "high")

    if high_risk_count > len(positions) / 2:
        return {
            "title": "High-Risk Concentration Detected",
            "description": (
                "Your portfolio has significant exposure to high-risk pools. "
                "This increases vulnerability to volatility and potential exploits."
            ),
            "recommendations": (
                "Consider rebalancing 30-40% of high-risk positions into medium or "
                "low-risk pools to improve risk-adjusted returns."
            ),
            "severity": "warning",
        }

    return {
        "title": "Portfolio Health Looks Good",
        "description": (
            "Your DeFi positions show reasonable risk diversification. "
            "Current allocation balances yield potential with safety considerations."
        ),
        "recommendations": (
            "Continue monitoring protocol risk scores and adjust if any pool's "
            "risk level increases significantly."
        ),
        "severity": "info",
    }


def _trust_factor(trust_index: int) -> Dict:
    if trust_index > 70:
        impact = "Low"
    elif trust_index > 40:
        impact = "Medium"
    else:
        impact = "High"
    reading = (
        "indicates strong community confidence and protocol maturity"
        if trust_index > 70
        else "suggests elevated caution warranted"
    )
    return {
        "factor": "Trust Index",
        "impact": impact,
        "explanation": f"Trust index of {trust_index}/100 {reading}.",
    }


def _tvl_factor(tvl: str) -> Dict:
    deep = parse_number(tvl) > LOW_TVL_THRESHOLD
    reading = (
        "provides solid liquidity depth"
        if deep
        else "indicates limited liquidity which may increase slippage risk"
    )
    return {
        "factor": "TVL Analysis",
        "impact": "Low" if deep else "Medium",
        "explanation": f"TVL of ${tvl} {reading}.",
    }


def _apy_factor(apy: Optional[str]) -> Dict:
    extreme = bool(apy) and parse_number(apy) > HIGH_APY_THRESHOLD
    if apy:
        explanation = (
            f"{'Extremely high' if extreme else 'Moderate'} APY of {apy}% "
            + ("may signal unsustainable yield or higher risk exposure"
               if extreme
               else "appears reasonable for current market conditions")
            + "."
        )
    else:
        explanation = "APY data not available for comprehensive analysis."
    return {
        "factor": "APY Sustainability",
        "impact": "High" if extreme else "Medium",
        "explanation": explanation,
    }


def risk_explanation(protocol_name: str, risk_score: int, risk_level: str, tvl: str,
                     apy: Optional[str], trust_index: int, confidence: int) -> Dict:
    confidence_note = (
        "High confidence in this assessment due to sufficient data points."
        if confidence > 85
        else "Moderate confidence - consider gathering more data points."
    )
    sizing_note = (
        "Multiple risk factors warrant careful position sizing."
        if risk_score > 70
        else "Risk profile acceptable for diversified portfolios."
    )

    if risk_score > 70:
        recommendation = (
            "Exercise caution. Consider reducing exposure to 5-10% of portfolio max, "
            "or wait for risk metrics to improve before entering."
        )
    elif risk_score > 40:
        recommendation = (
            "Monitor closely. Acceptable for diversified portfolios with active risk "
            "management. Set stop-loss at 15-20% below entry."
        )
    else:
        recommendation = (
            "Low risk profile suitable for conservative DeFi strategies. "
            "Consider as core portfolio holding with regular rebalancing."
        )

    return {
        "summary": (
            f"{protocol_name} shows {risk_level} risk with a score of {risk_score}/100 "
            "based on TVL, APY, and trust metrics analysis."
        ),
        "key_factors": [_trust_factor(trust_index), _tvl_factor(tvl), _apy_factor(apy)],
        "technical_analysis": (
            f"The protocol demonstrates {risk_level} risk characteristics based on "
            f"quantitative analysis. {confidence_note} {sizing_note}"
        ),
        "recommendation": recommendation,
    }


def short_explanation(risk_score: int) -> str:
    if risk_score > 70:
        bucket = "elevated"
    elif risk_score > 40:
        bucket = "moderate"
    else:
        bucket = "low"
    return f"Risk score of {risk_score}/100 indicates {bucket} risk levels for this protocol."
