#!/usr/bin/env python3
"""
Risk Scorer Service

Turns protocol and portfolio metrics into risk verdicts:
1. Protocol risk score, level, confidence and trust index
2. Portfolio-level insight for a wallet's positions
3. Explainable (XAI) breakdown of a stored score
4. One-line plain-language explanation

Each operation asks the hosted model first. A ScoringError from the client
selects the deterministic heuristic strategy instead. Nothing here writes to
the database; callers decide what to persist.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from errors import ScoringError
from services import heuristics
from services.gemini_client import GeminiClient

logger = logging.getLogger(__name__)

RISK_LEVELS = ("low", "medium", "high")
SEVERITIES = ("info", "warning", "critical")

PROTOCOL_SYSTEM_PROMPT = """You are an expert DeFi security analyst specializing in risk assessment.
Analyze the provided DeFi protocol data and provide a comprehensive risk assessment.
Consider factors like TVL stability, APY sustainability, contract age, and liquidity patterns.

Respond with JSON in this exact format:
{
  "riskScore": number (0-100, where 0 is safest and 100 is most risky),
  "riskLevel": "low" | "medium" | "high",
  "confidence": number (0-100, your confidence in this assessment),
  "trustIndex": number (0-100, overall trust score for this protocol),
  "analysis": "string (2-3 sentences explaining the risk factors)",
  "recommendations": "string (specific actionable recommendation)"
}"""

PROTOCOL_SCHEMA = {
    "type": "object",
    "properties": {
        "riskScore": {"type": "number"},
        "riskLevel": {"type": "string", "enum": list(RISK_LEVELS)},
        "confidence": {"type": "number"},
        "trustIndex": {"type": "number"},
        "analysis": {"type": "string"},
        "recommendations": {"type": "string"},
    },
    "required": ["riskScore", "riskLevel", "confidence", "trustIndex", "analysis", "recommendations"],
}

PORTFOLIO_SYSTEM_PROMPT = """You are a DeFi portfolio advisor. Analyze the user's DeFi positions and provide actionable insights.
Focus on risk diversification, yield optimization, and potential threats.

Respond with JSON in this format:
{
  "title": "string (catchy, concise insight title)",
  "description": "string (2-3 sentences explaining the portfolio analysis)",
  "recommendations": "string (specific actionable advice)",
  "severity": "info" | "warning" | "critical"
}"""

PORTFOLIO_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "description": {"type": "string"},
        "recommendations": {"type": "string"},
        "severity": {"type": "string", "enum": list(SEVERITIES)},
    },
    "required": ["title", "description", "recommendations", "severity"],
}

EXPLANATION_REQUIRED = ["summary", "keyFactors", "technicalAnalysis", "recommendation"]


@dataclass
class RiskVerdict:
    risk_score: int
    risk_level: str
    confidence: int
    trust_index: int
    analysis: str
    recommendations: str
    source: str = "model"

    def to_dict(self) -> Dict:
        return {
            "riskScore": self.risk_score,
            "riskLevel": self.risk_level,
            "confidence": self.confidence,
            "trustIndex": self.trust_index,
            "analysis": self.analysis,
            "recommendations": self.recommendations,
        }


@dataclass
class PositionInsight:
    title: str
    description: str
    recommendations: str
    severity: str
    source: str = "model"


@dataclass
class RiskFactor:
    factor: str
    impact: str
    explanation: str


@dataclass
class RiskExplanation:
    summary: str
    key_factors: List[RiskFactor] = field(default_factory=list)
    technical_analysis: str = ""
    recommendation: str = ""
    source: str = "model"

    def to_dict(self) -> Dict:
        return {
            "summary": self.summary,
            "keyFactors": [asdict(f) for f in self.key_factors],
            "technicalAnalysis": self.technical_analysis,
            "recommendation": self.recommendation,
        }


def clamp_score(value) -> int:
    """Round and clamp a model-supplied number into 0-100"""
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        raise ScoringError(f"Non-numeric score from model: {value!r}")
    return max(0, min(100, number))


class RiskScorer:
    def __init__(self, client: GeminiClient = None):
        self.client = client or GeminiClient()
        if not self.client.configured:
            logger.warning("⚠️ GEMINI_API_KEY not set, risk scoring will use heuristics only")

    def analyze_protocol_risk(self, protocol_name: str, tvl: str, apy: Optional[str] = None,
                              contract_address: str = "", liquidity_changes: Optional[str] = None) -> RiskVerdict:
        """
        Score a single protocol.

        Args:
            protocol_name: Display name of the pool
            tvl: Decimal string TVL
            apy: Optional decimal string APY
            contract_address: Pair address
            liquidity_changes: Optional free text describing recent flows

        Returns:
            RiskVerdict with every number inside 0-100
        """
        lines = [
            "Analyze this DeFi protocol:",
            f"Name: {protocol_name}",
            f"Total Value Locked (TVL): ${tvl}",
        ]
        if apy:
            lines.append(f"APY: {apy}%")
        lines.append(f"Contract Address: {contract_address}")
        if liquidity_changes:
            lines.append(f"Recent Liquidity Changes: {liquidity_changes}")
        lines.extend(["", "Provide a thorough risk assessment."])

        try:
            result = self.client.generate_json(
                "\n".join(lines),
                system_instruction=PROTOCOL_SYSTEM_PROMPT,
                response_schema=PROTOCOL_SCHEMA
            )
            risk_level = str(result["riskLevel"]).lower()
            if risk_level not in RISK_LEVELS:
                raise ScoringError(f"Unknown risk level from model: {risk_level}")
            return RiskVerdict(
                risk_score=clamp_score(result["riskScore"]),
                risk_level=risk_level,
                confidence=clamp_score(result["confidence"]),
                trust_index=clamp_score(result["trustIndex"]),
                analysis=str(result["analysis"]),
                recommendations=str(result["recommendations"]),
            )
        except ScoringError as e:
            logger.warning(f"Model scoring failed for {protocol_name}, using heuristics: {e}")
            return RiskVerdict(source="heuristic", **heuristics.protocol_risk(tvl, apy))

    def analyze_user_positions(self, wallet_address: str, positions: List[Dict]) -> PositionInsight:
        """
        Portfolio insight for a wallet.

        ``positions`` items carry pool_name, amount, apy and risk_level.
        """
        payload = [
            {
                "poolName": p.get("pool_name"),
                "amount": p.get("amount"),
                "apy": p.get("apy"),
                "riskLevel": p.get("risk_level"),
            }
            for p in positions
        ]
        prompt = (
            "Analyze this DeFi portfolio:\n"
            f"Wallet: {wallet_address}\n"
            f"Positions: {json.dumps(payload, indent=2)}\n\n"
            "Provide strategic insights and recommendations."
        )

        try:
            result = self.client.generate_json(
                prompt,
                system_instruction=PORTFOLIO_SYSTEM_PROMPT,
                response_schema=PORTFOLIO_SCHEMA
            )
            severity = str(result["severity"]).lower()
            if severity not in SEVERITIES:
                raise ScoringError(f"Unknown severity from model: {severity}")
            return PositionInsight(
                title=str(result["title"]),
                description=str(result["description"]),
                recommendations=str(result["recommendations"]),
                severity=severity,
            )
        except ScoringError as e:
            logger.warning(f"Portfolio analysis failed for {wallet_address}, using heuristics: {e}")
            return PositionInsight(source="heuristic", **heuristics.position_insight(positions))

    def explain_risk_decision(self, protocol_name: str, symbol: str, risk_score: int, risk_level: str,
                              tvl: str, apy: Optional[str], trust_index: int, confidence: int) -> RiskExplanation:
        """XAI breakdown of why a protocol holds its current score"""
        prompt = f"""You are a DeFi security analyst. Explain in detail why the protocol "{protocol_name}" ({symbol}) has a risk score of {risk_score}/100.

Protocol Data:
- TVL: ${tvl}
- APY: {apy or 'N/A'}%
- Trust Index: {trust_index}/100
- AI Confidence: {confidence}%
- Risk Level: {risk_level}

Provide a detailed breakdown in JSON format with these fields:
- summary: A 2-3 sentence overview of the risk assessment
- keyFactors: Array of 3-4 key risk factors, each with factor name, impact level (High/Medium/Low), and detailed explanation
- technicalAnalysis: Detailed technical analysis including any red flags or positive signals
- recommendation: Specific actionable recommendation for users

Be specific, technical, and actionable. Focus on real DeFi risk factors like liquidity risk, smart contract risk, impermanent loss, and market volatility."""

        try:
            result = self.client.generate_json(
                prompt,
                response_schema={"type": "object", "required": EXPLANATION_REQUIRED}
            )
            factors = result["keyFactors"]
            if not isinstance(factors, list):
                raise ScoringError("keyFactors is not a list")
            return RiskExplanation(
                summary=str(result["summary"]),
                key_factors=[
                    RiskFactor(
                        factor=str(f.get("factor", "")),
                        impact=str(f.get("impact", "")),
                        explanation=str(f.get("explanation", "")),
                    )
                    for f in factors if isinstance(f, dict)
                ],
                technical_analysis=str(result["technicalAnalysis"]),
                recommendation=str(result["recommendation"]),
            )
        except ScoringError as e:
            logger.warning(f"Risk explanation failed for {protocol_name}, using heuristics: {e}")
            fallback = heuristics.risk_explanation(
                protocol_name, risk_score, risk_level, tvl, apy, trust_index, confidence
            )
            return RiskExplanation(
                summary=fallback["summary"],
                key_factors=[RiskFactor(**f) for f in fallback["key_factors"]],
                technical_analysis=fallback["technical_analysis"],
                recommendation=fallback["recommendation"],
                source="heuristic",
            )

    def generate_risk_explanation(self, risk_score: int, protocol_name: str) -> str:
        prompt = (
            f'Explain in 1-2 sentences why a DeFi protocol named "{protocol_name}" might have '
            f"a risk score of {risk_score}/100. Be specific and educational."
        )
        try:
            return self.client.generate_text(prompt)
        except ScoringError as e:
            logger.debug(f"Short explanation fell back to template: {e}")
            return heuristics.short_explanation(risk_score)
