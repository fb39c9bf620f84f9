#!/usr/bin/env python3
"""
Read-side helpers behind the dashboard endpoints.

Aggregate metrics, protocol filtering and sorting, the risk timeline pivot,
derived high-risk alerts and the advisory rebalance message. All of these
are plain functions over already-loaded rows.
"""

import math
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional

from database import isoformat, utcnow
from services.heuristics import parse_number

ALERT_THRESHOLD = 70
CRITICAL_THRESHOLD = 85


def risk_metrics(protocols: List) -> Dict:
    total_value = sum(parse_number(p.tvl) for p in protocols)
    avg_risk_score = (
        int(math.floor(sum(p.risk_score for p in protocols) / len(protocols) + 0.5))
        if protocols else 0
    )
    return {
        'total_value': f"{total_value:.2f}",
        'avg_risk_score': avg_risk_score,
        'protocols_monitored': len(protocols),
        'active_alerts': sum(1 for p in protocols if p.risk_score > ALERT_THRESHOLD),
    }


def _apy_or_zero(protocol) -> float:
    return parse_number(protocol.apy) if protocol.apy else 0.0


def _sort_key(sort_by: str):
    if sort_by == 'riskScore':
        return lambda p: p.risk_score
    if sort_by == 'trustIndex':
        return lambda p: p.trust_index
    if sort_by == 'apy':
        return _apy_or_zero
    if sort_by == 'name':
        return lambda p: p.name.lower()
    return lambda p: parse_number(p.tvl)


def filter_protocols(protocols: Iterable, search: Optional[str] = None, risk_level: Optional[str] = None,
                     min_tvl: Optional[float] = None, max_tvl: Optional[float] = None,
                     min_apy: Optional[float] = None, max_apy: Optional[float] = None,
                     sort_by: str = 'tvl', sort_order: str = 'desc') -> List:
    """
    Filter then sort protocols.

    Any APY bound excludes protocols that have no APY. Unknown ``sort_by``
    values sort by TVL; any ``sort_order`` other than ``asc`` is descending.
    """
    result = list(protocols)

    if search:
        needle = search.lower()
        result = [
            p for p in result
            if needle in p.name.lower()
            or needle in p.symbol.lower()
            or needle in p.contract_address.lower()
        ]

    if risk_level:
        result = [p for p in result if p.risk_level == risk_level]

    if min_tvl is not None:
        result = [p for p in result if parse_number(p.tvl) >= min_tvl]
    if max_tvl is not None:
        result = [p for p in result if parse_number(p.tvl) <= max_tvl]

    if min_apy is not None:
        result = [p for p in result if p.apy and parse_number(p.apy) >= min_apy]
    if max_apy is not None:
        result = [p for p in result if p.apy and parse_number(p.apy) <= max_apy]

    result.sort(key=_sort_key(sort_by), reverse=(sort_order != 'asc'))
    return result


def display_time(dt) -> str:
    """Short chart label, e.g. 'Mar 4, 09:05 PM'"""
    return f"{dt:%b} {dt.day}, {dt:%I:%M %p}"


def pivot_timeline(entries: Iterable, protocols: Iterable) -> List[Dict]:
    """
    One row per distinct sample time with a column per protocol symbol.

    Samples whose protocol no longer resolves are dropped.
    """
    symbols = {p.id: p.symbol for p in protocols}
    rows: Dict[str, Dict] = OrderedDict()

    for entry in entries:
        symbol = symbols.get(entry.protocol_id)
        if not symbol:
            continue

        iso_time = isoformat(entry.timestamp)
        if iso_time not in rows:
            rows[iso_time] = {
                'timestamp': display_time(entry.timestamp),
                'isoTime': iso_time,
            }
        rows[iso_time][symbol] = entry.risk_score

    return [rows[key] for key in sorted(rows)]


def high_risk_alerts(protocols: Iterable) -> List[Dict]:
    now = isoformat(utcnow())
    return [
        {
            'id': f"alert-{p.id}",
            'type': 'high_risk',
            'severity': 'critical' if p.risk_score >= CRITICAL_THRESHOLD else 'warning',
            'title': f"High Risk Detected: {p.name}",
            'message': (
                f"{p.symbol} shows elevated risk score of {p.risk_score}/100. "
                "Consider reviewing your position."
            ),
            'timestamp': now,
            'protocol_id': p.id,
        }
        for p in protocols
        if p.risk_score > ALERT_THRESHOLD
    ]


def rebalance_advice(position, protocol) -> Dict:
    """Advisory only; nothing is executed on-chain"""
    if protocol.risk_level == 'high':
        move_amount = parse_number(position.amount) * 0.3
        message = (
            f"Reducing exposure in {protocol.name} due to high risk. "
            f"Consider moving {move_amount:.4f} tokens to lower-risk protocols."
        )
    elif protocol.risk_level == 'medium':
        message = (
            f"Optimizing position in {protocol.name}. "
            "Suggested reallocation to maintain balanced risk profile."
        )
    else:
        message = (
            f"Maintaining position in {protocol.name}. "
            "Current allocation is optimal for low-risk strategy."
        )

    return {
        'success': True,
        'message': message,
        'position_id': position.id,
        'action': 'reduce' if protocol.risk_level == 'high' else 'maintain',
    }
