#!/usr/bin/env python3
"""
Protocol Scanner Service

One scan cycle:
1. Log the current Somnia block
2. Discover pools through the chain reader
3. Refresh known protocols (TVL/APY only) or score and create new ones
4. Append a risk timeline sample per pool
5. Push protocol updates and risk alerts to realtime clients

Any exception aborts the cycle; it is logged and the next scheduled run is
the recovery path.
"""

import logging
from typing import Dict

from chain_reader import ChainReader, LiquidityPool
from errors import DuplicateProtocolError
from realtime import RealtimeHub
from repository import Repository
from services.risk_scorer import RiskScorer

logger = logging.getLogger(__name__)

HIGH_RISK_THRESHOLD = 70
RISK_JUMP_THRESHOLD = 10


class ProtocolScanner:
    def __init__(self, repository: Repository, chain_reader: ChainReader,
                 scorer: RiskScorer, hub: RealtimeHub):
        self.repository = repository
        self.chain_reader = chain_reader
        self.scorer = scorer
        self.hub = hub

    def scan_and_update(self) -> Dict:
        """
        Run a full scan cycle.

        Returns:
            Cycle summary with pools_found, created, updated and skipped
        """
        summary = {'pools_found': 0, 'created': 0, 'updated': 0, 'skipped': 0}

        try:
            logger.info("🔗 Starting Somnia blockchain scan for DeFi protocols...")

            try:
                logger.info(f"Current Somnia block: {self.chain_reader.get_current_block()}")
            except Exception as e:
                logger.warning(f"Could not read current block: {e}")

            pools = self.chain_reader.scan_protocols()
            summary['pools_found'] = len(pools)

            if not pools:
                logger.info("⚠️ No DeFi protocols found on Somnia Testnet yet. Scanner will retry next cycle.")
                return summary

            logger.info(f"Found {len(pools)} liquidity pools on Somnia")

            for pool in pools:
                outcome = self._process_pool(pool)
                summary[outcome] += 1

            logger.info(
                f"✓ Protocol scan completed: {summary['created']} new, "
                f"{summary['updated']} updated, {summary['skipped']} skipped"
            )
        except Exception as e:
            logger.error(f"❌ Error scanning Somnia protocols: {e}", exc_info=True)

        return summary

    def _process_pool(self, pool: LiquidityPool) -> str:
        symbol = f"{pool.token0.symbol}-{pool.token1.symbol}"
        name = f"{pool.token0.name}/{pool.token1.name} Pool"

        existing = self.repository.get_protocol_by_address(pool.pair_address)
        if existing:
            self._refresh_protocol(existing, pool, symbol)
            return 'updated'

        return self._create_protocol(pool, symbol, name)

    def _refresh_protocol(self, existing, pool: LiquidityPool, symbol: str):
        """Market fields only; the stored risk verdict is left untouched"""
        old_risk_score = existing.risk_score
        self.repository.update_protocol(existing.id, tvl=pool.tvl, apy=pool.apy)
        logger.info(f"Updated protocol: {symbol}")

        self.repository.add_risk_timeline_entry(existing.id, old_risk_score)

        self.hub.notify_protocol_update(existing.id, {
            'name': symbol,
            'tvl': pool.tvl,
            'apy': pool.apy,
        })

        # Risk fields are not in the refresh write set, so this only fires if
        # something else re-scored the protocol in between.
        current = self.repository.get_protocol(existing.id)
        if current and current.risk_score > old_risk_score + RISK_JUMP_THRESHOLD:
            self.hub.notify_risk_alert(
                existing.id,
                current.risk_score,
                f"{symbol} risk score increased from {old_risk_score} to {current.risk_score}"
            )

    def _create_protocol(self, pool: LiquidityPool, symbol: str, name: str) -> str:
        verdict = self.scorer.analyze_protocol_risk(
            protocol_name=name,
            tvl=pool.tvl,
            apy=pool.apy,
            contract_address=pool.pair_address,
        )

        try:
            created = self.repository.create_protocol(
                name=name,
                symbol=symbol,
                tvl=pool.tvl,
                apy=pool.apy or None,
                risk_score=verdict.risk_score,
                risk_level=verdict.risk_level,
                confidence=verdict.confidence,
                trust_index=verdict.trust_index,
                contract_address=pool.pair_address,
            )
        except DuplicateProtocolError:
            logger.warning(f"Protocol for {pool.pair_address} was created by a concurrent scan, skipping")
            return 'skipped'

        logger.info(f"✓ Added new protocol: {symbol} (risk {verdict.risk_score}, {verdict.source})")

        self.repository.add_risk_timeline_entry(created.id, verdict.risk_score)

        self.hub.notify_protocol_update(created.id, {
            'name': symbol,
            'isNew': True,
            'riskScore': verdict.risk_score,
            'riskLevel': verdict.risk_level,
        })

        if verdict.risk_score > HIGH_RISK_THRESHOLD:
            self.hub.notify_risk_alert(
                created.id,
                verdict.risk_score,
                f"New high-risk protocol detected: {symbol} (Risk: {verdict.risk_score}/100)"
            )

        return 'created'
