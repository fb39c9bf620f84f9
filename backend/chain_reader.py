#!/usr/bin/env python3
"""
Chain Reader: read-only access to the Somnia testnet.

Reads ERC-20 token metadata, Uniswap V2 style pair reserves and factory pair
listings through one configured RPC endpoint. Nothing here signs or submits
transactions.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from web3 import Web3

from config import config

logger = logging.getLogger(__name__)

# Minimal ERC-20 ABI (view functions only)
ERC20_ABI = json.loads('''[
    {"inputs": [], "name": "name", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "symbol", "outputs": [{"name": "", "type": "string"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "decimals", "outputs": [{"name": "", "type": "uint8"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "totalSupply", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    }
]''')

# Uniswap V2 pair ABI
PAIR_ABI = json.loads('''[
    {"inputs": [], "name": "token0", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "token1", "outputs": [{"name": "", "type": "address"}], "stateMutability": "view", "type": "function"},
    {
        "inputs": [],
        "name": "getReserves",
        "outputs": [
            {"name": "reserve0", "type": "uint112"},
            {"name": "reserve1", "type": "uint112"},
            {"name": "blockTimestampLast", "type": "uint32"}
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {"inputs": [], "name": "totalSupply", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"}
]''')

# Uniswap V2 factory ABI
FACTORY_ABI = json.loads('''[
    {"inputs": [], "name": "allPairsLength", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {
        "inputs": [{"name": "", "type": "uint256"}],
        "name": "allPairs",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "tokenA", "type": "address"}, {"name": "tokenB", "type": "address"}],
        "name": "getPair",
        "outputs": [{"name": "pair", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    }
]''')


@dataclass
class TokenInfo:
    address: str
    name: str
    symbol: str
    decimals: int
    total_supply: int


@dataclass
class LiquidityPool:
    """Pair reserves plus both tokens; tvl/apy are filled in by scan_protocols"""
    pair_address: str
    token0: TokenInfo
    token1: TokenInfo
    reserve0: int
    reserve1: int
    tvl: Optional[str] = field(default=None)
    apy: Optional[str] = field(default=None)


def estimate_tvl(reserve0: int, reserve1: int, decimals0: int, decimals1: int) -> str:
    """
    Naive TVL: both reserves scaled by their decimals and summed as if the
    two tokens were priced 1:1. There is no price oracle behind this number.
    """
    amount0 = Decimal(reserve0).scaleb(-decimals0)
    amount1 = Decimal(reserve1).scaleb(-decimals1)
    return f"{amount0 + amount1:.2f}"


class ChainReader:
    def __init__(self, rpc_url: str = None, factories: List[str] = None,
                 discovery_limit: int = None, w3: Web3 = None):
        self.rpc_url = rpc_url or config.SOMNIA_RPC_URL
        self.factories = list(factories if factories is not None else config.FACTORY_ADDRESSES)
        self.discovery_limit = discovery_limit or config.DISCOVERY_LIMIT
        self.w3 = w3 or Web3(Web3.HTTPProvider(
            self.rpc_url,
            request_kwargs={'timeout': config.RPC_TIMEOUT_SECONDS}
        ))

    def _contract(self, address: str, abi):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def is_connected(self) -> bool:
        try:
            return bool(self.w3.is_connected())
        except Exception as e:
            logger.warning(f"RPC connectivity check failed: {e}")
            return False

    def get_token_info(self, token_address: str) -> TokenInfo:
        """Four ERC-20 view calls; any failure propagates"""
        try:
            token = self._contract(token_address, ERC20_ABI)
            return TokenInfo(
                address=token.address,
                name=token.functions.name().call(),
                symbol=token.functions.symbol().call(),
                decimals=int(token.functions.decimals().call()),
                total_supply=int(token.functions.totalSupply().call()),
            )
        except Exception as e:
            logger.error(f"Error fetching token info for {token_address}: {e}")
            raise

    def get_liquidity_pool_data(self, pair_address: str) -> LiquidityPool:
        """Pair tokens, reserves and token metadata; no partial result on failure"""
        try:
            pair = self._contract(pair_address, PAIR_ABI)
            token0_address = pair.functions.token0().call()
            token1_address = pair.functions.token1().call()
            reserve0, reserve1, _ = pair.functions.getReserves().call()

            return LiquidityPool(
                pair_address=pair.address,
                token0=self.get_token_info(token0_address),
                token1=self.get_token_info(token1_address),
                reserve0=int(reserve0),
                reserve1=int(reserve1),
            )
        except Exception as e:
            logger.error(f"Error fetching pool data for {pair_address}: {e}")
            raise

    def discover_pools(self, factory_address: str, limit: int = 10) -> List[str]:
        """
        List up to ``limit`` pair addresses from a factory.

        Any failure, including a single bad allPairs(i) lookup, yields an empty
        list instead of raising.
        """
        try:
            factory = self._contract(factory_address, FACTORY_ABI)
            pair_count = int(factory.functions.allPairsLength().call())
            max_pairs = min(pair_count, limit)

            pair_addresses = []
            for i in range(max_pairs):
                pair_addresses.append(factory.functions.allPairs(i).call())
            return pair_addresses
        except Exception as e:
            logger.error(f"Error discovering pools from factory {factory_address}: {e}")
            return []

    def get_user_token_balance(self, token_address: str, user_address: str) -> int:
        try:
            token = self._contract(token_address, ERC20_ABI)
            return int(token.functions.balanceOf(Web3.to_checksum_address(user_address)).call())
        except Exception as e:
            logger.error(f"Error fetching balance for {user_address}: {e}")
            return 0

    def get_current_block(self) -> int:
        return int(self.w3.eth.block_number)

    def scan_protocols(self) -> List[LiquidityPool]:
        """
        Discover pools on every configured factory.

        Pools whose data fetch fails or that hold an empty reserve are skipped;
        a factory or pair failure never aborts the scan.
        """
        pools = []
        for factory_address in self.factories:
            logger.info(f"🔍 Scanning factory at {factory_address}...")
            pair_addresses = self.discover_pools(factory_address, self.discovery_limit)

            for pair_address in pair_addresses:
                try:
                    pool = self.get_liquidity_pool_data(pair_address)
                except Exception as e:
                    logger.warning(f"Skipping pool {pair_address}: {e}")
                    continue

                if not (pool.reserve0 and pool.reserve1):
                    logger.debug(f"Skipping pool {pair_address}: empty reserves")
                    continue

                pool.tvl = estimate_tvl(
                    pool.reserve0,
                    pool.reserve1,
                    pool.token0.decimals,
                    pool.token1.decimals,
                )
                # No yield source is wired in yet
                pool.apy = "0"
                pools.append(pool)

        logger.info(f"✓ Found {len(pools)} pools across {len(self.factories)} factories")
        return pools
