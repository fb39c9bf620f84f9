"""
Pytest fixtures for Risk Sentinel tests.

Each test gets its own in-memory SQLite repository. The chain reader and the
Gemini client are replaced by scripted doubles so nothing touches the network.
"""

import pytest
from fastapi.testclient import TestClient

from api_server import create_app
from chain_reader import LiquidityPool, TokenInfo
from errors import ScoringError
from realtime import RealtimeHub
from repository import Repository
from services.risk_scorer import RiskScorer


class FakeGeminiClient:
    """Replays queued responses; an empty queue behaves like an outage"""

    def __init__(self, json_responses=None, text_responses=None, configured=True):
        self.json_responses = list(json_responses or [])
        self.text_responses = list(text_responses or [])
        self.configured = configured
        self.prompts = []

    def _next(self, queue):
        if not queue:
            raise ScoringError("Gemini unavailable")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def generate_json(self, prompt, system_instruction=None, response_schema=None):
        self.prompts.append(prompt)
        return self._next(self.json_responses)

    def generate_text(self, prompt):
        self.prompts.append(prompt)
        return self._next(self.text_responses)


class FakeChainReader:
    def __init__(self, pools=None, block=4_200_000):
        self.pools = list(pools or [])
        self.block = block
        self.scan_error = None

    def get_current_block(self):
        if isinstance(self.block, Exception):
            raise self.block
        return self.block

    def scan_protocols(self):
        if self.scan_error:
            raise self.scan_error
        return list(self.pools)

    def is_connected(self):
        return True


class RecordingHub(RealtimeHub):
    """Real hub that also remembers every published event"""

    def __init__(self):
        super().__init__()
        self.events = []

    def publish(self, event_type, data):
        self.events.append((event_type, data))
        super().publish(event_type, data)

    def of_type(self, event_type):
        return [data for kind, data in self.events if kind == event_type]


def make_pool(pair_address, symbol0="USDC", symbol1="SOMI", tvl="500000.00", apy="0",
              name0=None, name1=None):
    return LiquidityPool(
        pair_address=pair_address,
        token0=TokenInfo(pair_address, name0 or f"{symbol0} Token", symbol0, 6, 10 ** 12),
        token1=TokenInfo(pair_address, name1 or f"{symbol1} Token", symbol1, 18, 10 ** 24),
        reserve0=1,
        reserve1=1,
        tvl=tvl,
        apy=apy,
    )


def make_protocol(repo, contract_address, symbol="USDC-SOMI", risk_score=50, risk_level="medium",
                  tvl="500000.00", apy=None, name=None, trust_index=None):
    return repo.create_protocol(
        name=name or f"{symbol} Pool",
        symbol=symbol,
        tvl=tvl,
        apy=apy,
        risk_score=risk_score,
        risk_level=risk_level,
        confidence=75,
        trust_index=trust_index if trust_index is not None else max(0, 100 - risk_score),
        contract_address=contract_address,
    )


@pytest.fixture
def repo():
    return Repository.from_url("sqlite://")


@pytest.fixture
def gemini():
    return FakeGeminiClient()


@pytest.fixture
def scorer(gemini):
    return RiskScorer(gemini)


@pytest.fixture
def chain():
    return FakeChainReader()


@pytest.fixture
def hub():
    return RecordingHub()


@pytest.fixture
def app(repo, chain, scorer, hub):
    return create_app(repository=repo, chain_reader=chain, scorer=scorer, hub=hub, scanner_enabled=False)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
