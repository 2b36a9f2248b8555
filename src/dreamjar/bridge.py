"""Settlement/chain bridge collaborators.

The core never submits transactions itself. It hands proposals, proposal
votes, executions and reward distributions to a bridge on a fire-and-forget
basis; retries are the bridge's (or relayer's) business.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)


class ChainBridge(ABC):
    """Interface to the on-chain settlement layer."""

    @abstractmethod
    def propose_on_chain(self, ref: str) -> None:
        pass

    @abstractmethod
    def vote_on_chain(self, proposal_id: int, choice: bool) -> None:
        pass

    @abstractmethod
    def execute_on_chain(self, proposal_id: int) -> None:
        pass

    @abstractmethod
    def distribute_rewards(self, wish_id: str) -> None:
        pass


class LoggingChainBridge(ChainBridge):
    """Bridge used when no relayer is configured; records intents in the log."""

    def propose_on_chain(self, ref: str) -> None:
        logger.info(f"[bridge] propose {ref}")

    def vote_on_chain(self, proposal_id: int, choice: bool) -> None:
        logger.info(f"[bridge] vote proposal={proposal_id} choice={choice}")

    def execute_on_chain(self, proposal_id: int) -> None:
        logger.info(f"[bridge] execute proposal={proposal_id}")

    def distribute_rewards(self, wish_id: str) -> None:
        logger.info(f"[bridge] distribute rewards wish={wish_id}")


class HttpChainBridge(ChainBridge):
    """Client for an HTTP relayer that submits settlement transactions.

    Each call is a single JSON POST with a bounded timeout; HTTP errors
    propagate as ``requests.RequestException`` for the caller's guard to
    report.
    """

    def __init__(self, relayer_url: str, timeout_seconds: float = 10.0, api_key: Optional[str] = None):
        if not relayer_url:
            raise ValueError("Relayer URL is required for HttpChainBridge")
        self.relayer_url = relayer_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.api_key = api_key

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        response = requests.post(
            f"{self.relayer_url}{path}",
            json=body,
            headers=headers,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        data = response.json() if response.content else {}
        logger.info(f"[bridge] POST {path} accepted: {data}")
        return data

    def propose_on_chain(self, ref: str) -> None:
        self._post("/proposals", {"plan_ref": ref})

    def vote_on_chain(self, proposal_id: int, choice: bool) -> None:
        self._post(f"/proposals/{proposal_id}/votes", {"choice": choice})

    def execute_on_chain(self, proposal_id: int) -> None:
        self._post(f"/proposals/{proposal_id}/execute", {})

    def distribute_rewards(self, wish_id: str) -> None:
        self._post(f"/wishes/{wish_id}/rewards", {})
