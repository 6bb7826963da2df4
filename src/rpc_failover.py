#!/usr/bin/env python3
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

logger = logging.getLogger(__name__)


class EVMProviderPool:
    """Ordered list of RPC endpoints with a sticky preferred endpoint.

    Calls go to the endpoint that last succeeded; on failure the remaining
    endpoints are tried in configured order. The preference is forgotten every
    preference_reset_minutes so a recovered primary endpoint is picked up again.
    """

    def __init__(self, urls: List[str], request_timeout_s: int = 15, preference_reset_minutes: int = 60):
        if not urls:
            raise ValueError("EVMProviderPool requires at least one URL")
        self.urls = list(urls)
        self.request_timeout_s = request_timeout_s
        self.preference_reset_sec = max(1, int(preference_reset_minutes) * 60)
        # block and receipt fetches call into the pool from worker threads
        self._lock = threading.Lock()
        self._sticky_index: Optional[int] = None
        self._preference_set_at = time.monotonic()
        self._clients: Dict[int, Web3] = {}

    @property
    def active_url(self) -> str:
        with self._lock:
            index = self._sticky_index
        return self.urls[index if index is not None else 0]

    def _client(self, index: int) -> Web3:
        with self._lock:
            w3 = self._clients.get(index)
            if w3 is None:
                w3 = Web3(Web3.HTTPProvider(
                    self.urls[index],
                    request_kwargs={"timeout": self.request_timeout_s},
                ))
                self._clients[index] = w3
            return w3

    def _candidate_order(self) -> List[int]:
        with self._lock:
            if time.monotonic() - self._preference_set_at >= self.preference_reset_sec:
                self._sticky_index = None
                self._preference_set_at = time.monotonic()
            sticky = self._sticky_index

        order = list(range(len(self.urls)))
        if sticky is not None:
            order.remove(sticky)
            order.insert(0, sticky)
        return order

    def _prefer(self, index: int):
        with self._lock:
            if self._sticky_index != index:
                if self._sticky_index is not None:
                    logger.warning(f"Switching RPC endpoint to {self.urls[index]}")
                self._sticky_index = index

    def with_web3(self, fn: Callable[[Web3], Any], max_attempts: Optional[int] = None):
        """Run fn against the preferred endpoint, failing over to the others"""
        last_error: Optional[Exception] = None

        for attempt, index in enumerate(self._candidate_order()):
            if max_attempts is not None and attempt >= max_attempts:
                break
            try:
                result = fn(self._client(index))
            except Exception as e:
                logger.debug(f"RPC call failed on {self.urls[index]}: {e}")
                last_error = e
                continue
            self._prefer(index)
            return result

        if last_error:
            raise ConnectionError(f"All EVM RPC endpoints failed: {last_error}")
        raise ConnectionError("All EVM RPC endpoints failed")
