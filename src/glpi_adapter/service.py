"""Batch execution of GLPI operations over input items."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import httpx

from .auth import TokenAcquirer, TokenManager, TokenProvider
from .config import Settings
from .errors import ExecutionError
from .executors import GlpiExecutor
from .logging import redact_payload
from .models import ExecutionItem, GlpiCredentials, OutputRecord
from .parameters import ParameterIndex

logger = logging.getLogger(__name__)

ItemLike = Union[ExecutionItem, Mapping[str, Any]]


class AdapterService:
    """
    Runs one GLPI operation per input item, sequentially.

    A token is acquired at most once per batch (more only if it expires
    mid-batch). With ``share_token`` the token manager outlives the batch and
    the token is reused until it expires.
    """

    def __init__(
        self,
        index: ParameterIndex,
        credentials: GlpiCredentials,
        timeout_seconds: float = 30,
        token_provider: Optional[TokenProvider] = None,
        share_token: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.index = index
        self.credentials = credentials
        self.token_provider = token_provider
        self.share_token = share_token
        self.acquirer = TokenAcquirer(timeout_seconds=timeout_seconds, transport=transport)
        self.executor = GlpiExecutor(
            index, credentials, timeout_seconds=timeout_seconds, transport=transport
        )
        self._shared_manager: Optional[TokenManager] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        index: ParameterIndex,
        token_provider: Optional[TokenProvider] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "AdapterService":
        return cls(
            index,
            GlpiCredentials.from_settings(settings),
            timeout_seconds=settings.glpi_timeout_seconds,
            token_provider=token_provider,
            share_token=settings.glpi_token_cache_enabled,
            transport=transport,
        )

    def token_manager(self) -> TokenManager:
        if not self.share_token:
            return TokenManager(self.credentials, self.acquirer, self.token_provider)
        if self._shared_manager is None:
            self._shared_manager = TokenManager(
                self.credentials, self.acquirer, self.token_provider
            )
        return self._shared_manager

    async def execute_batch(
        self,
        items: Iterable[ItemLike],
        operation: Optional[str] = None,
        continue_on_fail: bool = False,
    ) -> List[OutputRecord]:
        """
        Execute ``operation`` for every item and collect the output records.

        Args:
            items: Execution items or plain parameter mappings
            operation: Operation identifier used when an item carries none
            continue_on_fail: Record per-item failures as ``{"error": ...}``
                instead of aborting the batch

        Returns:
            One record per response element, in item order
        """
        manager = self.token_manager()
        records: List[OutputRecord] = []

        for index, raw in enumerate(items):
            item = _as_item(raw, index)
            try:
                results = await self.executor.execute(item, manager, operation)
            except ExecutionError as exc:
                if not continue_on_fail:
                    logger.error("GLPI batch aborted at item=%s: %s", index, exc)
                    raise
                logger.warning(
                    "GLPI item=%s failed, continuing: %s parameters=%s",
                    index,
                    exc,
                    redact_payload(item.parameters),
                )
                records.append(self._format_error(str(exc), index))
                continue
            records.extend(OutputRecord(data=result, item_index=index) for result in results)

        return records

    def _format_error(self, message: str, index: int) -> OutputRecord:
        return OutputRecord(data={"error": message}, item_index=index, failed=True)


def _as_item(raw: ItemLike, index: int) -> ExecutionItem:
    if isinstance(raw, ExecutionItem):
        return ExecutionItem(raw.parameters, index=index)
    return ExecutionItem(raw, index=index)


def records_as_json(records: Iterable[OutputRecord]) -> List[Dict[str, Any]]:
    return [record.data for record in records]
