"""
tRPC-over-HTTP client for the LIMNUS backend procedures the core depends on.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Optional, Protocol

import requests

from sync_loop.contracts import (
    AdjudicationRequest,
    Classification,
    PromptSet,
    RemoteCallError,
)

logger = logging.getLogger(__name__)

RECHECK_PATH = "limnus.loop.recheck"
ADJUDICATION_PATH = "limnus.sync.pauline"
PROMPTS_PATH = "limnus.sync.prompts"


class RecheckClient(Protocol):
    """Remote recheck call; raises RemoteCallError on any failure."""

    def recheck(self, session_id: str, *, idempotency_key: Optional[str] = None) -> None:
        ...


class TrpcClient:
    """
    Minimal tRPC HTTP link.

    Mutations are POSTed with a superjson-style ``{"json": input}`` body and
    queries are GETs with the same envelope in the ``input`` parameter.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.endpoint = f"{self.base_url}/api/trpc"
        self.timeout = timeout
        self.session = session or requests.Session()

    def mutate(self, path: str, payload: Mapping[str, Any], headers: Optional[Mapping[str, str]] = None) -> Any:
        url = f"{self.endpoint}/{path}"
        logger.debug("tRPC mutation %s", url)
        try:
            resp = self.session.post(
                url,
                json={"json": dict(payload)},
                headers=dict(headers or {}),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteCallError(path, f"transport error: {exc}") from exc
        return self._unwrap(path, resp)

    def query(self, path: str, payload: Optional[Mapping[str, Any]] = None) -> Any:
        url = f"{self.endpoint}/{path}"
        params = {}
        if payload is not None:
            params["input"] = json.dumps({"json": dict(payload)})
        logger.debug("tRPC query %s", url)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RemoteCallError(path, f"transport error: {exc}") from exc
        return self._unwrap(path, resp)

    def recheck(self, session_id: str, *, idempotency_key: Optional[str] = None) -> None:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        self.mutate(RECHECK_PATH, {"session_id": session_id}, headers=headers)

    def adjudicate(self, request: AdjudicationRequest) -> Classification:
        data = self.mutate(ADJUDICATION_PATH, request.model_dump(mode="json"))
        try:
            return Classification.model_validate(data)
        except ValueError as exc:
            raise RemoteCallError(ADJUDICATION_PATH, f"malformed classification: {exc}") from exc

    def prompts(self) -> PromptSet:
        data = self.query(PROMPTS_PATH)
        try:
            return PromptSet.model_validate(data)
        except ValueError as exc:
            raise RemoteCallError(PROMPTS_PATH, f"malformed prompt set: {exc}") from exc

    def _unwrap(self, path: str, resp: requests.Response) -> Any:
        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code >= 400:
            message = _error_message(body) or resp.reason or "request failed"
            logger.warning("tRPC %s failed with HTTP %s: %s", path, resp.status_code, message)
            raise RemoteCallError(path, message, status_code=resp.status_code)

        if not isinstance(body, dict):
            raise RemoteCallError(path, "response is not a JSON object", status_code=resp.status_code)
        if "error" in body:
            message = _error_message(body) or "error payload"
            logger.warning("tRPC %s returned an error: %s", path, message)
            raise RemoteCallError(path, message, status_code=resp.status_code)

        data = (body.get("result") or {}).get("data")
        if isinstance(data, dict) and "json" in data:
            return data["json"]
        return data


def _error_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        inner = error.get("json", error)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    if isinstance(error, str):
        return error
    return None
