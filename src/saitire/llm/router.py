from __future__ import annotations

import json
import logging
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..config import Config, LlmConfig, ProviderConfig
from ..utils import log_event

ROLES = ("writer", "structured")


class Completer(Protocol):
    def complete(
        self,
        role: str,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> str: ...


@dataclass(frozen=True)
class AIContext:
    """Everything an LLM-backed step needs: a completer, settings and a logger."""

    client: Completer
    config: Config
    logger: logging.Logger
    rules: tuple[str, ...] = field(default_factory=tuple)


class LLMClient:
    """Routes completion requests to the writer or structured provider."""

    def __init__(self, llm: LlmConfig, logger: logging.Logger) -> None:
        self._providers = {"writer": llm.writer, "structured": llm.structured}
        self._logger = logger

    def complete(
        self,
        role: str,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        provider = self._providers.get(role)
        if provider is None:
            raise ValueError(f"unknown_llm_role: {role}")
        if not provider.api_key:
            raise ValueError(f"missing_api_key: {role}")
        params = {"temperature": temperature, "max_tokens": max_tokens}
        log_event(
            self._logger,
            logging.DEBUG,
            "llm_call",
            role=role,
            provider=provider.type,
            model=provider.model,
        )
        try:
            return _call_provider(provider, messages, params)
        except Exception as exc:  # noqa: BLE001
            log_event(self._logger, logging.WARNING, "llm_call_failed", role=role, error=str(exc))
            raise


def missing_credentials(llm: LlmConfig) -> list[str]:
    return [
        role
        for role, provider in (("writer", llm.writer), ("structured", llm.structured))
        if not provider.api_key
    ]


def _call_provider(
    provider: ProviderConfig,
    messages: list[dict[str, str]],
    params: dict[str, Any],
) -> str:
    base_url = provider.base_url or _default_base_url(provider.type)
    if provider.type == "openai_compatible":
        path = _join_url(base_url, "/chat/completions")
        payload = {
            "model": provider.model,
            "messages": messages,
            **_filter_params(params),
        }
        headers = _auth_headers(provider.type, provider.api_key)
        response = _http_request("POST", path, headers, payload, provider.timeout_s)
        return _read_openai(response)
    if provider.type == "anthropic":
        path = _join_url(base_url, "/messages")
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        payload = {
            "model": provider.model,
            "max_tokens": int(params.get("max_tokens", 1024)),
            "temperature": float(params.get("temperature", 0.7)),
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            payload["system"] = system
        headers = _auth_headers(provider.type, provider.api_key)
        response = _http_request("POST", path, headers, payload, provider.timeout_s)
        return _read_anthropic(response)
    raise ValueError("unsupported_provider_type")


def _http_request(
    method: str,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any] | None,
    timeout: int,
) -> dict[str, Any]:
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    request = urllib.request.Request(url, data=data, method=method)
    request.add_header("Content-Type", "application/json")
    for key, value in headers.items():
        request.add_header(key, value)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raw = exc.read().decode("utf-8", errors="ignore")
        raise ValueError(f"http_error {exc.code}: {raw[:500]}") from exc
    except (socket.timeout, TimeoutError) as exc:
        raise ValueError(f"timeout after {timeout}s") from exc
    except urllib.error.URLError as exc:
        raise ValueError(f"network_error: {exc}") from exc
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return {"raw": raw}


def _read_openai(response: dict[str, Any]) -> str:
    choices = response.get("choices") or []
    if not choices:
        raise ValueError("openai_missing_choices")
    return choices[0].get("message", {}).get("content") or ""


def _read_anthropic(response: dict[str, Any]) -> str:
    content = response.get("content") or []
    if not content:
        raise ValueError("anthropic_missing_content")
    return "".join(
        block.get("text") or "" for block in content if block.get("type", "text") == "text"
    )


def _filter_params(params: dict[str, Any]) -> dict[str, Any]:
    allowed = {"temperature", "max_tokens", "top_p", "seed"}
    return {key: value for key, value in params.items() if key in allowed}


def _auth_headers(provider_type: str, api_key: str | None) -> dict[str, str]:
    if not api_key:
        return {}
    if provider_type == "openai_compatible":
        return {"Authorization": f"Bearer {api_key}"}
    if provider_type == "anthropic":
        return {"x-api-key": api_key, "anthropic-version": "2023-06-01"}
    return {}


def _default_base_url(provider_type: str) -> str:
    if provider_type == "openai_compatible":
        return "https://api.openai.com/v1"
    if provider_type == "anthropic":
        return "https://api.anthropic.com/v1"
    return ""


def _join_url(base: str, path: str) -> str:
    return base.rstrip("/") + path
