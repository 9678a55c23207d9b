from __future__ import annotations

import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Text generation failed: network, HTTP status, disabled provider or malformed output."""


class CompletionClient:
    """
    Minimal client for OpenAI-compatible chat-completions APIs returning JSON objects.

    Every call is bounded by `timeout`. HTTP 402 disables the client until restart,
    so an unpaid account does not cost one failed request per mission.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        provider_name: str = "fireworks",
        extra_headers: dict[str, str] | None = None,
        timeout: float = 20.0,
        temperature: float = 0.7,
        max_tokens: int = 300,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._provider_name = provider_name
        self._extra_headers = extra_headers or {}
        self._timeout = timeout
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._disabled_reason = ""

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def is_available(self) -> bool:
        return bool(self._api_key) and not self._disabled_reason

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema_hint: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self._api_key:
            raise CompletionError(f"{self._provider_name} api key is empty")

        if self._disabled_reason:
            raise CompletionError(f"{self._provider_name} disabled for current run ({self._disabled_reason})")

        response_format: dict[str, Any] = {"type": "json_object"}
        if schema_hint:
            response_format["json_schema"] = schema_hint

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": response_format,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            **self._extra_headers,
        }

        endpoint = f"{self._base_url}/chat/completions"

        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.post(endpoint, headers=headers, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            details = self._extract_error_details(exc.response)
            if exc.response.status_code == 402:
                self._disabled_reason = f"{self._provider_name}_402_payment_required"
                logger.warning(
                    "%s 402 Payment Required, disabling requests until restart | details=%s",
                    self._provider_name,
                    details,
                )
            raise CompletionError(
                f"{self._provider_name} API error status={exc.response.status_code}: {details}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionError(f"{self._provider_name} unavailable: {exc}") from exc
        except ValueError as exc:
            raise CompletionError(f"{self._provider_name} returned non-JSON body") from exc

        return self._parse_content(data)

    @staticmethod
    def _parse_content(data: Any) -> dict[str, Any]:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise CompletionError("completion response has no message content") from exc

        text = (content or "").strip()
        # some models wrap the object in a markdown fence despite json_object mode
        if text.startswith("```"):
            text = text.strip("`").strip()
            if text.lower().startswith("json"):
                text = text[4:].strip()

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CompletionError(f"completion content is not JSON: {text[:120]!r}") from exc

        if not isinstance(parsed, dict):
            raise CompletionError(f"completion content is not a JSON object: {type(parsed).__name__}")
        return parsed

    @staticmethod
    def _extract_error_details(response: httpx.Response) -> str:
        try:
            data = response.json()
            if isinstance(data, dict):
                if "error" in data:
                    return str(data["error"])
                if "message" in data:
                    return str(data["message"])
                if "detail" in data:
                    return str(data["detail"])
        except Exception:  # noqa: BLE001
            pass
        return response.text.strip() or f"status={response.status_code}"
