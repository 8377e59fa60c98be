"""
Generative service boundary.

Builds Responses API requests, sends them over HTTP, and resolves the several
response encodings the service (and older proxies in front of it) may return
into one closed set of variants. Nothing downstream re-inspects raw payloads.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional, Union

import requests
from pydantic import BaseModel, Field

from errors import TransportError
from settings import ServiceConfig

log = logging.getLogger("contractmerge.provider")

CONTINUE_INSTRUCTION = "Continue where you left off."


# ---------- Request ----------
class InputContent(BaseModel):
    type: str = "input_text"
    text: str

class InputMessage(BaseModel):
    role: str = "user"
    content: List[InputContent]

def input_message(text: str) -> InputMessage:
    """Wrap plain text as a single user message."""
    return InputMessage(content=[InputContent(text=text)])

class GenerationRequest(BaseModel):
    prompt_id: str
    prompt_version: str
    input: List[InputMessage] = Field(default_factory=list)
    max_output_tokens: int = 16384
    store: bool = True
    previous_response_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": {"id": self.prompt_id, "version": self.prompt_version},
            "input": [m.model_dump() for m in self.input],
            "reasoning": {},
            "max_output_tokens": self.max_output_tokens,
            "store": self.store,
        }
        if self.previous_response_id:
            payload["previous_response_id"] = self.previous_response_id
        return payload


# ---------- Response (closed union) ----------
class StructuredResponse(NamedTuple):
    """Responses API object: id + status + message/content output array."""
    id: Optional[str]
    status: Optional[str]
    incomplete_reason: Optional[str]
    text: str

class RawStringResponse(NamedTuple):
    """Proxy-style payload where `output` is already a string."""
    text: str

class LegacyChoiceResponse(NamedTuple):
    """Chat-completions style payload: choices[0].message.content."""
    text: str

class ErrorResponse(NamedTuple):
    """Payload carrying a non-null `error` field."""
    error: Any

ServiceResponse = Union[StructuredResponse, RawStringResponse, LegacyChoiceResponse, ErrorResponse]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else json.dumps(value)

def _structured_output_text(output: List[Any]) -> str:
    parts: List[str] = []
    for item in output:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and content.get("type") == "output_text" and content.get("text"):
                parts.append(content["text"])
    return "".join(parts)

def decode_response(payload: Any) -> ServiceResponse:
    """
    Resolve a raw JSON payload into exactly one ServiceResponse variant.

    Order matters: an error field wins over any partial output, and the
    structured array form wins over the string/legacy forms.
    """
    if not isinstance(payload, dict):
        return RawStringResponse(text=_as_text(payload))

    if payload.get("error"):
        return ErrorResponse(error=payload["error"])

    output = payload.get("output")
    if isinstance(output, list):
        details = payload.get("incomplete_details") or {}
        return StructuredResponse(
            id=payload.get("id"),
            status=payload.get("status"),
            incomplete_reason=details.get("reason") if isinstance(details, dict) else None,
            text=_structured_output_text(output),
        )
    if isinstance(output, str):
        return RawStringResponse(text=output)
    if output is not None:
        return RawStringResponse(text=_as_text(output))

    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        choice = choices[0]
        if not isinstance(choice, dict):
            return LegacyChoiceResponse(text=_as_text(choice))
        message = choice.get("message")
        if not isinstance(message, dict):
            return LegacyChoiceResponse(text=_as_text(message))
        return LegacyChoiceResponse(text=_as_text(message.get("content")))

    # Unknown shape: keep whatever status we can see and let the driver fail closed
    details = payload.get("incomplete_details") or {}
    return StructuredResponse(
        id=payload.get("id"),
        status=payload.get("status"),
        incomplete_reason=details.get("reason") if isinstance(details, dict) else None,
        text="",
    )


# ---------- Providers ----------
class GenerativeService(ABC):
    @abstractmethod
    def create_response(self, request: GenerationRequest) -> ServiceResponse: ...


class OpenAIResponsesProvider(GenerativeService):
    def __init__(self, config: ServiceConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/responses"

    def create_response(self, request: GenerationRequest) -> ServiceResponse:
        """
        POST one request to the Responses endpoint.

        Raises:
            ConfigurationError: If the API key is missing or a placeholder
            TransportError: On connection failure, timeout, non-2xx status or non-JSON body
        """
        self.config.validate_credentials()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        try:
            response = self.session.post(
                self.endpoint,
                json=request.to_payload(),
                headers=headers,
                timeout=self.config.request_timeout_seconds,
            )
        except requests.Timeout as e:
            raise TransportError(
                f"Generative service timed out after {self.config.request_timeout_seconds}s: {e}"
            ) from e
        except requests.ConnectionError as e:
            raise TransportError(f"Cannot connect to generative service at {self.endpoint}: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"Request to generative service failed: {e}") from e

        if not response.ok:
            error_detail = "Unknown error"
            try:
                error_json = response.json()
                error = error_json.get("error") if isinstance(error_json, dict) else None
                if isinstance(error, dict):
                    error_detail = error.get("message") or str(error)
                elif error:
                    error_detail = str(error)
            except ValueError:
                error_detail = response.text or f"HTTP {response.status_code}"
            raise TransportError(
                f"Generative service error: {response.status_code} - {error_detail}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(f"Generative service returned invalid JSON: {e}") from e

        decoded = decode_response(payload)
        log.debug("Decoded response as %s", type(decoded).__name__)
        return decoded
