"""
Continuation-aware request driver.

One logical generation task may need several physical calls when the service
truncates its output at the token limit. Each follow-up call references the
previous response id and asks the model to continue; the text from every call
is concatenated in order.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Optional

from errors import ConfigurationError, RetriesExhausted, UnexpectedResponseStatus
from llm_provider import (
    CONTINUE_INSTRUCTION,
    ErrorResponse,
    GenerationRequest,
    GenerativeService,
    InputMessage,
    LegacyChoiceResponse,
    RawStringResponse,
    ServiceResponse,
    StructuredResponse,
    input_message,
)
from settings import ServiceConfig

log = logging.getLogger("contractmerge.driver")

COMPLETE_STATUSES = {"completed", "complete"}
TRUNCATION_REASON = "max_output_tokens"


class SessionStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    ERROR = "error"


class ContinuationSession:
    """Transient state of one driver run. Discarded once terminal."""

    def __init__(self, initial_input: List[InputMessage], max_retries: int):
        if max_retries < 1:
            raise ValueError(f"max_retries must be >= 1; got {max_retries}")
        self.initial_input = list(initial_input)
        self.max_retries = max_retries
        self.accumulated_text = ""
        self.previous_response_id: Optional[str] = None
        self.attempt = 0
        self.status = SessionStatus.IDLE
        self.service_error: Any = None
        self.calls = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in (SessionStatus.COMPLETE, SessionStatus.ERROR)

    def begin_request(self) -> None:
        if self.status not in (SessionStatus.IDLE, SessionStatus.INCOMPLETE):
            raise RuntimeError(f"Cannot issue a request from state {self.status.value}")
        self.status = SessionStatus.REQUESTING

    def build_request(self, prompt_id: str, prompt_version: str, max_output_tokens: int) -> GenerationRequest:
        if self.previous_response_id is None:
            messages = self.initial_input
        else:
            messages = [input_message(CONTINUE_INSTRUCTION)]
        return GenerationRequest(
            prompt_id=prompt_id,
            prompt_version=prompt_version,
            input=messages,
            max_output_tokens=max_output_tokens,
            previous_response_id=self.previous_response_id,
        )

    def apply(self, response: ServiceResponse) -> SessionStatus:
        """
        Fold one decoded response into the session and move to the next state.

        Raises:
            RetriesExhausted: Truncated again with no continuation budget left
            UnexpectedResponseStatus: Any status other than complete or
                incomplete/max_output_tokens
        """
        if self.status is not SessionStatus.REQUESTING:
            raise RuntimeError(f"Cannot apply a response in state {self.status.value}")
        self.calls += 1

        if isinstance(response, ErrorResponse):
            self.service_error = response.error
            self.status = SessionStatus.COMPLETE
            return self.status

        if isinstance(response, (RawStringResponse, LegacyChoiceResponse)):
            self.accumulated_text += response.text
            self.status = SessionStatus.COMPLETE
            return self.status

        if not isinstance(response, StructuredResponse):
            self.status = SessionStatus.ERROR
            raise UnexpectedResponseStatus(None, f"unknown response type {type(response).__name__}")

        self.accumulated_text += response.text

        if response.status in COMPLETE_STATUSES:
            self.status = SessionStatus.COMPLETE
            return self.status

        if response.status == "incomplete" and response.incomplete_reason == TRUNCATION_REASON:
            if not response.id:
                self.status = SessionStatus.ERROR
                raise UnexpectedResponseStatus(response.status, "truncated response has no id to continue from")
            self.previous_response_id = response.id
            self.attempt += 1
            if self.attempt >= self.max_retries:
                self.status = SessionStatus.ERROR
                raise RetriesExhausted(self.max_retries, self.accumulated_text)
            self.status = SessionStatus.INCOMPLETE
            return self.status

        self.status = SessionStatus.ERROR
        raise UnexpectedResponseStatus(response.status, response.incomplete_reason)


class ContinuationDriver:
    """Drives one prompt through as many continuation calls as the output needs."""

    def __init__(self, service: GenerativeService, config: ServiceConfig, prompt_id: str, prompt_version: str):
        self.service = service
        self.config = config
        self.prompt_id = prompt_id
        self.prompt_version = prompt_version

    def run_session(self, initial_input: List[InputMessage], max_retries: Optional[int] = None) -> ContinuationSession:
        # Fail before any network traffic when credentials are unusable
        self.config.validate_credentials()
        self.config.validate_prompt(self.prompt_id)

        budget = max_retries if max_retries is not None else self.config.max_retries
        if budget < 1:
            raise ConfigurationError(f"max_retries must be >= 1; got {budget}")
        session = ContinuationSession(initial_input, budget)

        while not session.is_terminal:
            session.begin_request()
            request = session.build_request(self.prompt_id, self.prompt_version, self.config.max_output_tokens)
            log.info(
                "API call attempt %d/%d%s",
                session.attempt + 1,
                budget,
                " (continuation)" if request.previous_response_id else " (initial)",
            )
            response = self.service.create_response(request)
            status = session.apply(response)
            log.debug("Accumulated text length: %d characters", len(session.accumulated_text))
            if status is SessionStatus.INCOMPLETE:
                log.info("Response truncated at max output tokens; continuing from %s", session.previous_response_id)

        if session.service_error is not None:
            log.warning("Generative service reported an error: %s", session.service_error)
        log.info("API sequence completed after %d call(s)", session.calls)
        return session

    def run(self, initial_input: List[InputMessage], max_retries: Optional[int] = None) -> str:
        return self.run_session(initial_input, max_retries).accumulated_text
