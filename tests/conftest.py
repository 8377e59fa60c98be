import json
import os
import sys
import threading
import time
from datetime import date

import pytest

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from llm_provider import GenerativeService, decode_response
from schemas import Document, SourceText
from settings import ServiceConfig

FIXED_TODAY = date(2024, 1, 15)


#============================================
def completed(text, response_id="resp_done"):
    """Responses API payload for a finished call."""
    return {
        "id": response_id,
        "status": "completed",
        "output": [{"type": "message", "content": [{"type": "output_text", "text": text}]}],
    }


#============================================
def truncated(text, response_id):
    """Responses API payload for a call cut off at the token limit."""
    return {
        "id": response_id,
        "status": "incomplete",
        "incomplete_details": {"reason": "max_output_tokens"},
        "output": [{"type": "message", "content": [{"type": "output_text", "text": text}]}],
    }


#============================================
class FakeService(GenerativeService):
    """
    Replays scripted responses in order. Dict items are decoded like a real
    HTTP body, exceptions are raised, anything else is returned as-is.
    """

    def __init__(self, responses=(), delay=0.0):
        self.responses = list(responses)
        self.requests = []
        self.delay = delay
        self._lock = threading.Lock()

    def create_response(self, request):
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.requests.append(request)
            if not self.responses:
                raise AssertionError("no scripted response left")
            item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            return decode_response(item)
        return item


#============================================
def make_config(**overrides):
    values = {
        "api_key": "sk-test-123",
        "classifier_prompt_id": "pmpt_classify",
        "merger_prompt_id": "pmpt_merge",
        "max_retries": 10,
    }
    values.update(overrides)
    return ServiceConfig(**values)


#============================================
def classification_json(entries, order=None):
    payload = {"documents": entries}
    if order is not None:
        payload["chronological_order"] = order
    return json.dumps(payload)


#============================================
def merge_json(**overrides):
    payload = {
        "base_summary": "Master services agreement between Acme and Beta.",
        "amendment_summaries": [
            {"document": "Amendment 1.txt", "role": "amendment", "changes": ["Term extended to 2026"]},
        ],
        "clause_change_log": [
            {"section": "4.1", "change_type": "modified", "old_text": "2024", "new_text": "2026",
             "summary": "Term extended"},
        ],
        "final_contract": "MASTER TEXT with term ending 2026",
    }
    payload.update(overrides)
    return json.dumps(payload)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def sources():
    return [
        SourceText(filename="Master Agreement.txt", text="MASTER TEXT"),
        SourceText(filename="Amendment 1.txt", text="AMENDMENT ONE TEXT"),
        SourceText(filename="Exhibit B.txt", text="", extraction_succeeded=False,
                   extraction_error="No text extracted"),
    ]


@pytest.fixture
def documents():
    return [
        Document(filename="Master Agreement.txt", text="MASTER TEXT", role="base",
                 execution_date="2023-01-01", effective_date="2023-01-01", confidence=0.9),
        Document(filename="Amendment 1.txt", text="AMENDMENT ONE TEXT", role="amendment",
                 execution_date="2023-06-01", amends="Master Agreement.txt", confidence=0.9),
        Document(filename="Exhibit B.txt", text="", role="ancillary",
                 execution_date="2024-01-15", extraction_error="No text extracted", confidence=0.2),
    ]
