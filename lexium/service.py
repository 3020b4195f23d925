from __future__ import annotations

import logging
from typing import Callable

from openai import OpenAIError

from lexium.classifier import classify
from lexium.config import LLM_TIMEOUT_SECONDS
from lexium.context import SYSTEM_PROMPT, build_user_prompt
from lexium.engine import execute
from lexium.envelope import ResponseEnvelope
from lexium.intents import Fallback
from lexium.llm_client import LLMClient, create_llm_client_from_env
from lexium.llm_gate import parse_generated_envelope
from lexium.shaper import empty_question_envelope, guidance_envelope, shape
from lexium.store import Snapshot, SnapshotStore

logger = logging.getLogger(__name__)


class QueryService:
    """
    Answers one free-text question against the current snapshot.

    Questions the rule table understands are computed locally. Anything else
    goes to the text generator; if it is unconfigured, failing or slow the
    caller gets the static guidance envelope instead.
    """

    def __init__(
        self,
        store: SnapshotStore,
        llm_client: LLMClient | None = None,
        llm_factory: Callable[[], LLMClient] = create_llm_client_from_env,
        timeout: int = LLM_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self._llm_client = llm_client
        self._llm_factory = llm_factory
        self.timeout = timeout

    def _get_llm_client(self) -> LLMClient:
        if self._llm_client is None:
            self._llm_client = self._llm_factory()
        return self._llm_client

    def answer(self, question: str) -> ResponseEnvelope:
        question = (question or "").strip()
        if not question:
            return empty_question_envelope()

        snapshot = self.store.current()
        intent = classify(question, snapshot.dataset, tuple(snapshot.documents.keys()))
        if isinstance(intent, Fallback):
            return self._delegate(question, snapshot)

        result = execute(snapshot.dataset, intent, snapshot.documents)
        logger.debug("Computed %s for %r", type(result).__name__, question)
        return shape(result)

    def _delegate(self, question: str, snapshot: Snapshot) -> ResponseEnvelope:
        try:
            raw = self._get_llm_client().generate_text(
                system_prompt=SYSTEM_PROMPT,
                user_prompt=build_user_prompt(question, snapshot),
                timeout=self.timeout,
            )
        except (RuntimeError, OpenAIError, TimeoutError) as exc:
            logger.warning("Text generation unavailable, returning guidance: %s", exc)
            return guidance_envelope()

        if not raw or not raw.strip():
            logger.warning("Text generation returned no content, returning guidance.")
            return guidance_envelope()
        return parse_generated_envelope(raw)
