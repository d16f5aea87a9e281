"""Source router: scores every registered source, resolves with the best one.

Each source must provide:
    id: str
    match(intent) -> float             # confidence in [0, 1]
    async resolve(intent) -> Success | Clarification | Error

Sources scoring at least CONFIDENCE_THRESHOLD are candidates; the highest
wins and equal scores go to the source registered first. When nothing
qualifies the fallback generator gets the intent.

When a source asks a clarifying question the router files the question under
a fresh request id. resume_after_clarification() takes that id back exactly
once, merges the answer into the original intent and asks the same source
again. Abandoned questions are never evicted.
"""

import uuid
from dataclasses import replace

from vibedash.intent import CREATE, PARAM_KEYS
from vibedash.log import log
from vibedash.results import (
    CONFIDENCE_THRESHOLD, EXPIRED, INTERNAL, NO_PROVIDER, REJECTED_ACTION, Error,
)


_KINDS = ("success", "clarification", "error")


def _new_request_id():
    return uuid.uuid4().hex


class SourceRouter:
    """Routes create intents to sources and owns the pending-question table."""

    def __init__(self, sources, fallback=None, id_factory=_new_request_id):
        self._sources = tuple(sources)   # registration order breaks ties
        self._fallback = fallback
        self._new_id = id_factory
        self._pending = {}               # request_id -> (source, intent, context)

    @property
    def sources(self):
        return self._sources

    @property
    def pending_count(self):
        return len(self._pending)

    def score(self, intent):
        """Return [(source, confidence)] for qualifying sources, best first."""
        scored = []
        for source in self._sources:
            try:
                confidence = float(source.match(intent))
            except Exception as e:
                log(f"  [router] match() failed for {source.id!r}: {e}")
                continue
            if confidence >= CONFIDENCE_THRESHOLD:
                scored.append((source, confidence))
        # sort is stable: equal confidences keep registration order
        scored.sort(key=lambda pair: -pair[1])
        return scored

    async def route(self, intent):
        """Resolve a create intent. Always returns a result, never raises."""
        if intent.action != CREATE:
            return Error(
                message=f'Cannot route "{intent.action}" requests; only "create" is routable.',
                retryable=False, code=REJECTED_ACTION, source="router")

        scored = self.score(intent)
        if not scored:
            return await self._use_fallback(intent)

        best = scored[0][0]
        try:
            result = await best.resolve(intent)
        except Exception as e:
            log(f"  [router] resolve() failed for {best.id!r}: {e}")
            return Error(message=f'Widget source "{best.id}" failed unexpectedly.',
                         retryable=True, code=INTERNAL, source=best.id)
        if getattr(result, "kind", None) not in _KINDS:
            log(f"  [router] {best.id!r} returned {result!r}")
            return Error(message=f'Widget source "{best.id}" returned nothing usable.',
                         retryable=True, code=INTERNAL, source=best.id)

        if result.kind == "clarification":
            return self._file_question(result, best, intent)
        return result

    async def resume_after_clarification(self, request_id, answer):
        """Answer a pending question. Each request id works exactly once."""
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return Error(message="That question has expired. Try your request again.",
                         retryable=False, code=EXPIRED, source="router")
        source, intent, context = entry

        merged = self._merge_answer(intent, answer, context)
        try:
            result = await source.resolve(merged)
        except Exception as e:
            log(f"  [router] resolve() failed on resume for {source.id!r}: {e}")
            return Error(message=f'Widget source "{source.id}" failed on re-resolve.',
                         retryable=True, code=INTERNAL, source=source.id)
        if getattr(result, "kind", None) not in _KINDS:
            log(f"  [router] {source.id!r} returned {result!r} on resume")
            return Error(message=f'Widget source "{source.id}" returned nothing usable.',
                         retryable=True, code=INTERNAL, source=source.id)

        if result.kind == "clarification":
            return self._file_question(result, source, merged)
        return result

    async def _use_fallback(self, intent):
        if self._fallback is None:
            return Error(message="I don't know how to create that, and no widget generator is configured.",
                         retryable=False, code=NO_PROVIDER, source="router")
        try:
            return await self._fallback.resolve(intent)
        except Exception as e:
            log(f"  [router] fallback generator failed: {e}")
            return Error(message="Widget generation failed unexpectedly.",
                         retryable=False, code=INTERNAL, source="generator")

    def _file_question(self, clarification, source, intent):
        request_id = self._new_id()
        self._pending[request_id] = (source, intent, dict(clarification.context))
        return clarification.with_request_id(request_id)

    @staticmethod
    def _merge_answer(intent, answer, context):
        params = intent.params
        key = context.get("parameter_key")
        if key in PARAM_KEYS:
            try:
                params = params.merged(key, answer)
            except ValueError:
                log(f"  [router] answer {answer!r} does not fit parameter {key!r}")
        # subject too: some sources scan the subject rather than the params
        return replace(intent, params=params, subject=answer)
