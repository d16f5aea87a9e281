"""Result values passed between sources, the router, and the widget runtime.

A source's resolve() returns exactly one of Success, Clarification, or Error.
These are values, never exceptions: nothing a source does should reach the
caller as a raise.
"""

from dataclasses import asdict, dataclass, field, replace

from vibedash.intent import Intent

CONFIDENCE_THRESHOLD = 0.5  # inclusive; 1.0 is for exact matches only

# Error codes
NETWORK = "network"
BAD_PAYLOAD = "bad_payload"
RATE_LIMITED = "rate_limited"
NO_PROVIDER = "no_provider"
EXPIRED = "expired"
INTERNAL = "internal"
REJECTED_ACTION = "rejected_action"
NOT_FOUND = "not_found"
NO_CREDENTIALS = "no_credentials"


@dataclass
class WidgetDescriptor:
    source_id: str                  # "crypto", "weather", "ai-generated"
    title: str
    size: str                       # "small", "medium", "large"
    refresh_interval_ms: int        # None = never refreshed
    data: object
    render: dict                    # {"type": ..., "config": {...}}
    resolved_intent: Intent


@dataclass
class Widget:
    id: str
    source_id: str
    title: str
    size: str
    refresh_interval_ms: int
    data: object
    render: dict
    resolved_intent: Intent
    last_updated: float = 0.0

    @classmethod
    def from_descriptor(cls, descriptor, id, last_updated):
        return cls(id=id, last_updated=last_updated, **_descriptor_fields(descriptor))

    def to_record(self):
        """Stripped form for the persisted store: no data, no last_updated."""
        return {
            "id": self.id,
            "source_id": self.source_id,
            "title": self.title,
            "size": self.size,
            "refresh_interval_ms": self.refresh_interval_ms,
            "render": self.render,
            "resolved_intent": self.resolved_intent.to_dict(),
        }

    @classmethod
    def from_record(cls, record):
        """Hydrate a stored record; data and last_updated get placeholders."""
        return cls(
            id=record["id"],
            source_id=record["source_id"],
            title=record.get("title", ""),
            size=record.get("size", "medium"),
            refresh_interval_ms=record.get("refresh_interval_ms"),
            data=None,
            render=record.get("render") or {},
            resolved_intent=Intent.from_dict(record.get("resolved_intent") or {}),
            last_updated=0.0,
        )


def _descriptor_fields(descriptor):
    return {
        "source_id": descriptor.source_id,
        "title": descriptor.title,
        "size": descriptor.size,
        "refresh_interval_ms": descriptor.refresh_interval_ms,
        "data": descriptor.data,
        "render": descriptor.render,
        "resolved_intent": descriptor.resolved_intent,
    }


@dataclass
class Option:
    label: str   # shown on the chip
    value: str   # sent back as the answer


@dataclass
class Success:
    descriptor: WidgetDescriptor
    kind = "success"


@dataclass
class Clarification:
    question: str
    options: list
    source: str
    context: dict = field(default_factory=dict)  # "parameter_key" names the param the answer fills
    request_id: str = None                       # assigned by the router
    kind = "clarification"

    @property
    def parameter_key(self):
        return self.context.get("parameter_key")

    def with_request_id(self, request_id):
        return replace(self, request_id=request_id)


@dataclass
class Error:
    message: str
    retryable: bool
    code: str = INTERNAL
    source: str = None
    kind = "error"

    def to_dict(self):
        return asdict(self)
