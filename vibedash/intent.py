"""Intent object for the dashboard pipeline.

The parser turns one utterance into an Intent; sources read its params,
the router merges clarification answers into it, and the widget runtime
keeps the resolved one as the replay key for refreshes.
"""

from dataclasses import dataclass, field, fields, replace

CREATE = "create"
MODIFY = "modify"
REMOVE = "remove"
ACTIONS = (CREATE, MODIFY, REMOVE)


@dataclass(frozen=True)
class Params:
    location: str = None        # "Colorado Springs"
    coin: str = None            # "bitcoin"
    symbol: str = None          # "BTC"
    period: str = None          # "24h", "7d", "30d", "1y"
    count: int = None           # "top 5", "last 10"
    display_format: str = None  # "chart", "table", "card"
    size: str = None            # "small", "medium", "large"
    topic: str = None           # "rust" from "rust news"
    query: str = None           # freeform search terms

    def get(self, key, default=None):
        if key not in PARAM_KEYS:
            return default
        value = getattr(self, key)
        return default if value is None else value

    def merged(self, key, value):
        """Return a copy with one key replaced. Unknown keys raise KeyError."""
        if key not in PARAM_KEYS:
            raise KeyError(key)
        if key == "count" and value is not None:
            value = int(value)
        return replace(self, **{key: value})

    def to_dict(self):
        return {k: getattr(self, k) for k in PARAM_KEYS if getattr(self, k) is not None}

    @classmethod
    def from_dict(cls, d):
        return cls(**{k: v for k, v in (d or {}).items() if k in PARAM_KEYS})


PARAM_KEYS = tuple(f.name for f in fields(Params))


@dataclass(frozen=True)
class Intent:
    action: str             # "create", "modify", "remove"
    subject: str            # core noun: "bitcoin price", "weather"
    params: Params = field(default_factory=Params)
    raw: str = ""           # original utterance, untouched
    target_widget_id: str = None

    def with_target(self, widget_id):
        return replace(self, target_widget_id=widget_id)

    def to_dict(self):
        return {
            "action": self.action,
            "subject": self.subject,
            "params": self.params.to_dict(),
            "raw": self.raw,
            "target_widget_id": self.target_widget_id,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            action=d.get("action", CREATE),
            subject=d.get("subject") or d.get("raw") or "widget",
            params=Params.from_dict(d.get("params")),
            raw=d.get("raw", ""),
            target_widget_id=d.get("target_widget_id"),
        )
