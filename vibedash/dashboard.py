"""Dashboard: turns utterances into widget operations and user-facing messages.

    create   -> route the intent, add the widget / ask / report the error
    modify   -> find the widget meant, apply size and display format
    remove   -> find the widget meant, remove it
    answer   -> hand a clarification answer back to the router
"""

from dataclasses import dataclass

from vibedash.intent import CREATE, MODIFY, REMOVE
from vibedash.log import log, log_request
from vibedash.parser import parse
from vibedash.target import resolve_target


@dataclass
class Message:
    kind: str                   # "info", "success", "error", "clarification"
    text: str
    clarification: object = None


_AMBIGUOUS = ('Which widget do you mean? Try being more specific, like '
              '"remove the weather widget" or "make the bitcoin one bigger".')
_EMPTY = 'There are no widgets yet. Try "bitcoin price" or "weather in Denver".'
_NOTHING_TO_CHANGE = "I'm not sure what to change. Try \"make it bigger\" or \"show it as a chart\"."


class Dashboard:

    def __init__(self, router, runtime, log_path=None):
        self.router = router
        self.runtime = runtime
        self._log_path = log_path

    async def handle(self, text, source="[text]"):
        """Handle one utterance. Returns the messages to show, in order."""
        intent = None
        try:
            intent = parse(text)
            if intent.action == CREATE:
                messages = await self._create(intent)
            elif intent.action == MODIFY:
                messages = self._modify(intent)
            elif intent.action == REMOVE:
                messages = self._remove(intent)
            else:
                messages = [Message("error", f"Unknown action {intent.action!r}.")]
        except Exception as e:
            log(f"  [dashboard] error handling {text!r}: {e}")
            messages = [Message("error", "Something went wrong. Try rephrasing your request.")]
        log_request(text, intent, _outcome(messages), source=source, path=self._log_path)
        return messages

    async def answer(self, request_id, answer):
        """Resume a clarification with the user's answer."""
        try:
            result = await self.router.resume_after_clarification(request_id, answer)
            messages = self._route_result(result)
        except Exception as e:
            log(f"  [dashboard] error resuming {request_id}: {e}")
            messages = [Message("error", "Something went wrong resolving that. Try your request again.")]
        log_request(answer, None, _outcome(messages), source="[answer]", path=self._log_path)
        return messages

    async def _create(self, intent):
        messages = [Message("info", f'Looking for "{intent.subject}"...')]
        result = await self.router.route(intent)
        return messages + self._route_result(result)

    def _route_result(self, result):
        if result.kind == "success":
            widget = self.runtime.add_widget(result.descriptor)
            return [Message("success", f'Added "{widget.title}" to your dashboard.')]
        if result.kind == "clarification":
            return [Message("clarification", result.question, clarification=result)]
        return [Message("error", result.message)]

    def _target(self, intent):
        """Return (widget, None) or (None, message)."""
        target = resolve_target(intent, self.runtime.get_widgets())
        if target.reason == "empty":
            return None, Message("error", _EMPTY)
        if not target.found:
            return None, Message("info", _AMBIGUOUS)
        return target.widget, None

    def _modify(self, intent):
        widget, problem = self._target(intent)
        if problem:
            return [problem]

        changes = {}
        if intent.params.size:
            changes["size"] = intent.params.size
        if intent.params.display_format:
            render = dict(widget.render or {})
            render["config"] = dict(render.get("config") or {},
                                    display_format=intent.params.display_format)
            changes["render"] = render
        if not changes:
            return [Message("info", _NOTHING_TO_CHANGE)]

        intent = intent.with_target(widget.id)
        self.runtime.update_widget(intent.target_widget_id, changes)
        return [Message("success", f'Updated "{widget.title}".')]

    def _remove(self, intent):
        widget, problem = self._target(intent)
        if problem:
            return [problem]
        intent = intent.with_target(widget.id)
        self.runtime.remove_widget(intent.target_widget_id)
        return [Message("success", f'Removed "{widget.title}" from your dashboard.')]


def _outcome(messages):
    return messages[-1].kind if messages else "none"
