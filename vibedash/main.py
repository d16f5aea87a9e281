"""vibedash text front end.

Type requests, answer questions, watch the widget list change.

Usage:
    python -m vibedash
    python -m vibedash -parse "weather in Denver"

Commands besides requests:
    list     show the widgets and their latest data
    quit     save and exit
"""

import asyncio
import time

from vibedash.dashboard import Dashboard
from vibedash.generator import WidgetGenerator
from vibedash.log import log
from vibedash.persistence import WidgetStore
from vibedash.router import SourceRouter
from vibedash.runtime import WidgetRuntime
from vibedash.sources import default_sources

_QUIT_WORDS = {"quit", "exit", "bye"}


def _print_message(m):
    marker = {"success": "+", "error": "!", "clarification": "?"}.get(m.kind, "-")
    print(f"{marker} {m.text}", flush=True)
    if m.clarification is not None:
        for i, opt in enumerate(m.clarification.options, 1):
            print(f"    {i}. {opt.label}", flush=True)
        print("    (type a number, your own answer, or 'cancel')", flush=True)


def _summary(widget):
    data = widget.data
    if data is None:
        return "loading..."
    if not isinstance(data, dict):
        return widget.render.get("type", "")
    if "price" in data:
        change = data.get("change_24h", data.get("change_pct"))
        if change is None:
            return f"{data['price']:,}"
        return f"{data['price']:,} ({change:+.2f}%)"
    if "temp_f" in data:
        return f"{round(data['temp_f'])}°F, {data.get('condition', '')}"
    if "stories" in data:
        return f"{len(data['stories'])} stories"
    return ""


def _print_widgets(widgets):
    if not widgets:
        print("  (no widgets)", flush=True)
        return
    for i, w in enumerate(widgets, 1):
        age = f"{time.time() - w.last_updated:.0f}s ago" if w.last_updated else "never"
        print(f"  {i}. [{w.size}] {w.title}: {_summary(w)}  (updated {age})", flush=True)


def _pick_answer(clarification, text):
    """A number picks an option; anything else is taken as typed."""
    if text.isdigit():
        n = int(text)
        if 1 <= n <= len(clarification.options):
            return clarification.options[n - 1].value
    return text


async def run(store=None):
    store = store or WidgetStore()
    router = SourceRouter(default_sources(), fallback=WidgetGenerator())
    runtime = WidgetRuntime(router, store=store)
    dashboard = Dashboard(router, runtime)

    log("Loading widgets...")
    t0 = time.time()
    await runtime.boot()
    log(f"  {len(runtime.get_widgets())} widget(s) ready ({time.time() - t0:.1f}s)")
    log("Ready. Try 'bitcoin price' or 'weather in Denver'; 'quit' to exit.\n")

    pending = None
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            text = line.strip()
            if not text:
                continue
            if text.lower() in _QUIT_WORDS:
                break
            if text.lower() == "list":
                _print_widgets(runtime.get_widgets())
                continue

            if pending is not None:
                clarification, pending = pending, None
                if text.lower() == "cancel":
                    continue
                messages = await dashboard.answer(clarification.request_id,
                                                  _pick_answer(clarification, text))
            else:
                messages = await dashboard.handle(text)

            for m in messages:
                _print_message(m)
                if m.clarification is not None:
                    pending = m.clarification
    finally:
        store.flush(runtime.get_widgets())
        await runtime.shutdown()
        log("Saved. Bye.")


def main():
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass
