"""Widget runtime: owns the widget list and keeps live widgets refreshed.

add_widget / remove_widget / update_widget / reorder_widgets are plain
synchronous methods with no await inside, so on the event loop they can
never be seen half done. get_widgets() returns a snapshot list; widgets are
replaced, never mutated in place.

Refresh:
    Every widget with a refresh_interval_ms gets its own timer task. Each
    tick starts a refresh task that re-routes the widget's resolved_intent
    (never re-parsed) and, on success, replaces only data and last_updated.
    A widget already mid-refresh skips the tick, so at most one refresh per
    widget is ever outstanding. Removing a widget cancels its timer; a
    refresh already in flight finishes, finds the widget gone, and drops
    its result. Errors and stray clarifications keep the old data.

Boot:
    load stored records, hydrate them with data=None and last_updated=0,
    publish, refresh the live ones concurrently, then start every timer.

Timers need a running event loop: add/update widgets that refresh from
inside one.
"""

import asyncio
import time
import uuid
from dataclasses import replace

from vibedash.log import log
from vibedash.results import Widget

# Fields update_widget() may change. id and resolved_intent are fixed for life.
_UPDATABLE = ("source_id", "title", "size", "refresh_interval_ms", "data", "render")


def _new_widget_id():
    return uuid.uuid4().hex


class WidgetRuntime:

    def __init__(self, router, store=None, id_factory=_new_widget_id, clock=time.time):
        self._router = router
        self._store = store
        self._new_id = id_factory
        self._clock = clock
        self._widgets = []
        self._timers = {}         # widget id -> timer task
        self._in_flight = set()   # widget ids with a refresh outstanding
        self._refreshes = set()   # refresh tasks started by timers
        self._listeners = []

    # --- Observers ---

    def subscribe(self, callback):
        """callback(widgets) runs after every change to the widget list."""
        self._listeners.append(callback)

    def _notify(self):
        snapshot = self.get_widgets()
        for cb in list(self._listeners):
            try:
                cb(snapshot)
            except Exception as e:
                log(f"  [runtime] listener failed: {e}")

    def _save(self):
        if self._store is not None:
            self._store.save(self._widgets)

    def _changed(self):
        self._notify()
        self._save()

    # --- Reads ---

    def get_widgets(self):
        return list(self._widgets)

    def get_widget(self, widget_id):
        idx = self._index(widget_id)
        return None if idx is None else self._widgets[idx]

    def has_timer(self, widget_id):
        return widget_id in self._timers

    @property
    def in_flight(self):
        return frozenset(self._in_flight)

    def _index(self, widget_id):
        for i, w in enumerate(self._widgets):
            if w.id == widget_id:
                return i
        return None

    # --- Mutations ---

    def add_widget(self, descriptor):
        """Add a resolved widget; assigns its id and timestamp, starts its timer."""
        widget_id = self._new_id()
        while self._index(widget_id) is not None:
            widget_id = self._new_id()
        widget = Widget.from_descriptor(descriptor, id=widget_id, last_updated=self._clock())
        timer = self._make_timer(widget)
        self._widgets.append(widget)
        if timer is not None:
            self._timers[widget_id] = timer
        self._changed()
        return widget

    def remove_widget(self, widget_id):
        """Remove a widget and cancel its timer. Unknown ids are a no-op."""
        idx = self._index(widget_id)
        if idx is None:
            return None
        self._stop_timer(widget_id)
        widget = self._widgets.pop(idx)
        self._changed()
        return widget

    def update_widget(self, widget_id, changes):
        """Merge changes into a widget. id and resolved_intent never change."""
        idx = self._index(widget_id)
        if idx is None:
            return None
        allowed = {k: v for k, v in changes.items() if k in _UPDATABLE}
        ignored = sorted(set(changes) - set(allowed))
        if ignored:
            log(f"  [runtime] update of {widget_id} ignored fields: {', '.join(ignored)}")

        old = self._widgets[idx]
        new = replace(old, **allowed)
        restart = new.refresh_interval_ms != old.refresh_interval_ms
        timer = self._make_timer(new) if restart else None

        self._widgets[idx] = new
        if restart:
            # new interval, new phase: the old schedule is not carried over
            self._stop_timer(widget_id)
            if timer is not None:
                self._timers[widget_id] = timer
        self._changed()
        return new

    def reorder_widgets(self, ordered_ids):
        """Listed ids first in the given order; the rest keep their order after them."""
        by_id = {w.id: w for w in self._widgets}
        front = []
        for widget_id in ordered_ids:
            w = by_id.pop(widget_id, None)
            if w is not None:
                front.append(w)
        rest = [w for w in self._widgets if w.id in by_id]
        self._widgets = front + rest
        self._save()

    # --- Refresh ---

    def _make_timer(self, widget):
        interval = widget.refresh_interval_ms
        if not interval or interval <= 0:
            return None
        loop = asyncio.get_running_loop()
        return loop.create_task(self._tick_loop(widget.id, interval / 1000.0))

    def _stop_timer(self, widget_id):
        timer = self._timers.pop(widget_id, None)
        if timer is not None:
            timer.cancel()

    async def _tick_loop(self, widget_id, seconds):
        while True:
            await asyncio.sleep(seconds)
            if widget_id in self._in_flight:
                continue
            task = asyncio.get_running_loop().create_task(self.refresh_widget(widget_id))
            self._refreshes.add(task)
            task.add_done_callback(self._refreshes.discard)

    async def refresh_widget(self, widget_id):
        """Re-route one widget's resolved intent. Returns True if new data landed."""
        if widget_id in self._in_flight:
            return False
        widget = self.get_widget(widget_id)
        if widget is None:
            self._stop_timer(widget_id)
            return False

        self._in_flight.add(widget_id)
        try:
            result = await self._router.route(widget.resolved_intent)
        except Exception as e:
            log(f"  [runtime] refresh of {widget_id} failed: {e}")
            return False
        finally:
            self._in_flight.discard(widget_id)

        # the widget may have gone while the call was out
        idx = self._index(widget_id)
        if idx is None:
            return False
        if result.kind != "success":
            log(f"  [runtime] refresh of {widget_id} kept stale data ({result.kind})")
            return False

        self._widgets[idx] = replace(self._widgets[idx],
                                     data=result.descriptor.data,
                                     last_updated=self._clock())
        self._changed()
        return True

    # --- Lifecycle ---

    async def boot(self):
        """Hydrate from the store, refresh live widgets, then start their timers."""
        for widget_id in list(self._timers):
            self._stop_timer(widget_id)

        records = self._store.load() if self._store is not None else []
        widgets = []
        seen = set()
        for record in records:
            try:
                widget = Widget.from_record(record)
            except (KeyError, TypeError, ValueError) as e:
                log(f"  [runtime] skipping unreadable record: {e}")
                continue
            if widget.id in seen:
                log(f"  [runtime] skipping duplicate widget id {widget.id}")
                continue
            seen.add(widget.id)
            widgets.append(widget)
        self._widgets = widgets

        # observers can show loading states before any data arrives
        self._notify()

        live = [w.id for w in self._widgets if w.refresh_interval_ms]
        results = await asyncio.gather(*(self.refresh_widget(i) for i in live),
                                       return_exceptions=True)
        for widget_id, outcome in zip(live, results):
            if isinstance(outcome, BaseException):
                log(f"  [runtime] boot refresh of {widget_id} failed: {outcome}")

        # widgets added or re-timed while the refreshes were out already have one
        for widget in self._widgets:
            if widget.id in self._timers:
                continue
            timer = self._make_timer(widget)
            if timer is not None:
                self._timers[widget.id] = timer

    async def shutdown(self):
        """Cancel every timer and any refresh still running."""
        tasks = list(self._timers.values()) + list(self._refreshes)
        self._timers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
