"""Widget runtime: mutations, refresh scheduling, in-flight guard, boot."""

import asyncio
import itertools

from vibedash.intent import Intent, Params
from vibedash.results import Error, Success, WidgetDescriptor
from vibedash.runtime import WidgetRuntime


def _intent(subject="bitcoin price", **params):
    return Intent(action="create", subject=subject, params=Params(**params), raw=subject)


def _descriptor(title="Bitcoin (BTC)", interval=60_000, data=None):
    return WidgetDescriptor(source_id="crypto", title=title, size="small",
                            refresh_interval_ms=interval, data=data or {"price": 1},
                            render={"type": "price-card", "config": {}},
                            resolved_intent=_intent(coin="bitcoin"))


class StubRouter:
    """Counts routes; each success carries the call number as data."""

    def __init__(self, fail=False, gate=None):
        self.calls = []
        self.fail = fail
        self.gate = gate

    async def route(self, intent):
        self.calls.append(intent)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            return Error(message="down", retryable=True, code="network", source="crypto")
        n = len(self.calls)
        return Success(WidgetDescriptor(
            source_id="crypto", title="IGNORED", size="large", refresh_interval_ms=1,
            data={"price": 100 + n}, render={"type": "chart"}, resolved_intent=intent))


class MemoryStore:
    def __init__(self, records=None):
        self.records = records or []
        self.saves = []

    def load(self):
        return list(self.records)

    def save(self, widgets):
        self.saves.append([w.id for w in widgets])


def _runtime(router=None, store=None):
    ids = itertools.count(1)
    ticks = itertools.count(1)
    return WidgetRuntime(router or StubRouter(), store=store,
                         id_factory=lambda: f"w{next(ids)}",
                         clock=lambda: float(next(ticks)))


def _run(coro):
    return asyncio.run(coro)


# --- Mutations ---

def test_add_assigns_id_timestamp_and_starts_timer():
    async def go():
        store = MemoryStore()
        rt = _runtime(store=store)
        seen = []
        rt.subscribe(seen.append)

        w = rt.add_widget(_descriptor())
        assert w.id == "w1"
        assert w.last_updated == 1.0
        assert rt.has_timer("w1")
        assert [x.id for x in rt.get_widgets()] == ["w1"]
        assert [[x.id for x in snap] for snap in seen] == [["w1"]]
        assert store.saves == [["w1"]]
        await rt.shutdown()
    _run(go())


def test_static_widget_gets_no_timer():
    async def go():
        rt = _runtime()
        w = rt.add_widget(_descriptor(interval=None))
        assert not rt.has_timer(w.id)
    _run(go())


def test_ids_are_unique_even_if_factory_repeats():
    async def go():
        ids = iter(["same", "same", "other"])
        rt = WidgetRuntime(StubRouter(), id_factory=lambda: next(ids))
        a = rt.add_widget(_descriptor(interval=None))
        b = rt.add_widget(_descriptor(interval=None))
        assert (a.id, b.id) == ("same", "other")
    _run(go())


def test_get_widgets_is_a_snapshot():
    async def go():
        rt = _runtime()
        rt.add_widget(_descriptor(interval=None))
        snap = rt.get_widgets()
        snap.clear()
        assert len(rt.get_widgets()) == 1
    _run(go())


def test_remove_cancels_timer_and_notifies():
    async def go():
        rt = _runtime()
        seen = []
        w = rt.add_widget(_descriptor())
        rt.subscribe(seen.append)
        removed = rt.remove_widget(w.id)
        assert removed.id == w.id
        assert not rt.has_timer(w.id)
        assert rt.get_widgets() == []
        assert seen == [[]]
        assert rt.remove_widget(w.id) is None
        assert seen == [[]]
    _run(go())


def test_update_merges_but_keeps_id_and_resolved_intent():
    async def go():
        rt = _runtime()
        w = rt.add_widget(_descriptor(interval=None))
        other = _intent("weather", location="Denver")
        updated = rt.update_widget(w.id, {"size": "large", "id": "hijack",
                                          "resolved_intent": other, "bogus": 1})
        assert updated.size == "large"
        assert updated.id == w.id
        assert updated.resolved_intent == w.resolved_intent
        assert rt.get_widget(w.id).size == "large"
        assert rt.update_widget("missing", {"size": "small"}) is None
    _run(go())


def test_update_interval_restarts_timer():
    async def go():
        rt = _runtime()
        w = rt.add_widget(_descriptor(interval=60_000))
        old_timer = rt._timers[w.id]

        rt.update_widget(w.id, {"title": "renamed"})
        assert rt._timers[w.id] is old_timer

        rt.update_widget(w.id, {"refresh_interval_ms": 30_000})
        await asyncio.gather(old_timer, return_exceptions=True)
        assert old_timer.cancelled()
        assert rt._timers[w.id] is not old_timer

        rt.update_widget(w.id, {"refresh_interval_ms": None})
        assert not rt.has_timer(w.id)
        await rt.shutdown()
    _run(go())


def test_reorder_puts_listed_ids_first_and_saves_without_notifying():
    async def go():
        store = MemoryStore()
        rt = _runtime(store=store)
        for _ in range(4):
            rt.add_widget(_descriptor(interval=None))
        seen = []
        rt.subscribe(seen.append)
        rt.reorder_widgets(["w3", "nope", "w1", "w3"])
        assert [w.id for w in rt.get_widgets()] == ["w3", "w1", "w2", "w4"]
        assert store.saves[-1] == ["w3", "w1", "w2", "w4"]
        assert seen == []
    _run(go())


# --- Refresh ---

def test_refresh_replaces_only_data_and_timestamp():
    async def go():
        router = StubRouter()
        rt = _runtime(router)
        w = rt.add_widget(_descriptor(interval=None))
        assert await rt.refresh_widget(w.id) is True
        after = rt.get_widget(w.id)
        assert after.data == {"price": 101}
        assert after.last_updated > w.last_updated
        assert (after.title, after.size, after.render) == (w.title, w.size, w.render)
        assert router.calls == [w.resolved_intent]
    _run(go())


def test_failed_refresh_keeps_stale_data():
    async def go():
        rt = _runtime(StubRouter(fail=True))
        w = rt.add_widget(_descriptor(interval=None, data={"price": 7}))
        assert await rt.refresh_widget(w.id) is False
        assert rt.get_widget(w.id).data == {"price": 7}
        assert rt.get_widget(w.id).last_updated == w.last_updated
    _run(go())


def test_overlapping_refresh_is_skipped():
    async def go():
        gate = asyncio.Event()
        router = StubRouter(gate=gate)
        rt = _runtime(router)
        w = rt.add_widget(_descriptor(interval=None))

        first = asyncio.ensure_future(rt.refresh_widget(w.id))
        await asyncio.sleep(0)
        assert w.id in rt.in_flight
        assert await rt.refresh_widget(w.id) is False
        assert len(router.calls) == 1

        gate.set()
        assert await first is True
        assert rt.in_flight == frozenset()
    _run(go())


def test_result_dropped_when_widget_removed_mid_refresh():
    async def go():
        gate = asyncio.Event()
        rt = _runtime(StubRouter(gate=gate))
        w = rt.add_widget(_descriptor(interval=None))
        pending = asyncio.ensure_future(rt.refresh_widget(w.id))
        await asyncio.sleep(0)
        rt.remove_widget(w.id)
        gate.set()
        assert await pending is False
        assert rt.get_widgets() == []
        assert rt.in_flight == frozenset()
    _run(go())


def test_timer_ticks_never_stack_up():
    async def go():
        gate = asyncio.Event()
        router = StubRouter(gate=gate)
        rt = _runtime(router)
        rt.add_widget(_descriptor(interval=10))
        await asyncio.sleep(0.1)
        # the first refresh is still waiting, so every later tick was skipped
        assert len(router.calls) == 1
        gate.set()
        await rt.shutdown()
    _run(go())


def test_timer_refreshes_and_stops_on_remove():
    async def go():
        router = StubRouter()
        rt = _runtime(router)
        w = rt.add_widget(_descriptor(interval=10))
        await asyncio.sleep(0.08)
        assert len(router.calls) >= 2
        assert rt.get_widget(w.id).data["price"] > 100

        rt.remove_widget(w.id)
        await asyncio.sleep(0.01)
        count = len(router.calls)
        await asyncio.sleep(0.05)
        assert len(router.calls) == count
        await rt.shutdown()
    _run(go())


# --- Boot ---

def _record(id, interval):
    return {
        "id": id, "source_id": "crypto", "title": f"T {id}", "size": "small",
        "refresh_interval_ms": interval, "render": {"type": "price-card", "config": {}},
        "resolved_intent": {"action": "create", "subject": "bitcoin price",
                            "params": {"coin": "bitcoin"}, "raw": "bitcoin price"},
    }


def test_boot_hydrates_refreshes_and_starts_timers():
    async def go():
        store = MemoryStore([_record("a", 60_000), _record("b", None), _record("a", 60_000)])
        router = StubRouter()
        rt = _runtime(router, store=store)
        seen = []
        rt.subscribe(seen.append)

        await rt.boot()

        # observers saw the hydrated list before any data arrived
        assert [(w.id, w.data, w.last_updated) for w in seen[0]] == [("a", None, 0.0), ("b", None, 0.0)]
        widgets = {w.id: w for w in rt.get_widgets()}
        assert list(widgets) == ["a", "b"]
        assert widgets["a"].data == {"price": 101}
        assert widgets["b"].data is None
        assert widgets["a"].resolved_intent.params.coin == "bitcoin"
        assert len(router.calls) == 1
        assert rt.has_timer("a") and not rt.has_timer("b")
        await rt.shutdown()
        assert not rt.has_timer("a")
    _run(go())


def test_boot_with_failing_sources_still_schedules():
    async def go():
        rt = _runtime(StubRouter(fail=True), store=MemoryStore([_record("a", 60_000)]))
        await rt.boot()
        assert rt.get_widget("a").data is None
        assert rt.has_timer("a")
        await rt.shutdown()
    _run(go())


class SplitRouter(StubRouter):
    """Fails for one coin, succeeds for the rest."""

    def __init__(self, failing_coin, **kwargs):
        super().__init__(**kwargs)
        self.failing_coin = failing_coin

    async def route(self, intent):
        if intent.params.coin == self.failing_coin:
            self.calls.append(intent)
            raise ConnectionError("down")
        return await super().route(intent)


def test_boot_refresh_failure_does_not_stop_other_widgets():
    async def go():
        eth = _record("b", 60_000)
        eth["resolved_intent"]["params"] = {"coin": "ethereum"}
        router = SplitRouter("bitcoin")
        rt = _runtime(router, store=MemoryStore([_record("a", 60_000), eth]))
        await rt.boot()
        assert rt.get_widget("a").data is None
        assert rt.get_widget("b").data is not None
        assert len(router.calls) == 2
        assert rt.has_timer("a") and rt.has_timer("b")
        await rt.shutdown()
    _run(go())


def test_widget_added_during_boot_keeps_a_single_timer():
    async def go():
        gate = asyncio.Event()
        rt = _runtime(StubRouter(gate=gate), store=MemoryStore([_record("a", 60_000)]))
        booting = asyncio.ensure_future(rt.boot())
        await asyncio.sleep(0)

        added = rt.add_widget(_descriptor(interval=60_000))
        timer = rt._timers[added.id]
        gate.set()
        await booting
        assert rt._timers[added.id] is timer

        rt.remove_widget(added.id)
        await asyncio.gather(timer, return_exceptions=True)
        assert timer.done()
        await rt.shutdown()
        assert all(t.done() for t in asyncio.all_tasks() if t is not asyncio.current_task())
    _run(go())


def test_interval_changed_during_boot_keeps_the_new_timer():
    async def go():
        gate = asyncio.Event()
        rt = _runtime(StubRouter(gate=gate), store=MemoryStore([_record("a", 60_000)]))
        booting = asyncio.ensure_future(rt.boot())
        await asyncio.sleep(0)

        rt.update_widget("a", {"refresh_interval_ms": 30_000})
        timer = rt._timers["a"]
        gate.set()
        await booting
        assert rt._timers["a"] is timer

        await rt.shutdown()
        assert timer.cancelled()
    _run(go())


def test_boot_without_store_is_empty():
    async def go():
        rt = _runtime()
        await rt.boot()
        assert rt.get_widgets() == []
    _run(go())
