"""
Unit tests for series identity, counters and latency histograms.
"""
import math
import threading

import pytest

from frontend.series import UI_BUCKETS, CounterStore, LabelKey, LatencyAccumulator, clamp_duration


def _hammer(n_threads, per_thread, fn):
    barrier = threading.Barrier(n_threads)

    def worker():
        barrier.wait()
        for _ in range(per_thread):
            fn()

    threads = [threading.Thread(target=worker) for _ in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


# ── LabelKey ───────────────────────────────────────────────

class TestLabelKey:
    def test_label_order_does_not_matter(self):
        a = LabelKey.of("ui_requests_total", endpoint="/sms/", method="GET", status="200")
        b = LabelKey.of("ui_requests_total", status="200", method="GET", endpoint="/sms/")
        assert a == b
        assert hash(a) == hash(b)

    def test_explicit_pairs_are_sorted(self):
        a = LabelKey("m", (("b", "1"), ("a", "2")))
        assert a.labels == (("a", "2"), ("b", "1"))
        assert a == LabelKey.of("m", a="2", b="1")

    def test_name_is_part_of_identity(self):
        assert LabelKey.of("x", a="1") != LabelKey.of("y", a="1")

    def test_no_concatenation_collisions(self):
        a = LabelKey.of("m", endpoint="a|b", method="c")
        b = LabelKey.of("m", endpoint="a", method="b|c")
        assert a != b

    def test_values_are_stringified(self):
        key = LabelKey.of("m", status=200)
        assert key.as_dict() == {"status": "200"}

    def test_name_label_allowed(self):
        key = LabelKey.of("m", name="x")
        assert key.name == "m"
        assert key.as_dict() == {"name": "x"}


# ── CounterStore ───────────────────────────────────────────

class TestCounterStore:
    def test_unknown_counter_reads_zero(self):
        store = CounterStore()
        assert store.value(LabelKey("nothing")) == 0
        assert store.series() == []

    def test_register_exports_zero(self):
        store = CounterStore()
        store.register(LabelKey("index_requests_total"))
        assert store.series() == [(LabelKey("index_requests_total"), 0)]

    def test_increment_creates_lazily(self):
        store = CounterStore()
        key = LabelKey.of("hits", page="/sms/")
        store.increment(key)
        store.increment(key)
        assert store.value(key) == 2

    def test_register_does_not_reset(self):
        store = CounterStore()
        key = LabelKey("c")
        store.increment(key)
        store.register(key)
        assert store.value(key) == 1

    def test_negative_increment_ignored(self):
        store = CounterStore()
        key = LabelKey("c")
        store.increment(key, 5)
        store.increment(key, -3)
        assert store.value(key) == 5

    def test_series_filters_and_sorts(self):
        store = CounterStore()
        store.increment(LabelKey.of("b", status="500"))
        store.increment(LabelKey.of("b", status="200"))
        store.increment(LabelKey("a"))
        names = [k.as_dict()["status"] for k, _ in store.series("b")]
        assert names == ["200", "500"]
        assert [k.name for k, _ in store.series()] == ["a", "b", "b"]

    def test_concurrent_increments_are_not_lost(self):
        store = CounterStore()
        key = LabelKey.of("c", endpoint="/sms/")
        _hammer(8, 2000, lambda: store.increment(key))
        assert store.value(key) == 16000
        assert len(store.series()) == 1

    def test_concurrent_first_use_creates_one_series(self):
        store = CounterStore()
        keys = [LabelKey.of("c", i=str(i)) for i in range(50)]
        _hammer(8, 1, lambda: [store.increment(k) for k in keys])
        assert len(store.series()) == 50
        assert all(v == 8 for _, v in store.series())


# ── LatencyAccumulator ─────────────────────────────────────

class TestLatencyAccumulator:
    def test_default_bounds(self):
        assert LatencyAccumulator().bounds == UI_BUCKETS

    def test_observe_is_cumulative(self):
        acc = LatencyAccumulator()
        key = LabelKey("h")
        for v in (0.05, 0.4, 1.5):
            acc.observe(key, v)
        snap = acc.snapshot(key)
        assert snap.bucket(0.1) == 1
        assert snap.bucket(0.3) == 1
        assert snap.bucket(0.5) == 2
        assert snap.bucket(1.0) == 2
        assert snap.bucket(2.0) == 3
        assert snap.bucket(5.0) == 3
        assert snap.bucket(math.inf) == 3
        assert snap.count == 3
        assert snap.sum == pytest.approx(1.95)

    def test_value_on_bound_lands_in_bucket(self):
        acc = LatencyAccumulator()
        key = LabelKey("h")
        acc.observe(key, 0.3)
        assert acc.snapshot(key).bucket(0.3) == 1
        assert acc.snapshot(key).bucket(0.1) == 0

    def test_slow_request_only_in_inf(self):
        acc = LatencyAccumulator()
        key = LabelKey("h")
        acc.observe(key, 42.0)
        snap = acc.snapshot(key)
        assert [c for _, c in snap.buckets] == [0, 0, 0, 0, 0, 0, 1]

    def test_buckets_never_decrease(self):
        acc = LatencyAccumulator()
        key = LabelKey("h")
        for i in range(200):
            acc.observe(key, (i * 37 % 101) / 15.0)
        counts = [c for _, c in acc.snapshot(key).buckets]
        assert counts == sorted(counts)
        assert counts[-1] == acc.snapshot(key).count == 200

    def test_infinity_is_last(self):
        snap = LatencyAccumulator().snapshot(LabelKey("none"))
        assert math.isinf(snap.buckets[-1][0])
        assert snap.count == 0
        assert snap.sum == 0.0

    @pytest.mark.parametrize("bad", [-1.0, float("nan"), float("inf"), "slow", None])
    def test_bad_durations_clamp_to_zero(self, bad):
        acc = LatencyAccumulator()
        key = LabelKey("h")
        acc.observe(key, bad)
        snap = acc.snapshot(key)
        assert snap.count == 1
        assert snap.sum == 0.0
        assert snap.bucket(0.1) == 1

    def test_numeric_strings_accepted(self):
        assert clamp_duration("0.25") == 0.25

    def test_summary_mode_has_only_inf(self):
        acc = LatencyAccumulator(())
        key = LabelKey("s")
        acc.observe(key, 0.7)
        acc.observe(key, 0.2)
        snap = acc.snapshot(key)
        assert snap.buckets == ((math.inf, 2),)
        assert snap.sum == pytest.approx(0.9)

    @pytest.mark.parametrize("bounds", [(0.5, 0.1), (0.1, 0.1), (0.1, float("inf")), (float("nan"),)])
    def test_invalid_bounds_rejected(self, bounds):
        with pytest.raises(ValueError):
            LatencyAccumulator(bounds)

    def test_concurrent_observations_stay_consistent(self):
        acc = LatencyAccumulator()
        key = LabelKey.of("h", endpoint="/sms/")
        _hammer(8, 500, lambda: acc.observe(key, 0.25))
        snap = acc.snapshot(key)
        assert snap.count == 4000
        assert snap.bucket(0.1) == 0
        assert snap.bucket(0.3) == 4000
        assert snap.sum == pytest.approx(1000.0)
