"""Unit tests for backends/pool.py and backends/platform.py."""

import asyncio
import threading
from collections import Counter

import pytest

from examiner.backends.platform import PlatformHandler
from examiner.backends.pool import BackendPool
from examiner.core.exceptions import BackendError, ConfigurationError


class TestBackendPool:
    """Test round-robin selection."""

    def test_empty_pool_raises(self):
        with pytest.raises(ConfigurationError, match="at least one adapter"):
            BackendPool([])

    def test_single_adapter_always_selected(self, fake_adapter):
        pool = BackendPool([fake_adapter])
        assert all(pool.select() is fake_adapter for _ in range(5))

    def test_rotation_order(self, fake_adapter_factory):
        adapters = [fake_adapter_factory(name=f"a{i}") for i in range(3)]
        pool = BackendPool(adapters)

        selected = [pool.select().name for _ in range(7)]

        assert selected == ["a0", "a1", "a2", "a0", "a1", "a2", "a0"]

    def test_adapters_are_frozen(self, fake_adapter_factory):
        adapters = [fake_adapter_factory(name="a"), fake_adapter_factory(name="b")]
        pool = BackendPool(adapters)
        adapters.append(fake_adapter_factory(name="c"))

        assert len(pool) == 2
        assert isinstance(pool.adapters, tuple)

    @pytest.mark.asyncio
    async def test_concurrent_tasks_spread_evenly(self, fake_adapter_factory):
        """Test that N*k concurrent selects hit each adapter exactly k times."""
        adapters = [fake_adapter_factory(name=f"a{i}") for i in range(4)]
        pool = BackendPool(adapters)

        async def pick():
            await asyncio.sleep(0)
            return pool.select().name

        names = await asyncio.gather(*(pick() for _ in range(400)))

        assert Counter(names) == {f"a{i}": 100 for i in range(4)}

    def test_concurrent_threads_spread_evenly(self, fake_adapter_factory):
        adapters = [fake_adapter_factory(name=f"a{i}") for i in range(3)]
        pool = BackendPool(adapters)
        counts = Counter()
        lock = threading.Lock()

        def worker():
            local = Counter(pool.select().name for _ in range(300))
            with lock:
                counts.update(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert counts == {"a0": 800, "a1": 800, "a2": 800}


class TestPlatformHandler:
    """Test the terminal platform stage."""

    def test_negative_unit_price_rejected(self, fake_adapter):
        with pytest.raises(ValueError, match="unit_price"):
            PlatformHandler(BackendPool([fake_adapter]), unit_price=-1)

    @pytest.mark.asyncio
    async def test_prices_tokens(self, fake_adapter_factory, grading_request):
        adapter = fake_adapter_factory(tokens=120, text="answer")
        handler = PlatformHandler(BackendPool([adapter]), unit_price=3)

        response = await handler.handle(grading_request)

        assert response.tokens_consumed == 120
        assert response.unit_price == 3
        assert response.cost_amount == 360
        assert response.answer_text == "answer"

    @pytest.mark.asyncio
    async def test_config_price_wins(self, fake_adapter_factory, grading_request, question_config):
        adapter = fake_adapter_factory(tokens=100)
        handler = PlatformHandler(BackendPool([adapter]), unit_price=3)
        request = grading_request.model_copy(update={"config": question_config})

        response = await handler.handle(request)

        assert handler.price_for(request) == question_config.unit_price == 1
        assert response.cost_amount == 100

    @pytest.mark.asyncio
    async def test_uses_segments_without_prompt(self, fake_adapter, grading_request):
        handler = PlatformHandler(BackendPool([fake_adapter]))

        await handler.handle(grading_request)

        segments, config = fake_adapter.calls[0]
        assert segments == grading_request.input_segments
        assert config is None

    @pytest.mark.asyncio
    async def test_uses_rendered_prompt(self, fake_adapter, grading_request):
        handler = PlatformHandler(BackendPool([fake_adapter]))
        request = grading_request.model_copy(update={"prompt": "rendered"})

        await handler.handle(request)

        assert fake_adapter.calls[0][0] == ("rendered",)

    @pytest.mark.asyncio
    async def test_error_propagates_without_retry(self, fake_adapter_factory, grading_request):
        failing = fake_adapter_factory(name="bad", error=BackendError("boom"))
        healthy = fake_adapter_factory(name="good")
        handler = PlatformHandler(BackendPool([failing, healthy]))

        with pytest.raises(BackendError, match="boom"):
            await handler.handle(grading_request)

        assert len(failing.calls) == 1
        assert healthy.calls == []

    @pytest.mark.asyncio
    async def test_successive_calls_rotate(self, fake_adapter_factory, grading_request):
        a = fake_adapter_factory(name="a")
        b = fake_adapter_factory(name="b")
        handler = PlatformHandler(BackendPool([a, b]))

        for _ in range(4):
            await handler.handle(grading_request)

        assert len(a.calls) == 2
        assert len(b.calls) == 2
