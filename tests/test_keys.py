"""Tests for offload.runtime.keys — routing-key variants and resolution."""

import pytest

from offload.errors import RoutingError
from offload.runtime.keys import (
    DEFAULT_KEY,
    CallContext,
    ComputedKey,
    LiteralKey,
    evaluate_key,
    resolve_container_key,
    routing_key,
    set_container_key_resolver,
)


class _Token:
    def __init__(self, value: object) -> None:
        self.container_key = value


class TestRoutingKey:
    def test_none_is_default(self) -> None:
        assert routing_key(None) == DEFAULT_KEY
        assert DEFAULT_KEY == LiteralKey("default")

    def test_string(self) -> None:
        assert routing_key("instance-2") == LiteralKey("instance-2")

    def test_callable(self) -> None:
        def pick(ctx: CallContext) -> str:
            return "x"

        assert routing_key(pick) == ComputedKey(pick)

    def test_token_unwrapped(self) -> None:
        assert routing_key(_Token("instance-2")) == LiteralKey("instance-2")

    def test_variant_passthrough(self) -> None:
        key = LiteralKey("k")
        assert routing_key(key) is key

    def test_rejects_other_values(self) -> None:
        with pytest.raises(RoutingError):
            routing_key(42)


class TestEvaluate:
    def test_literal(self) -> None:
        assert evaluate_key(LiteralKey("a"), CallContext()) == "a"

    def test_computed_sees_call(self) -> None:
        key = ComputedKey(lambda ctx: f"user-{ctx.args[0]}-{ctx.kwargs['region']}")
        ctx = CallContext(args=("42",), kwargs={"region": "eu"})

        assert evaluate_key(key, ctx) == "user-42-eu"


class TestResolve:
    @pytest.mark.asyncio
    async def test_plain_string(self) -> None:
        assert await resolve_container_key("ns", "f", CallContext(), "default") == "default"

    @pytest.mark.asyncio
    async def test_awaitable_fallback(self) -> None:
        async def compute() -> str:
            return "shard-3"

        assert await resolve_container_key("ns", "f", CallContext(), compute()) == "shard-3"

    @pytest.mark.asyncio
    async def test_unconditional_key_is_stable(self) -> None:
        key = routing_key(lambda ctx: "instance-2")
        seen = set()
        for i in range(5):
            ctx = CallContext(args=(i,))
            seen.add(await resolve_container_key("ns", "f", ctx, evaluate_key(key, ctx)))

        assert seen == {"instance-2"}

    @pytest.mark.asyncio
    async def test_async_computed_key(self) -> None:
        async def pick(ctx: CallContext) -> str:
            return f"tenant-{ctx.kwargs['tenant']}"

        key = routing_key(pick)
        ctx = CallContext(kwargs={"tenant": "acme"})

        assert await resolve_container_key("ns", "f", ctx, evaluate_key(key, ctx)) == "tenant-acme"

    @pytest.mark.asyncio
    async def test_resolver_hook(self) -> None:
        seen: list[tuple[str, str, str]] = []

        async def resolver(namespace: str, export: str, ctx: CallContext, key: str) -> str:
            seen.append((namespace, export, key))
            return f"eu:{key}"

        set_container_key_resolver(resolver)

        assert await resolve_container_key("ns", "f", CallContext(), "default") == "eu:default"
        assert seen == [("ns", "f", "default")]

    @pytest.mark.asyncio
    async def test_resolver_removed(self) -> None:
        set_container_key_resolver(lambda *a: "other")
        set_container_key_resolver(None)

        assert await resolve_container_key("ns", "f", CallContext(), "default") == "default"

    @pytest.mark.asyncio
    async def test_empty_key_rejected(self) -> None:
        with pytest.raises(RoutingError, match="non-empty"):
            await resolve_container_key("ns", "f", CallContext(), "")

    @pytest.mark.asyncio
    async def test_non_string_key_rejected(self) -> None:
        set_container_key_resolver(lambda *a: 7)

        with pytest.raises(RoutingError):
            await resolve_container_key("ns", "f", CallContext(), "default")
