"""
Usage Reconciler Unit Tests
"""

from dialect_gateway.common.protocol import (
    ConversionContext,
    Dialect,
    UsageCounter,
    capture_usage,
    reconcile,
)


def make_ctx(**kwargs):
    return ConversionContext(
        source_dialect=Dialect.CHAT,
        target_dialect=Dialect.RESPONSES,
        model="gpt-4o",
        converted_from=Dialect.CHAT,
        **kwargs,
    )


class TestCaptureUsage:
    """Merging backend usage into the context"""

    def test_responses_shape(self):
        ctx = make_ctx()
        capture_usage(ctx, {"input_tokens": 5, "output_tokens": 2, "total_tokens": 100})
        assert ctx.usage.prompt_tokens == 5
        assert ctx.usage.completion_tokens == 2
        # Reported totals are ignored
        assert ctx.usage.total_tokens == 0

    def test_zero_values_do_not_overwrite(self):
        ctx = make_ctx()
        capture_usage(ctx, {"input_tokens": 5, "output_tokens": 2})
        capture_usage(ctx, {"input_tokens": 0, "output_tokens": 0})
        assert (ctx.usage.prompt_tokens, ctx.usage.completion_tokens) == (5, 2)

    def test_none_is_ignored(self):
        ctx = make_ctx()
        capture_usage(ctx, None)
        assert ctx.usage == UsageCounter()

    def test_cached_tokens(self):
        ctx = make_ctx()
        capture_usage(ctx, {"input_tokens": 5, "input_tokens_details": {"cached_tokens": 3}})
        assert ctx.usage.cached_tokens == 3
        assert ctx.usage.to_chat_usage()["prompt_tokens_details"] == {"cached_tokens": 3}
        assert ctx.usage.to_messages_usage() == {"input_tokens": 2, "output_tokens": 0, "cache_read_input_tokens": 3}

    def test_messages_input_tokens_never_negative(self):
        usage = UsageCounter(prompt_tokens=2, completion_tokens=1, cached_tokens=5)
        assert usage.to_messages_usage()["input_tokens"] == 0


class TestReconcile:
    """Final usage derivation"""

    def test_reported_usage_is_trusted(self, token_counter):
        ctx = make_ctx(prompt_tokens=50)
        ctx.append_text("Hello world")
        capture_usage(ctx, {"input_tokens": 5, "output_tokens": 9})

        usage = reconcile(ctx, token_counter)

        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (5, 9, 14)
        assert token_counter.calls == []

    def test_missing_completion_is_counted_from_text(self, token_counter):
        ctx = make_ctx(prompt_tokens=3)
        ctx.append_text("Hello")
        ctx.append_text(" world")

        usage = reconcile(ctx, token_counter)

        assert usage.completion_tokens == 2
        assert usage.prompt_tokens == 3
        assert usage.total_tokens == 5
        assert token_counter.calls == [("Hello world", "gpt-4o")]

    def test_reported_prompt_kept_when_completion_counted(self, token_counter):
        ctx = make_ctx(prompt_tokens=3)
        ctx.append_text("one two three")
        capture_usage(ctx, {"input_tokens": 8})

        usage = reconcile(ctx, token_counter)

        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (8, 3, 11)

    def test_no_text_and_no_usage(self, token_counter):
        ctx = make_ctx(prompt_tokens=3)

        usage = reconcile(ctx, token_counter)

        # No output, so the prompt estimate is not used either
        assert (usage.prompt_tokens, usage.completion_tokens, usage.total_tokens) == (0, 0, 0)
        assert token_counter.calls == []

    def test_idempotent(self, token_counter):
        ctx = make_ctx(prompt_tokens=4)
        ctx.append_text("a b")

        first = (reconcile(ctx, token_counter).prompt_tokens, ctx.usage.completion_tokens, ctx.usage.total_tokens)
        second = (reconcile(ctx, token_counter).prompt_tokens, ctx.usage.completion_tokens, ctx.usage.total_tokens)

        assert first == second == (4, 2, 6)
        assert len(token_counter.calls) == 1
