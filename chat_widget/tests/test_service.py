import asyncio
import json

import httpx
import pytest

from chat_widget.api.service import SAMPLE_QUESTIONS, ChatWidgetSession, create_session
from chat_widget.domain.exceptions import ValidationError
from chat_widget.domain.models import StreamOutcome


def _backend(calls, sse, gate=None):
    async def handler(request):
        calls.append((request.url.path, json.loads(request.content)))
        if request.url.path == "/chat":
            async def body():
                yield sse('{"type":"start"}')
                if gate is not None:
                    await gate.wait()
                yield sse('{"type":"text","content":"Answer"}', '{"type":"end"}')

            return httpx.Response(200, content=body())
        return httpx.Response(204)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_sample_questions_only_for_empty_conversation(settings_stub, sse):
    calls = []
    async with _backend(calls, sse) as client:
        session = ChatWidgetSession(settings_stub, client=client)
        assert session.sample_questions() == SAMPLE_QUESTIONS
        outcome = await session.ask_sample(2)
        assert outcome == StreamOutcome.COMPLETED
        assert session.sample_questions() == ()
        with pytest.raises(ValidationError):
            session.ask_sample(0)

    assert calls[0][1]["messages"][0]["content"] == "How to process refund payments?"
    assert session.messages[-1].content == "Answer"


@pytest.mark.asyncio
async def test_typing_indicator_while_waiting_for_first_content(settings_stub, sse, wait_until):
    gate = asyncio.Event()
    calls = []
    async with _backend(calls, sse, gate=gate) as client:
        session = ChatWidgetSession(settings_stub, client=client)
        assert session.is_typing is False
        task = session.send("Hi")
        assert session.is_typing is True
        await wait_until(lambda: len(calls) == 1)
        gate.set()
        await task
        assert session.is_typing is False
        assert session.loading is False


@pytest.mark.asyncio
async def test_relevance_feedback_targets_completed_assistant_message(settings_stub, sse):
    calls = []
    async with _backend(calls, sse) as client:
        session = ChatWidgetSession(settings_stub, client=client)
        await session.send("Hi")

        with pytest.raises(ValidationError) as exc:
            await session.mark_relevance(0, True)
        assert exc.value.code == "INVALID_MESSAGE_INDEX"
        with pytest.raises(ValidationError):
            await session.mark_relevance(9, True)

        assert await session.mark_relevance(1, True) is True
        assert await session.rate("satisfied") is True

    paths = [p for p, _ in calls]
    assert paths == ["/chat", "/feedback/response-relevance", "/feedback"]
    assert calls[1][1]["content"] == "Answer"


@pytest.mark.asyncio
async def test_close_abandons_exchange_and_blocks_new_sends(settings_stub, sse, wait_until):
    gate = asyncio.Event()
    calls = []
    async with _backend(calls, sse, gate=gate) as client:
        session = ChatWidgetSession(settings_stub, client=client)
        task = session.send("Hi")
        await wait_until(lambda: len(calls) == 1)
        await session.close()
        gate.set()
        await asyncio.gather(task, return_exceptions=True)

        assert session.closed
        assert session.loading is False
        assert session.messages[-1].complete is True
        assert session.messages[-1].content == ""
        with pytest.raises(ValidationError) as exc:
            session.send("again")
        assert exc.value.code == "SESSION_CLOSED"
        await session.close()


@pytest.mark.asyncio
async def test_session_context_manager(settings_stub, sse):
    calls = []
    async with _backend(calls, sse) as client:
        async with create_session(settings_stub, client=client) as session:
            await session.send("Hi")
            assert session.describe()["message_count"] == 2
        assert session.closed
