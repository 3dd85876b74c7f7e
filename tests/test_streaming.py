import asyncio
import json

from llm_debugger.llm.streaming import DONE, StreamEvent, StreamFormat, emit, format_event, per_event_delay_ms


class BufferSink:
    def __init__(self, close_after=None):
        self.chunks = []
        self._close_after = close_after

    @property
    def closed(self):
        return self._close_after is not None and len(self.chunks) >= self._close_after

    async def write(self, chunk):
        self.chunks.append(chunk)


def test_format_named_sse():
    data = format_event(StreamEvent(event="message_start", data={"a": 1}), StreamFormat.SSE_NAMED)
    assert data == b'event: message_start\ndata: {"a":1}\n\n'


def test_format_data_only_sse_drops_event_name():
    data = format_event(StreamEvent(event="ignored", data={"a": 1}), StreamFormat.SSE_DATA)
    assert data == b'data: {"a":1}\n\n'


def test_format_done_literal():
    assert format_event(StreamEvent(data=DONE), StreamFormat.SSE_DATA) == b"data: [DONE]\n\n"


def test_format_ndjson():
    data = format_event(StreamEvent(data={"text": "héllo"}), StreamFormat.NDJSON)
    assert data.endswith(b"\n")
    assert json.loads(data) == {"text": "héllo"}


def test_per_event_delay():
    assert per_event_delay_ms(0, 5) == 0
    assert per_event_delay_ms(-10, 5) == 0
    assert per_event_delay_ms(100, 3) == 33
    assert per_event_delay_ms(100, 0) == 100


def test_emit_paces_every_event(fake_sleep):
    events = [StreamEvent(data={"i": i}) for i in range(4)]
    sink = BufferSink()

    written = asyncio.run(emit(events, 100, StreamFormat.SSE_DATA, sink, sleep=fake_sleep))

    assert written == 4
    assert len(sink.chunks) == 4
    assert fake_sleep.calls == [0.025] * 4


def test_emit_without_delay_does_not_sleep(fake_sleep):
    events = [StreamEvent(data={"i": i}) for i in range(3)]
    sink = BufferSink()

    asyncio.run(emit(events, 0, StreamFormat.NDJSON, sink, sleep=fake_sleep))

    assert fake_sleep.calls == []
    assert [json.loads(chunk) for chunk in sink.chunks] == [{"i": 0}, {"i": 1}, {"i": 2}]


def test_emit_stops_when_sink_closes(fake_sleep):
    events = [StreamEvent(data={"i": i}) for i in range(5)]
    sink = BufferSink(close_after=2)

    written = asyncio.run(emit(events, 0, StreamFormat.SSE_DATA, sink, sleep=fake_sleep))

    assert written == 2
    assert len(sink.chunks) == 2
