from chat_widget.domain.models import ProtocolRecord, RecordKind
from chat_widget.streaming.decoder import decode_chunk, decode_line, flush_buffer


def test_decode_text_with_prefix():
    rec = decode_line('data: {"type": "text", "content": "Hel"}')
    assert rec == ProtocolRecord(kind=RecordKind.TEXT, content="Hel")


def test_prefix_is_per_line():
    records, leftover = decode_chunk(
        '{"type":"text","content":"a"}\ndata: {"type":"text","content":"b"}\n'
    )
    assert [r.content for r in records] == ["a", "b"]
    assert leftover == ""


def test_start_and_end_carry_no_content():
    assert decode_line('data: {"type":"start","content":"ignored"}') == ProtocolRecord(kind=RecordKind.START)
    assert decode_line('data: {"type":"end"}') == ProtocolRecord(kind=RecordKind.END)


def test_tool_calls_content_verbatim_and_absent_content():
    rec = decode_line('data: {"type":"tool_calls","content":"  {\\"name\\": \\"x\\"} "}')
    assert rec.kind == RecordKind.TOOL_CALLS
    assert rec.content == '  {"name": "x"} '
    assert decode_line('data: {"type":"text"}') == ProtocolRecord(kind=RecordKind.TEXT, content=None)
    assert decode_line('data: {"type":"text","content":null}').content is None


def test_blank_lines_decode_to_nothing():
    assert decode_line("") is None
    assert decode_line("   \r") is None
    assert decode_line("data: ") is None
    records, leftover = decode_chunk("\n\n  \n")
    assert records == []
    assert leftover == ""


def test_malformed_lines_become_unknown():
    for line in [
        "not-json",
        "data: [DONE]",
        'data: {"type":"image","content":"x"}',
        'data: {"content":"no type"}',
        'data: {"type":"text","content":42}',
        'data: ["text"]',
        'data: {"type":"text","content":"unterminated',
    ]:
        assert decode_line(line) == ProtocolRecord(kind=RecordKind.UNKNOWN), line


def test_malformed_line_is_logged_at_debug(caplog):
    with caplog.at_level("DEBUG", logger="chat_widget"):
        assert decode_line("data: {oops") == ProtocolRecord(kind=RecordKind.UNKNOWN)
    assert any(r.levelname == "DEBUG" and r.getMessage() == "Dropped malformed record" for r in caplog.records)


def test_crlf_framing():
    records, leftover = decode_chunk('data: {"type":"text","content":"x"}\r\n')
    assert records == [ProtocolRecord(kind=RecordKind.TEXT, content="x")]
    assert leftover == ""


def test_partial_line_is_carried_over():
    records, buffer = decode_chunk('data: {"type":"text","cont')
    assert records == []
    assert buffer == 'data: {"type":"text","cont'

    records, buffer = decode_chunk('ent":"X"}\n', buffer)
    assert records == [ProtocolRecord(kind=RecordKind.TEXT, content="X")]
    assert buffer == ""


def test_fragment_with_several_records_and_a_tail():
    records, buffer = decode_chunk(
        'data: {"type":"start"}\ndata: {"type":"text","content":"A"}\ndata: {"type":"te'
    )
    assert [r.kind for r in records] == [RecordKind.START, RecordKind.TEXT]
    assert buffer == 'data: {"type":"te'


def test_flush_buffer_decodes_unterminated_tail():
    assert flush_buffer('data: {"type":"text","content":"tail"}') == [
        ProtocolRecord(kind=RecordKind.TEXT, content="tail")
    ]
    assert flush_buffer("") == []
    assert flush_buffer("garbage") == [ProtocolRecord(kind=RecordKind.UNKNOWN)]
