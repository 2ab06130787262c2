from chat_core.streaming.tags import EmbeddedTagExtractor, extract_thinking, extract_tools, parse_tool_names


def test_extract_think_and_tool_tags():
    result = EmbeddedTagExtractor().extract("<think>step1</think>visible<tool>search</tool>")
    assert result.thinking == "step1"
    assert result.display_content == "visible"
    assert result.tool_names == ("search",)


def test_thinking_regions_concatenated_without_separator():
    thinking, rest = extract_thinking("<think>a\n</think>x<think> b</think>y")
    assert thinking == "a\n b"
    assert rest == "xy"


def test_tool_names_split_trimmed_and_deduplicated():
    names, rest = extract_tools("<tool>\n search \n\nfetch\n</tool>mid<tool>fetch\nsearch\nrun</tool>")
    assert names == ["search", "fetch", "run"]
    assert rest == "mid"


def test_unclosed_tags_are_left_as_literal_text():
    extractor = EmbeddedTagExtractor()
    result = extractor.extract("<think>partial thought")
    assert result.thinking == ""
    assert result.display_content == "<think>partial thought"

    result = extractor.extract("<think>done</think>answer <tool>sea")
    assert result.thinking == "done"
    assert result.tool_names == ()
    assert result.display_content == "answer <tool>sea"


def test_no_tags_returns_content_verbatim():
    result = EmbeddedTagExtractor().extract("  plain text \n")
    assert result.display_content == "  plain text \n"
    assert result.thinking == ""
    assert result.tool_names == ()


def test_stripping_is_idempotent():
    extractor = EmbeddedTagExtractor()
    samples = [
        "<think>x</think>\n\nHello <tool>a\nb</tool> world\n",
        "no tags at all ",
        "<think>open only",
        "<tool>a</tool>",
    ]
    for sample in samples:
        once = extractor.extract(sample).display_content
        twice = extractor.extract(once)
        assert twice.display_content == once
        assert twice.thinking == ""
        assert twice.tool_names == ()


def test_parse_tool_names():
    assert parse_tool_names("") == []
    assert parse_tool_names(" a \r\n\nb") == ["a", "b"]


def test_tool_names_split_on_newline_only():
    names, _ = extract_tools("<tool>a b\nc\x0bd</tool>")
    assert names == ["a b", "c\x0bd"]
