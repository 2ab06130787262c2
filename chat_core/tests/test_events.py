from chat_core.domain.models import ContentDelta, RetrievalEvent, RetrieveResult, ThinkingDelta
from chat_core.streaming.events import EventParser, PayloadClassifier


def test_event_parser_extracts_payloads():
    parser = EventParser()
    lines = [
        'data: {"content": "a"}',
        "data:no-space",
        ": comment",
        "event: message",
        "",
        "data:    ",
        "data: [DONE]",
    ]
    assert parser.parse_lines(lines) == ['{"content": "a"}', "no-space"]
    assert parser.done_seen is True


def test_event_parser_ignores_prefix_not_at_line_start():
    parser = EventParser()
    assert parser.parse_line(' data: {"content": "a"}') is None


def test_classifier_content_and_thinking():
    clf = PayloadClassifier()
    assert clf.classify('{"content": "Hel"}') == ContentDelta("Hel")
    assert clf.classify('{"thinking": "hmm"}') == ThinkingDelta("hmm")


def test_classifier_priority_retrieval_over_content_over_thinking():
    clf = PayloadClassifier()
    delta = clf.classify('{"retrieveMode": true, "kbName": "Docs", "content": "x", "thinking": "y"}')
    assert isinstance(delta, RetrievalEvent)
    assert delta.kb_name == "Docs"
    assert delta.retrieves == ()
    assert clf.classify('{"content": "x", "thinking": "y"}') == ContentDelta("x")
    assert clf.classify('{"content": "", "thinking": "y"}') == ThinkingDelta("y")


def test_classifier_retrieval_payload():
    clf = PayloadClassifier()
    delta = clf.classify(
        '{"retrieveMode":true,"kbName":"Docs","retrieves":'
        '[{"docId":"d1","title":"T","kbId":1,"chunkIndexs":["0","1"]}]}'
    )
    assert delta == RetrievalEvent(
        kb_name="Docs",
        retrieves=(RetrieveResult(doc_id="d1", title="T", kb_id=1, chunk_indexes=("0", "1")),),
    )


def test_classifier_retrieve_mode_must_be_true():
    clf = PayloadClassifier()
    assert clf.classify('{"retrieveMode": "yes", "content": "a"}') == ContentDelta("a")
    assert clf.classify('{"retrieveMode": false}') is None


def test_classifier_raw_fallback_for_non_json():
    clf = PayloadClassifier()
    assert clf.classify("not-json") == ContentDelta("not-json")
    assert clf.classify("{broken") == ContentDelta("{broken")


def test_classifier_json_without_known_fields_produces_nothing():
    clf = PayloadClassifier()
    assert clf.classify("{}") is None
    assert clf.classify("42") is None
    assert clf.classify('{"content": null}') is None
    assert clf.classify_all(["{}", '{"content": "a"}', "raw"]) == [ContentDelta("a"), ContentDelta("raw")]
