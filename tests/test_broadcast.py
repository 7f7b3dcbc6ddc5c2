from streaming.broadcast import Broadcaster, StreamMessage, topic_for


def test_topic_for_document():
    assert topic_for("abc") == "/topic/lectures/abc"


def test_subscribers_receive_in_publish_order():
    b = Broadcaster()
    topic = topic_for("doc-1")
    with b.subscribe(topic) as sub:
        for i, chunk in enumerate(["a", "b", "c"]):
            b.publish(topic, StreamMessage.fragment("doc-1", "s1", i, chunk))
        b.publish(topic, StreamMessage.completed("doc-1", "s1", "abc"))
        received = list(sub.until_terminal(timeout=1))
    assert [m.chunk for m in received[:-1]] == ["a", "b", "c"]
    assert received[-1].type == "SUMMARY_COMPLETED"
    assert received[-1].full_summary == "abc"


def test_no_history_for_late_subscribers():
    b = Broadcaster()
    topic = topic_for("doc-1")
    assert b.publish(topic, StreamMessage.fragment("doc-1", "s1", 0, "early")) == 0
    sub = b.subscribe(topic)
    b.publish(topic, StreamMessage.fragment("doc-1", "s1", 1, "late"))
    assert sub.get(timeout=1).chunk == "late"
    assert sub.get(timeout=0.05) is None


def test_topics_are_isolated_and_unsubscribe_stops_delivery():
    b = Broadcaster()
    a_sub = b.subscribe(topic_for("a"))
    b_sub = b.subscribe(topic_for("b"))
    assert b.publish(topic_for("a"), StreamMessage.failed("a", "s", "boom")) == 1
    assert b_sub.get(timeout=0.05) is None
    assert a_sub.get(timeout=1).error == "boom"

    a_sub.close()
    assert a_sub.closed
    assert b.publish(topic_for("a"), StreamMessage.failed("a", "s", "again")) == 0


def test_message_serializes_with_type_tag():
    msg = StreamMessage.fragment("doc-1", "s1", 0, "Hello")
    payload = msg.model_dump(exclude_none=True)
    assert payload == {
        "type": "SUMMARY_CHUNK",
        "document_id": "doc-1",
        "session_id": "s1",
        "sequence": 0,
        "chunk": "Hello",
    }
    assert not msg.terminal
