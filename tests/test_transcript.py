from chatclient.transcript import SYSTEM_USERNAME, SystemNotice, TranscriptStore
from chatshared.envelope import ChatMessage
from chatshared.utils import parse_timestamp


def _msg(user: str, text: str, ts: str) -> ChatMessage:
    return ChatMessage(username=user, text=text, created_at=ts)


def test_append_preserves_arrival_order_not_timestamp_order():
    store = TranscriptStore()
    later = _msg("bob", "second", "2024-01-01T00:00:09Z")
    earlier = _msg("alice", "first", "2024-01-01T00:00:01Z")
    store.append(later)
    store.append(earlier)
    store.append(later)

    assert store.entries() == (later, earlier, later)
    assert len(store) == 3


def test_replace_all_then_append():
    store = TranscriptStore()
    store.append(_msg("x", "stale", "2024-01-01T00:00:00Z"))
    history = [_msg("alice", "hi", "2024-01-01T00:00:00Z")]
    store.replace_all(history)
    store.append(_msg("bob", "yo", "2024-01-01T00:00:05Z"))

    assert [e.text for e in store] == ["hi", "yo"]


def test_entries_is_a_read_only_copy():
    store = TranscriptStore()
    store.append(_msg("a", "1", "t"))
    view = store.entries()
    store.append(_msg("a", "2", "t"))
    assert len(view) == 1
    assert isinstance(view, tuple)


def test_listeners_receive_changes():
    store = TranscriptStore()
    seen = []
    store.subscribe(lambda kind, entries: seen.append((kind, [e.text for e in entries])))

    store.replace_all([_msg("a", "h1", "t"), _msg("b", "h2", "t")])
    store.append(_msg("c", "live", "t"))

    assert seen == [("replace", ["h1", "h2"]), ("append", ["live"])]


def test_failing_listener_does_not_block_append():
    store = TranscriptStore()

    def broken(kind, entries):
        raise RuntimeError("render failed")

    store.subscribe(broken)
    store.append(_msg("a", "still stored", "t"))
    assert store[0].text == "still stored"


def test_system_notice_text_and_local_timestamp():
    notice = SystemNotice.left("alice")
    assert notice.text == "alice left the chat."
    assert notice.username == SYSTEM_USERNAME
    assert parse_timestamp(notice.created_at) is not None
    assert SystemNotice.joined("bob").text == "bob joined the chat."
