from chatlink.domain.models.common import is_read_method, make_request_key


def test_request_key_without_body():
    assert make_request_key("get", "/assistants") == "GET:/assistants"


def test_request_key_body_is_canonical():
    first = make_request_key("POST", "/chat/conversations", {"title": "Trip", "assistant_id": "a1"})
    second = make_request_key("POST", "/chat/conversations", {"assistant_id": "a1", "title": "Trip"})

    assert first == second
    assert first == 'POST:/chat/conversations:{"assistant_id":"a1","title":"Trip"}'


def test_only_get_is_a_read():
    assert is_read_method("get")
    assert not is_read_method("POST")
    assert not is_read_method("DELETE")
