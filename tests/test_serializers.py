import json

from swcache import JSONSerializer, PickleSerializer, StoredResponse


def make_response() -> StoredResponse:
    return StoredResponse(
        status_code=200,
        headers=[("Content-Type", "image/png"), ("Cache-Control", "max-age=3600")],
        content=b"\x89PNG\r\n\x1a\n",
        url="https://example.org/images/logo.png",
        stored_at=1440504000.0,
    )


def test_json_serializer_format():
    serialized = JSONSerializer().dumps(make_response())

    assert json.loads(serialized) == {
        "status_code": 200,
        "headers": [["Content-Type", "image/png"], ["Cache-Control", "max-age=3600"]],
        "content": "iVBORw0KGgo=",
        "url": "https://example.org/images/logo.png",
        "stored_at": 1440504000.0,
    }
    assert not JSONSerializer().is_binary


def test_json_serializer_loads():
    serializer = JSONSerializer()

    assert serializer.loads(serializer.dumps(make_response())) == make_response()


def test_pickle_serializer_loads():
    serializer = PickleSerializer()
    serialized = serializer.dumps(make_response())

    assert isinstance(serialized, bytes)
    assert serializer.loads(serialized) == make_response()
