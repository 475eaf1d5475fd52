"""Tests for the Chroma lesson memory using a mocked HTTP transport."""

import json

import httpx
import pytest

from lessonbot.memory import COLLECTIONS_PATH, LessonMemory, MemoryStoreError


class FakeChroma:
    """Minimal in-memory stand-in for the Chroma v2 REST API."""

    def __init__(self, create_status=200, create_body='{}'):
        self.create_status = create_status
        self.create_body = create_body
        self.requests = []
        self.records = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, path, body))

        if request.method == 'POST' and path == COLLECTIONS_PATH:
            return httpx.Response(self.create_status, text=self.create_body)
        if request.method == 'GET' and path == f"{COLLECTIONS_PATH}/lessons":
            return httpx.Response(200, json={'id': 'col-123', 'name': 'lessons'})
        if path.endswith('/add'):
            self.records.append(body)
            return httpx.Response(201, json={})
        if path.endswith('/query'):
            metas = [r['metadatas'][0] for r in self.records][:body['n_results']]
            dists = [0.1 * (i + 1) for i in range(len(metas))]
            return httpx.Response(200, json={'ids': [[]], 'metadatas': [metas], 'distances': [dists]})
        if path.endswith('/get'):
            return httpx.Response(200, json={'ids': [], 'metadatas': [r['metadatas'][0] for r in self.records]})
        return httpx.Response(404, text='not found')


def make_memory(server, threshold=0.0):
    memory = LessonMemory('http://chroma:8000/', 'lessons', similarity_threshold=threshold,
                          transport=httpx.MockTransport(server))
    return memory


def test_ensure_collection_resolves_id():
    server = FakeChroma()
    memory = make_memory(server)
    assert memory.ensure_collection() == 'col-123'
    assert server.requests[0] == ('POST', COLLECTIONS_PATH, {'name': 'lessons'})
    assert server.requests[1][:2] == ('GET', f"{COLLECTIONS_PATH}/lessons")


@pytest.mark.parametrize('status,body', [
    (201, '{}'),
    (409, 'conflict'),
    (500, '{"error": "Collection lessons already exists"}'),
])
def test_ensure_collection_accepts_existing(status, body):
    memory = make_memory(FakeChroma(create_status=status, create_body=body))
    assert memory.ensure_collection() == 'col-123'


def test_ensure_collection_failure():
    memory = make_memory(FakeChroma(create_status=500, create_body='boom'))
    with pytest.raises(MemoryStoreError, match="boom"):
        memory.ensure_collection()


def test_operations_require_collection():
    memory = make_memory(FakeChroma())
    with pytest.raises(MemoryStoreError):
        memory.get_all_examples()


def test_add_query_and_get():
    server = FakeChroma()
    memory = make_memory(server)
    memory.ensure_collection()

    memory.add('id-1', [0.1, 0.2], 'list files', '{"tool_call": {}}')
    method, path, body = server.requests[-1]
    assert path == f"{COLLECTIONS_PATH}/col-123/add"
    assert body == {
        'ids': ['id-1'],
        'embeddings': [[0.1, 0.2]],
        'documents': ['list files'],
        'metadatas': [{'user_request': 'list files', 'tool_call_json': '{"tool_call": {}}'}],
    }

    examples, distances = memory.query_examples([0.1, 0.2], 2)
    assert examples == [{'user_request': 'list files', 'tool_call_json': '{"tool_call": {}}'}]
    assert distances == [pytest.approx(0.1)]
    assert server.requests[-1][2]['include'] == ['metadatas', 'distances']

    assert memory.get_all_examples() == examples
    memory.close()


def test_query_empty_result():
    memory = make_memory(FakeChroma())
    memory.ensure_collection()
    assert memory.query_examples([0.5], 2) == ([], [])


def test_query_threshold_filters_far_hits():
    server = FakeChroma()
    memory = make_memory(server, threshold=0.15)
    memory.ensure_collection()
    memory.add('a', [1.0], 'first', '{}')
    memory.add('b', [1.0], 'second', '{}')
    examples, distances = memory.query_examples([1.0], 2)
    assert [e['user_request'] for e in examples] == ['first']
    assert len(distances) == 1


def test_error_status_raises():
    def handler(request):
        if request.method == 'GET':
            return httpx.Response(200, json={'id': 'col-1'})
        if request.url.path == COLLECTIONS_PATH:
            return httpx.Response(200, json={})
        return httpx.Response(500, text='server exploded')

    memory = make_memory(handler)
    memory.ensure_collection()
    with pytest.raises(MemoryStoreError, match="server exploded"):
        memory.add('x', [0.0], 'req', '{}')
    with pytest.raises(MemoryStoreError):
        memory.query_examples([0.0], 1)


def test_undecodable_body_raises():
    def handler(request):
        if request.method == 'GET':
            return httpx.Response(200, json={'id': 'col-1'})
        if request.url.path == COLLECTIONS_PATH:
            return httpx.Response(200, json={})
        return httpx.Response(200, text='<html>')

    memory = make_memory(handler)
    memory.ensure_collection()
    with pytest.raises(MemoryStoreError, match="decode"):
        memory.get_all_examples()


def null_body_handler(request):
    if request.method == 'GET':
        return httpx.Response(200, json={'id': 'col-1'})
    if request.url.path == COLLECTIONS_PATH:
        return httpx.Response(200, json={})
    return httpx.Response(200, text='null')


def test_null_body_means_no_lessons():
    memory = make_memory(null_body_handler)
    memory.ensure_collection()
    assert memory.get_all_examples() == []
    assert memory.query_examples([0.0], 3) == ([], [])


def test_non_object_body_raises():
    def handler(request):
        if request.method == 'GET':
            return httpx.Response(200, json={'id': 'col-1'})
        if request.url.path == COLLECTIONS_PATH:
            return httpx.Response(200, json={})
        return httpx.Response(200, json=[1, 2])

    memory = make_memory(handler)
    memory.ensure_collection()
    with pytest.raises(MemoryStoreError, match="expected a JSON object"):
        memory.get_all_examples()
    with pytest.raises(MemoryStoreError, match="expected a JSON object"):
        memory.query_examples([0.0], 1)


@pytest.mark.parametrize('info', [[], {'name': 'lessons'}])
def test_collection_info_without_id_raises(info):
    def handler(request):
        if request.method == 'GET':
            return httpx.Response(200, json=info)
        return httpx.Response(200, json={})

    with pytest.raises(MemoryStoreError):
        make_memory(handler).ensure_collection()


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    memory = make_memory(handler)
    with pytest.raises(MemoryStoreError, match="refused"):
        memory.ensure_collection()
