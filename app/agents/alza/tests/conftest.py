"""Shared fixtures: an in-memory transport that answers by endpoint."""

import json

import pytest


class FakeTransport:
    """
    Stands in for Transport.

    ``routes`` maps an endpoint (or a ``(method, endpoint)`` pair) to a
    response: a dict/list is JSON-encoded, str/bytes are returned as-is and
    an exception instance is raised. A list wrapped in ``Replies`` is consumed
    one reply per call.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.auth_token = ''
        self.closed = False

    def _reply(self, method, endpoint, body=None, params=None):
        self.calls.append((method, endpoint, body, params))
        if (method, endpoint) in self.routes:
            reply = self.routes[(method, endpoint)]
        elif endpoint in self.routes:
            reply = self.routes[endpoint]
        else:
            raise AssertionError(f"unexpected call: {method} {endpoint}")

        if isinstance(reply, Replies):
            reply = reply.next()
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, bytes):
            return reply
        if isinstance(reply, str):
            return reply.encode('utf-8')
        return json.dumps(reply).encode('utf-8')

    async def get(self, endpoint, params=None):
        return self._reply('GET', endpoint, params=params)

    async def post(self, endpoint, body):
        return self._reply('POST', endpoint, body=body)

    async def delete(self, endpoint):
        return self._reply('DELETE', endpoint)

    async def close(self):
        self.closed = True

    def called(self, method, endpoint):
        return [call for call in self.calls if call[0] == method and call[1] == endpoint]

    def posted_json(self, endpoint):
        return [json.loads(call[2]) for call in self.called('POST', endpoint)]


class Replies:
    def __init__(self, *replies):
        self.replies = list(replies)

    def next(self):
        return self.replies.pop(0)


QUICKBUY_ENV_KEYS = (
    'ALZA_QUICKBUY_ALZABOX_ID',
    'ALZA_QUICKBUY_DELIVERY_ID',
    'ALZA_QUICKBUY_PAYMENT_ID',
    'ALZA_QUICKBUY_CARD_ID',
    'ALZA_QUICKBUY_VISITOR_ID',
    'ALZA_QUICKBUY_ALZAPLUS',
    'ALZA_QUICKBUY_COUPON',
)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Empty config directory and no quickbuy defaults in the environment."""
    monkeypatch.setenv('ALZA_CONFIG_DIR', str(tmp_path))
    for key in QUICKBUY_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return tmp_path


@pytest.fixture
def fake_transport():
    return FakeTransport


@pytest.fixture
def replies():
    return Replies
