import json

import httpx
import pytest

from osiam_client import AccessToken, OsiamUserService


ENDPOINT = "http://localhost:8080/osiam"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it has seen."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> dict:
        return json.loads(self.last.content)


@pytest.fixture
def access_token():
    return AccessToken(token="valid-token")


@pytest.fixture
def user_resource():
    return {
        "schemas": ["urn:ietf:params:scim:schemas:core:2.0:User"],
        "id": "cef9452e-00a9-4cec-a086-d171374ffbef",
        "userName": "bjensen",
        "name": {"familyName": "Jensen", "givenName": "Barbara"},
        "displayName": "Babs Jensen",
        "active": True,
        "emails": [{"value": "bjensen@example.com", "type": "work", "primary": True}],
        "meta": {
            "created": "2013-08-08T19:46:20.638+02:00",
            "lastModified": "2013-08-08T19:46:20.638+02:00",
            "location": "http://localhost:8080/osiam/Users/cef9452e-00a9-4cec-a086-d171374ffbef",
            "resourceType": "User",
        },
    }


@pytest.fixture
def make_service():
    services = []

    def factory(handler, **kwargs):
        transport = RecordingTransport(handler)
        service = OsiamUserService(ENDPOINT, transport=transport, **kwargs)
        services.append(service)
        return service, transport

    yield factory

    for service in services:
        service.close()
