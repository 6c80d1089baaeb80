"""
Tests for membership directory clients.
"""
import httpx
import pytest
from tripledger.api.dependencies import get_membership_directory
from tripledger.core.errors import DirectoryUnavailableError, NotFoundError
from tripledger.services.membership_service import HttpMembershipDirectory, RosterMember, StaticMembershipDirectory


def directory_for(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpMembershipDirectory(base_url="http://trips.test/api", client=client)


def test_http_directory_parses_members():
    """Test roster entries in either key style are parsed."""
    def handler(request):
        assert request.url.path == "/api/trips/trip-1/members"
        return httpx.Response(200, json={"data": [
            {"user_id": "alice", "name": "Alice", "username": "al", "is_creator": True},
            {"userId": 7, "username": "bob"},
            {"name": "no id"},
        ]})

    members = directory_for(handler).get_current_members("trip-1")
    assert members == [
        RosterMember(user_id="alice", name="Alice", username="al", is_creator=True),
        RosterMember(user_id="7", name=None, username="bob", is_creator=False),
    ]


def test_http_directory_maps_failures():
    """Test 404 and server errors map to engine errors."""
    with pytest.raises(NotFoundError):
        directory_for(lambda request: httpx.Response(404)).get_current_members("nope")
    with pytest.raises(DirectoryUnavailableError):
        directory_for(lambda request: httpx.Response(500, text="boom")).get_current_members("trip-1")

    def unreachable(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(DirectoryUnavailableError):
        directory_for(unreachable).get_current_members("trip-1")


def test_static_directory():
    """Test the in-memory roster."""
    directory = StaticMembershipDirectory({"trip-1": [RosterMember("alice"), RosterMember("bob")]})
    directory.remove_member("trip-1", "bob")
    assert [m.user_id for m in directory.get_current_members("trip-1")] == ["alice"]
    with pytest.raises(NotFoundError):
        directory.get_current_members("trip-2")


def test_request_scoped_directory_closes_its_client():
    """Test the API dependency closes the HTTP client when the request ends."""
    dependency = get_membership_directory()
    directory = next(dependency)
    client = directory._client
    assert not client.is_closed
    dependency.close()
    assert client.is_closed
