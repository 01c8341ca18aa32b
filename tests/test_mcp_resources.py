"""Tests for MCP resources.

Note: MCP resource decorators wrap functions into FunctionResource objects.
We test the underlying logic via the internal _get_* functions instead.
"""

from crm_map_server import mcp
from crm_map_server.contacts import _get_contact, _get_statistics, _known_states


class TestContactResourceLogic:
    """Tests for contact resource logic."""

    def test_returns_dict_for_valid_id(self, contacts):
        result = _get_contact(contacts[0].id)
        assert isinstance(result, dict)
        assert result["id"] == contacts[0].id

    def test_returns_none_for_invalid_id(self):
        assert _get_contact("NONEXISTENT999") is None


class TestStatesResourceLogic:
    """Tests for states resource logic."""

    def test_lists_contact_states(self):
        assert "TX" in _known_states()


class TestStatsResourceLogic:
    """Tests for stats resource logic."""

    def test_returns_dict(self):
        assert isinstance(_get_statistics(), dict)

    def test_includes_cache_stats(self):
        assert set(_get_statistics()["geocode_cache"]) == {"hits", "misses", "ttl_seconds"}


class TestServerRegistration:
    """The server object is created at import."""

    def test_server_name(self):
        assert mcp.name == "CRM Map Server"
