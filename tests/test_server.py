"""Tests for server wiring: resource registration and observability startup."""

from unittest.mock import Mock, patch

import pytest

from library_insights_mcp.config import ServerConfig
from library_insights_mcp.observability import initialize_observability
from library_insights_mcp.resources import all_resources


@pytest.fixture
def server():
    """Import the server module inside the isolated working directory."""
    from library_insights_mcp import server

    return server


class TestServerSetup:
    """Verify the FastMCP server is assembled from the resource registry."""

    def test_server_identity(self, server):
        assert server.mcp.name == "library-insights"

    def test_register_resources_uses_template_or_uri(self, server):
        """Templated resources register by uri_template, static ones by uri."""
        fake_server = Mock()
        server.register_resources(fake_server, all_resources)

        calls = fake_server.resource.call_args_list
        assert len(calls) == len(all_resources)

        templated = [c.kwargs["uri_template"] for c in calls if "uri_template" in c.kwargs]
        static = [c.kwargs["uri"] for c in calls if "uri" in c.kwargs]
        assert "library://reports/fines/{limit}" in templated
        assert static == ["library://analytics/circulation"]
        assert all(c.kwargs["mime_type"] == "application/json" for c in calls)

        # each decorator is applied to the matching handler
        decorated = [c.args[0] for c in fake_server.resource.return_value.call_args_list]
        assert decorated == [r["handler"] for r in all_resources]


class TestObservabilityStartup:
    def test_disabled_by_default(self):
        with patch("library_insights_mcp.observability.logfire.configure") as configure:
            assert initialize_observability(ServerConfig()) is False
            configure.assert_not_called()

    def test_enabled_configures_logfire(self):
        config = ServerConfig(
            observability_enabled=True,
            observability_environment="staging",
            logfire_token="test-token",
        )
        with patch("library_insights_mcp.observability.logfire.configure") as configure:
            assert initialize_observability(config) is True

        kwargs = configure.call_args.kwargs
        assert kwargs["service_name"] == "library-insights"
        assert kwargs["environment"] == "staging"
        assert kwargs["token"] == "test-token"
        assert kwargs["send_to_logfire"] == "if-token-present"
