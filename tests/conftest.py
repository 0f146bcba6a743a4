"""
Shared fixtures: mocked transports and fast detector configs.

No test here touches the network. HTTP is answered by httpx.MockTransport
handlers, or by a local aiohttp TestServer in the transport tests.
"""

import httpx
import pytest

from cloaksentinel import DetectorConfig, HttpxTransport


@pytest.fixture
def mock_transport():
    """Build an HttpxTransport whose requests are answered by `handler`."""
    def factory(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpxTransport(client=client)
    return factory


@pytest.fixture
def fast_config():
    """DetectorConfig with short timeouts and no subdomain labels unless overridden."""
    def factory(**overrides):
        values = dict(
            subdomain_labels=[],
            probe_timeout=1.0,
            subdomain_timeout=1.0,
            deadline=5.0,
        )
        values.update(overrides)
        return DetectorConfig(**values)
    return factory
