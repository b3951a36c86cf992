"""
Tests for the HTTP server module
"""

import socket
import pytest
import yaml
from unittest.mock import Mock, patch

from ipmi_exporter.config import ModuleConfig, SafeConfig
from ipmi_exporter.exporter.server import create_app, create_server, parse_listen_address

MOCK_BMC_OUTPUT = """Firmware Revision         : 3.88
IPMI Version              : 2.0
Manufacturer Name         : Supermicro
"""

@pytest.fixture
def config():
    return SafeConfig({
        "default": ModuleConfig(collectors=["bmc"]),
        "example": ModuleConfig(user="example_user", collectors=["bmc"]),
    })

@pytest.fixture
def client(config):
    return create_app(config).test_client()

@pytest.fixture
def mock_run():
    with patch("subprocess.run") as run:
        run.return_value = Mock(stdout=MOCK_BMC_OUTPUT, returncode=0)
        yield run

class TestRoutes:
    """Test endpoint routing"""

    def test_landing_page(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert b"/metrics" in response.data

    def test_not_found(self, client):
        assert client.get("/nope").status_code == 404

    def test_local_metrics(self, client, mock_run):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.content_type.startswith("text/plain")
        assert b'ipmi_bmc_info{name="Manufacturer",value="Supermicro"} 1.0' in response.data
        assert b'ipmi_up{collector="bmc"} 1.0' in response.data
        # Local scrapes never pass -H
        assert "-H" not in mock_run.call_args_list[0][0][0]

    def test_openmetrics_negotiation(self, client, mock_run):
        response = client.get("/metrics", headers={"Accept": "application/openmetrics-text"})
        assert response.content_type.startswith("application/openmetrics-text")
        assert response.data.endswith(b"# EOF\n")

    def test_remote_metrics(self, client, mock_run):
        response = client.get("/ipmi", query_string={"target": "10.0.0.5", "module": "example"})
        assert response.status_code == 200
        # BMC output carries no chassis power line
        assert b'ipmi_power_state{name="PowerState"} 0.0' in response.data
        cmd = mock_run.call_args_list[0][0][0]
        assert cmd[cmd.index("-H") + 1] == "10.0.0.5"
        assert cmd[cmd.index("-U") + 1] == "example_user"

    def test_remote_without_target(self, client, mock_run):
        response = client.get("/ipmi", query_string={"module": "example"})
        assert response.status_code == 400
        assert b"target" in response.data
        mock_run.assert_not_called()

    def test_unknown_module_uses_default(self, client, mock_run):
        response = client.get("/ipmi", query_string={"target": "10.0.0.5", "module": "missing"})
        assert response.status_code == 200
        assert "-U" not in mock_run.call_args_list[0][0][0]

class TestReload:
    """Test configuration reloads"""

    def test_requires_post(self, client):
        assert client.get("/-/reload").status_code == 405

    def test_without_config_file(self, client):
        assert client.post("/-/reload").status_code == 500

    def test_reload(self, config, tmp_path):
        path = tmp_path / "ipmi_remote.yml"
        with open(path, "w") as f:
            yaml.dump({"modules": {"other": {"user": "other_user"}}}, f)
        client = create_app(config, config_path=str(path)).test_client()

        assert client.post("/-/reload").status_code == 200
        assert config.has_module("other")
        assert not config.has_module("example")

    def test_failed_reload(self, config, tmp_path):
        path = tmp_path / "ipmi_remote.yml"
        path.write_text("modules:\n  default:\n    bogus: 1\n")
        client = create_app(config, config_path=str(path)).test_client()

        response = client.post("/-/reload")
        assert response.status_code == 500
        assert b"bogus" in response.data
        assert config.has_module("example")

class TestListenAddress:
    """Test listen address parsing"""

    @pytest.mark.parametrize("address,expected", [
        (":9290", ("0.0.0.0", 9290)),
        ("127.0.0.1:9290", ("127.0.0.1", 9290)),
        ("[::1]:9290", ("::1", 9290)),
    ])
    def test_valid(self, address, expected):
        assert parse_listen_address(address) == expected

    @pytest.mark.parametrize("address", ["9290", "localhost:http"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_listen_address(address)

class TestCreateServer:
    """Test socket family selection"""

    def test_ipv4(self, config):
        server = create_server(create_app(config), "127.0.0.1:0")
        try:
            assert server.address_family == socket.AF_INET
        finally:
            server.server_close()

    @pytest.mark.skipif(not socket.has_ipv6, reason="IPv6 not available")
    def test_ipv6(self, config):
        server = create_server(create_app(config), "[::1]:0")
        try:
            assert server.address_family == socket.AF_INET6
        finally:
            server.server_close()
