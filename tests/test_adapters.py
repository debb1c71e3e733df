"""Tests for adapter enumeration and the psutil counter source."""
from unittest.mock import patch

import pytest

from config.exceptions import AdapterError
from monitor.adapters import (
    PsutilCounterSource,
    classify_adapter,
    detect_virtual_kind,
    detect_vpn_provider,
    is_loopback_name,
    make_display_name,
)


class TestNamingHeuristics:
    """Tests for adapter classification by name."""

    @pytest.mark.parametrize("name,provider", [
        ("wg0", "WireGuard"),
        ("utun3", "VPN"),
        ("tailscale0", "Tailscale"),
        ("tun0", "OpenVPN"),
        ("eth0", None),
        ("en0", None),
    ])
    def test_vpn_provider(self, name, provider):
        assert detect_vpn_provider(name) == provider

    @pytest.mark.parametrize("name,kind", [
        ("docker0", "Docker"),
        ("veth12ab", "Container"),
        ("vEthernet (WSL)", "Hyper-V"),
        ("vboxnet0", "VirtualBox"),
        ("eth0", None),
    ])
    def test_virtual_kind(self, name, kind):
        assert detect_virtual_kind(name) == kind

    def test_loopback(self):
        assert is_loopback_name("lo")
        assert is_loopback_name("lo0")
        assert is_loopback_name("Loopback Pseudo-Interface 1")
        assert not is_loopback_name("eth0")

    def test_display_name(self):
        assert make_display_name("wg0") == "wg0 (WireGuard)"
        assert make_display_name("eth0") == "eth0"

    def test_classify(self):
        """A VPN tunnel is never also flagged as virtual."""
        info = classify_adapter("wg0", True)
        assert info.is_vpn
        assert not info.is_virtual
        assert not info.is_loopback
        assert info.display_name == "wg0 (WireGuard)"

        assert classify_adapter("docker0", False).is_virtual


class TestPsutilCounterSource:
    """Tests for PsutilCounterSource with psutil mocked."""

    @pytest.fixture
    def source(self):
        return PsutilCounterSource()

    def test_list_adapters(self, source, mock_psutil):
        """Test that every interface is listed with its link state."""
        adapters = {a.id: a for a in source.list_adapters()}

        assert set(adapters) == {"lo", "en0", "wg0", "docker0"}
        assert adapters["en0"].is_active
        assert not adapters["docker0"].is_active
        assert adapters["lo"].is_loopback
        assert adapters["wg0"].is_vpn

    def test_list_adapters_without_stats(self, source, mock_psutil):
        """Test that an interface without link stats is reported inactive."""
        with patch("psutil.net_if_stats", return_value={}):
            adapters = source.list_adapters()

        assert adapters
        assert not any(a.is_active for a in adapters)

    def test_list_adapters_error(self, source):
        """Test that an enumeration failure yields no adapters."""
        with patch("psutil.net_io_counters", side_effect=OSError("denied")):
            assert source.list_adapters() == []

    def test_read_counters(self, source, mock_psutil):
        """Test reading one adapter's counters."""
        counters = source.read_counters("en0")

        assert counters.bytes_received == 5000000
        assert counters.bytes_sent == 1000000
        mock_psutil.assert_called_with(pernic=True)

    def test_read_missing_adapter(self, source, mock_psutil):
        """Test that a vanished adapter raises AdapterError."""
        with pytest.raises(AdapterError):
            source.read_counters("eth9")

    def test_read_error(self, source):
        """Test that a platform failure raises AdapterError."""
        with patch("psutil.net_io_counters", side_effect=OSError("denied")):
            with pytest.raises(AdapterError):
                source.read_counters("en0")
