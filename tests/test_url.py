import pytest

from onvifcore.lib.error import InvalidEndpoint
from onvifcore.lib.url import fix_localhost_url
from onvifcore.lib.url import normalize_endpoint


class TestNormalizeEndpoint:
    @pytest.mark.parametrize(
        "endpoint,expected",
        [
            ("192.168.1.100", "http://192.168.1.100/onvif/device_service"),
            ("192.168.1.100:8080", "http://192.168.1.100:8080/onvif/device_service"),
            ("camera.local", "http://camera.local/onvif/device_service"),
            (
                "http://192.168.1.100/onvif/device_service",
                "http://192.168.1.100/onvif/device_service",
            ),
            ("http://192.168.1.100", "http://192.168.1.100/onvif/device_service"),
            ("https://192.168.1.100/", "https://192.168.1.100/onvif/device_service"),
            (
                "http://192.168.1.100:8000/custom/path",
                "http://192.168.1.100:8000/custom/path",
            ),
        ],
    )
    def test_valid(self, endpoint, expected):
        assert normalize_endpoint(endpoint) == expected

    @pytest.mark.parametrize(
        "endpoint",
        ["", "http://", "ftp://192.168.1.100", "192.168.1.100/onvif", "bad host", "host:notaport"],
    )
    def test_invalid(self, endpoint):
        with pytest.raises(InvalidEndpoint):
            normalize_endpoint(endpoint)


class TestFixLocalhostURL:
    DEVICE = "http://192.168.1.100:8000/onvif/device_service"

    def test_loopback_with_port(self):
        assert (
            fix_localhost_url("http://127.0.0.1:8080/onvif/events", self.DEVICE)
            == "http://192.168.1.100:8080/onvif/events"
        )

    def test_loopback_without_port(self):
        assert (
            fix_localhost_url("http://localhost/onvif/media", self.DEVICE)
            == "http://192.168.1.100:8000/onvif/media"
        )

    def test_any_address(self):
        assert (
            fix_localhost_url("http://0.0.0.0/onvif/ptz", "http://cam/onvif/device_service")
            == "http://cam/onvif/ptz"
        )

    def test_other_hosts_untouched(self):
        url = "http://10.0.0.5/onvif/events"
        assert fix_localhost_url(url, self.DEVICE) == url
        assert fix_localhost_url("", self.DEVICE) == ""
        assert fix_localhost_url(None, self.DEVICE) is None
