import json

from onvifcore import config

CONFIG = {
    "default": {"onvif_username": "admin", "onvif_pass": "secret", "onvif_timeout": 10},
    "doorcam": {"inherits": "default", "onvif_url": "192.168.1.100"},
    "garage": {"inherits": "doorcam", "onvif_url": "192.168.1.101", "onvif_user": "garage"},
}


class TestConfigSection:
    def test_plain(self):
        assert config.config_section(CONFIG, "default") == CONFIG["default"]

    def test_inherits(self):
        section = config.config_section(CONFIG, "garage")
        assert section["onvif_url"] == "192.168.1.101"
        assert section["onvif_user"] == "garage"
        assert section["onvif_pass"] == "secret"

    def test_missing(self):
        assert config.config_section(CONFIG, "nothere") == {}


def test_connection_params():
    params = config.connection_params(config.config_section(CONFIG, "doorcam"))
    assert params == {
        "username": "admin",
        "password": "secret",
        "timeout": 10,
        "url": "192.168.1.100",
    }


class TestReadConfig:
    def test_json(self, tmp_path):
        fn = tmp_path / "device.conf"
        fn.write_text(json.dumps(CONFIG))
        assert config.read_config(str(fn)) == CONFIG

    def test_yaml(self, tmp_path):
        fn = tmp_path / "device.yaml"
        fn.write_text(
            "default:\n"
            "  onvif_url: 192.168.1.100\n"
            "  onvif_username: admin\n"
        )
        assert config.read_config(str(fn)) == {
            "default": {"onvif_url": "192.168.1.100", "onvif_username": "admin"}
        }

    def test_missing_file(self, tmp_path):
        assert config.read_config(str(tmp_path / "nothere.conf")) == {}

    def test_broken_file(self, tmp_path):
        fn = tmp_path / "device.conf"
        fn.write_text("{ this is: [ not valid")
        assert not config.read_config(str(fn))

    def test_default_locations(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / ".config" / "onvif").mkdir(parents=True)
        (tmp_path / ".config" / "onvif" / "device.json").write_text(json.dumps(CONFIG))
        assert config.read_config(None) == CONFIG
