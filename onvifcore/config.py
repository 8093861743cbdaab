import json
import logging
import os

"""
Config file handling for get_client.

The config file is a JSON (or, if pyyaml is installed, YAML) dict of
sections.  Each section is a dict of ``onvif_*`` keys; a section may
name another section in ``inherits`` to pick up its keys::

    {
        "default": {"onvif_username": "admin", "onvif_password": "secret"},
        "doorcam": {"inherits": "default", "onvif_url": "192.168.1.100"}
    }
"""

log = logging.getLogger(__name__)


def config_section(config, section="default"):
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def connection_params(section):
    """
    Picks the ``onvif_*`` keys out of a config section and maps them to
    ONVIFClient parameter names.  Keys with empty values are dropped.
    """
    conn_params = {}
    for k in section:
        if k.startswith("onvif_") and section[k]:
            key = k[6:]
            if key == "pass":
                key = "password"
            if key == "user":
                key = "username"
            conn_params[key] = section[k]
    return conn_params


def read_config(fn):
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config/"
        for config_file in (
            f"{cfgdir}/onvif/device.conf",
            f"{cfgdir}/onvif/device.yaml",
            f"{cfgdir}/onvif/device.json",
            "/etc/onvif/device.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## yaml is optional, the config file may be plain json
            try:
                import yaml

                try:
                    with open(fn, "rb") as config_file:
                        return yaml.load(config_file, yaml.SafeLoader)
                except yaml.YAMLError:
                    log.error(
                        f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                    )
            except ImportError:
                log.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )
    except FileNotFoundError:
        log.info("no config file found at %s" % fn)
    except ValueError:
        log.error("error in config file.  It will be ignored", exc_info=True)
    return {}
