# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import fnmatch
import logging
import socket
from configparser import ConfigParser
from pathlib import Path
from typing import Mapping
from typing import Optional

_logger = logging.getLogger(__name__)


def read_settings(*paths: Path) -> Mapping[str, str]:
    """Read settings from INI files; later files and host sections override.

    The "defaults" section applies everywhere.
    Other sections are masks of the local host name, like "[build-*]",
    so that a workstation may keep its own Terraform directory.
    """
    host = socket.gethostname()
    settings_parts = []
    for path_i, path in enumerate(paths):
        config_parser = ConfigParser()
        config_parser.read(path)
        for section_i, section in enumerate(config_parser.sections()):
            if section == 'defaults':
                specific, mask = False, '*'
            else:
                specific, mask = True, section
            if fnmatch.fnmatch(host, mask):
                _logger.debug("Settings %s: section %s: read", path, section)
                items = config_parser.items(section)
                settings_parts.append((specific, path_i, section_i, items))
            else:
                _logger.debug("Settings %s: section %s: skip", path, section)
    settings_parts.sort(key=lambda part: part[:3])
    settings = {}
    for _specific, _path_i, _section_i, items in settings_parts:
        settings.update(items)
    return settings


def default_settings() -> Mapping[str, str]:
    return read_settings(
        Path(__file__).with_name('config.ini'),
        Path('~/.config/platform_provisioning.ini').expanduser(),
        )


def setting_path(settings: Mapping[str, str], name: str, base: Optional[Path] = None) -> Path:
    """Expand "~" and resolve relative paths against the base.

    >>> setting_path({'dir': '~/x'}, 'dir') == Path.home() / 'x'
    True
    >>> setting_path({'dir': 'x'}, 'dir', Path('/base')).as_posix()
    '/base/x'
    """
    try:
        value = settings[name]
    except KeyError:
        raise SettingMissing(f"Setting {name!r} is not set in any of the config files")
    if base is None:
        base = Path.cwd()
    return base / Path(value).expanduser()


class SettingMissing(Exception):
    pass
