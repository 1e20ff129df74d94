# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Settings kept between runs of pandaknocker.
"""

__all__ = [
    'Settings', 'SettingsStore', 'ISettingsStore', 'SettingsError',
    'default_settings_path',
    'DEFAULT_HOST', 'DEFAULT_OPEN_PORTS', 'DEFAULT_CLOSE_PORTS',
    'DEFAULT_DELAY', 'MAX_DELAY',
]

from ._store import (
    Settings, SettingsStore, ISettingsStore, SettingsError,
    default_settings_path,
    DEFAULT_HOST, DEFAULT_OPEN_PORTS, DEFAULT_CLOSE_PORTS, DEFAULT_DELAY,
    MAX_DELAY,
)
