# -*- test-case-name: pandaknocker.settings.test.test_store -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Persistence of the knock settings to a local JSON file.

The file uses the same keys as earlier releases (``host``, ``ports_str``,
``close_ports_str`` and ``delay``) so existing settings keep working.
"""

import os
from json import dumps, loads

from eliot import MessageType, Field, ActionType

from pyrsistent import PClass, field

from twisted.python.filepath import FilePath

from zope.interface import Interface, implementer

from ..common.logging import log_error


DEFAULT_HOST = u"127.0.0.1"
DEFAULT_OPEN_PORTS = u"5000, 6000, 7000"
DEFAULT_CLOSE_PORTS = u"7000, 6000, 5000"
DEFAULT_DELAY = 1000
# One day, in milliseconds.
MAX_DELAY = 24 * 60 * 60 * 1000

# Directory and file name beneath the user's configuration directory.
_APPLICATION_DIRECTORY = u"PandaKnocker"
_SETTINGS_FILE = u"config.json"


class SettingsError(Exception):
    """
    Settings could not be saved.
    """


def _valid_delay(value):
    return (0 <= value <= MAX_DELAY,
            u"Delay must be between 0 and {} milliseconds.".format(MAX_DELAY))


class Settings(PClass):
    """
    Everything the user can configure.

    :ivar str host: Host to knock.
    :ivar str open_ports: Comma separated ports of the open sequence, as
        typed by the user.
    :ivar str close_ports: Comma separated ports of the close sequence, as
        typed by the user.
    :ivar int delay: Milliseconds to wait after each knock.
    """
    host = field(type=str, mandatory=True, initial=DEFAULT_HOST)
    open_ports = field(type=str, mandatory=True, initial=DEFAULT_OPEN_PORTS)
    close_ports = field(type=str, mandatory=True,
                        initial=DEFAULT_CLOSE_PORTS)
    delay = field(type=int, mandatory=True, initial=DEFAULT_DELAY,
                  invariant=_valid_delay)

    def to_json(self):
        """
        :return bytes: The settings in the persisted format.
        """
        return dumps({
            u"host": self.host,
            u"ports_str": self.open_ports,
            u"close_ports_str": self.close_ports,
            u"delay": self.delay,
        }, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8") + b"\n"

    @classmethod
    def from_json(cls, data):
        """
        A ``delay`` of more than ``MAX_DELAY`` is read as ``MAX_DELAY``.

        :param bytes data: Settings in the persisted format.
        :raise ValueError: If ``data`` is not valid settings.
        :return Settings: The settings.
        """
        document = loads(data.decode("utf-8"))
        if not isinstance(document, dict):
            raise ValueError(u"Settings must be a JSON object.")
        values = {}
        for key, name in [(u"host", u"host"),
                          (u"ports_str", u"open_ports"),
                          (u"close_ports_str", u"close_ports")]:
            value = document.get(key)
            if not isinstance(value, str):
                raise ValueError(u"{} must be a string.".format(key))
            values[name] = value
        delay = document.get(u"delay")
        if not isinstance(delay, int) or isinstance(delay, bool) or delay < 0:
            raise ValueError(u"delay must be a non-negative integer.")
        # Earlier releases allowed longer delays.
        values[u"delay"] = min(delay, MAX_DELAY)
        return cls(**values)


def default_settings_path(environ=None):
    """
    Where settings are kept unless told otherwise:
    ``$XDG_CONFIG_HOME/PandaKnocker/config.json``, or
    ``~/.config/PandaKnocker/config.json`` when ``XDG_CONFIG_HOME`` is not
    set.

    :param environ: Mapping of environment variables, ``os.environ`` by
        default.
    :return FilePath: The settings file.
    """
    if environ is None:
        environ = os.environ
    base = environ.get(u"XDG_CONFIG_HOME") or os.path.expanduser(u"~/.config")
    return FilePath(base).child(_APPLICATION_DIRECTORY).child(_SETTINGS_FILE)


class ISettingsStore(Interface):
    """
    Somewhere settings are kept between runs.
    """
    def load():
        """
        :return Settings: The stored settings, or the defaults if there are
            none or they can not be read.
        """

    def save(settings):
        """
        :param Settings settings: Settings to keep.
        :raise SettingsError: If they could not be kept.
        """


_PATH = Field(u"path", lambda path: path.path, u"The settings file.")

_LOG_LOADED = MessageType(
    u"pandaknocker:settings:loaded", [_PATH],
    u"Settings were read from the settings file.")

_LOG_USING_DEFAULTS = MessageType(
    u"pandaknocker:settings:using-defaults",
    [_PATH, Field.for_types(u"reason", [str], u"Why.")],
    u"The settings file could not be used, so defaults were.")

_LOG_SAVE = ActionType(
    u"pandaknocker:settings:save", [_PATH], [],
    u"Settings are written to the settings file.")


@implementer(ISettingsStore)
class SettingsStore(PClass):
    """
    Settings kept in a JSON file.

    :ivar FilePath path: The settings file.
    """
    path = field(mandatory=True, type=FilePath)

    def _read(self):
        """
        :return: ``(settings, problem)`` where ``problem`` is ``None`` if the
            file was read and otherwise describes why defaults are returned.
        """
        if not self.path.exists():
            return Settings(), u"No settings file."
        try:
            content = self.path.getContent()
        except (IOError, OSError) as e:
            return Settings(), u"Unreadable: {}".format(e)
        try:
            settings = Settings.from_json(content)
        except ValueError as e:
            return Settings(), u"Corrupt: {}".format(e)
        return settings, None

    def load(self):
        settings, problem = self._read()
        if problem is None:
            _LOG_LOADED.log(path=self.path)
        else:
            _LOG_USING_DEFAULTS.log(path=self.path, reason=problem)
        return settings

    def load_or_create(self):
        """
        Like ``load``, but write the defaults out if the settings file is
        missing or can not be used.  Failing to write them is logged and
        otherwise ignored.

        :return Settings: The settings.
        """
        settings, problem = self._read()
        if problem is None:
            _LOG_LOADED.log(path=self.path)
            return settings
        _LOG_USING_DEFAULTS.log(path=self.path, reason=problem)
        try:
            self.save(settings)
        except SettingsError as e:
            log_error(reason=str(e))
        return settings

    def save(self, settings):
        with _LOG_SAVE(path=self.path):
            directory = self.path.parent()
            try:
                directory.makedirs(ignoreExistingDirectory=True)
            except OSError as e:
                raise SettingsError(
                    u"Failed to create settings directory {}: {}".format(
                        directory.path, e.strerror or e))
            try:
                content = settings.to_json()
            except (TypeError, ValueError) as e:
                raise SettingsError(
                    u"Failed to serialize settings: {}".format(e))
            try:
                self.path.setContent(content)
            except (IOError, OSError) as e:
                raise SettingsError(
                    u"Failed to write settings file {}: {}".format(
                        self.path.path, e.strerror or e))
