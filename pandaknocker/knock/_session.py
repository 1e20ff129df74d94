# -*- test-case-name: pandaknocker.knock.test.test_session -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
The state of an interactive knocking session: the settings being edited,
the port sequences parsed from them, and the commands a user can give.
"""

import re
from datetime import timedelta

from twisted.internet.defer import maybeDeferred

from ..settings import SettingsError, MAX_DELAY
from ._model import (
    KnockKind, ParseFailed, DelayParseFailed, SaveCompleted,
)
from ._notify import Notifier
from ._ports import parse_ports
from ._sequencer import KnockSequencer
from ._shutdown import ShutdownCoordinator


_MILLISECONDS = re.compile(r"\A\+?[0-9]+\Z")


class KnockSession(object):
    """
    A user's knocking session.

    Presentation code edits settings and issues the coarse commands
    ``start_open``, ``start_close``, ``request_close`` and ``save``; it
    learns what happened by subscribing to ``notifier``.

    :ivar Settings settings: The current settings.
    :ivar Notifier notifier: Where notifications are published.
    :ivar KnockSequencer sequencer: Knocks the sequences.
    :ivar ShutdownCoordinator coordinator: Handles close requests.
    """
    def __init__(self, reactor, settings, store, probe_client, terminate,
                 notifier=None):
        """
        :param IReactorTime reactor: Used to wait between knocks.
        :param Settings settings: The initial settings.  Their port lists
            are parsed straight away, so subscribe to ``notifier`` first to
            hear about bad entries.
        :param ISettingsStore store: Where ``save`` keeps settings.
        :param IProbeClient probe_client: Delivers knocks.
        :param terminate: No-argument callable ending the process once the
            close sequence requested by ``request_close`` is over.
        :param Notifier notifier: Optional notifier to publish to.
        """
        if notifier is None:
            notifier = Notifier()
        self.notifier = notifier
        self.settings = settings
        self._store = store
        self.sequencer = KnockSequencer(reactor, probe_client, notifier)
        self.coordinator = ShutdownCoordinator(
            self.sequencer, self._close_parameters, terminate)
        self._open_ports = self._parse(KnockKind.OPEN, settings.open_ports)
        self._close_ports = self._parse(
            KnockKind.CLOSE, settings.close_ports)

    @property
    def busy(self):
        return self.sequencer.busy

    @property
    def close_requested(self):
        return self.coordinator.close_requested

    @property
    def open_ports(self):
        """
        :return PortSequence: The usable ports of the open sequence.
        """
        return self._open_ports

    @property
    def close_ports(self):
        """
        :return PortSequence: The usable ports of the close sequence.
        """
        return self._close_ports

    @property
    def delay(self):
        return timedelta(milliseconds=self.settings.delay)

    def _parse(self, kind, text):
        result = parse_ports(text)
        for diagnostic in result.diagnostics:
            self.notifier.publish(
                ParseFailed.from_diagnostic(kind, diagnostic))
        return result.ports

    def _close_parameters(self):
        return self._close_ports, self.settings.host, self.delay

    def set_host(self, host):
        self.settings = self.settings.set(host=host)

    def set_open_ports(self, text):
        """
        Replace the open sequence, publishing ``ParseFailed`` for each bad
        entry.
        """
        self.settings = self.settings.set(open_ports=text)
        self._open_ports = self._parse(KnockKind.OPEN, text)

    def set_close_ports(self, text):
        """
        Replace the close sequence, publishing ``ParseFailed`` for each bad
        entry.
        """
        self.settings = self.settings.set(close_ports=text)
        self._close_ports = self._parse(KnockKind.CLOSE, text)

    def set_delay(self, text):
        """
        Change the delay after each knock.

        :param str text: A whole number of milliseconds.  Anything else
            publishes ``DelayParseFailed`` and leaves the delay unchanged.
        :return bool: Whether the delay was changed.
        """
        stripped = text.strip()
        if _MILLISECONDS.match(stripped) is None:
            self.notifier.publish(DelayParseFailed(
                text=stripped,
                reason=u"not a whole number of milliseconds"))
            return False
        digits = stripped.lstrip(u"+").lstrip(u"0") or u"0"
        if len(digits) > len(str(MAX_DELAY)) or int(digits) > MAX_DELAY:
            self.notifier.publish(DelayParseFailed(
                text=stripped,
                reason=u"more than {} milliseconds".format(MAX_DELAY)))
            return False
        self.settings = self.settings.set(delay=int(digits))
        return True

    def start_open(self):
        """
        Knock the open sequence.

        :raise InvalidHost: If the host can not be knocked.
        :return bool: Whether knocking started.
        """
        return self.sequencer.start(
            KnockKind.OPEN, self._open_ports, self.settings.host, self.delay)

    def start_close(self):
        """
        Knock the close sequence without ending the process afterwards.

        :raise InvalidHost: If the host can not be knocked.
        :return bool: Whether knocking started.
        """
        return self.sequencer.start(
            KnockKind.CLOSE, self._close_ports, self.settings.host,
            self.delay)

    def request_close(self):
        """
        The user wants to quit: knock the close sequence, then terminate.

        :return bool: Whether the request was accepted.
        """
        return self.coordinator.request_close()

    def save(self):
        """
        Store the current settings.

        :return: ``Deferred`` firing with the published ``SaveCompleted``.
        """
        d = maybeDeferred(self._store.save, self.settings)

        def saved(ignored):
            return SaveCompleted(success=True)

        def failed(failure):
            failure.trap(SettingsError)
            return SaveCompleted(success=False,
                                 reason=failure.getErrorMessage())
        d.addCallbacks(saved, failed)

        def publish(event):
            self.notifier.publish(event)
            return event
        d.addCallback(publish)
        return d
