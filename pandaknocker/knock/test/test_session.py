# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Tests for ``pandaknocker.knock._session``.
"""

from datetime import timedelta

from zope.interface import implementer

from twisted.internet.task import Clock

from ...common import InvalidHost
from ...settings import ISettingsStore, Settings, SettingsError
from ...testtools import (
    TestCase, CustomException, FakeProbeClient, RecordingObserver,
)
from .._model import (
    KnockKind, ParseFailed, DelayParseFailed, SaveCompleted,
    SequenceCompleted,
)
from .._notify import Notifier
from .._session import KnockSession


@implementer(ISettingsStore)
class MemorySettingsStore(object):
    """
    Settings kept in memory.

    :ivar list saved: Every ``Settings`` saved.
    :ivar Exception error: If set, ``save`` raises it.
    """
    def __init__(self, error=None):
        self.saved = []
        self.error = error

    def load(self):
        if self.saved:
            return self.saved[-1]
        return Settings()

    def save(self, settings):
        if self.error is not None:
            raise self.error
        self.saved.append(settings)


class KnockSessionTests(TestCase):
    """
    Tests for ``KnockSession``.
    """
    def setUp(self):
        super(KnockSessionTests, self).setUp()
        self.clock = Clock()
        self.probe_client = FakeProbeClient(clock=self.clock)
        self.store = MemorySettingsStore()
        self.notifier = Notifier()
        self.observer = RecordingObserver()
        self.notifier.subscribe(self.observer)
        self.terminations = []

    def session(self, **changes):
        return KnockSession(
            self.clock, Settings(**changes), self.store,
            self.probe_client, lambda: self.terminations.append(True),
            notifier=self.notifier)

    def test_initial_ports(self):
        """
        Both port lists are parsed when the session is created.
        """
        session = self.session()
        self.assertEqual(
            ([5000, 6000, 7000], [7000, 6000, 5000]),
            (list(session.open_ports), list(session.close_ports)))

    def test_initial_parse_failures(self):
        """
        Bad entries in the initial port lists are published.
        """
        self.session(open_ports=u"1, x", close_ports=u"y")
        self.assertEqual(
            [ParseFailed(kind=KnockKind.OPEN, position=2, token=u"x",
                         reason=u"not a number"),
             ParseFailed(kind=KnockKind.CLOSE, position=1, token=u"y",
                         reason=u"not a number")],
            self.observer.events)

    def test_own_notifier(self):
        """
        Without a notifier the session creates its own.
        """
        session = KnockSession(
            self.clock, Settings(), self.store, self.probe_client,
            lambda: None)
        self.assertIsInstance(session.notifier, Notifier)

    def test_delay(self):
        """
        ``delay`` is the configured number of milliseconds.
        """
        self.assertEqual(timedelta(milliseconds=250),
                         self.session(delay=250).delay)

    def test_set_open_ports(self):
        """
        ``set_open_ports`` replaces the open sequence and the stored text.
        """
        session = self.session()
        session.set_open_ports(u"1, 2, nope")
        self.assertEqual(
            ([1, 2], u"1, 2, nope", 1),
            (list(session.open_ports), session.settings.open_ports,
             len(self.observer.of_type(ParseFailed))))

    def test_set_close_ports(self):
        """
        ``set_close_ports`` replaces the close sequence.
        """
        session = self.session()
        session.set_close_ports(u"9")
        self.assertEqual([9], list(session.close_ports))

    def test_set_host(self):
        """
        ``set_host`` changes the host knocked.
        """
        session = self.session()
        session.set_host(u"192.0.2.7")
        session.start_open()
        self.assertEqual((u"192.0.2.7", 5000), self.probe_client.probes[0])

    def test_set_delay(self):
        """
        ``set_delay`` accepts a whole number of milliseconds.
        """
        session = self.session()
        self.assertEqual(
            (True, 0, True, 20),
            (session.set_delay(u"0"), session.settings.delay,
             session.set_delay(u" 020 "), session.settings.delay))

    def test_set_delay_invalid(self):
        """
        A delay that is not a whole number of milliseconds is reported and
        the old delay kept.
        """
        session = self.session(delay=500)
        changed = session.set_delay(u"abc")
        self.assertEqual(
            (False, 500,
             [DelayParseFailed(text=u"abc",
                               reason=u"not a whole number of milliseconds")]),
            (changed, session.settings.delay, self.observer.events))

    def test_set_delay_negative(self):
        """
        Negative delays are rejected.
        """
        session = self.session()
        self.assertEqual(
            (False, 1000),
            (session.set_delay(u"-5"), session.settings.delay))

    def test_set_delay_too_long(self):
        """
        Delays longer than a day are rejected.
        """
        session = self.session()
        self.assertEqual(
            (False, False, 1000),
            (session.set_delay(u"86400001"), session.set_delay(u"9" * 100),
             session.settings.delay))

    def test_start_open(self):
        """
        ``start_open`` knocks the open sequence.
        """
        session = self.session()
        started = session.start_open()
        busy = session.busy
        self.clock.pump([1, 1, 1])
        self.assertEqual(
            (True, True, [5000, 6000, 7000],
             [SequenceCompleted(kind=KnockKind.OPEN)]),
            (started, busy, [port for _, port in self.probe_client.probes],
             self.observer.of_type(SequenceCompleted)))

    def test_start_close(self):
        """
        ``start_close`` knocks the close sequence without terminating.
        """
        session = self.session(delay=0)
        session.start_close()
        self.clock.advance(0)
        self.assertEqual(
            ([7000, 6000, 5000], [], False),
            ([port for _, port in self.probe_client.probes],
             self.terminations, session.close_requested))

    def test_start_empty(self):
        """
        Starting a sequence with no valid ports does nothing.
        """
        session = self.session(open_ports=u"")
        self.assertEqual((False, False), (session.start_open(), session.busy))

    def test_start_invalid_host(self):
        """
        Starting with an invalid host raises ``InvalidHost``.
        """
        session = self.session(host=u"bad host")
        self.assertRaises(InvalidHost, session.start_open)

    def test_request_close(self):
        """
        ``request_close`` knocks the close sequence and then terminates.
        """
        session = self.session(delay=1000)
        accepted = session.request_close()
        close_requested = session.close_requested
        self.clock.pump([1, 1, 1])
        self.assertEqual(
            (True, True, [True]),
            (accepted, close_requested, self.terminations))

    def test_request_close_while_busy(self):
        """
        ``request_close`` while knocking is ignored.
        """
        session = self.session(delay=1000)
        session.start_open()
        self.assertEqual(
            (False, False),
            (session.request_close(), session.close_requested))

    def test_save(self):
        """
        ``save`` stores the current settings and publishes success.
        """
        session = self.session()
        session.set_host(u"knock.example.com")
        result = self.successResultOf(session.save())
        self.assertEqual(
            (SaveCompleted(success=True), [result],
             u"knock.example.com"),
            (result, self.observer.of_type(SaveCompleted),
             self.store.saved[-1].host))

    def test_save_failure(self):
        """
        A failure to save is published with its reason.
        """
        self.store.error = SettingsError(u"disk full")
        session = self.session()
        result = self.successResultOf(session.save())
        self.assertEqual(
            (SaveCompleted(success=False, reason=u"disk full"), [result]),
            (result, self.observer.of_type(SaveCompleted)))

    def test_save_unexpected_error(self):
        """
        Errors other than ``SettingsError`` are not turned into
        notifications.
        """
        self.store.error = CustomException()
        session = self.session()
        self.failureResultOf(session.save(), CustomException)
        self.assertEqual([], self.observer.of_type(SaveCompleted))
