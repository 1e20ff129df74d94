# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Tests for ``pandaknocker.cli.script``.
"""

from twisted.internet.task import Clock
from twisted.python.usage import UsageError

from zope.interface.verify import verifyObject

from ...common.script import ICommandLineScript
from ...knock import (
    KnockKind, StepCompleted, SequenceCompleted, ParseFailed,
    DelayParseFailed, SaveCompleted,
)
from ...settings import Settings, SettingsStore
from ...testtools import (
    TestCase, FakeSysModule, FakeProbeClient, help_problems,
    make_standard_options_test,
)
from ..script import KnockerOptions, KnockScript, ConsoleReporter


HOST = u"192.0.2.1"


class KnockerOptionsStandardOptionsTests(
        make_standard_options_test(KnockerOptions)):
    """
    Tests for the standard options of ``knocker``.
    """


class KnockerOptionsTests(TestCase):
    """
    Tests for ``KnockerOptions``.
    """
    def test_synopsis(self):
        """
        The help text begins with the ``knocker`` usage line.
        """
        self.assertEqual([], help_problems(u"knocker", str(KnockerOptions())))

    def test_default_command(self):
        """
        Without a command ``knocker`` runs a session.
        """
        options = KnockerOptions()
        options.parseOptions([])
        self.assertEqual(
            (u"session", False),
            (options.subCommand, bool(options.subOptions["no-open"])))

    def test_no_open(self):
        """
        ``knocker session --no-open`` is accepted.
        """
        options = KnockerOptions()
        options.parseOptions(["session", "--no-open"])
        self.assertTrue(options.subOptions["no-open"])

    def test_commands(self):
        """
        Each command is accepted.
        """
        for command in ["open", "close", "session", "save", "show"]:
            options = KnockerOptions()
            options.parseOptions([command])
            self.assertEqual(command, options.subCommand)

    def test_unknown_command(self):
        """
        An unknown command is a usage error.
        """
        self.assertRaises(
            UsageError, KnockerOptions().parseOptions, ["knock-knock"])

    def test_delay(self):
        """
        ``--delay`` is a whole number of milliseconds.
        """
        options = KnockerOptions()
        options.parseOptions(["--delay", "250", "open"])
        self.assertEqual(250, options["delay"])

    def test_delay_invalid(self):
        """
        ``--delay`` must be a number from zero to a day.
        """
        for value in ["abc", "-1", "86400001"]:
            self.assertRaises(
                UsageError, KnockerOptions().parseOptions,
                ["--delay", value, "open"])

    def test_no_overrides(self):
        """
        Without overriding options the stored settings are used unchanged.
        """
        options = KnockerOptions()
        options.parseOptions([])
        settings = Settings(host=u"h.example", delay=5)
        self.assertEqual(settings, options.apply_overrides(settings))

    def test_overrides(self):
        """
        ``--host``, ``--open-ports``, ``--close-ports`` and ``--delay``
        override the stored settings.
        """
        options = KnockerOptions()
        options.parseOptions([
            "--host", HOST, "--open-ports", "1, 2", "--close-ports", "",
            "--delay", "0", "show"])
        self.assertEqual(
            Settings(host=HOST, open_ports=u"1, 2", close_ports=u"",
                     delay=0),
            options.apply_overrides(Settings()))

    def test_settings_path(self):
        """
        ``--config`` chooses the settings file.
        """
        options = KnockerOptions()
        options.parseOptions(["--config", "/tmp/knocker.json"])
        self.assertEqual(u"/tmp/knocker.json", options.settings_path().path)


class ConsoleReporterTests(TestCase):
    """
    Tests for ``ConsoleReporter``.
    """
    def report(self, event):
        sys = FakeSysModule()
        ConsoleReporter(sys.stdout)(event)
        return sys.stdout.getvalue()

    def test_step(self):
        """
        Steps are numbered from one.
        """
        self.assertEqual(
            u"Knocked 192.0.2.1 port 22 (close step 3).\n",
            self.report(StepCompleted(
                index=2, port=22, kind=KnockKind.CLOSE, host=HOST)))

    def test_sequence(self):
        """
        The end of a sequence is reported.
        """
        self.assertEqual(
            u"The open sequence is complete.\n",
            self.report(SequenceCompleted(kind=KnockKind.OPEN)))

    def test_parse_failed(self):
        """
        Bad port entries are reported with their position.
        """
        self.assertEqual(
            u"Ignoring open port entry 2 'x': not a number.\n",
            self.report(ParseFailed(kind=KnockKind.OPEN, position=2,
                                    token=u"x", reason=u"not a number")))

    def test_delay_failed(self):
        """
        Bad delays are reported.
        """
        self.assertEqual(
            u"Ignoring delay 'abc': not a whole number of milliseconds.\n",
            self.report(DelayParseFailed(
                text=u"abc", reason=u"not a whole number of milliseconds")))

    def test_saved(self):
        """
        Saving is reported whether or not it worked.
        """
        self.assertEqual(
            u"Settings saved.\nSettings not saved: disk full\n",
            self.report(SaveCompleted(success=True)) +
            self.report(SaveCompleted(success=False, reason=u"disk full")))

    def test_unknown(self):
        """
        Anything else is not reported.
        """
        self.assertEqual(u"", self.report(object()))


class KnockScriptTests(TestCase):
    """
    Tests for ``KnockScript``.
    """
    def setUp(self):
        super(KnockScriptTests, self).setUp()
        self.clock = Clock()
        self.probe_client = FakeProbeClient(clock=self.clock)
        self.sys = FakeSysModule()
        self.config = self.make_temporary_directory().child(u"config.json")
        self.close_requests = []
        self.script = KnockScript(
            probe_client_factory=lambda reactor: self.probe_client,
            install_close_signals=self.install_close_signals)

    def install_close_signals(self, reactor, request_close):
        self.close_requests.append(request_close)

    def main(self, *arguments):
        options = KnockerOptions(sys_module=self.sys)
        options.parseOptions(
            ["--config", self.config.path, "--host", HOST] + list(arguments))
        return self.script.main(self.clock, options)

    def ports(self):
        return [port for _, port in self.probe_client.probes]

    def test_interface(self):
        """
        ``KnockScript`` provides ``ICommandLineScript``.
        """
        self.assertTrue(verifyObject(ICommandLineScript, KnockScript()))

    def test_open(self):
        """
        ``knocker open`` knocks the open sequence and finishes when it is
        complete.
        """
        d = self.main("open")
        self.clock.pump([1, 1])
        self.assertNoResult(d)
        self.clock.advance(1)
        self.assertEqual(
            (None, [5000, 6000, 7000]),
            (self.successResultOf(d), self.ports()))
        self.assertEqual(
            u"Knocked 192.0.2.1 port 5000 (open step 1).\n"
            u"Knocked 192.0.2.1 port 6000 (open step 2).\n"
            u"Knocked 192.0.2.1 port 7000 (open step 3).\n"
            u"The open sequence is complete.\n",
            self.sys.stdout.getvalue())

    def test_close(self):
        """
        ``knocker close`` knocks the close sequence.
        """
        d = self.main("--delay", "0", "close")
        self.clock.advance(0)
        self.assertEqual(
            (None, [7000, 6000, 5000]),
            (self.successResultOf(d), self.ports()))

    def test_creates_settings(self):
        """
        The default settings are stored if there are none.
        """
        self.main("--delay", "0", "open")
        self.assertEqual(
            Settings(), SettingsStore(path=self.config).load())

    def test_stored_settings(self):
        """
        Stored settings are used.
        """
        SettingsStore(path=self.config).save(
            Settings(open_ports=u"1, 2", delay=0))
        d = self.main("open")
        self.clock.advance(0)
        self.successResultOf(d)
        self.assertEqual([1, 2], self.ports())

    def test_nothing_to_knock(self):
        """
        With no valid ports nothing is knocked and the command finishes
        straight away.
        """
        d = self.main("--open-ports", "x", "open")
        self.assertEqual(
            (None, [],
             u"Ignoring open port entry 1 'x': not a number.\n"
             u"There are no open ports to knock.\n"),
            (self.successResultOf(d), self.probe_client.probes,
             self.sys.stdout.getvalue()))

    def test_invalid_host(self):
        """
        An invalid host is an error.
        """
        options = KnockerOptions(sys_module=self.sys)
        options.parseOptions(
            ["--config", self.config.path, "--host", "bad host", "open"])
        error = self.assertRaises(
            SystemExit, self.script.main, self.clock, options)
        self.assertEqual(
            (True, []),
            (error.code.startswith(u"Error: Invalid host"),
             self.probe_client.probes))

    def test_session(self):
        """
        ``knocker session`` knocks the open sequence, then on a close
        request knocks the close sequence and finishes.
        """
        d = self.main("--delay", "1000", "session")
        self.clock.pump([1, 1, 1])
        self.assertNoResult(d)
        [request_close] = self.close_requests
        request_close()
        self.clock.pump([1, 1])
        self.assertNoResult(d)
        self.clock.advance(1)
        self.assertEqual(
            (None, [5000, 6000, 7000, 7000, 6000, 5000]),
            (self.successResultOf(d), self.ports()))

    def test_session_no_open(self):
        """
        ``knocker session --no-open`` does not knock the open sequence.
        """
        d = self.main("session", "--no-open")
        self.clock.advance(10)
        self.assertEqual([], self.probe_client.probes)
        self.assertNoResult(d)

    def test_session_busy(self):
        """
        A close request while the open sequence is being knocked is
        ignored.
        """
        d = self.main("session")
        [request_close] = self.close_requests
        request_close()
        self.clock.pump([1, 1, 1, 1, 1, 1])
        self.assertNoResult(d)
        self.assertEqual([5000, 6000, 7000], self.ports())
        self.assertIn(u"Still knocking", self.sys.stdout.getvalue())

    def test_save(self):
        """
        ``knocker save`` stores the settings in effect.
        """
        d = self.main("--open-ports", "1, 2", "save")
        self.assertEqual(
            (None, Settings(host=HOST, open_ports=u"1, 2"),
             u"Settings saved.\n"),
            (self.successResultOf(d),
             SettingsStore(path=self.config).load(),
             self.sys.stdout.getvalue()))

    def test_save_failure(self):
        """
        A failure to save is an error.
        """
        self.config = self.make_temporary_file().child(u"config.json")
        d = self.main("save")
        failure = self.failureResultOf(d, SystemExit)
        self.assertIn(
            u"Error: Failed to create settings directory",
            failure.value.code)

    def test_show(self):
        """
        ``knocker show`` prints the settings in effect without storing
        anything.
        """
        d = self.main("--open-ports", "1, x, 2", "show")
        self.assertEqual(
            (None, False,
             u"Ignoring open port entry 2 'x': not a number.\n"
             u"Settings file: {}\n"
             u"Host: 192.0.2.1\n"
             u"Delay: 1000 ms\n"
             u"Open sequence: 1, 2\n"
             u"Close sequence: 7000, 6000, 5000\n".format(self.config.path)),
            (self.successResultOf(d), self.config.exists(),
             self.sys.stdout.getvalue()))
