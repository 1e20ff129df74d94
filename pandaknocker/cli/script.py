# -*- test-case-name: pandaknocker.cli.test.test_script -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
The ``knocker`` command line tool.
"""

import os
import signal
import sys
import textwrap

from twisted.internet.defer import Deferred, succeed
from twisted.python.filepath import FilePath
from twisted.python.usage import Options

from zope.interface import implementer

from ..common.script import (
    knocker_standard_options, ICommandLineScript, KnockerScriptRunner,
)
from ..knock import (
    KnockKind, KnockSession, Notifier, TCPProbeClient, InvalidHost,
    StepCompleted, SequenceCompleted, ParseFailed, DelayParseFailed,
    SaveCompleted, format_ports,
)
from ..settings import SettingsStore, default_settings_path, MAX_DELAY


class PrettyOptions(Options):
    """
    Base class with improved output formatting for help text over
    ``twisted.python.usage.Options``. Includes ``self.helptext`` attribute
    in the wrapped help output of a CLI. Use ``self.helptext`` in place of
    ``self.longdesc``.
    """
    def __str__(self):
        base = super(PrettyOptions, self).__str__()
        helptext = self.helptext if getattr(self, "helptext", None) else ""
        description_list = []
        for line in helptext.splitlines():
            description_list.append('\n'.join(textwrap.wrap(line, 80)).strip())
        return base + '\n'.join(description_list)

    def getSynopsis(self):
        """
        Like ``twisted.python.usage.Options.getSynopsis`` but without the
        parent synopsis inside a subcommand, so each subcommand can have its
        own, e.g.

        knocker --help
        Usage: knocker [options] <command>

        knocker session --help
        Usage: knocker session [options]
        """
        if self.parent is None:
            default = "Usage: %s%s" % (os.path.basename(sys.argv[0]),
                                       (self.longOpt and " [options]") or '')
        else:
            default = '%s' % ((self.longOpt and "[options]") or '')
        synopsis = getattr(self, "synopsis", default).rstrip()

        if self.parent is not None:
            synopsis = "Usage: %s %s" % (
                self.parent.command_name,
                ' '.join((self.parent.subCommand, synopsis)).rstrip())
        return synopsis

    def getUsage(self, width=None):
        usage = super(PrettyOptions, self).getUsage(width)
        if self.subCommand is not None:
            usage = usage + (
                "\n\nRun knocker " + self.subCommand +
                " --help for command usage and help.\n\n"
            )
        return usage


class OpenOptions(PrettyOptions):
    """
    Command line options for ``knocker open``.
    """
    helptext = """Knock the open sequence once and exit when it is done."""
    synopsis = ""


class CloseOptions(PrettyOptions):
    """
    Command line options for ``knocker close``.
    """
    helptext = """Knock the close sequence once and exit when it is done."""
    synopsis = ""


class SessionOptions(PrettyOptions):
    """
    Command line options for ``knocker session``.
    """
    helptext = """Knock the open sequence and keep running.

    When interrupted (Ctrl-C or SIGTERM) the close sequence is knocked and
    the program exits once it is done.  An interrupt that arrives while a
    sequence is still being knocked is ignored.
    """
    synopsis = "[options]"

    optFlags = [
        ["no-open", None, "Do not knock the open sequence at start-up."],
    ]


class SaveOptions(PrettyOptions):
    """
    Command line options for ``knocker save``.
    """
    helptext = """Store the settings given on the command line.

    The stored settings are used by later runs when no overriding options
    are given.
    """
    synopsis = ""


class ShowOptions(PrettyOptions):
    """
    Command line options for ``knocker show``.
    """
    helptext = """Show the settings in effect and the ports that will be
    knocked."""
    synopsis = ""


def _delay(value):
    delay = int(value)
    if not 0 <= delay <= MAX_DELAY:
        raise ValueError(
            "must be between 0 and {} milliseconds".format(MAX_DELAY))
    return delay

_delay.coerceDoc = "Milliseconds, 0 to {}.".format(MAX_DELAY)


@knocker_standard_options
class KnockerOptions(PrettyOptions):
    """
    Command line options for ``knocker``.
    """
    command_name = "knocker"

    helptext = """knocker knocks a sequence of TCP ports on a host.

    Each port is sent a single connection attempt, in order, with a delay
    after each one.  Stored settings are used unless overridden by the
    options below.
    """
    synopsis = "Usage: knocker [options] <command>"

    optParameters = [
        ["config", "c", None,
         "Path to the settings file. Defaults to "
         "$XDG_CONFIG_HOME/PandaKnocker/config.json."],
        ["host", None, None, "Host to knock."],
        ["open-ports", None, None,
         "Comma separated ports of the open sequence."],
        ["close-ports", None, None,
         "Comma separated ports of the close sequence."],
        ["delay", None, None, "Delay after each knock.", _delay],
    ]

    subCommands = [
        ["open", None, OpenOptions, "Knock the open sequence."],
        ["close", None, CloseOptions, "Knock the close sequence."],
        ["session", None, SessionOptions,
         "Knock the open sequence, then the close sequence on exit."],
        ["save", None, SaveOptions, "Store the effective settings."],
        ["show", None, ShowOptions, "Show the effective settings."],
    ]
    defaultSubCommand = "session"

    def settings_path(self):
        """
        :return FilePath: The settings file to use.
        """
        if self["config"] is None:
            return default_settings_path()
        return FilePath(self["config"])

    def apply_overrides(self, settings):
        """
        :param Settings settings: Stored settings.
        :return Settings: ``settings`` changed by any options given.
        """
        for option, name in [("host", "host"),
                             ("open-ports", "open_ports"),
                             ("close-ports", "close_ports"),
                             ("delay", "delay")]:
            if self[option] is not None:
                settings = settings.set(name, self[option])
        return settings


class ConsoleReporter(object):
    """
    Write notifications as lines of text for a person to read.
    """
    def __init__(self, stdout):
        """
        :param stdout: File-like object written to.
        """
        self._stdout = stdout
        self._formatters = {
            StepCompleted: self._step,
            SequenceCompleted: self._sequence,
            ParseFailed: self._parse_failed,
            DelayParseFailed: self._delay_failed,
            SaveCompleted: self._saved,
        }

    def __call__(self, event):
        formatter = self._formatters.get(type(event))
        if formatter is not None:
            self._stdout.write(formatter(event) + u"\n")

    def _step(self, event):
        return u"Knocked {host} port {port} ({kind} step {step}).".format(
            host=event.host, port=event.port, kind=event.kind.value,
            step=event.index + 1)

    def _sequence(self, event):
        return u"The {} sequence is complete.".format(event.kind.value)

    def _parse_failed(self, event):
        return u"Ignoring {kind} port entry {position} {token!r}: " \
            u"{reason}.".format(
                kind=event.kind.value, position=event.position,
                token=event.token, reason=event.reason)

    def _delay_failed(self, event):
        return u"Ignoring delay {!r}: {}.".format(event.text, event.reason)

    def _saved(self, event):
        if event.success:
            return u"Settings saved."
        return u"Settings not saved: {}".format(event.reason)


def install_close_signals(reactor, request_close):
    """
    Call ``request_close`` in the reactor thread on ``SIGINT`` or
    ``SIGTERM``, replacing the handlers that stop the reactor.
    """
    def handler(signum, frame):
        reactor.callFromThread(request_close)
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, handler)


@implementer(ICommandLineScript)
class KnockScript(object):
    """
    Command-line script for ``knocker``.
    """
    def __init__(self, probe_client_factory=TCPProbeClient,
                 install_close_signals=install_close_signals):
        """
        :param probe_client_factory: Called with the reactor to get the
            ``IProbeClient`` that knocks.
        :param install_close_signals: Called with the reactor and a
            no-argument callable that requests closing, by ``knocker
            session``.
        """
        self._probe_client_factory = probe_client_factory
        self._install_close_signals = install_close_signals

    def main(self, reactor, options):
        stdout = options._sys_module.stdout
        store = SettingsStore(path=options.settings_path())
        if options.subCommand == "show":
            settings = store.load()
        else:
            settings = store.load_or_create()
        settings = options.apply_overrides(settings)

        notifier = Notifier()
        notifier.subscribe(ConsoleReporter(stdout))
        terminated = Deferred()
        session = KnockSession(
            reactor, settings, store, self._probe_client_factory(reactor),
            lambda: terminated.callback(None), notifier=notifier)

        command = getattr(self, "_" + options.subCommand)
        return command(session, options.subOptions, stdout, terminated,
                       reactor)

    def _knock(self, session, kind, stdout):
        """
        Knock one sequence.

        :return: ``Deferred`` firing when the sequence is complete, or
            straight away if there was nothing to knock.
        """
        done = Deferred()

        def completed(event):
            if isinstance(event, SequenceCompleted) and event.kind is kind:
                done.callback(None)
        unsubscribe = session.notifier.subscribe(completed)
        if kind is KnockKind.OPEN:
            start = session.start_open
        else:
            start = session.start_close
        try:
            started = start()
        except InvalidHost as e:
            unsubscribe()
            raise SystemExit(u"Error: {}".format(e))
        if not started:
            unsubscribe()
            stdout.write(
                u"There are no {} ports to knock.\n".format(kind.value))
            return succeed(None)

        def finished(result):
            unsubscribe()
            return result
        done.addBoth(finished)
        return done

    def _open(self, session, options, stdout, terminated, reactor):
        return self._knock(session, KnockKind.OPEN, stdout)

    def _close(self, session, options, stdout, terminated, reactor):
        return self._knock(session, KnockKind.CLOSE, stdout)

    def _session(self, session, options, stdout, terminated, reactor):
        def request_close():
            if not session.request_close():
                stdout.write(
                    u"Still knocking, try again once it is done.\n")
        self._install_close_signals(reactor, request_close)
        if not options["no-open"]:
            self._knock(session, KnockKind.OPEN, stdout)
        return terminated

    def _save(self, session, options, stdout, terminated, reactor):
        d = session.save()

        def saved(event):
            if not event.success:
                raise SystemExit(u"Error: {}".format(event.reason))
        d.addCallback(saved)
        return d

    def _show(self, session, options, stdout, terminated, reactor):
        settings = session.settings
        stdout.write(u"\n".join([
            u"Settings file: {}".format(options.parent.settings_path().path),
            u"Host: {}".format(settings.host),
            u"Delay: {} ms".format(settings.delay),
            u"Open sequence: {}".format(format_ports(session.open_ports)),
            u"Close sequence: {}".format(format_ports(session.close_ports)),
        ]) + u"\n")
        return succeed(None)


def knocker_main():
    return KnockerScriptRunner(
        script=KnockScript(),
        options=KnockerOptions(),
    ).main()
