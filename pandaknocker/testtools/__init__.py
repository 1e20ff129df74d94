# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Various utilities to help with unit testing.
"""

import io
import os
import sys
from unittest import skipIf

from zope.interface import implementer

from twisted.internet.defer import Deferred, succeed, fail
from twisted.python.filepath import FilePath

from .. import __version__
from ..knock import IProbeClient
from ._base import TestCase


__all__ = [
    'TestCase', 'FakeSysModule', 'help_problems',
    'StandardOptionsTestsMixin', 'make_standard_options_test',
    'FakeProbeClient', 'RecordingObserver', 'CustomException', 'not_root',
]


class CustomException(Exception):
    """
    An exception that will never be raised by real code, useful for
    testing.
    """


def help_problems(command_name, help_text):
    """Identify and return a list of help text problems.

    :param str command_name: The name of the command which should appear in
        the help text.
    :param str help_text: The full help text to be inspected.
    :return: A list of problems found with the supplied ``help_text``.
    :rtype: list
    """
    problems = []
    expected_start = u'Usage: {command}'.format(command=command_name)
    if not help_text.startswith(expected_start):
        problems.append(
            'Does not begin with {expected}. Found {actual} instead'.format(
                expected=repr(expected_start),
                actual=repr(help_text[:len(expected_start)])
            )
        )
    return problems


class FakeSysModule(object):
    """A ``sys`` like substitute.

    For use in testing the handling of `argv`, `stdout` and `stderr` by command
    line scripts.

    :ivar list argv: See ``__init__``
    :ivar stdout: A :py:class:`io.StringIO` object representing standard
        output.
    :ivar stderr: A :py:class:`io.StringIO` object representing standard
        error.
    """
    def __init__(self, argv=None):
        """Initialise the fake sys module.

        :param list argv: The arguments list which should be exposed as
            ``sys.argv``.
        """
        if argv is None:
            argv = []
        self.argv = argv
        self.stdout = io.StringIO()
        self.stderr = io.StringIO()


class StandardOptionsTestsMixin(object):
    """Tests for classes decorated with ``knocker_standard_options``.

    Tests for the standard options that should be available on every
    pandaknocker command.

    :ivar usage.Options options: The ``usage.Options`` class under test.
    """
    options = None

    def test_sys_module_default(self):
        """
        ``knocker_standard_options`` adds a ``_sys_module`` attribute which is
        ``sys`` by default.
        """
        self.assertIs(sys, self.options()._sys_module)

    def test_sys_module_override(self):
        """
        ``knocker_standard_options`` adds a ``sys_module`` argument to the
        initialiser which is assigned to ``_sys_module``.
        """
        fake_sys_module = FakeSysModule()
        self.assertIs(
            fake_sys_module,
            self.options(sys_module=fake_sys_module)._sys_module
        )

    def test_version(self):
        """
        Commands have a `--version` option which prints the current version
        string to stdout and causes the command to exit with status `0`.
        """
        sys = FakeSysModule()
        error = self.assertRaises(
            SystemExit,
            self.options(sys_module=sys).parseOptions,
            ['--version']
        )
        self.assertEqual(
            (__version__ + '\n', 0),
            (sys.stdout.getvalue(), error.code)
        )

    def test_verbosity_default(self):
        """
        Commands have `verbosity` of `0` by default.
        """
        options = self.options()
        self.assertEqual(0, options['verbosity'])

    def test_verbosity_option(self):
        """
        Commands have a `--verbose` option which increments the configured
        verbosity by `1`.
        """
        options = self.options()
        options.parseOptions(['--verbose'])
        self.assertEqual(1, options['verbosity'])

    def test_verbosity_option_short(self):
        """
        Commands have a `-v` option which increments the configured verbosity
        by 1.
        """
        options = self.options()
        options.parseOptions(['-v'])
        self.assertEqual(1, options['verbosity'])

    def test_verbosity_multiple(self):
        """
        `--verbose` can be supplied multiple times to increase the verbosity.
        """
        options = self.options()
        options.parseOptions(['-v', '--verbose'])
        self.assertEqual(2, options['verbosity'])

    def test_logfile_default(self):
        """
        `--logfile` is optional and if omitted no log file is configured.
        """
        options = self.options()
        options.parseOptions([])
        self.assertIs(None, options['logfile'])

    def test_logfile_override(self):
        """
        If `--logfile` is supplied, its value is stored as a
        ``twisted.python.logfile.LogFile`` whose directory has been created.
        """
        options = self.options()
        expected_path = FilePath(self.mktemp()).child('knocker.log')
        options.parseOptions(['--logfile={}'.format(expected_path.path)])
        logfile = options['logfile']
        self.addCleanup(logfile.close)
        self.assertEqual(
            (expected_path.path, True),
            (logfile.path, expected_path.parent().isdir())
        )


def make_standard_options_test(options_class):
    """
    Return a ``TestCase`` subclass running ``StandardOptionsTestsMixin``
    against ``options_class``.
    """
    class StandardOptionsTests(StandardOptionsTestsMixin, TestCase):
        options = options_class
    return StandardOptionsTests


@implementer(IProbeClient)
class FakeProbeClient(object):
    """
    An in-memory ``IProbeClient``.

    :ivar list probes: ``(host, port)`` for every probe made, in order.
    :ivar list times: The value of ``clock.seconds()`` when each probe was
        made, if a clock was given.
    :ivar list pending: Unfired ``Deferred``s for outstanding probes when
        ``hold`` is true.
    """
    def __init__(self, clock=None, hold=False, failure=None):
        """
        :param clock: Optional ``IReactorTime`` used to record probe times.
        :param bool hold: If true, probes return a ``Deferred`` which only
            fires when the test fires it via ``pending``.
        :param Exception failure: If given, every probe fails with it.  Real
            probe clients never do this.
        """
        self.clock = clock
        self.hold = hold
        self.failure = failure
        self.probes = []
        self.times = []
        self.pending = []

    def probe(self, host, port):
        self.probes.append((host, port))
        if self.clock is not None:
            self.times.append(self.clock.seconds())
        if self.failure is not None:
            return fail(self.failure)
        if self.hold:
            d = Deferred()
            self.pending.append(d)
            return d
        return succeed(None)

    def finish_pending(self):
        """
        Fire every outstanding probe.
        """
        pending, self.pending = self.pending, []
        for d in pending:
            d.callback(None)


class RecordingObserver(object):
    """
    A notification observer that remembers everything it is told.

    :ivar list events: Every event received, in order.
    """
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        """
        :return list: The recorded events that are instances of
            ``event_type``.
        """
        return [e for e in self.events if isinstance(e, event_type)]


# Skip decorators for tests:
not_root = skipIf(os.getuid() == 0, "Must not run as root.")
