# -*- test-case-name: pandaknocker.common.test.test_script -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""Helpers for pandaknocker shell commands."""

import sys

from bitmath import MiB

from eliot import (
    MessageType, fields, FileDestination, add_destinations,
    remove_destination,
)
from eliot.logwriter import ThreadedWriter

from twisted.application.service import MultiService, Service
from twisted.internet import task, reactor as global_reactor
from twisted.internet.defer import maybeDeferred
from twisted.python import usage
from twisted.python.log import textFromEventDict, startLoggingWithObserver, err
from twisted.python import log as twisted_log
from twisted.python.logfile import LogFile
from twisted.python.filepath import FilePath

from zope.interface import Interface

from .. import __version__


__all__ = [
    'knocker_standard_options',
    'ICommandLineScript',
    'KnockerScriptRunner',
]


LOGFILE_LENGTH = int(MiB(100).to_Byte().value)
LOGFILE_COUNT = 5


def knocker_standard_options(cls):
    """Add various standard command line options to pandaknocker commands.

    :param type cls: The `class` to decorate.
    :return: The decorated `class`.
    """
    original_init = cls.__init__

    def __init__(self, *args, **kwargs):
        """Set the default verbosity to `0`

        Calls the original ``cls.__init__`` method finally.

        :param sys_module: An optional ``sys`` like module for use in
            testing. Defaults to ``sys``.
        """
        self._sys_module = kwargs.pop('sys_module', sys)
        self['verbosity'] = 0
        self['logfile'] = None
        original_init(self, *args, **kwargs)
    cls.__init__ = __init__

    def opt_version(self):
        """Print the program's version and exit."""
        self._sys_module.stdout.write(__version__ + u'\n')
        raise SystemExit(0)
    cls.opt_version = opt_version

    def opt_verbose(self):
        """Turn on verbose logging (to stderr unless --logfile is given)."""
        self['verbosity'] += 1
    cls.opt_verbose = opt_verbose
    cls.opt_v = opt_verbose

    def opt_logfile(self, logfile_path):
        """
        Write structured logs to a file. The logfile directory is created if
        it does not already exist.
        """
        logfile = FilePath(logfile_path)
        logfile_directory = logfile.parent()
        if not logfile_directory.exists():
            logfile_directory.makedirs()
        self['logfile'] = LogFile.fromFullPath(
            logfile.path,
            rotateLength=LOGFILE_LENGTH,
            maxRotatedFiles=LOGFILE_COUNT,
        )
    cls.opt_logfile = opt_logfile

    return cls


class ICommandLineScript(Interface):
    """A script which can be run by ``KnockerScriptRunner``."""
    def main(reactor, options):
        """
        :param reactor: A Twisted reactor.
        :param dict options: A dictionary of configuration options.
        :return: A ``Deferred`` which fires when the script has completed.
        """


class _EliotDestination(Service):
    """
    Register a log writer as an Eliot destination while running.
    """
    def __init__(self, writer):
        self.writer = writer

    def startService(self):
        Service.startService(self)
        add_destinations(self.writer)

    def stopService(self):
        Service.stopService(self)
        remove_destination(self.writer)


def eliot_logging_service(log_file, reactor, capture_stdout):
    """
    Create a service that writes Eliot messages (including those bridged
    from Twisted's log) to ``log_file`` from a dedicated thread.
    """
    service = MultiService()
    writer = ThreadedWriter(FileDestination(file=log_file), reactor)
    writer.setServiceParent(service)
    _EliotDestination(writer).setServiceParent(service)
    EliotObserver(capture_stdout=capture_stdout).setServiceParent(service)
    return service


TWISTED_LOG_MESSAGE = MessageType("twisted:log",
                                  fields(error=bool, message=str),
                                  u"A log message from Twisted.")


class EliotObserver(Service):
    """
    A Twisted log observer that logs to Eliot.
    """
    def __init__(self, publisher=twisted_log, capture_stdout=True):
        """
        :param publisher: A ``LogPublisher`` to capture logs from, or if no
            argument is given the default Twisted log system.
        :param bool capture_stdout: Wether to capture standard output and
            standard error to eliot.
        """
        self.publisher = publisher
        self.capture_stdout = capture_stdout

    def __call__(self, msg):
        error = bool(msg.get("isError"))
        message = textFromEventDict(msg) or u""
        TWISTED_LOG_MESSAGE.log(error=error, message=message)

    def startService(self):
        """
        Start capturing Twisted logs.
        """
        # We don't bother shutting this down.
        startLoggingWithObserver(self, setStdout=self.capture_stdout)


class KnockerScriptRunner(object):
    """An API for running standard pandaknocker scripts.

    :ivar ICommandLineScript script: See ``script`` of ``__init__``.
    :ivar _react: A reference to ``task.react`` which can be overridden for
        testing purposes.
    """
    _react = staticmethod(task.react)

    def __init__(self, script, options, logging=True,
                 reactor=None, sys_module=None):
        """
        :param ICommandLineScript script: The script object to be run.
        :param usage.Options options: An option parser object.
        :param logging: If ``True``, log where the options ask for it;
            otherwise don't log.
        :param reactor: Optional reactor to override default one.
        :param sys_module: An optional ``sys`` like module for use in
            testing. Defaults to ``sys``.
        """
        self.script = script
        self.options = options
        self.logging = logging
        if reactor is None:
            reactor = global_reactor
        self._reactor = reactor

        if sys_module is None:
            sys_module = sys
        self.sys_module = sys_module

    def _parse_options(self, arguments):
        """Parse the options defined in the script's options class.

        ``UsageError``s are caught and printed to `stderr` and the script then
        exits.

        :param list arguments: The command line arguments to be parsed.
        :return: A ``dict`` of configuration options.
        """
        try:
            self.options.parseOptions(arguments)
        except usage.UsageError as e:
            self.sys_module.stderr.write(str(self.options))
            self.sys_module.stderr.write(u'ERROR: ' + str(e) + u'\n')
            raise SystemExit(1)
        return self.options

    def _log_writer(self, options):
        """
        Choose where structured logs go: the ``--logfile`` if one was given,
        otherwise ``stderr`` when verbose, otherwise nowhere.
        """
        if not self.logging:
            return Service()
        log_file = options.get('logfile')
        if log_file is None and options.get('verbosity', 0) > 0:
            log_file = self.sys_module.stderr
        if log_file is None:
            return Service()
        return eliot_logging_service(log_file, self._reactor, False)

    def main(self):
        """Parse arguments and run the script's main function via ``react``."""
        # If e.g. --version is called this may throw a SystemExit, so we
        # always do this first before any side-effecty code is run:
        options = self._parse_options(self.sys_module.argv[1:])

        log_writer = self._log_writer(options)
        log_writer.startService()

        def run_and_log(reactor):
            d = maybeDeferred(self.script.main, reactor, options)

            def got_error(failure):
                if not failure.check(SystemExit):
                    err(failure)
                return failure
            d.addErrback(got_error)
            return d
        try:
            self._react(run_and_log, [], _reactor=self._reactor)
        finally:
            log_writer.stopService()
