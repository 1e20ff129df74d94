# -*- test-case-name: pandaknocker.knock.test.test_sequencer -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Knocking a sequence of ports, one at a time, with a pause after each.

Only one sequence is ever in flight.  A run is a single loop that, for each
port, waits for the probe to finish and then waits out the delay before
reporting the step and moving on.  Probe outcomes are never looked at: a
refused or timed out connection is as good a knock as an accepted one.
"""

from datetime import timedelta

from eliot import ActionType, MessageType, Field, write_failure
from eliot.twisted import inline_callbacks

from twisted.internet.defer import maybeDeferred
from twisted.internet.task import deferLater

from ..common._net import validate_host
from ._model import (
    KnockKind, PortSequence, SequenceRun, StepCompleted, SequenceCompleted,
)


_KIND = Field(u"kind", lambda kind: kind.value, u"Which sequence is knocked.")
_HOST = Field.for_types(u"host", [str], u"The host being knocked.")

KNOCK_SEQUENCE = ActionType(
    u"pandaknocker:knock:sequence",
    [_KIND, _HOST,
     Field(u"ports", list, u"The ports, in knock order."),
     Field(u"delay", lambda d: d.total_seconds(),
           u"Seconds to wait after each knock.")],
    [],
    u"A sequence of ports is knocked.")

KNOCK_STEP = MessageType(
    u"pandaknocker:knock:step",
    [Field.for_types(u"index", [int], u"Position of the port."),
     Field.for_types(u"port", [int], u"The port knocked.")],
    u"One port was knocked and the delay after it has passed.")

START_REJECTED = MessageType(
    u"pandaknocker:knock:start-rejected",
    [_KIND, Field.for_types(u"reason", [str], u"Why nothing was started.")],
    u"A request to knock was dropped.")


class KnockSequencer(object):
    """
    Single-flight driver for knock sequences.

    :ivar SequenceRun run: The run in progress, or ``None``.
    """
    run = None

    def __init__(self, reactor, probe_client, notifier):
        """
        :param IReactorTime reactor: Used to wait between knocks.
        :param IProbeClient probe_client: Delivers each knock.
        :param Notifier notifier: Receives ``StepCompleted`` and
            ``SequenceCompleted`` events.
        """
        self._reactor = reactor
        self._probe_client = probe_client
        self._notifier = notifier
        self._shutdown = None

    @property
    def busy(self):
        """
        Whether a sequence is being knocked.
        """
        return self.run is not None

    def attach_shutdown(self, coordinator):
        """
        Tell ``coordinator`` when a close sequence it asked for has finished.

        :param ShutdownCoordinator coordinator: The coordinator.
        """
        self._shutdown = coordinator

    def start(self, kind, ports, host, delay):
        """
        Begin knocking ``ports`` on ``host`` unless a sequence is already
        being knocked or there is nothing to knock.

        :param KnockKind kind: Which sequence this is.
        :param ports: The ports, in the order to knock them.
        :param str host: The host to knock.
        :param timedelta delay: Time to wait after each knock.

        :raise InvalidHost: If ``host`` can not be knocked.  Nothing is
            started.
        :raise ValueError: If ``delay`` is negative.
        :return bool: Whether a run was started.
        """
        if self.busy:
            START_REJECTED.log(kind=kind, reason=u"busy")
            return False
        if not ports:
            START_REJECTED.log(kind=kind, reason=u"no ports")
            return False
        host = validate_host(host)
        if delay < timedelta(0):
            raise ValueError(
                u"Delay must not be negative, not {!r}".format(delay))
        self.run = SequenceRun(
            kind=kind, host=host, delay=delay,
            ports=PortSequence.create(ports),
        )
        d = self._knock()
        d.addErrback(write_failure)
        return True

    @inline_callbacks
    def _knock(self):
        run = self.run
        try:
            with KNOCK_SEQUENCE(kind=run.kind, host=run.host,
                                ports=list(run.ports), delay=run.delay):
                while not run.finished:
                    index, port = run.next_index, run.next_port
                    probing = maybeDeferred(
                        self._probe_client.probe, run.host, port)
                    # A probe client that breaks its contract still counts
                    # as a knock.
                    probing.addErrback(write_failure)
                    yield probing
                    yield deferLater(
                        self._reactor, run.delay.total_seconds(),
                        lambda: None)
                    run = run.set(next_index=index + 1)
                    self.run = run
                    KNOCK_STEP.log(index=index, port=port)
                    self._notifier.publish(StepCompleted(
                        index=index, port=port, kind=run.kind,
                        host=run.host))
        finally:
            self.run = None
        # Observers of the completion may start the close sequence, so
        # whether this run ends the process is settled first.
        closing = self._closing(run.kind)
        self._notifier.publish(SequenceCompleted(kind=run.kind))
        if closing:
            self._shutdown.safe_to_terminate()

    def _closing(self, kind):
        shutdown = self._shutdown
        return (kind is KnockKind.CLOSE and shutdown is not None and
                shutdown.close_requested)
