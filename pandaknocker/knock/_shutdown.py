# -*- test-case-name: pandaknocker.knock.test.test_shutdown -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Knocking the close sequence before the process exits.

When the user asks to quit, the close sequence is knocked and the process
only terminates once it has finished.  A quit request that arrives while a
sequence is already being knocked is ignored, leaving the process running.
"""

from constantly import Names, NamedConstant

from eliot import MessageType, Field

from ..common.logging import log_error
from ._model import KnockKind


class ShutdownStates(Names):
    """
    States of the shutdown coordinator.
    """
    # No close has been requested:
    RUNNING = NamedConstant()
    # The close sequence is being knocked:
    DRAINING = NamedConstant()
    # Termination has been requested:
    TERMINATED = NamedConstant()


_STATE = Field(u"state", lambda state: state.name,
               u"The state of the shutdown coordinator.")

_LOG_CLOSE_IGNORED = MessageType(
    u"pandaknocker:shutdown:close-ignored",
    [_STATE, Field.for_types(u"busy", [bool], u"Whether knocking.")],
    u"A close request was ignored.")

_LOG_CLOSE_REQUESTED = MessageType(
    u"pandaknocker:shutdown:close-requested",
    [Field(u"ports", list, u"The close sequence.")],
    u"A close request was accepted.")

_LOG_TERMINATE = MessageType(
    u"pandaknocker:shutdown:terminate", [],
    u"Termination of the process was requested.")


class ShutdownCoordinator(object):
    """
    Turn a request to close the application into a close sequence followed
    by termination.

    :ivar ShutdownStates state: The current state.
    """
    def __init__(self, sequencer, close_parameters, terminate):
        """
        :param KnockSequencer sequencer: Knocks the close sequence.  The
            coordinator attaches itself so the sequencer can report the end
            of the close sequence.
        :param close_parameters: No-argument callable returning the
            ``(ports, host, delay)`` of the close sequence at the time the
            close is requested.
        :param terminate: No-argument callable that ends the process.  It
            is called at most once.
        """
        self._sequencer = sequencer
        self._close_parameters = close_parameters
        self._terminate = terminate
        self.state = ShutdownStates.RUNNING
        sequencer.attach_shutdown(self)

    @property
    def close_requested(self):
        """
        Whether a close has been accepted.  Once true it stays true.
        """
        return self.state is not ShutdownStates.RUNNING

    def request_close(self):
        """
        Handle a request to close the application.

        :return bool: Whether the request was accepted.
        """
        busy = self._sequencer.busy
        if self.state is not ShutdownStates.RUNNING or busy:
            _LOG_CLOSE_IGNORED.log(state=self.state, busy=busy)
            return False
        self.state = ShutdownStates.DRAINING
        ports, host, delay = self._close_parameters()
        _LOG_CLOSE_REQUESTED.log(ports=list(ports))
        if not ports:
            self.safe_to_terminate()
            return True
        try:
            self._sequencer.start(KnockKind.CLOSE, ports, host, delay)
        except ValueError as e:
            log_error(reason=str(e))
            self.safe_to_terminate()
        return True

    def safe_to_terminate(self):
        """
        The close sequence is over (or there was none): end the process.
        """
        if self.state is ShutdownStates.TERMINATED:
            return
        self.state = ShutdownStates.TERMINATED
        _LOG_TERMINATE.log()
        self._terminate()
