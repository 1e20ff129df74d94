# -*- test-case-name: pandaknocker.knock.test.test_model -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Records describing knock sequences, their runs, and the notifications
emitted about them.

:var int MIN_PORT: The lowest TCP port that may be knocked.
:var int MAX_PORT: The highest TCP port that may be knocked.
"""

from datetime import timedelta

from constantly import Values, ValueConstant

from pyrsistent import PClass, field, pvector_field, CheckedPVector


MIN_PORT = 0
MAX_PORT = 65535


class KnockKind(Values):
    """
    Which of the two configured sequences a run is knocking.
    """
    OPEN = ValueConstant(u"open")
    CLOSE = ValueConstant(u"close")


def _valid_port(port):
    return (
        isinstance(port, int) and not isinstance(port, bool) and
        MIN_PORT <= port <= MAX_PORT,
        u"Port must be an integer between {} and {}, not {!r}".format(
            MIN_PORT, MAX_PORT, port),
    )


class PortSequence(CheckedPVector):
    """
    Ports in the order they are knocked.  Duplicates are allowed; each one
    is knocked.
    """
    __type__ = int
    __invariant__ = _valid_port


class ParseDiagnostic(PClass):
    """
    A problem with one entry of a comma separated port list.

    :ivar int position: The 1-based position of the entry in the list,
        counting empty entries.
    :ivar str token: The entry, with surrounding whitespace removed.
    :ivar str reason: Why the entry is not a port.
    """
    position = field(mandatory=True, type=int)
    token = field(mandatory=True, type=str)
    reason = field(mandatory=True, type=str)


class ParseResult(PClass):
    """
    The outcome of parsing a port list.

    :ivar PortSequence ports: The valid ports, in list order.
    :ivar diagnostics: A ``ParseDiagnostic`` for each rejected entry, in list
        order.
    """
    ports = field(type=PortSequence, initial=PortSequence(),
                  factory=PortSequence.create, mandatory=True)
    diagnostics = pvector_field(ParseDiagnostic)


class SequenceRun(PClass):
    """
    The state of a knock sequence that is in progress.

    :ivar KnockKind kind: Which sequence is being knocked.
    :ivar str host: The host being knocked.
    :ivar timedelta delay: The pause after each knock.
    :ivar PortSequence ports: The ports being knocked.
    :ivar int next_index: The index in ``ports`` of the next knock.
    """
    kind = field(mandatory=True, type=ValueConstant)
    host = field(mandatory=True, type=str)
    delay = field(mandatory=True, type=timedelta)
    ports = field(mandatory=True, type=PortSequence,
                  factory=PortSequence.create)
    next_index = field(mandatory=True, type=int, initial=0)

    @property
    def finished(self):
        return self.next_index >= len(self.ports)

    @property
    def next_port(self):
        return self.ports[self.next_index]


class StepCompleted(PClass):
    """
    One port of a sequence has been knocked and the delay after it has
    passed.
    """
    index = field(mandatory=True, type=int)
    port = field(mandatory=True, type=int)
    kind = field(mandatory=True, type=ValueConstant)
    host = field(mandatory=True, type=str)


class SequenceCompleted(PClass):
    """
    Every port of a sequence has been knocked.
    """
    kind = field(mandatory=True, type=ValueConstant)


class ParseFailed(PClass):
    """
    An entry of a port list could not be used.
    """
    kind = field(mandatory=True, type=ValueConstant)
    position = field(mandatory=True, type=int)
    token = field(mandatory=True, type=str)
    reason = field(mandatory=True, type=str)

    @classmethod
    def from_diagnostic(cls, kind, diagnostic):
        return cls(kind=kind, position=diagnostic.position,
                   token=diagnostic.token, reason=diagnostic.reason)


class DelayParseFailed(PClass):
    """
    A new knock delay was not a whole, non-negative number of milliseconds.
    """
    text = field(mandatory=True, type=str)
    reason = field(mandatory=True, type=str)


class SaveCompleted(PClass):
    """
    Settings have been saved, or saving them failed.

    :ivar bool success: Whether the settings were written.
    :ivar reason: A description of the failure, or ``None``.
    """
    success = field(mandatory=True, type=bool)
    reason = field(mandatory=True, type=(str, type(None)), initial=None)
