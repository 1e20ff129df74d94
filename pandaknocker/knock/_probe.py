# -*- test-case-name: pandaknocker.knock.test.test_probe -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Delivery of a single knock: one TCP connection attempt whose outcome is
irrelevant.
"""

from eliot import MessageType, Field

from twisted.internet.defer import Deferred, maybeDeferred
from twisted.internet.endpoints import TCP4ClientEndpoint, connectProtocol
from twisted.internet.error import DNSLookupError
from twisted.internet.interfaces import IResolutionReceiver
from twisted.internet.protocol import Protocol

from zope.interface import Interface, implementer


DEFAULT_PROBE_TIMEOUT = 1.0


class IProbeClient(Interface):
    """
    Something that can knock on one port.
    """
    def probe(host, port):
        """
        Attempt one TCP connection to ``host:port`` and forget about it.

        Whether the connection was accepted, refused, timed out, or the host
        could not be found makes no difference: the attempt is the knock.

        :param str host: Host name or IP address.
        :param int port: TCP port.
        :return: A ``Deferred`` that fires with ``None`` once the attempt is
            over.  It never fires with a failure.
        """


_HOST = Field.for_types(u"host", [str], u"The host that was knocked.")
_PORT = Field.for_types(u"port", [int], u"The port that was knocked.")

_LOG_PROBE_ACCEPTED = MessageType(
    u"pandaknocker:probe:accepted", [_HOST, _PORT],
    u"The knocked port accepted the connection, which was dropped.")

_LOG_PROBE_FAILED = MessageType(
    u"pandaknocker:probe:failed",
    [_HOST, _PORT,
     Field.for_types(u"reason", [str], u"Why no connection was made.")],
    u"The knock did not produce a connection.  This is normal for a "
    u"port knock.")


def _ignored(failure, host, port):
    _LOG_PROBE_FAILED.log(
        host=host, port=port, reason=failure.getErrorMessage())
    return None


@implementer(IResolutionReceiver)
class _FirstAddress(object):
    """
    Keep the first address a host name resolves to.

    :ivar resolved: A ``Deferred`` that fires with the first
        ``IAddress``, or ``None`` if there were none, once resolution is
        over.
    """
    def __init__(self):
        self._address = None
        self.resolved = Deferred()

    def resolutionBegan(self, resolution):
        pass

    def addressResolved(self, address):
        if self._address is None:
            self._address = address

    def resolutionComplete(self):
        self.resolved.callback(self._address)


@implementer(IProbeClient)
class TCPProbeClient(object):
    """
    Knock by opening a TCP connection and closing it as soon as it is made,
    without reading or writing anything.

    :ivar reactor: The reactor used to connect.
    :ivar float timeout: Seconds to wait for a connection attempt.
    """
    def __init__(self, reactor, timeout=DEFAULT_PROBE_TIMEOUT):
        self._reactor = reactor
        self.timeout = timeout

    def _connect(self, host, port):
        # One knock is one connection attempt, so only the first address
        # of a name is tried.
        receiver = _FirstAddress()
        self._reactor.nameResolver.resolveHostName(receiver, host, port)

        def resolved(address):
            if address is None:
                raise DNSLookupError(host)
            # connectTCP also takes IPv6 address literals.
            endpoint = TCP4ClientEndpoint(
                self._reactor, address.host, port, timeout=self.timeout)
            return connectProtocol(endpoint, Protocol())
        return receiver.resolved.addCallback(resolved)

    def probe(self, host, port):
        d = maybeDeferred(self._connect, host, port)

        def connected(protocol):
            _LOG_PROBE_ACCEPTED.log(host=host, port=port)
            protocol.transport.loseConnection()
            return None
        d.addCallback(connected)
        d.addErrback(_ignored, host, port)
        return d
