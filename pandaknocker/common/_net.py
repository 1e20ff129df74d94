# -*- test-case-name: pandaknocker.common.test.test_net -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Network utilities.
"""

import re
from ipaddress import ip_address


# One label of an RFC 1123 host name.
_LABEL = re.compile(r"\A(?!-)[A-Za-z0-9-]{1,63}(?<!-)\Z")


class InvalidHost(ValueError):
    """
    Raised when a string cannot be used as the host to knock on.

    :ivar str host: The rejected host string.
    :ivar str reason: Why it was rejected.
    """
    def __init__(self, host, reason):
        self.host = host
        self.reason = reason
        super(InvalidHost, self).__init__(
            u"Invalid host {!r}: {}".format(host, reason))


def ipaddress_from_string(ip_address_string):
    """
    Parse an IPv4 or IPv6 address string and return an ``ipaddress``
    address instance.

    Remove the "embedded scope id" from IPv6 addresses (if there is
    one).

    :param str ip_address_string: The IP address string to be parsed.
    :raises ValueError: If the string is not an IP address.
    """
    # There may be an embedded scope id in an IPv6 address. Discard
    # it. Eg fe80::f816:3eff:fe11:ca54%eth0
    parts = ip_address_string.rsplit('%', 1)
    ip_address_string = parts[0]
    return ip_address(ip_address_string)


def validate_host(host):
    """
    Check that ``host`` is an IP address literal or a syntactically valid
    host name.

    No name resolution is done; a name that does not resolve is a probe
    failure, not a validation failure.

    :param str host: The host to check.
    :raises InvalidHost: If the host can not be used.
    :return str: ``host`` with surrounding whitespace removed.
    """
    if not isinstance(host, str):
        raise InvalidHost(host, u"host must be a string")
    candidate = host.strip()
    if not candidate:
        raise InvalidHost(host, u"host is empty")
    try:
        ipaddress_from_string(candidate)
    except ValueError:
        pass
    else:
        return candidate

    name = candidate[:-1] if candidate.endswith(u".") else candidate
    if len(name) > 253:
        raise InvalidHost(host, u"host name is longer than 253 characters")
    labels = name.split(u".")
    if all(label.isdigit() for label in labels):
        raise InvalidHost(host, u"not a valid IP address")
    for label in labels:
        if not _LABEL.match(label):
            raise InvalidHost(
                host, u"{!r} is not a valid host name label".format(label))
    return candidate
