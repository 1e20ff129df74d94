# -*- test-case-name: pandaknocker.knock.test.test_ports -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Parsing of user supplied, comma separated port lists.
"""

import re

from ._model import (
    MIN_PORT, MAX_PORT, ParseDiagnostic, ParseResult, PortSequence,
)


_DIGITS = re.compile(r"\A\+?[0-9]+\Z")


def _parse_port(token):
    """
    :param str token: A non-empty list entry without surrounding whitespace.
    :return: ``(port, None)`` or ``(None, reason)``.
    """
    if _DIGITS.match(token) is None:
        return None, u"not a number"
    # Avoid int() on arbitrarily long digit strings.
    digits = token.lstrip(u"+").lstrip(u"0") or u"0"
    port = int(digits) if len(digits) <= len(str(MAX_PORT)) else None
    if port is None or not MIN_PORT <= port <= MAX_PORT:
        return None, u"out of range {}-{}".format(MIN_PORT, MAX_PORT)
    return port, None


def parse_ports(text):
    """
    Turn a comma separated list such as ``"5000, 6000, 7000"`` into the
    ports to knock, in order.

    Empty entries are skipped.  Entries that are not ports are left out of
    the result and described by a ``ParseDiagnostic`` instead; they do not
    stop the rest of the list being used.  Duplicates are kept.

    :param str text: The port list.
    :return ParseResult: The ports and the diagnostics.
    """
    ports = []
    diagnostics = []
    for position, raw in enumerate(text.split(u","), start=1):
        token = raw.strip()
        if not token:
            continue
        port, reason = _parse_port(token)
        if reason is None:
            ports.append(port)
        else:
            diagnostics.append(ParseDiagnostic(
                position=position, token=token, reason=reason))
    return ParseResult(ports=PortSequence(ports), diagnostics=diagnostics)


def format_ports(ports):
    """
    The inverse of ``parse_ports`` for a list with no bad entries.

    :param ports: Iterable of ``int``.
    :return str: The ports separated by ``", "``.
    """
    return u", ".join(str(port) for port in ports)
