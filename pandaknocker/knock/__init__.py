# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Port knocking: parsing port lists, knocking sequences of ports one at a
time, and knocking the close sequence before the process exits.
"""

__all__ = [
    'MIN_PORT', 'MAX_PORT', 'KnockKind', 'PortSequence', 'ParseDiagnostic',
    'ParseResult', 'SequenceRun', 'StepCompleted', 'SequenceCompleted',
    'ParseFailed', 'DelayParseFailed', 'SaveCompleted',
    'parse_ports', 'format_ports',
    'Notifier',
    'IProbeClient', 'TCPProbeClient', 'DEFAULT_PROBE_TIMEOUT',
    'KnockSequencer',
    'ShutdownCoordinator', 'ShutdownStates',
    'KnockSession',
    'InvalidHost',
]

from ..common import InvalidHost
from ._model import (
    MIN_PORT, MAX_PORT, KnockKind, PortSequence, ParseDiagnostic,
    ParseResult, SequenceRun, StepCompleted, SequenceCompleted, ParseFailed,
    DelayParseFailed, SaveCompleted,
)
from ._ports import parse_ports, format_ports
from ._notify import Notifier
from ._probe import IProbeClient, TCPProbeClient, DEFAULT_PROBE_TIMEOUT
from ._sequencer import KnockSequencer
from ._shutdown import ShutdownCoordinator, ShutdownStates
from ._session import KnockSession
