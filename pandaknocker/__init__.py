# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
PandaKnocker sends TCP port knocking sequences to a host, opening access
when it starts and closing it again before it exits.
"""

__version__ = "0.3.0"


def _redirect_eliot_logs_for_trial():
    """
    Enable Eliot logging to the ``_trial/test.log`` file.

    This wrapper function allows ``pandaknocker`` to be imported by
    packaging tools without them having to install the Eliot dependencies.
    """
    import os
    import sys
    if os.path.basename(sys.argv[0]) == "trial":
        from eliot.twisted import redirectLogsForTrial
        redirectLogsForTrial()
_redirect_eliot_logs_for_trial()
del _redirect_eliot_logs_for_trial
