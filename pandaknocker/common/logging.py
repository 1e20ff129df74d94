# -*- test-case-name: pandaknocker.settings.test.test_store -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Simple logging utilities for pandaknocker.
"""

from inspect import getmodule, stack

from eliot import log_message


_ERROR_TOKEN = u'ERROR'


def _compute_message_type(frame_tuple):
    """
    Constructs a human readable message type from a frame of a traceback.

    Format of output:

    <module>:<function name>:<line number>

    :param frame_tuple: The stack frame tuple to turn into a message type.
        Should normally be one stack level higher than the function that calls
        this. (i.e. ``inspect.stack()[1]`` )

    :returns str: The human readable message_type for a log originating at
        the given stack frame.
    """
    frame, _, line, func, _, _ = frame_tuple
    return u':'.join([getmodule(frame).__name__, func, str(line)])


def log_error(**kwargs):
    """
    Simple logging wrapper around Eliot messages for conditions a user
    should be told about.

    This fills in the message type, adds a token to indicate it is an error,
    and passes all other arguments on to ``eliot.log_message``.
    """
    log_message(
        message_type=_compute_message_type(stack()[1]),
        level=_ERROR_TOKEN,
        **kwargs
    )
