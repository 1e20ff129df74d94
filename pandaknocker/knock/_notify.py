# -*- test-case-name: pandaknocker.knock.test.test_notify -*-
# Copyright PandaKnocker Developers.  See LICENSE file for details.

"""
Delivery of knock notifications to whoever is presenting them.
"""

from eliot import MessageType, Field, write_traceback


def _event_serializer(event):
    return {u"type": event.__class__.__name__,
            u"fields": {k: str(v) for k, v in event.serialize().items()}}


_LOG_PUBLISH = MessageType(
    u"pandaknocker:notify:publish",
    [Field(u"event", _event_serializer, u"The published notification.")],
    u"A notification was published to observers.")


class Notifier(object):
    """
    Publish notification records (``StepCompleted``, ``SequenceCompleted``,
    ``ParseFailed``, ``DelayParseFailed``, ``SaveCompleted``) to observers.

    Observers are called in the order they subscribed.  An observer that
    raises has the exception logged and does not stop delivery to the
    others.
    """
    def __init__(self):
        self._observers = []

    def subscribe(self, observer):
        """
        Register a function to be called with every published event.

        :param observer: Callable taking one argument.
        :return: A no-argument callable which unsubscribes ``observer``.
        """
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)
        return unsubscribe

    def publish(self, event):
        _LOG_PUBLISH.log(event=event)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                write_traceback()
