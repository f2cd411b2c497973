import threading


class EventSource(object):
    """
    A list of handlers that are called when the event is fired.

    Handlers may be added and removed from any thread. Firing iterates over a snapshot
    of the handlers, so a handler may remove itself while being notified.
    """

    def __init__(self, name=None):
        self.name = name
        self._handlers = []
        self._lock = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        with self._lock:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def handlers(self):
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        for handler in self.handlers():
            handler(*args, **kwargs)

    def __repr__(self):
        return "EventSource(%r, %d handlers)" % (self.name, len(self))
