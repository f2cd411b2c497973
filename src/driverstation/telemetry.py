"""
Hands decoded telemetry records to consumers.

The sink is push driven: each record is passed to the handlers subscribed to `records`
as it arrives. A consumer that prefers iteration opens a TelemetryStream, which buffers
the records it is handed until they are read.
"""
import logging
from queue import Full, Queue

from driverstation.protocol.codec import TelemetryRecord
from driverstation.support.events import EventSource

logger = logging.getLogger(__name__)

_end = object()


class TelemetrySink:

    def __init__(self):
        self.records = EventSource('telemetry')
        self._closed = False
        self._streams = []

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, record: TelemetryRecord):
        """ passes a record to all subscribers. Records pushed after close() are discarded. """
        if self._closed:
            return
        self.records.fire(record)

    def stream(self, maxsize=0, timeout=None):
        """
        Opens an iterator over the records pushed from now on.
        :param maxsize: the number of unread records held before new ones are dropped. 0 is unbounded.
        :param timeout: how long next() waits for a record before raising queue.Empty. None waits forever.
        """
        stream = TelemetryStream(self, maxsize, timeout)
        if self._closed:
            stream.close()
        else:
            self._streams.append(stream)
            self.records.add(stream._offer)
        return stream

    def _detach(self, stream):
        self.records.remove(stream._offer)
        if stream in self._streams:
            self._streams.remove(stream)

    def close(self):
        """ ends all open streams. The sink cannot be reopened. """
        if self._closed:
            return
        self._closed = True
        for stream in list(self._streams):
            stream.close()


class TelemetryStream:
    """
    An iterator over telemetry records in arrival order. Iteration ends when the stream
    or its sink is closed; records already buffered are still returned first.
    """

    def __init__(self, sink: TelemetrySink, maxsize=0, timeout=None):
        self._sink = sink
        self._queue = Queue(maxsize + 1 if maxsize else 0)   # room for the end marker
        self._maxsize = maxsize
        self._timeout = timeout
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, record):
        if self._closed:
            return
        if self._maxsize and self._queue.qsize() >= self._maxsize:
            self.dropped += 1
            logger.debug("telemetry stream full, dropped record %s", record)
            return
        try:
            self._queue.put_nowait(record)
        except Full:
            self.dropped += 1

    def __iter__(self):
        return self

    def __next__(self) -> TelemetryRecord:
        if self._closed and self._queue.empty():
            raise StopIteration
        item = self._queue.get(timeout=self._timeout)
        if item is _end:
            raise StopIteration
        return item

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._sink._detach(self)
        try:
            self._queue.put_nowait(_end)
        except Full:
            pass    # a full closed stream ends once it has been drained

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

