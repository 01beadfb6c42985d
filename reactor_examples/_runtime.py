# Copyright 2026 gRPC authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""A completion queue, the threads that pump it and timers that post to it."""

import collections
import logging
import threading

from grpc.framework.foundation import callable_util
from grpc.framework.foundation import logging_pool

from reactor_examples import _common

_LOGGER = logging.getLogger(__name__)

_DEFAULT_MAX_WORKERS = 32


class Event(collections.namedtuple("Event", ("tag", "ok"))):
    """A completed operation.

    Attributes:
      tag: The object the operation was started with.
      ok: Whether the operation completed successfully.
    """


class CompletionQueue(object):
    """A thread-safe FIFO of completed operations."""

    def __init__(self):
        self._condition = threading.Condition()
        self._events = collections.deque()
        self._shutdown = False

    def post(self, tag, ok):
        """Enqueues the completion of the operation started with tag.

        Returns:
          False if the queue has been shut down and the event was dropped,
            True otherwise.
        """
        with self._condition:
            if self._shutdown:
                _LOGGER.debug("Dropping %s posted after shutdown.", tag)
                return False
            self._events.append(Event(tag, ok))
            self._condition.notify()
            return True

    def next(self, timeout=None):
        """Blocks until a completed operation is available.

        Args:
          timeout: The longest time in seconds to wait, or None to wait until
            an event arrives or the queue is shut down.

        Returns:
          The oldest Event, or None if the queue is shut down and drained or
            the timeout elapsed.
        """
        with self._condition:
            self._condition.wait_for(
                lambda: self._events or self._shutdown, timeout=timeout
            )
            if self._events:
                return self._events.popleft()
            return None

    def shutdown(self):
        """Stops accepting events; next() returns None once drained."""
        with self._condition:
            self._shutdown = True
            self._condition.notify_all()


class Runtime(object):
    """Pumps a completion queue and owns the reactors it dispatches to.

    Every event taken from the queue is handed to event.tag.proceed(ok) on one
    of the pump threads. Blocking transport work (waiting for the next inbound
    message) runs on a separate worker pool so pump threads never wait on the
    network.
    """

    def __init__(self, pump_threads=1, max_workers=_DEFAULT_MAX_WORKERS):
        self.completion_queue = CompletionQueue()
        self._pump_count = pump_threads
        self._pool = logging_pool.pool(max_workers)
        self._lock = threading.Lock()
        self._reactors = set()
        self._threads = []

    def start(self):
        with self._lock:
            if self._threads:
                raise ValueError("Runtime already started!")
            for index in range(self._pump_count):
                thread = threading.Thread(
                    target=self._pump, name="reactor-pump-{}".format(index)
                )
                thread.daemon = True
                self._threads.append(thread)
        for thread in self._threads:
            thread.start()
        return self

    def stop(self):
        """Shuts the queue down and waits for the pump threads to drain it."""
        self.completion_queue.shutdown()
        with self._lock:
            threads = tuple(self._threads)
        for thread in threads:
            if thread is not threading.current_thread():
                thread.join()
        self._pool.shutdown(wait=False)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def post(self, tag, ok):
        return self.completion_queue.post(tag, ok)

    def submit(self, behavior, *args):
        return self._pool.submit(behavior, *args)

    def adopt(self, reactor):
        with self._lock:
            self._reactors.add(reactor)

    def release(self, reactor):
        with self._lock:
            if reactor not in self._reactors:
                raise _common.ProtocolViolation(
                    "{} released more than once".format(reactor)
                )
            self._reactors.remove(reactor)

    def live_reactors(self):
        """Returns how many reactors are bound to calls that are not done."""
        with self._lock:
            return len(self._reactors)

    def _pump(self):
        while True:
            event = self.completion_queue.next()
            if event is None:
                return
            callable_util.call_logging_exceptions(
                event.tag.proceed,
                "Exception dispatching completion of {}!".format(event.tag),
                event.ok,
            )


class _AlarmTag(object):
    def __init__(self, callback):
        self._callback = callback

    def proceed(self, ok):
        self._callback(ok)


class Alarm(object):
    """A timer whose expiry is delivered through a Runtime's completion queue.

    callback(ok) runs on a pump thread: ok is True when the alarm expired and
    False when it was cancelled first.
    """

    def __init__(self, runtime):
        self._runtime = runtime
        self._lock = threading.Lock()
        self._timer = None
        self._token = None
        self._callback = None

    def set(self, delay, callback):
        with self._lock:
            if self._timer is not None:
                raise ValueError("Alarm already set!")
            self._callback = callback
            self._token = object()
            self._timer = threading.Timer(
                delay, self._fire, args=(self._token, True)
            )
            self._timer.daemon = True
            self._timer.start()

    def cancel(self):
        with self._lock:
            timer, token = self._timer, self._token
        if timer is not None:
            timer.cancel()
            self._fire(token, False)

    def _fire(self, token, ok):
        with self._lock:
            if self._token is not token:
                return
            self._timer = None
            self._token = None
            callback = self._callback
            self._callback = None
        self._runtime.post(_AlarmTag(callback), ok)
