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
"""Reactors: per-call state machines driven by completion queue events.

A reactor is one side of one in-flight call. The application starts
operations on it (start_read, start_write, finish, ...) and each operation's
completion is reported by exactly one callback (on_read_done, on_write_done,
...) invoked on a pump thread of the Runtime the call belongs to. Callbacks of
one reactor never run concurrently and run in the order their operations
completed, but successive callbacks may run on different threads.

At most one read and one write may be outstanding at a time. Once the call is
over and every started operation has been reported, on_done runs exactly
once; the reactor is then released and refuses further operations.
"""

import logging
import threading

import grpc
from grpc.framework.foundation import callable_util

from reactor_examples import _common

_LOGGER = logging.getLogger(__name__)

_CALLBACKS = {
    _common.READ: "on_read_done",
    _common.WRITE: "on_write_done",
    _common.WRITES_DONE: "on_writes_done_done",
}

_INTERNAL = _common.Status(
    grpc.StatusCode.INTERNAL, "Exception calling application reactor!"
)


class _Completion(object):
    """The tag of one callback owed to one reactor."""

    def __init__(self, reactor, sequence, callback):
        self._reactor = reactor
        self._sequence = sequence
        self._callback = callback

    def proceed(self, ok):
        self._reactor._dispatch(self._sequence, self._callback, ok)

    def __repr__(self):
        return "<completion #{} of {!r}>".format(self._sequence, self._reactor)


class _Reactor(object):
    """Bookkeeping common to every reactor shape.

    Transport bindings drive a reactor through _bind, _complete, _notify and
    _terminate; applications only use the public operations of subclasses.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._call = None
        self._backlog = []
        self._due = set()
        self._holds = 0
        self._status = None
        self._done = False
        self._posted = 0
        self._dispatched = 0
        self._ready = {}
        self._draining = False

    def _bind(self, call):
        with self._lock:
            if self._call is not None:
                raise _common.ProtocolViolation(
                    "{!r} is already bound to a call".format(self)
                )
            self._call = call
            backlog, self._backlog = self._backlog, None
        call.runtime.adopt(self)
        for intent in backlog:
            intent(call)

    def _start(self, operation, intent):
        with self._lock:
            if self._done:
                raise _common.ProtocolViolation(
                    "Cannot start {} on a reactor whose call is done".format(
                        operation
                    )
                )
            if operation in self._due:
                raise _common.ProtocolViolation(
                    "A {} is already outstanding on {!r}".format(operation, self)
                )
            self._due.add(operation)
            call = self._call
            if call is None:
                self._backlog.append(intent)
                return
        intent(call)

    def _complete(self, operation, ok):
        """Reports the completion of operation.

        Returns:
          False if operation was not outstanding, in which case nothing
            happens.
        """
        with self._lock:
            if operation not in self._due:
                return False
            self._due.remove(operation)
            callback_name = _CALLBACKS.get(operation)
            if callback_name is None:
                self._maybe_done_locked()
            else:
                self._post_locked(getattr(self, callback_name), ok)
            return True

    def _notify(self, callback):
        """Schedules the argumentless callback in order with completions."""
        with self._lock:
            self._post_locked(lambda unused_ok: callback(), True)

    def _terminate(self, status):
        """Records the call's final status; on_done follows once idle."""
        with self._lock:
            if self._status is not None:
                return
            self._status = status
            self._maybe_done_locked()

    def _post_locked(self, callback, ok):
        completion = _Completion(self, self._posted, callback)
        self._posted += 1
        self._call.runtime.post(completion, ok)

    def _maybe_done_locked(self):
        if (
            self._done
            or self._status is None
            or self._due
            or self._holds
            or self._draining
            or self._dispatched != self._posted
        ):
            return
        self._done = True
        self._post_locked(self._finalize, True)

    def _dispatch(self, sequence, callback, ok):
        with self._lock:
            self._ready[sequence] = (callback, ok)
            if self._draining:
                return
            self._draining = True
        while True:
            with self._lock:
                entry = self._ready.pop(self._dispatched, None)
                if entry is None:
                    self._draining = False
                    self._maybe_done_locked()
                    return
                self._dispatched += 1
            callback, ok = entry
            outcome = callable_util.call_logging_exceptions(
                callback, "Exception calling application reactor!", ok
            )
            if outcome.kind is callable_util.Outcome.Kind.RAISED:
                self._abandon()

    def _finalize(self, unused_ok):
        try:
            self._on_done()
        finally:
            self._call.runtime.release(self)
            self._released()

    def _on_done(self):
        raise NotImplementedError()

    def _released(self):
        pass

    def _abandon(self):
        raise NotImplementedError()


class _Reader(object):
    def start_read(self, message):
        """Reads the next inbound message into message.

        on_read_done(ok) follows; ok is False once the peer has no more
        messages to send or the call has ended.
        """
        self._start(_common.READ, lambda call: call.start_read(message))

    def on_read_done(self, ok):
        pass


class _Writer(object):
    def start_write(self, message):
        """Sends message; on_write_done(ok) follows once it left the reactor.

        message must not be modified until then.
        """
        self._start(_common.WRITE, lambda call: call.start_write(message))

    def on_write_done(self, ok):
        pass


class _ServerReactor(_Reactor):
    def finish(self, status):
        """Ends the call with status after any outstanding write."""
        self._start(_common.FINISH, lambda call: call.finish(status))

    def on_cancel(self):
        """Called if the call ends before the status given to finish is sent."""

    def on_done(self):
        """Called once, after every other callback of this reactor."""

    def _on_done(self):
        self.on_done()

    def _abandon(self):
        with self._lock:
            if (
                self._done
                or self._status is not None
                or _common.FINISH in self._due
            ):
                return
            self._due.add(_common.FINISH)
            call = self._call
        _LOGGER.error("Failing call of %r with %s.", self, _INTERNAL)
        call.finish(_INTERNAL)


class ServerUnaryReactor(_ServerReactor):
    """Server side of a call that sends a single response."""


class ServerReadReactor(_Reader, _ServerReactor):
    """Server side of a client-streaming call."""


class ServerWriteReactor(_Writer, _ServerReactor):
    """Server side of a server-streaming call."""


class ServerBidiReactor(_Reader, _Writer, _ServerReactor):
    """Server side of a bidirectional-streaming call.

    Reads and writes are independent; their callbacks may arrive in any
    interleaving.
    """


class _ClientReactor(_Reactor):
    def __init__(self):
        super(_ClientReactor, self).__init__()
        self._released_event = threading.Event()
        self._writes_done_held = False

    def start_call(self):
        """Starts the call, including any operations already started."""
        with self._lock:
            call = self._call
        if call is None:
            raise _common.ProtocolViolation(
                "start_call on {!r} before it was given to a stub".format(self)
            )
        call.start()

    def add_hold(self):
        """Keeps the call's writes open until a matching remove_hold.

        Take a hold before start_call whenever writes will be started from
        outside this reactor's callbacks, such as from an Alarm.
        """
        with self._lock:
            if self._done:
                raise _common.ProtocolViolation(
                    "add_hold on a reactor whose call is done"
                )
            self._holds += 1

    def remove_hold(self):
        with self._lock:
            if not self._holds:
                raise _common.ProtocolViolation(
                    "remove_hold without a matching add_hold"
                )
            self._holds -= 1
            release_writes_done = not self._holds and self._writes_done_held
            if release_writes_done:
                self._writes_done_held = False
            call = self._call
            self._maybe_done_locked()
        if release_writes_done:
            call.writes_done()

    def try_cancel(self):
        """Cancels the call if it has not already ended."""
        with self._lock:
            call = self._call
        if call is not None:
            call.cancel()

    def on_done(self, status):
        """Called once with the call's final Status, after every other callback."""

    def wait(self, timeout=None):
        """Blocks until on_done has returned.

        Returns:
          The call's final Status, or None if timeout elapsed first.
        """
        if not self._released_event.wait(timeout):
            return None
        return self._status

    def _on_done(self):
        self.on_done(self._status)

    def _released(self):
        self._released_event.set()

    def _abandon(self):
        self.try_cancel()

    def _writes_done(self, call):
        with self._lock:
            if self._holds:
                self._writes_done_held = True
                return
        call.writes_done()


class _ClientWriter(_Writer):
    def start_writes_done(self):
        """Tells the server no more messages will follow.

        Takes effect once every hold has been removed; on_writes_done_done(ok)
        follows.
        """
        self._start(_common.WRITES_DONE, self._writes_done)

    def on_writes_done_done(self, ok):
        pass


class ClientUnaryReactor(_ClientReactor):
    """Client side of a call with a single request and a single response."""


class ClientReadReactor(_Reader, _ClientReactor):
    """Client side of a server-streaming call."""


class ClientWriteReactor(_ClientWriter, _ClientReactor):
    """Client side of a client-streaming call."""


class ClientBidiReactor(_Reader, _ClientWriter, _ClientReactor):
    """Client side of a bidirectional-streaming call."""
