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
"""Drives client reactors with the multi-callables of a grpc.Channel."""

import logging
import threading

import grpc
from grpc.framework.foundation import callable_util

from reactor_examples import _common
from reactor_examples import reactor

_LOGGER = logging.getLogger(__name__)


def _status_of(rendezvous):
    return _common.Status(rendezvous.code(), rendezvous.details() or "")


class _ClientCall(object):
    """Carries out a client reactor's operations on a grpc call.

    Until start() the operations are only recorded. Reads then run on the
    runtime's worker pool; writes are handed to grpc's request-consuming
    thread through the iterator returned by _requests, whose next pull means
    the previous write went out.
    """

    def __init__(
        self,
        runtime,
        application_reactor,
        multicallable,
        request_streaming,
        response_streaming,
        request=None,
        response=None,
    ):
        self.runtime = runtime
        self._reactor = application_reactor
        self._multicallable = multicallable
        self._request_streaming = request_streaming
        self._response_streaming = response_streaming
        self._request = request
        self._response = response
        self._condition = threading.Condition()
        self._started = False
        self._rendezvous = None
        self._cancelled = False
        self._pending_read = None
        self._outbound = None
        self._writes_done = False
        self._half_closed = False
        self._terminated = False

    def start(self):
        with self._condition:
            if self._started:
                raise _common.ProtocolViolation(
                    "start_call may only be called once"
                )
            self._started = True
            cancelled = self._cancelled
        if cancelled:
            self._end(_common.CANCELLED)
            return
        argument = self._requests() if self._request_streaming else self._request
        if self._response_streaming:
            rendezvous = self._multicallable(argument)
        else:
            rendezvous = self._multicallable.future(argument)
        with self._condition:
            self._rendezvous = rendezvous
            read, self._pending_read = self._pending_read, None
            cancelled = self._cancelled
        rendezvous.add_done_callback(self._on_termination)
        if cancelled:
            rendezvous.cancel()
        if read is not None:
            self.runtime.submit(self._read, read)

    def cancel(self):
        with self._condition:
            rendezvous = self._rendezvous
            if rendezvous is None:
                self._cancelled = True
                return
        rendezvous.cancel()

    def start_read(self, message):
        with self._condition:
            if self._rendezvous is None and not self._terminated:
                self._pending_read = message
                return
            terminated_before_start = self._rendezvous is None
        if terminated_before_start:
            self._reactor._complete(_common.READ, False)
        else:
            self.runtime.submit(self._read, message)

    def _receive(self, message):
        try:
            response = next(self._rendezvous)
        except (StopIteration, grpc.RpcError):
            return False
        message.CopyFrom(response)
        return True

    def _read(self, message):
        outcome = callable_util.call_logging_exceptions(
            self._receive, "Exception reading response!", message
        )
        ok = (
            outcome.kind is callable_util.Outcome.Kind.RETURNED
            and outcome.return_value
        )
        self._reactor._complete(_common.READ, ok)

    def start_write(self, message):
        with self._condition:
            if not self._terminated:
                self._outbound = message
                self._condition.notify_all()
                return
        self._reactor._complete(_common.WRITE, False)

    def writes_done(self):
        with self._condition:
            if not self._terminated:
                self._writes_done = True
                self._condition.notify_all()
                return
        self._reactor._complete(_common.WRITES_DONE, False)

    def _requests(self):
        while True:
            with self._condition:
                self._condition.wait_for(
                    lambda: self._outbound is not None
                    or self._writes_done
                    or self._terminated
                )
                if self._terminated:
                    return
                message = self._outbound
                if message is None:
                    self._half_closed = True
                    break
            yield message
            with self._condition:
                acknowledged = not self._terminated
                self._outbound = None
            if acknowledged:
                self._reactor._complete(_common.WRITE, True)
        self._reactor._complete(_common.WRITES_DONE, True)

    def _on_termination(self, rendezvous):
        status = _status_of(rendezvous)
        if self._response is not None and status.ok():
            self._response.CopyFrom(rendezvous.result())
        self._end(status)

    def _end(self, status):
        with self._condition:
            self._terminated = True
            read, self._pending_read = self._pending_read, None
            write_pending = self._outbound is not None
            self._outbound = None
            half_closed = self._half_closed
            self._condition.notify_all()
        if read is not None:
            self._reactor._complete(_common.READ, False)
        if write_pending:
            self._reactor._complete(_common.WRITE, False)
        if not half_closed:
            self._reactor._complete(_common.WRITES_DONE, False)
        self._reactor._terminate(status)


class _CallbackReactor(reactor.ClientUnaryReactor):
    def __init__(self, callback):
        super(_CallbackReactor, self).__init__()
        self._callback = callback

    def on_done(self, status):
        self._callback(status)


class _AsyncMethod(object):
    def __init__(self, runtime, multicallable):
        self._runtime = runtime
        self._multicallable = multicallable

    def _bind(self, application_reactor, reactor_type, *args, **kwargs):
        if not isinstance(application_reactor, reactor_type):
            raise TypeError(
                "Expected a {}, got {!r}".format(
                    reactor_type.__name__, application_reactor
                )
            )
        call = _ClientCall(
            self._runtime, application_reactor, self._multicallable, *args, **kwargs
        )
        application_reactor._bind(call)

    def __call__(self, *args):
        if isinstance(self._multicallable, grpc.UnaryUnaryMultiCallable):
            request, response, on_done = args
            if isinstance(on_done, reactor.ClientUnaryReactor):
                self._bind(
                    on_done,
                    reactor.ClientUnaryReactor,
                    False,
                    False,
                    request=request,
                    response=response,
                )
            else:
                application_reactor = _CallbackReactor(on_done)
                self._bind(
                    application_reactor,
                    reactor.ClientUnaryReactor,
                    False,
                    False,
                    request=request,
                    response=response,
                )
                application_reactor.start_call()
        elif isinstance(self._multicallable, grpc.UnaryStreamMultiCallable):
            request, application_reactor = args
            self._bind(
                application_reactor,
                reactor.ClientReadReactor,
                False,
                True,
                request=request,
            )
        elif isinstance(self._multicallable, grpc.StreamUnaryMultiCallable):
            application_reactor, response = args
            self._bind(
                application_reactor,
                reactor.ClientWriteReactor,
                True,
                False,
                response=response,
            )
        else:
            (application_reactor,) = args
            self._bind(
                application_reactor, reactor.ClientBidiReactor, True, True
            )


class AsyncStub(object):
    """Starts the calls of a generated stub with client reactors.

    Methods take the same positional arguments whatever the stub:

      unary-unary:   stub.Method(request, response, on_done)
      unary-unary:   stub.Method(request, response, ClientUnaryReactor)
      unary-stream:  stub.Method(request, ClientReadReactor)
      stream-unary:  stub.Method(ClientWriteReactor, response)
      stream-stream: stub.Method(ClientBidiReactor)

    The first form starts the call at once and invokes on_done(status) on a
    pump thread when it ends; response then holds the reply if status is OK.
    The other forms only bind the reactor; it is started with start_call().
    """

    def __init__(self, stub, runtime):
        self._stub = stub
        self._runtime = runtime

    def __getattr__(self, name):
        return _AsyncMethod(self._runtime, getattr(self._stub, name))


class ClientAsyncResponseReader(object):
    """A unary call whose completion is posted to a CompletionQueue."""

    def __init__(self, multicallable, request, completion_queue):
        self._multicallable = multicallable
        self._request = request
        self._completion_queue = completion_queue
        self._future = None
        self.status = None

    def start_call(self):
        self._future = self._multicallable.future(self._request)

    def finish(self, reply, tag):
        """Posts tag once the call is over; reply then holds the response."""

        def _done(future):
            self.status = _status_of(future)
            if self.status.ok():
                reply.CopyFrom(future.result())
            self._completion_queue.post(tag, True)

        self._future.add_done_callback(_done)
