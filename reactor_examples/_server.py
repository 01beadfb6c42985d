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
"""Serves reactor-based services on a grpc.Server."""

import functools
import logging
import queue
import threading

from google.protobuf import descriptor_pb2
import grpc
from grpc.framework.foundation import callable_util
from grpc.framework.foundation import logging_pool

from reactor_examples import _common
from reactor_examples import _runtime
from reactor_examples import reactor

_LOGGER = logging.getLogger(__name__)

_DEFAULT_MAX_WORKERS = 32

_SHUTDOWN = object()

_ARITY_HANDLERS = {
    True: {
        True: "stream_stream",
        False: "stream_unary",
    },
    False: {
        True: "unary_stream",
        False: "unary_unary",
    },
}

_REACTOR_TYPES = {
    "unary_unary": reactor.ServerUnaryReactor,
    "unary_stream": reactor.ServerWriteReactor,
    "stream_unary": reactor.ServerReadReactor,
    "stream_stream": reactor.ServerBidiReactor,
}


def _get_arity(method_descriptor):
    descriptor_proto = descriptor_pb2.MethodDescriptorProto()
    method_descriptor.CopyToProto(descriptor_proto)
    client_streaming = (
        descriptor_proto.client_streaming
        if descriptor_proto.HasField("client_streaming")
        else False
    )
    server_streaming = (
        descriptor_proto.server_streaming
        if descriptor_proto.HasField("server_streaming")
        else False
    )
    return _ARITY_HANDLERS[client_streaming][server_streaming]


class CallbackServerContext(object):
    """What a reactor-returning method knows about the call it serves."""

    def __init__(self, servicer_context):
        self._servicer_context = servicer_context

    def default_reactor(self):
        """Returns a unary reactor for methods that can respond immediately."""
        return reactor.ServerUnaryReactor()

    def invocation_metadata(self):
        return self._servicer_context.invocation_metadata()

    def time_remaining(self):
        return self._servicer_context.time_remaining()


class _ServerCall(object):
    """Carries out a server reactor's operations on a grpc servicer call.

    Reads are pulled from the request iterator on the runtime's worker pool.
    Writes and the final status are handed to the grpc handler thread, which
    is parked in responses() (or response() for a single response) until the
    reactor gives it something to do.
    """

    def __init__(self, runtime, servicer_context, requests=None):
        self.runtime = runtime
        self._servicer_context = servicer_context
        self._requests = requests
        self._condition = threading.Condition()
        self._reactor = None
        self._outbound = None
        self._status = None
        self._cancelled = False
        self._terminated = False

    def bind(self, application_reactor, reactor_type):
        if not isinstance(application_reactor, reactor_type):
            raise TypeError(
                "Expected a {}, got {!r}".format(
                    reactor_type.__name__, application_reactor
                )
            )
        self._reactor = application_reactor
        application_reactor._bind(self)
        if not self._servicer_context.add_callback(self._on_termination):
            self._on_termination()

    def start_read(self, message):
        self.runtime.submit(self._read, message)

    def _receive(self, message):
        try:
            request = next(self._requests)
        except StopIteration:
            return False
        except grpc.RpcError:
            with self._condition:
                self._cancelled = True
            return False
        message.CopyFrom(request)
        return True

    def _read(self, message):
        outcome = callable_util.call_logging_exceptions(
            self._receive, "Exception reading request!", message
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

    def finish(self, status):
        with self._condition:
            if not self._terminated:
                self._status = status
                self._condition.notify_all()
                return
        self._reactor._complete(_common.FINISH, True)

    def responses(self):
        while True:
            with self._condition:
                self._condition.wait_for(
                    lambda: self._outbound is not None
                    or self._status is not None
                    or self._terminated
                )
                if self._terminated:
                    return
                message = self._outbound
                if message is None:
                    status = self._status
                    break
            yield message
            with self._condition:
                acknowledged = not self._terminated
                self._outbound = None
            if acknowledged:
                self._reactor._complete(_common.WRITE, True)
        if not status.ok():
            self._servicer_context.set_code(status.code)
            self._servicer_context.set_details(status.details)

    def response(self, message):
        with self._condition:
            self._condition.wait_for(
                lambda: self._status is not None or self._terminated
            )
            status = self._status
        if status is None:
            status = _common.CANCELLED
        if not status.ok():
            self._servicer_context.abort(status.code, status.details)
        return message

    def _on_termination(self):
        with self._condition:
            self._terminated = True
            status = self._status
            cancelled = self._cancelled
            write_pending = self._outbound is not None
            self._outbound = None
            self._condition.notify_all()
        if status is None or cancelled:
            status = _common.CANCELLED
            self._reactor._notify(self._reactor.on_cancel)
        if write_pending:
            self._reactor._complete(_common.WRITE, False)
        self._reactor._complete(_common.FINISH, True)
        self._reactor._terminate(status)


def _method_handler(runtime, behavior, arity, request_class, response_class):
    reactor_type = _REACTOR_TYPES[arity]
    kwargs = {
        "request_deserializer": request_class.FromString,
        "response_serializer": response_class.SerializeToString,
    }
    if arity == "unary_unary":

        def unary_unary(request, servicer_context):
            response = response_class()
            call = _ServerCall(runtime, servicer_context)
            call.bind(
                behavior(
                    CallbackServerContext(servicer_context), request, response
                ),
                reactor_type,
            )
            return call.response(response)

        return grpc.unary_unary_rpc_method_handler(unary_unary, **kwargs)
    elif arity == "unary_stream":

        def unary_stream(request, servicer_context):
            call = _ServerCall(runtime, servicer_context)
            call.bind(
                behavior(CallbackServerContext(servicer_context), request),
                reactor_type,
            )
            return call.responses()

        return grpc.unary_stream_rpc_method_handler(unary_stream, **kwargs)
    elif arity == "stream_unary":

        def stream_unary(request_iterator, servicer_context):
            response = response_class()
            call = _ServerCall(runtime, servicer_context, request_iterator)
            call.bind(
                behavior(CallbackServerContext(servicer_context), response),
                reactor_type,
            )
            return call.response(response)

        return grpc.stream_unary_rpc_method_handler(stream_unary, **kwargs)
    else:

        def stream_stream(request_iterator, servicer_context):
            call = _ServerCall(runtime, servicer_context, request_iterator)
            call.bind(
                behavior(CallbackServerContext(servicer_context)),
                reactor_type,
            )
            return call.responses()

        return grpc.stream_stream_rpc_method_handler(stream_stream, **kwargs)


def _service_descriptor(protos, service_name):
    return protos.DESCRIPTOR.services_by_name[service_name]


class CallbackServer(object):
    """A grpc.Server whose services answer each call with a reactor.

    A service is any object with one attribute per RPC method of a proto
    service. Each is called once per incoming call and returns the reactor
    that will serve it:

      unary-unary:   method(context, request, response) -> ServerUnaryReactor
      unary-stream:  method(context, request) -> ServerWriteReactor
      stream-unary:  method(context, response) -> ServerReadReactor
      stream-stream: method(context) -> ServerBidiReactor

    The response passed to single-response methods is sent when the reactor
    finishes with an OK status.

    Every call parks one grpc handler thread and may keep one runtime worker
    blocked on a read, so a runtime created here gets max_workers workers;
    pass the same max_workers as the thread pool of a given server.
    """

    def __init__(
        self, runtime=None, max_workers=_DEFAULT_MAX_WORKERS, server=None
    ):
        if runtime is None:
            runtime = _runtime.Runtime(max_workers=max_workers)
        self.runtime = runtime
        if server is None:
            server = grpc.server(logging_pool.pool(max_workers))
        self.server = server

    def add_service(self, service, protos, service_name):
        """Registers service as the implementation of protos' service_name."""
        descriptor = _service_descriptor(protos, service_name)
        handlers = {}
        for method in descriptor.methods:
            handlers[method.name] = _method_handler(
                self.runtime,
                getattr(service, method.name),
                _get_arity(method),
                getattr(protos, method.input_type.name),
                getattr(protos, method.output_type.name),
            )
        self.server.add_generic_rpc_handlers(
            (
                grpc.method_handlers_generic_handler(
                    descriptor.full_name, handlers
                ),
            )
        )

    def add_insecure_port(self, address):
        return self.server.add_insecure_port(address)

    def add_secure_port(self, address, server_credentials):
        return self.server.add_secure_port(address, server_credentials)

    def start(self):
        self.runtime.start()
        self.server.start()

    def stop(self, grace):
        stopped = self.server.stop(grace)
        stopped.wait()
        self.runtime.stop()

    def wait_for_termination(self, timeout=None):
        return self.server.wait_for_termination(timeout=timeout)


class ServerAsyncResponseWriter(object):
    """One accepted unary call, answered through a completion queue.

    Handed to AsyncUnaryService.request; once the request tag fires, request
    holds the call's request and finish(reply, status, tag) sends the answer.
    tag is posted again once the call is over.
    """

    def __init__(self):
        self._condition = threading.Condition()
        self.request = None
        self._servicer_context = None
        self._answer = None

    def finish(self, reply, status, tag):
        with self._condition:
            if self._answer is not None:
                raise _common.ProtocolViolation("Call already finished!")
            self._answer = (reply, status, tag)
            self._condition.notify_all()

    def _accept(self, request, servicer_context):
        self.request = request
        self._servicer_context = servicer_context

    def _serve(self, completion_queue):
        with self._condition:
            self._condition.wait_for(lambda: self._answer is not None)
            reply, status, tag = self._answer
        if not self._servicer_context.add_callback(
            functools.partial(completion_queue.post, tag, True)
        ):
            completion_queue.post(tag, True)
        if not status.ok():
            self._servicer_context.abort(status.code, status.details)
        return reply


class AsyncUnaryService(object):
    """Accepts calls to a service's unary methods only when asked to.

    Each request(method, responder, completion_queue, tag) lets exactly one
    more call of method in; tag is posted to completion_queue when it arrives.
    Incoming calls wait until someone has asked for them, or fail with
    UNAVAILABLE once shutdown() has been called.
    """

    def __init__(self, protos, service_name):
        self._descriptor = _service_descriptor(protos, service_name)
        self._protos = protos
        self._requested = {
            method.name: queue.Queue()
            for method in self._descriptor.methods
            if _get_arity(method) == "unary_unary"
        }

    def request(self, method, responder, completion_queue, tag):
        self._requested[method].put((responder, completion_queue, tag))

    def shutdown(self):
        """Turns away every call that has not been requested yet."""
        for requested in self._requested.values():
            requested.put(_SHUTDOWN)

    def _handle(self, method, request, servicer_context):
        requested = self._requested[method].get()
        if requested is _SHUTDOWN:
            # Leave it for the next parked call.
            self._requested[method].put(_SHUTDOWN)
            servicer_context.abort(
                grpc.StatusCode.UNAVAILABLE, "Service is shutting down."
            )
        responder, completion_queue, tag = requested
        responder._accept(request, servicer_context)
        completion_queue.post(tag, True)
        return responder._serve(completion_queue)

    def generic_handler(self):
        handlers = {}
        for method in self._descriptor.methods:
            if method.name not in self._requested:
                continue
            handlers[method.name] = grpc.unary_unary_rpc_method_handler(
                functools.partial(self._handle, method.name),
                request_deserializer=getattr(
                    self._protos, method.input_type.name
                ).FromString,
                response_serializer=getattr(
                    self._protos, method.output_type.name
                ).SerializeToString,
            )
        return grpc.method_handlers_generic_handler(
            self._descriptor.full_name, handlers
        )
