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
"""The helloworld.Greeter service, served and called in several styles.

Greeter is a plain synchronous servicer, CallData drives the service through
a completion queue one accepted call at a time, and CallbackGreeter answers
each call with a reactor. Every reply carries its position among all replies
of the server, counted by a shared Counter.
"""

import enum
import logging
import threading
import time

import grpc
from grpc.framework.foundation import logging_pool

from reactor_examples import _client
from reactor_examples import _common
from reactor_examples import _runtime
from reactor_examples import _server
from reactor_examples.protos import helloworld_pb2
from reactor_examples.protos import helloworld_pb2_grpc

_LOGGER = logging.getLogger(__name__)

_DEFAULT_MAX_WORKERS = 32


class Counter(object):
    """Numbers replies 1, 2, 3, ... across every thread of a server."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = 0

    def increment(self):
        with self._lock:
            self._value += 1
            return self._value


def make_reply(request, counter):
    return helloworld_pb2.HelloReply(
        message="Hello " + request.name, order=counter.increment()
    )


class Greeter(helloworld_pb2_grpc.GreeterServicer):
    """Answers each call on the grpc handler thread that received it."""

    def __init__(self, counter=None, delay=0.0):
        self._counter = Counter() if counter is None else counter
        self._delay = delay

    def SayHello(self, request, context):
        if self._delay:
            time.sleep(self._delay)
        return make_reply(request, self._counter)


class CallbackGreeter(object):
    """Answers each call with the default unary reactor."""

    def __init__(self, counter=None):
        self._counter = Counter() if counter is None else counter

    def SayHello(self, context, request, reply):
        reply.CopyFrom(make_reply(request, self._counter))
        default_reactor = context.default_reactor()
        default_reactor.finish(_common.OK)
        return default_reactor


class _CallStatus(enum.Enum):
    CREATE = "create"
    PROCESS = "process"
    FINISH = "finish"


class CallData(object):
    """The state and logic needed to serve one SayHello call.

    The instance is its own completion queue tag: the queue's pump calls
    proceed() each time the operation it last started completes.
    """

    def __init__(self, service, completion_queue, counter):
        self._service = service
        self._completion_queue = completion_queue
        self._counter = counter
        self._responder = _server.ServerAsyncResponseWriter()
        self._status = _CallStatus.CREATE
        self.proceed(True)

    def proceed(self, ok):
        if self._status is _CallStatus.CREATE:
            self._status = _CallStatus.PROCESS
            # Ask for the next SayHello call; self is posted once it arrives.
            self._service.request(
                "SayHello", self._responder, self._completion_queue, self
            )
        elif self._status is _CallStatus.PROCESS:
            # Spawn a new CallData instance to serve new clients while we
            # process the one for this CallData.
            CallData(self._service, self._completion_queue, self._counter)
            reply = make_reply(self._responder.request, self._counter)
            self._status = _CallStatus.FINISH
            self._responder.finish(reply, _common.OK, self)
        else:
            if self._status is not _CallStatus.FINISH:
                raise ValueError("Unknown call status {}".format(self._status))
            _LOGGER.debug(
                "Finished greeting %s.", self._responder.request.name
            )


class AsyncGreeterServer(object):
    """Serves Greeter from a completion queue pumped by its own threads."""

    def __init__(
        self,
        server=None,
        counter=None,
        pump_threads=1,
        max_workers=_DEFAULT_MAX_WORKERS,
    ):
        self._counter = Counter() if counter is None else counter
        self._service = _server.AsyncUnaryService(helloworld_pb2, "Greeter")
        if server is None:
            server = grpc.server(logging_pool.pool(max_workers))
        self.server = server
        self.server.add_generic_rpc_handlers((self._service.generic_handler(),))
        self._runtime = _runtime.Runtime(pump_threads=pump_threads)

    def add_insecure_port(self, address):
        return self.server.add_insecure_port(address)

    def add_secure_port(self, address, server_credentials):
        return self.server.add_secure_port(address, server_credentials)

    def start(self):
        self.server.start()
        self._runtime.start()
        CallData(self._service, self._runtime.completion_queue, self._counter)

    def stop(self, grace):
        self._service.shutdown()
        self.server.stop(grace).wait()
        self._runtime.stop()

    def wait_for_termination(self, timeout=None):
        return self.server.wait_for_termination(timeout=timeout)


def _failure(code, details):
    print("{}: {}".format(code, details))
    return "RPC failed"


class GreeterClient(object):
    def __init__(self, channel):
        self._stub = helloworld_pb2_grpc.GreeterStub(channel)

    def say_hello(self, user):
        """Returns "[ order ] message" for the reply, or "RPC failed"."""
        try:
            reply = self._stub.SayHello(helloworld_pb2.HelloRequest(name=user))
        except grpc.RpcError as rpc_error:
            return _failure(rpc_error.code(), rpc_error.details())
        return "[ {} ] {}".format(reply.order, reply.message)


class AsyncGreeterClient(object):
    """Waits for each reply on a completion queue of its own."""

    def __init__(self, channel):
        self._stub = helloworld_pb2_grpc.GreeterStub(channel)

    def say_hello(self, user):
        completion_queue = _runtime.CompletionQueue()
        rpc = _client.ClientAsyncResponseReader(
            self._stub.SayHello,
            helloworld_pb2.HelloRequest(name=user),
            completion_queue,
        )
        rpc.start_call()
        reply = helloworld_pb2.HelloReply()
        rpc.finish(reply, 1)
        event = completion_queue.next()
        if event.tag != 1 or not event.ok:
            raise RuntimeError("Unexpected completion {}".format(event))
        if rpc.status.ok():
            return reply.message
        return _failure(rpc.status.code, rpc.status.details)


class _AsyncClientCall(object):
    def __init__(self):
        self.reply = helloworld_pb2.HelloReply()
        self.response_reader = None


class AsyncGreeterClient2(object):
    """Fires calls without waiting; async_complete_rpc collects the replies."""

    def __init__(self, channel):
        self._stub = helloworld_pb2_grpc.GreeterStub(channel)
        self._completion_queue = _runtime.CompletionQueue()

    def say_hello(self, user):
        call = _AsyncClientCall()
        call.response_reader = _client.ClientAsyncResponseReader(
            self._stub.SayHello,
            helloworld_pb2.HelloRequest(name=user),
            self._completion_queue,
        )
        call.response_reader.start_call()
        call.response_reader.finish(call.reply, call)

    def async_complete_rpc(self, expected=None):
        """Loops while listening for completed calls.

        Args:
          expected: How many calls to wait for, or None to run until
            shutdown().

        Returns:
          The replies of the successful calls, in completion order.
        """
        replies = []
        completed = 0
        while expected is None or completed < expected:
            event = self._completion_queue.next()
            if event is None:
                break
            call = event.tag
            status = call.response_reader.status
            if status.ok():
                print("Greeter received: " + call.reply.message)
                replies.append(call.reply)
            else:
                _failure(status.code, status.details)
            completed += 1
        return replies

    def shutdown(self):
        self._completion_queue.shutdown()


class CallbackGreeterClient(object):
    """Calls SayHello through the callback API and waits for on_done."""

    def __init__(self, channel, runtime):
        self._stub = _client.AsyncStub(
            helloworld_pb2_grpc.GreeterStub(channel), runtime
        )

    def say_hello(self, user):
        reply = helloworld_pb2.HelloReply()
        condition = threading.Condition()
        outcome = []

        def on_done(status):
            with condition:
                outcome.append(status)
                condition.notify_all()

        self._stub.SayHello(
            helloworld_pb2.HelloRequest(name=user), reply, on_done
        )
        with condition:
            condition.wait_for(lambda: outcome)
        status = outcome[0]
        if status.ok():
            return reply.message
        return _failure(status.code, status.details)
