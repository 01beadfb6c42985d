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
"""Common code used throughout tests of the reactor examples."""

import threading

import grpc
from grpc.framework.foundation import logging_pool

from reactor_examples import _common
from reactor_examples import catalog
from reactor_examples.protos import route_guide_pb2

WAIT_TIMEOUT = 10.0

_POOL_SIZE = 10


def make_feature(name, latitude, longitude):
    return route_guide_pb2.Feature(
        name=name,
        location=route_guide_pb2.Point(latitude=latitude, longitude=longitude),
    )


def make_rectangle(lo, hi):
    return route_guide_pb2.Rectangle(
        lo=route_guide_pb2.Point(latitude=lo[0], longitude=lo[1]),
        hi=route_guide_pb2.Point(latitude=hi[0], longitude=hi[1]),
    )


def small_catalog():
    return catalog.Catalog(
        (
            make_feature("A", 10, 10),
            make_feature("B", 20, 20),
            make_feature("", 30, 30),
        )
    )


def pool():
    return logging_pool.pool(_POOL_SIZE)


def start(server):
    """Binds server to an ephemeral local port, starts it, returns a channel."""
    port = server.add_insecure_port("localhost:0")
    server.start()
    return grpc.insecure_channel("localhost:%d" % port)


class ScriptedCall(object):
    """Records the operations a reactor hands to its transport.

    Completions are reported by the test itself through the reactor's
    _complete and _terminate.
    """

    def __init__(self, runtime):
        self.runtime = runtime
        self.operations = []
        self._condition = threading.Condition()

    def _record(self, kind, argument):
        with self._condition:
            self.operations.append((kind, argument))
            self._condition.notify_all()

    def start_read(self, message):
        self._record(_common.READ, message)

    def start_write(self, message):
        self._record(_common.WRITE, message)

    def finish(self, status):
        self._record(_common.FINISH, status)

    def writes_done(self):
        self._record(_common.WRITES_DONE, None)

    def start(self):
        self._record("start", None)

    def cancel(self):
        self._record("cancel", None)

    def kinds(self):
        with self._condition:
            return self._kinds_locked()

    def wait_for(self, kind, count=1):
        """Returns the argument of the count-th operation of kind."""
        with self._condition:
            self._condition.wait_for(
                lambda: self._kinds_locked().count(kind) >= count,
                timeout=WAIT_TIMEOUT,
            )
            arguments = [
                argument
                for operation, argument in self.operations
                if operation == kind
            ]
        return arguments[count - 1]

    def _kinds_locked(self):
        return [kind for kind, _ in self.operations]
