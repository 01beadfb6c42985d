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
"""Shared types for reactors and the transport bindings that drive them."""

import collections

import grpc

READ = "read"
WRITE = "write"
WRITES_DONE = "writes_done"
FINISH = "finish"


class ProtocolViolation(RuntimeError):
    """Raised when a reactor is driven in a way its call cannot honour.

    Examples are a second read started while one is outstanding, or any
    operation started on a reactor whose call has already completed.
    """


class Status(collections.namedtuple("Status", ("code", "details"))):
    """The final status of an RPC.

    Attributes:
      code: A grpc.StatusCode.
      details: A human-readable description accompanying code.
    """

    def __new__(cls, code, details=""):
        return super(Status, cls).__new__(cls, code, details)

    def ok(self):
        return self.code is grpc.StatusCode.OK


OK = Status(grpc.StatusCode.OK)
CANCELLED = Status(grpc.StatusCode.CANCELLED, "Cancelled")
