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
"""Message and service modules for the example protos, built at import time."""

import grpc

helloworld_pb2, helloworld_pb2_grpc = grpc.protos_and_services(
    "reactor_examples/protos/helloworld.proto"
)
route_guide_pb2, route_guide_pb2_grpc = grpc.protos_and_services(
    "reactor_examples/protos/route_guide.proto"
)
