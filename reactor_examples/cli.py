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
"""Entry points of the greeter and route-guide programs."""

import logging
import sys
import threading

from reactor_examples import _runtime
from reactor_examples import _server
from reactor_examples import catalog
from reactor_examples import config as config_lib
from reactor_examples import greeter
from reactor_examples import route_guide
from reactor_examples.protos import helloworld_pb2
from reactor_examples.protos import helloworld_pb2_grpc
from reactor_examples.protos import route_guide_pb2
from reactor_examples.protos import route_guide_pb2_grpc

_LOGGER = logging.getLogger(__name__)

_GREETER_VARIANTS = ("sync", "async", "callback")
_ROUTE_GUIDE_VARIANTS = ("sync", "callback")

_GREETING_FAN_OUT = 100


def _service_names(protos):
    return tuple(
        service.full_name
        for service in protos.DESCRIPTOR.services_by_name.values()
    )


def _parse(argv, prog, description, variants):
    try:
        return config_lib.parse_args(
            argv, prog=prog, description=description, variants=variants
        )
    except config_lib.ConfigError as error:
        _LOGGER.error("%s: %s", prog, error)
        return None


def _serve(config, server, grpc_server, service_names):
    config_lib.add_listening_port(
        grpc_server, config.server_address, config.secure
    )
    maintenance_server = config_lib.start_maintenance(
        config, grpc_server, service_names
    )
    server.start()
    _LOGGER.info("Server listening on %s", config.server_address)
    try:
        server.wait_for_termination()
    except KeyboardInterrupt:
        server.stop(0)
        if maintenance_server is not None:
            maintenance_server.stop(0)


def _greeter_server(config):
    grpc_server = config_lib.create_server(secure=config.secure)
    if config.variant == "async":
        return greeter.AsyncGreeterServer(server=grpc_server), grpc_server
    if config.variant == "callback":
        server = _server.CallbackServer(
            max_workers=config_lib.THREAD_POOL_SIZE, server=grpc_server
        )
        server.add_service(greeter.CallbackGreeter(), helloworld_pb2, "Greeter")
        return server, grpc_server
    helloworld_pb2_grpc.add_GreeterServicer_to_server(
        greeter.Greeter(), grpc_server
    )
    return grpc_server, grpc_server


def _run_greeter_client(config, user="world"):
    with config_lib.create_channel(
        config.server_address, config.secure
    ) as channel:
        if config.variant == "async":
            print(
                "Greeter received: "
                + greeter.AsyncGreeterClient(channel).say_hello(user)
            )
            client = greeter.AsyncGreeterClient2(channel)
            completer = threading.Thread(
                target=client.async_complete_rpc, args=(_GREETING_FAN_OUT,)
            )
            completer.start()
            for i in range(_GREETING_FAN_OUT):
                client.say_hello("{} {}".format(user, i))
            print("Press control-c to quit")
            completer.join()
        elif config.variant == "callback":
            with _runtime.Runtime() as runtime:
                reply = greeter.CallbackGreeterClient(
                    channel, runtime
                ).say_hello(user)
            print("Greeter received: " + reply)
        else:
            print(
                "Greeter received: "
                + greeter.GreeterClient(channel).say_hello(user)
            )


def greeter_main(argv=None):
    config = _parse(
        argv,
        "greeter",
        "Greets and gets greeted, over gRPC.",
        _GREETER_VARIANTS,
    )
    if config is None:
        return 1
    if config.mode is config_lib.Mode.SERVER:
        logging.basicConfig(level=logging.INFO)
        server, grpc_server = _greeter_server(config)
        _serve(config, server, grpc_server, _service_names(helloworld_pb2))
    else:
        logging.basicConfig()
        _run_greeter_client(config)
    return 0


def _route_guide_server(config, feature_catalog):
    grpc_server = config_lib.create_server(secure=config.secure)
    if config.variant == "callback":
        server = _server.CallbackServer(
            max_workers=config_lib.THREAD_POOL_SIZE, server=grpc_server
        )
        server.add_service(
            route_guide.RouteGuideService(feature_catalog),
            route_guide_pb2,
            "RouteGuide",
        )
        return server, grpc_server
    route_guide_pb2_grpc.add_RouteGuideServicer_to_server(
        route_guide.RouteGuideServicer(feature_catalog), grpc_server
    )
    return grpc_server, grpc_server


def _run_route_guide_client(config, feature_catalog):
    with config_lib.create_channel(
        config.server_address, config.secure
    ) as channel:
        if config.variant == "callback":
            with _runtime.Runtime() as runtime:
                route_guide.CallbackRouteGuideClient(
                    channel, feature_catalog, runtime
                ).run()
        else:
            route_guide.RouteGuideClient(channel, feature_catalog).run()


def route_guide_main(argv=None):
    config = _parse(
        argv,
        "route-guide",
        "Serves or explores the route guide, over gRPC.",
        _ROUTE_GUIDE_VARIANTS,
    )
    if config is None:
        return 1
    if config.mode is config_lib.Mode.SERVER:
        logging.basicConfig(level=logging.INFO)
    else:
        logging.basicConfig()
    try:
        feature_catalog = catalog.read_route_guide_database(
            config.database_path
        )
    except (catalog.CatalogParseError, OSError) as error:
        _LOGGER.error("Cannot load %s: %s", config.database_path, error)
        return 1
    if config.mode is config_lib.Mode.SERVER:
        server, grpc_server = _route_guide_server(config, feature_catalog)
        _serve(
            config, server, grpc_server, _service_names(route_guide_pb2)
        )
    else:
        _run_route_guide_client(config, feature_catalog)
    return 0


_PROGRAMS = {
    "greeter": greeter_main,
    "route-guide": route_guide_main,
}


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] not in _PROGRAMS:
        print(
            "usage: python -m reactor_examples {{{}}} [options]".format(
                ",".join(sorted(_PROGRAMS))
            ),
            file=sys.stderr,
        )
        return 1
    return _PROGRAMS[argv[0]](argv[1:])
