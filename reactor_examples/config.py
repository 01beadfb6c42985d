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
"""Command line options and the channels and servers they describe."""

import argparse
import collections
from concurrent import futures
import enum
import logging

import grpc
import grpc.experimental
from grpc.framework.foundation import logging_pool
from grpc_health.v1 import health
from grpc_health.v1 import health_pb2
from grpc_health.v1 import health_pb2_grpc
from grpc_reflection.v1alpha import reflection
import grpc_admin

from reactor_examples import catalog

_LOGGER = logging.getLogger(__name__)

DEFAULT_IP = "0.0.0.0"
DEFAULT_SERVER_PORT = 50051
DEFAULT_MAINTENANCE_PORT = 50052
DEFAULT_SERVER_ADDRESS = f"{DEFAULT_IP}:{DEFAULT_SERVER_PORT}"
DEFAULT_MAINTENANCE_ADDRESS = f"{DEFAULT_IP}:{DEFAULT_MAINTENANCE_PORT}"

THREAD_POOL_SIZE = 256


class Mode(enum.Enum):
    SERVER = "server"
    CLIENT = "client"


Config = collections.namedtuple(
    "Config",
    (
        "server_address",
        "maintenance_address",
        "mode",
        "secure",
        "database_path",
        "variant",
    ),
)


class ConfigError(ValueError):
    """Raised for command lines that do not describe a runnable program."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        self.print_usage()
        raise ConfigError(message)


def _compose_address(address, ip, port, default_ip, default_port):
    if address is not None:
        return address
    if ip is None and port is None:
        return f"{default_ip}:{default_port}"
    return "{}:{}".format(
        default_ip if ip is None else ip,
        default_port if port is None else port,
    )


def parse_args(argv, prog=None, description=None, variants=("sync",)):
    """Parses a command line into a Config.

    An explicit address wins; otherwise the address is composed from the ip
    and port options, falling back on 0.0.0.0 and the default ports. --help
    prints usage and raises SystemExit(0).

    Raises:
      ConfigError: If argv holds an unknown option or a malformed value.
    """
    parser = _ArgumentParser(prog=prog, description=description)
    parser.add_argument(
        "-t",
        "--target",
        "--server_address",
        dest="server_address",
        help="Address (host:port) the server listens on or the client dials.",
    )
    parser.add_argument("--server_ip", help=f"(default: {DEFAULT_IP})")
    parser.add_argument(
        "--server_port", type=int, help=f"(default: {DEFAULT_SERVER_PORT})"
    )
    parser.add_argument(
        "--maintenance_address",
        help="Address of the admin, health and reflection services when "
        "--secure is given.",
    )
    parser.add_argument("--maintenance_ip", help=f"(default: {DEFAULT_IP})")
    parser.add_argument(
        "--maintenance_port",
        type=int,
        help=f"(default: {DEFAULT_MAINTENANCE_PORT})",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=[mode.value for mode in Mode],
        default=Mode.CLIENT.value,
        help="Select client/server mode. (default: client)",
    )
    parser.add_argument(
        "-s", dest="mode", action="store_const", const=Mode.SERVER.value
    )
    parser.add_argument(
        "-c", dest="mode", action="store_const", const=Mode.CLIENT.value
    )
    parser.add_argument(
        "--secure",
        action="store_true",
        help="Use xDS credentials and serve maintenance services separately.",
    )
    parser.add_argument(
        "-db",
        "--database",
        dest="database_path",
        default=catalog.DEFAULT_DATABASE_PATH,
        help="Path to the route guide database.",
    )
    parser.add_argument(
        "--variant",
        choices=variants,
        default=variants[0],
        help=f"Implementation to run. (default: {variants[0]})",
    )
    args = parser.parse_args(argv)
    return Config(
        server_address=_compose_address(
            args.server_address,
            args.server_ip,
            args.server_port,
            DEFAULT_IP,
            DEFAULT_SERVER_PORT,
        ),
        maintenance_address=_compose_address(
            args.maintenance_address,
            args.maintenance_ip,
            args.maintenance_port,
            DEFAULT_IP,
            DEFAULT_MAINTENANCE_PORT,
        ),
        mode=Mode(args.mode),
        secure=args.secure,
        database_path=args.database_path,
        variant=args.variant,
    )


def create_channel(address, secure=False):
    if secure:
        # Fall back to insecure credentials.
        fallback_creds = grpc.experimental.insecure_channel_credentials()
        channel_creds = grpc.xds_channel_credentials(fallback_creds)
        return grpc.secure_channel(address, channel_creds)
    return grpc.insecure_channel(address)


def create_server(secure=False, max_workers=THREAD_POOL_SIZE):
    return grpc.server(logging_pool.pool(max_workers), xds=secure)


def add_listening_port(server, address, secure=False):
    """Adds address to server, with xDS credentials if secure.

    Returns:
      The port actually bound.
    """
    if not secure:
        return server.add_insecure_port(address)
    _LOGGER.info("Running with xDS Server credentials")
    server_fallback_creds = grpc.insecure_server_credentials()
    server_creds = grpc.xds_server_credentials(server_fallback_creds)
    return server.add_secure_port(address, server_creds)


def add_maintenance_services(server, service_names):
    """Adds health checking, reflection and admin services to server.

    Every service in service_names is reported as SERVING.
    """
    # Create a health check servicer. We use the non-blocking implementation
    # to avoid thread starvation.
    health_servicer = health.HealthServicer(
        experimental_non_blocking=True,
        experimental_thread_pool=futures.ThreadPoolExecutor(
            max_workers=THREAD_POOL_SIZE
        ),
    )
    services = tuple(service_names) + (
        reflection.SERVICE_NAME,
        health.SERVICE_NAME,
    )
    health_pb2_grpc.add_HealthServicer_to_server(health_servicer, server)
    for service in services:
        health_servicer.set(service, health_pb2.HealthCheckResponse.SERVING)
    reflection.enable_server_reflection(services, server)
    grpc_admin.add_admin_servicers(server)
    return health_servicer


def start_maintenance(config, server, service_names):
    """Places the maintenance services as config asks.

    In secure mode they get an insecure server of their own on
    config.maintenance_address, which is started and returned. Otherwise they
    are added to server and None is returned.
    """
    if not config.secure:
        add_maintenance_services(server, service_names)
        return None
    maintenance_server = create_server()
    add_maintenance_services(maintenance_server, service_names)
    # For the maintenance server, do not use any authentication mechanism.
    maintenance_server.add_insecure_port(config.maintenance_address)
    maintenance_server.start()
    _LOGGER.info(
        "Maintenance server listening on %s", config.maintenance_address
    )
    return maintenance_server
