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
"""Setup module for the reactor-driven gRPC Python examples."""

import os

import setuptools

_PACKAGE_PATH = os.path.realpath(os.path.dirname(__file__))
_README_PATH = os.path.join(_PACKAGE_PATH, "README.rst")

VERSION = "1.0.0"
GRPC_VERSION = "1.62.0"

CLASSIFIERS = [
    "Development Status :: 4 - Beta",
    "Programming Language :: Python",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3.8",
    "Programming Language :: Python :: 3.9",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "License :: OSI Approved :: Apache Software License",
]

PACKAGE_DIRECTORIES = {
    "": ".",
}

PACKAGE_DATA = {
    "reactor_examples": ["route_guide_db.json"],
    "reactor_examples.protos": ["*.proto"],
}

INSTALL_REQUIRES = (
    "protobuf>=4.21.6",
    "grpcio>={version}".format(version=GRPC_VERSION),
    "grpcio-tools>={version}".format(version=GRPC_VERSION),
    "grpcio-health-checking>={version}".format(version=GRPC_VERSION),
    "grpcio-reflection>={version}".format(version=GRPC_VERSION),
    "grpcio-admin>={version}".format(version=GRPC_VERSION),
)

EXTRAS_REQUIRE = {
    "test": ("grpcio-testing>={version}".format(version=GRPC_VERSION),),
}

ENTRY_POINTS = {
    "console_scripts": [
        "greeter = reactor_examples.cli:greeter_main",
        "route-guide = reactor_examples.cli:route_guide_main",
    ],
}

setuptools.setup(
    name="grpcio-reactor-examples",
    version=VERSION,
    description="Reactor-driven greeter and route guide examples for gRPC",
    long_description=open(_README_PATH, "r").read(),
    author="The gRPC Authors",
    author_email="grpc-io@googlegroups.com",
    url="https://grpc.io",
    license="Apache License 2.0",
    classifiers=CLASSIFIERS,
    package_dir=PACKAGE_DIRECTORIES,
    packages=setuptools.find_packages(
        ".", include=("reactor_examples", "reactor_examples.*")
    ),
    package_data=PACKAGE_DATA,
    python_requires=">=3.8",
    install_requires=INSTALL_REQUIRES,
    extras_require=EXTRAS_REQUIRE,
    entry_points=ENTRY_POINTS,
)
