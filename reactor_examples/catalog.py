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
"""The feature catalog served by the route guide."""

import json
import os

from google.protobuf import json_format

from reactor_examples.protos import route_guide_pb2

DEFAULT_DATABASE_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "route_guide_db.json"
)


class CatalogParseError(ValueError):
    """Raised when a route guide database cannot be turned into Features."""


class Catalog(object):
    """An ordered, immutable sequence of route_guide_pb2.Features.

    A catalog is built once at startup and then read concurrently by every
    call, so it never changes after construction.
    """

    def __init__(self, features=()):
        self._features = tuple(features)

    @classmethod
    def parse(cls, db_source):
        """Parses the JSON text of a route guide database.

        Args:
          db_source: A JSON array of objects, each with a "location" object
            holding integer "latitude" and "longitude" fields in E7 units and
            an optional "name" string.

        Returns:
          A Catalog holding the features in the order they appear.

        Raises:
          CatalogParseError: If db_source is not such an array.
        """
        try:
            items = json.loads(db_source)
        except ValueError as error:
            raise CatalogParseError(
                "Route guide database is not valid JSON: {}".format(error)
            ) from error
        if not isinstance(items, list):
            raise CatalogParseError(
                "Route guide database must be a JSON array of features."
            )
        features = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise CatalogParseError(
                    "Feature #{} is not a JSON object.".format(index)
                )
            feature = route_guide_pb2.Feature()
            try:
                json_format.ParseDict(item, feature)
            except json_format.ParseError as error:
                raise CatalogParseError(
                    "Feature #{} is malformed: {}".format(index, error)
                ) from error
            if not feature.HasField("location"):
                raise CatalogParseError(
                    "Feature #{} has no location.".format(index)
                )
            features.append(feature)
        return cls(features)

    def serialize(self):
        """Returns JSON text that Catalog.parse turns back into this catalog."""
        return json.dumps(
            [
                json_format.MessageToDict(
                    feature, preserving_proto_field_name=True
                )
                for feature in self._features
            ],
            indent=4,
        )

    def name_at(self, point):
        """Returns the name of the first feature located at point, or ""."""
        for feature in self._features:
            if feature.location == point:
                return feature.name
        return ""

    def scan(self, rectangle):
        """Lazily yields the features inside rectangle, bounds included.

        The corners of rectangle may be given in any order.
        """
        left = min(rectangle.lo.longitude, rectangle.hi.longitude)
        right = max(rectangle.lo.longitude, rectangle.hi.longitude)
        top = max(rectangle.lo.latitude, rectangle.hi.latitude)
        bottom = min(rectangle.lo.latitude, rectangle.hi.latitude)
        for feature in self._features:
            if (
                left <= feature.location.longitude <= right
                and bottom <= feature.location.latitude <= top
            ):
                yield feature

    @property
    def features(self):
        return self._features

    def __iter__(self):
        return iter(self._features)

    def __len__(self):
        return len(self._features)


def read_route_guide_database(path=DEFAULT_DATABASE_PATH):
    """Reads the route guide database at path.

    Returns:
      The full contents of the route guide database as a Catalog.

    Raises:
      CatalogParseError: If the file does not hold a route guide database.
      OSError: If the file cannot be read.
    """
    with open(path) as route_guide_db_file:
        return Catalog.parse(route_guide_db_file.read())
