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
"""Great-circle distance between route guide points."""

import math

COORD_FACTOR = 10000000.0

# Peers convert degrees with this literal; math.pi would shift distances by a
# few millimetres per segment.
PI = 3.1415926

EARTH_RADIUS_METRES = 6371000


def _radians(degrees):
    return degrees * PI / 180


def distance_m(start, end):
    """Distance in metres between two E7 points, by the haversine formula.

    Formula is based on http://mathforum.org/library/drmath/view/51879.html
    """
    lat_1 = start.latitude / COORD_FACTOR
    lat_2 = end.latitude / COORD_FACTOR
    lon_1 = start.longitude / COORD_FACTOR
    lon_2 = end.longitude / COORD_FACTOR
    lat_rad_1 = _radians(lat_1)
    lat_rad_2 = _radians(lat_2)
    delta_lat_rad = _radians(lat_2 - lat_1)
    delta_lon_rad = _radians(lon_2 - lon_1)

    a = pow(math.sin(delta_lat_rad / 2), 2) + (
        math.cos(lat_rad_1)
        * math.cos(lat_rad_2)
        * pow(math.sin(delta_lon_rad / 2), 2)
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METRES * c
