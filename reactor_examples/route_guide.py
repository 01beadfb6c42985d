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
"""The routeguide.RouteGuide service and its clients.

RouteGuideServicer and RouteGuideClient use the blocking, iterator-based
grpc API; RouteGuideService and CallbackRouteGuideClient drive every call
with a reactor.
"""

import collections
import logging
import random
import threading
import time

import grpc

from reactor_examples import _client
from reactor_examples import _common
from reactor_examples import _runtime
from reactor_examples import board
from reactor_examples import geometry
from reactor_examples import reactor
from reactor_examples.protos import route_guide_pb2
from reactor_examples.protos import route_guide_pb2_grpc

_LOGGER = logging.getLogger(__name__)

_ROUTE_LENGTH = 10
_WRITE_DELAY_RANGE_MS = (500, 1500)


def make_point(latitude, longitude):
    return route_guide_pb2.Point(latitude=latitude, longitude=longitude)


def make_route_note(message, latitude, longitude):
    return route_guide_pb2.RouteNote(
        message=message, location=make_point(latitude, longitude)
    )


def format_point(point):
    # not delegating in point.__str__ because it is an empty string when its
    # values are zero. In addition, it puts a newline between the fields.
    return f"latitude: {point.latitude}, longitude: {point.longitude}"


DEMO_POINTS = (make_point(409146138, -746188906), make_point(0, 0))

DEMO_RECTANGLE = route_guide_pb2.Rectangle(
    lo=make_point(400000000, -750000000),
    hi=make_point(420000000, -730000000),
)


def demo_notes():
    return [
        make_route_note("First message", 0, 0),
        make_route_note("Second message", 0, 1),
        make_route_note("Third message", 1, 0),
        make_route_note("Fourth message", 0, 0),
        make_route_note("Fifth message", 1, 0),
    ]


class _RouteStats(object):
    """Running totals of a RecordRoute call."""

    def __init__(self, catalog):
        self._catalog = catalog
        self._point_count = 0
        self._feature_count = 0
        self._distance = 0.0
        self._previous = route_guide_pb2.Point()
        self._start_time = None

    def add(self, point):
        if self._start_time is None:
            self._start_time = time.monotonic()
        self._point_count += 1
        if self._catalog.name_at(point):
            self._feature_count += 1
        if self._point_count > 1:
            self._distance += geometry.distance_m(self._previous, point)
        self._previous.CopyFrom(point)

    def summary(self):
        if self._start_time is None:
            elapsed_time = 0
        else:
            elapsed_time = time.monotonic() - self._start_time
        return route_guide_pb2.RouteSummary(
            point_count=self._point_count,
            feature_count=self._feature_count,
            distance=int(self._distance),
            elapsed_time=int(elapsed_time),
        )


def _feature_at(catalog, point):
    return route_guide_pb2.Feature(name=catalog.name_at(point), location=point)


class RouteGuideServicer(route_guide_pb2_grpc.RouteGuideServicer):
    """Provides methods that implement functionality of route guide server."""

    def __init__(self, catalog, note_board=None):
        self._catalog = catalog
        self._board = board.NoteBoard() if note_board is None else note_board

    def GetFeature(self, request, context):
        return _feature_at(self._catalog, request)

    def ListFeatures(self, request, context):
        yield from self._catalog.scan(request)

    def RecordRoute(self, request_iterator, context):
        stats = _RouteStats(self._catalog)
        for point in request_iterator:
            stats.add(point)
        return stats.summary()

    def RouteChat(self, request_iterator, context):
        for new_note in request_iterator:
            yield from self._board.match_then_append(new_note)


class Lister(reactor.ServerWriteReactor):
    """Streams the catalog features inside a rectangle."""

    def __init__(self, catalog, rectangle):
        super().__init__()
        self._features = catalog.scan(rectangle)
        self._next_write()

    def on_write_done(self, ok):
        if ok:
            self._next_write()

    def on_done(self):
        _LOGGER.debug("ListFeatures call done.")

    def _next_write(self):
        feature = next(self._features, None)
        if feature is None:
            self.finish(_common.OK)
        else:
            self.start_write(feature)


class Recorder(reactor.ServerReadReactor):
    """Summarizes the points of a route until the client stops sending."""

    def __init__(self, catalog, summary):
        super().__init__()
        self._summary = summary
        self._stats = _RouteStats(catalog)
        self._point = route_guide_pb2.Point()
        self.start_read(self._point)

    def on_read_done(self, ok):
        if ok:
            self._stats.add(self._point)
            self.start_read(self._point)
        else:
            self._summary.CopyFrom(self._stats.summary())
            self.finish(_common.OK)

    def on_done(self):
        _LOGGER.debug("RecordRoute call done.")


class Chatter(reactor.ServerBidiReactor):
    """Answers each note with the notes left at its location before it."""

    def __init__(self, note_board):
        super().__init__()
        self._board = note_board
        self._note = route_guide_pb2.RouteNote()
        self._to_send = collections.deque()
        self.start_read(self._note)

    def on_read_done(self, ok):
        if ok:
            # Later callbacks may run on other threads, so the board's lock is
            # never held across a write: copy matches now, append once sent.
            self._to_send.extend(self._board.matching(self._note.location))
            self._next_write()
        else:
            self.finish(_common.OK)

    def on_write_done(self, ok):
        if ok:
            self._next_write()
        else:
            # The call is over; the note still counts as received.
            self._to_send.clear()
            self._board.append(self._note)

    def on_done(self):
        _LOGGER.debug("RouteChat call done.")

    def _next_write(self):
        if self._to_send:
            self.start_write(self._to_send.popleft())
        else:
            self._board.append(self._note)
            self.start_read(self._note)


class RouteGuideService(object):
    """Serves RouteGuide on a CallbackServer."""

    def __init__(self, catalog, note_board=None):
        self._catalog = catalog
        self._board = board.NoteBoard() if note_board is None else note_board

    def GetFeature(self, context, point, feature):
        feature.CopyFrom(_feature_at(self._catalog, point))
        default_reactor = context.default_reactor()
        default_reactor.finish(_common.OK)
        return default_reactor

    def ListFeatures(self, context, rectangle):
        return Lister(self._catalog, rectangle)

    def RecordRoute(self, context, summary):
        return Recorder(self._catalog, summary)

    def RouteChat(self, context):
        return Chatter(self._board)


def _print_feature(feature):
    if feature.name:
        print(
            f"Feature called {feature.name!r} at {format_point(feature.location)}"
        )
    else:
        print(f"Found no feature at {format_point(feature.location)}")


def _print_summary(summary):
    print(f"Finished trip with {summary.point_count} points ")
    print(f"Passed {summary.feature_count} features ")
    print(f"Travelled {summary.distance} meters ")
    print(f"It took {summary.elapsed_time} seconds ")


def _print_received(note):
    print(f"Received message {note.message} at {format_point(note.location)}")


def _check_feature(feature):
    if not feature.HasField("location"):
        print("Server returns incomplete feature.")
        return False
    _print_feature(feature)
    return True


def _random_route(features, length):
    for _ in range(length):
        random_feature = random.choice(features)
        print(f"Visiting point {format_point(random_feature.location)}")
        yield random_feature.location


class RouteGuideClient(object):
    """Runs the route guide calls on blocking stubs."""

    def __init__(self, channel, catalog):
        self._stub = route_guide_pb2_grpc.RouteGuideStub(channel)
        self._catalog = catalog

    def get_one_feature(self, point):
        """Returns whether the server described the feature at point."""
        try:
            feature = self._stub.GetFeature(point)
        except grpc.RpcError as rpc_error:
            print(f"GetFeature rpc failed: {rpc_error.code()}")
            return False
        return _check_feature(feature)

    def get_feature(self):
        for point in DEMO_POINTS:
            self.get_one_feature(point)

    def list_features(self, rectangle=DEMO_RECTANGLE):
        print("Looking for features between 40, -75 and 42, -73")
        features = []
        try:
            for feature in self._stub.ListFeatures(rectangle):
                _print_feature(feature)
                features.append(feature)
        except grpc.RpcError as rpc_error:
            print(f"ListFeatures rpc failed: {rpc_error.code()}")
        return features

    def record_route(self, points=None):
        """Records a route; a random one through the catalog unless given.

        Returns:
          The route_guide_pb2.RouteSummary, or None if the call failed.
        """
        if points is None:
            points = _random_route(self._catalog.features, _ROUTE_LENGTH)
        try:
            summary = self._stub.RecordRoute(iter(points))
        except grpc.RpcError as rpc_error:
            print(f"RecordRoute rpc failed: {rpc_error.code()}")
            return None
        _print_summary(summary)
        return summary

    def route_chat(self, notes=None):
        def generate_messages():
            for msg in demo_notes() if notes is None else notes:
                print(f"Sending {msg.message} at {format_point(msg.location)}")
                yield msg

        received = []
        try:
            for response in self._stub.RouteChat(generate_messages()):
                _print_received(response)
                received.append(response)
        except grpc.RpcError as rpc_error:
            print(f"RouteChat rpc failed: {rpc_error.code()}")
        return received

    def run(self):
        print("-------------- GetFeature --------------")
        self.get_feature()
        print("-------------- ListFeatures --------------")
        self.list_features()
        print("-------------- RecordRoute --------------")
        self.record_route()
        print("-------------- RouteChat --------------")
        self.route_chat()


class FeatureReader(reactor.ClientReadReactor):
    """Collects the features a ListFeatures call streams back."""

    def __init__(self, stub, rectangle):
        super().__init__()
        self.features = []
        self._feature = route_guide_pb2.Feature()
        stub.ListFeatures(rectangle, self)
        self.start_read(self._feature)
        self.start_call()

    def on_read_done(self, ok):
        if ok:
            _print_feature(self._feature)
            kept = route_guide_pb2.Feature()
            kept.CopyFrom(self._feature)
            self.features.append(kept)
            self.start_read(self._feature)


class RouteRecorder(reactor.ClientWriteReactor):
    """Sends a random route, pausing between points on an Alarm."""

    def __init__(
        self,
        stub,
        runtime,
        features,
        length=_ROUTE_LENGTH,
        delay_range_ms=_WRITE_DELAY_RANGE_MS,
    ):
        super().__init__()
        self.summary = route_guide_pb2.RouteSummary()
        self._features = features
        self._remaining = length
        self._delay_range_ms = delay_range_ms
        self._alarm = _runtime.Alarm(runtime)
        stub.RecordRoute(self, self.summary)
        # Writes after the first are started by the alarm, outside any
        # reaction, so keep the call open until the last one is queued.
        self.add_hold()
        self._next_write()
        self.start_call()

    def on_write_done(self, ok):
        if not ok:
            self._remaining = 0
            self._next_write()
            return
        delay_ms = random.randint(*self._delay_range_ms)
        self._alarm.set(delay_ms / 1000.0, self._on_alarm)

    def _on_alarm(self, ok):
        if not ok:
            self._remaining = 0
        self._next_write()

    def _next_write(self):
        if self._remaining:
            self._remaining -= 1
            random_feature = random.choice(self._features)
            print(f"Visiting point {format_point(random_feature.location)}")
            self.start_write(random_feature.location)
        else:
            self.start_writes_done()
            self.remove_hold()


class NoteChatter(reactor.ClientBidiReactor):
    """Sends notes one at a time while printing whatever comes back."""

    def __init__(self, stub, notes):
        super().__init__()
        self.received = []
        self._notes = collections.deque(notes)
        self._server_note = route_guide_pb2.RouteNote()
        stub.RouteChat(self)
        self._next_write()
        self.start_read(self._server_note)
        self.start_call()

    def on_write_done(self, ok):
        if not ok:
            self._notes.clear()
        self._next_write()

    def on_read_done(self, ok):
        if ok:
            _print_received(self._server_note)
            kept = route_guide_pb2.RouteNote()
            kept.CopyFrom(self._server_note)
            self.received.append(kept)
            self.start_read(self._server_note)

    def _next_write(self):
        if self._notes:
            note = self._notes.popleft()
            print(f"Sending {note.message} at {format_point(note.location)}")
            self.start_write(note)
        else:
            self.start_writes_done()


class CallbackRouteGuideClient(object):
    """Runs the route guide calls with client reactors."""

    def __init__(
        self,
        channel,
        catalog,
        runtime,
        delay_range_ms=_WRITE_DELAY_RANGE_MS,
    ):
        self._stub = _client.AsyncStub(
            route_guide_pb2_grpc.RouteGuideStub(channel), runtime
        )
        self._runtime = runtime
        self._catalog = catalog
        self._delay_range_ms = delay_range_ms

    def get_one_feature(self, point):
        """Returns whether the server described the feature at point."""
        feature = route_guide_pb2.Feature()
        done = threading.Event()
        outcome = []

        def on_done(status):
            outcome.append(status)
            done.set()

        self._stub.GetFeature(point, feature, on_done)
        done.wait()
        if not outcome[0].ok():
            print(f"GetFeature rpc failed: {outcome[0].code}")
            return False
        return _check_feature(feature)

    def get_feature(self):
        for point in DEMO_POINTS:
            self.get_one_feature(point)

    def list_features(self, rectangle=DEMO_RECTANGLE):
        print("Looking for features between 40, -75 and 42, -73")
        reader = FeatureReader(self._stub, rectangle)
        status = reader.wait()
        if status.ok():
            print("ListFeatures rpc succeeded.")
        else:
            print("ListFeatures rpc failed.")
        return reader.features

    def record_route(self, length=_ROUTE_LENGTH):
        """Returns the route_guide_pb2.RouteSummary, or None on failure."""
        recorder = RouteRecorder(
            self._stub,
            self._runtime,
            self._catalog.features,
            length=length,
            delay_range_ms=self._delay_range_ms,
        )
        status = recorder.wait()
        if not status.ok():
            print("RecordRoute rpc failed.")
            return None
        _print_summary(recorder.summary)
        return recorder.summary

    def route_chat(self, notes=None):
        chatter = NoteChatter(
            self._stub, demo_notes() if notes is None else notes
        )
        status = chatter.wait()
        if not status.ok():
            print("RouteChat rpc failed.")
        return chatter.received

    def run(self):
        print("-------------- GetFeature --------------")
        self.get_feature()
        print("-------------- ListFeatures --------------")
        self.list_features()
        print("-------------- RecordRoute --------------")
        self.record_route()
        print("-------------- RouteChat --------------")
        self.route_chat()
