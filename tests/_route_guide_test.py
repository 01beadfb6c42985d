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
"""Tests of the RouteGuide servers and clients."""

import contextlib
import io
import logging
import threading
import unittest

import grpc
import grpc_testing

from reactor_examples import _client
from reactor_examples import _common
from reactor_examples import _runtime
from reactor_examples import _server
from reactor_examples import board
from reactor_examples import catalog
from reactor_examples import geometry
from reactor_examples import reactor
from reactor_examples import route_guide
from reactor_examples.protos import route_guide_pb2
from reactor_examples.protos import route_guide_pb2_grpc
from tests import test_common

_SERVICE = route_guide_pb2.DESCRIPTOR.services_by_name["RouteGuide"]

_ROUTE = (
    route_guide.make_point(0, 0),
    route_guide.make_point(0, 10000000),
    route_guide.make_point(0, 0),
)

_INSIDE = test_common.make_rectangle((5, 5), (25, 25))
_NOWHERE = test_common.make_rectangle((100, 100), (200, 200))


def _expected_distance():
    return 2 * geometry.distance_m(_ROUTE[0], _ROUTE[1])


def _note(message, latitude, longitude):
    return route_guide.make_route_note(message, latitude, longitude)


def _messages(notes):
    return [note.message for note in notes]


class RouteGuideServicerTest(unittest.TestCase):
    def setUp(self):
        servicers = {
            _SERVICE: route_guide.RouteGuideServicer(
                test_common.small_catalog()
            )
        }
        self._server = grpc_testing.server_from_dictionary(
            servicers, grpc_testing.strict_real_time()
        )

    def testGetFeatureNamesKnownPoint(self):
        point = route_guide.make_point(20, 20)
        rpc = self._server.invoke_unary_unary(
            _SERVICE.methods_by_name["GetFeature"], {}, point, None
        )
        response, _, code, _ = rpc.termination()
        self.assertIs(grpc.StatusCode.OK, code)
        self.assertEqual(test_common.make_feature("B", 20, 20), response)

    def testGetFeatureOfUnknownPointIsUnnamed(self):
        point = route_guide.make_point(1, 2)
        rpc = self._server.invoke_unary_unary(
            _SERVICE.methods_by_name["GetFeature"], {}, point, None
        )
        response, _, code, _ = rpc.termination()
        self.assertIs(grpc.StatusCode.OK, code)
        self.assertEqual("", response.name)
        self.assertEqual(point, response.location)

    def testListFeatures(self):
        rpc = self._server.invoke_unary_stream(
            _SERVICE.methods_by_name["ListFeatures"], {}, _INSIDE, None
        )
        first = rpc.take_response()
        second = rpc.take_response()
        _, code, _ = rpc.termination()
        self.assertIs(grpc.StatusCode.OK, code)
        self.assertEqual(["A", "B"], [first.name, second.name])

    def testRecordRoute(self):
        rpc = self._server.invoke_stream_unary(
            _SERVICE.methods_by_name["RecordRoute"], {}, None
        )
        for point in _ROUTE:
            rpc.send_request(point)
        rpc.requests_closed()
        summary, _, code, _ = rpc.termination()
        self.assertIs(grpc.StatusCode.OK, code)
        self.assertEqual(3, summary.point_count)
        self.assertEqual(0, summary.feature_count)
        self.assertAlmostEqual(_expected_distance(), summary.distance, delta=1)


class _ServerTestMixin(object):
    """End-to-end checks that every RouteGuide server must pass."""

    def _start(self, server):
        self._channel = test_common.start(server)
        self._client = route_guide.RouteGuideClient(
            self._channel, test_common.small_catalog()
        )
        self._output = io.StringIO()
        self._redirect = contextlib.redirect_stdout(self._output)
        self._redirect.__enter__()

    def tearDown(self):
        self._redirect.__exit__(None, None, None)
        self._channel.close()
        self._server.stop(None)

    def testGetFeature(self):
        self.assertTrue(
            self._client.get_one_feature(route_guide.make_point(10, 10))
        )
        self.assertIn("Feature called 'A'", self._output.getvalue())

    def testListFeaturesInsideRectangle(self):
        self.assertEqual(
            [
                test_common.make_feature("A", 10, 10),
                test_common.make_feature("B", 20, 20),
            ],
            self._client.list_features(_INSIDE),
        )

    def testListFeaturesOfEmptyArea(self):
        self.assertEqual([], self._client.list_features(_NOWHERE))

    def testRecordRoute(self):
        summary = self._client.record_route(_ROUTE)
        self.assertEqual(3, summary.point_count)
        self.assertEqual(0, summary.feature_count)
        self.assertAlmostEqual(_expected_distance(), summary.distance, delta=1)
        self.assertAlmostEqual(222390, summary.distance, delta=100)
        self.assertGreaterEqual(summary.elapsed_time, 0)

    def testRecordEmptyRoute(self):
        summary = self._client.record_route(())
        self.assertEqual(route_guide_pb2.RouteSummary(), summary)

    def testRouteChatAcrossSessions(self):
        self.assertEqual([], self._client.route_chat([_note("m1", 0, 0)]))
        self.assertEqual(["m1"], _messages(self._board.notes()))
        received = self._client.route_chat([_note("m2", 0, 0)])
        self.assertEqual([_note("m1", 0, 0)], received)
        self.assertEqual(["m1", "m2"], _messages(self._board.notes()))
        self.assertEqual([], self._client.route_chat([_note("m3", 1, 1)]))
        self.assertEqual(
            ["m1", "m2", "m3"], _messages(self._board.notes())
        )

    def testRouteChatWithinSession(self):
        received = self._client.route_chat()
        self.assertEqual(
            ["First message", "Third message"], _messages(received)
        )


class SyncServerTest(_ServerTestMixin, unittest.TestCase):
    def setUp(self):
        self._board = board.NoteBoard()
        self._server = grpc.server(test_common.pool())
        route_guide_pb2_grpc.add_RouteGuideServicer_to_server(
            route_guide.RouteGuideServicer(
                test_common.small_catalog(), self._board
            ),
            self._server,
        )
        self._start(self._server)


class CallbackServerTest(_ServerTestMixin, unittest.TestCase):
    def setUp(self):
        self._board = board.NoteBoard()
        self._server = _server.CallbackServer(
            runtime=_runtime.Runtime(pump_threads=4)
        )
        self._server.add_service(
            route_guide.RouteGuideService(
                test_common.small_catalog(), self._board
            ),
            route_guide_pb2,
            "RouteGuide",
        )
        self._start(self._server)

    def testReactorsAreReleased(self):
        self._client.list_features(_INSIDE)
        self._client.record_route(_ROUTE)
        self._client.route_chat()
        self._server.stop(None)
        self.assertEqual(0, self._server.runtime.live_reactors())


class CallbackClientTest(unittest.TestCase):
    def setUp(self):
        self._board = board.NoteBoard()
        self._server = _server.CallbackServer()
        self._server.add_service(
            route_guide.RouteGuideService(
                test_common.small_catalog(), self._board
            ),
            route_guide_pb2,
            "RouteGuide",
        )
        self._channel = test_common.start(self._server)
        self._runtime = _runtime.Runtime(pump_threads=2).start()
        self._client = route_guide.CallbackRouteGuideClient(
            self._channel,
            test_common.small_catalog(),
            self._runtime,
            delay_range_ms=(1, 2),
        )
        self._output = io.StringIO()
        self._redirect = contextlib.redirect_stdout(self._output)
        self._redirect.__enter__()

    def tearDown(self):
        self._redirect.__exit__(None, None, None)
        self._channel.close()
        self._server.stop(None)
        self._runtime.stop()

    def testGetFeature(self):
        self.assertTrue(
            self._client.get_one_feature(route_guide.make_point(20, 20))
        )
        self.assertTrue(
            self._client.get_one_feature(route_guide.make_point(0, 0))
        )
        self.assertIn("Found no feature at", self._output.getvalue())

    def testListFeatures(self):
        features = self._client.list_features(_INSIDE)
        self.assertEqual(["A", "B"], [feature.name for feature in features])

    def testRecordRoute(self):
        summary = self._client.record_route(length=3)
        self.assertEqual(3, summary.point_count)
        self.assertLessEqual(summary.feature_count, 3)
        self.assertGreaterEqual(summary.distance, 0)

    def testRouteChat(self):
        received = self._client.route_chat()
        self.assertEqual(
            ["First message", "Third message"], _messages(received)
        )
        self.assertEqual(5, len(self._board))

    def testEveryReactorIsReleased(self):
        self._client.list_features(_INSIDE)
        self._client.record_route(length=2)
        self._client.route_chat()
        self.assertEqual(0, self._runtime.live_reactors())


class _StubbornRecorder(reactor.ServerReadReactor):
    """Reads one point, then waits for a finish that never comes."""

    def __init__(self, first_read):
        super().__init__()
        self.cancelled = threading.Event()
        self.done = threading.Event()
        self.done_count = 0
        self._first_read = first_read
        self._point = route_guide_pb2.Point()
        self.start_read(self._point)

    def on_read_done(self, ok):
        self._first_read.set()

    def on_cancel(self):
        self.cancelled.set()

    def on_done(self):
        self.done_count += 1
        self.done.set()


class _StubbornService(route_guide.RouteGuideService):
    def __init__(self):
        super().__init__(catalog.Catalog())
        self.first_read = threading.Event()
        self.recorders = []

    def RecordRoute(self, context, summary):
        recorder = _StubbornRecorder(self.first_read)
        self.recorders.append(recorder)
        return recorder


class _OnePointRecorder(reactor.ClientWriteReactor):
    def __init__(self, stub):
        super().__init__()
        self.summary = route_guide_pb2.RouteSummary()
        stub.RecordRoute(self, self.summary)
        self.start_write(route_guide.make_point(1, 1))
        self.start_call()


class CancellationTest(unittest.TestCase):
    def setUp(self):
        self._service = _StubbornService()
        self._server = _server.CallbackServer()
        self._server.add_service(self._service, route_guide_pb2, "RouteGuide")
        self._channel = test_common.start(self._server)
        self._runtime = _runtime.Runtime().start()
        self._stub = _client.AsyncStub(
            route_guide_pb2_grpc.RouteGuideStub(self._channel), self._runtime
        )

    def tearDown(self):
        self._channel.close()
        self._server.stop(None)
        self._runtime.stop()

    def testClientCancelEndsBothSides(self):
        client_reactor = _OnePointRecorder(self._stub)
        self.assertTrue(
            self._service.first_read.wait(test_common.WAIT_TIMEOUT)
        )
        client_reactor.try_cancel()
        status = client_reactor.wait(test_common.WAIT_TIMEOUT)
        self.assertIs(grpc.StatusCode.CANCELLED, status.code)
        (server_reactor,) = self._service.recorders
        self.assertTrue(server_reactor.done.wait(test_common.WAIT_TIMEOUT))
        self.assertTrue(server_reactor.cancelled.is_set())
        self._server.stop(None)
        self.assertEqual(1, server_reactor.done_count)
        self.assertEqual(0, self._server.runtime.live_reactors())
        self.assertEqual(0, self._runtime.live_reactors())

    def testCancelBeforeStartNeverReachesServer(self):
        client_reactor = reactor.ClientWriteReactor()
        self._stub.RecordRoute(client_reactor, route_guide_pb2.RouteSummary())
        client_reactor.try_cancel()
        client_reactor.start_call()
        status = client_reactor.wait(test_common.WAIT_TIMEOUT)
        self.assertIs(grpc.StatusCode.CANCELLED, status.code)
        self.assertEqual([], self._service.recorders)

    def testCancelledRouteRecorderDrainsItsHold(self):
        features = test_common.small_catalog().features
        with contextlib.redirect_stdout(io.StringIO()):
            recorder = route_guide.RouteRecorder(
                self._stub,
                self._runtime,
                features,
                length=5,
                delay_range_ms=(50, 100),
            )
            recorder.try_cancel()
            status = recorder.wait(test_common.WAIT_TIMEOUT)
        self.assertIs(grpc.StatusCode.CANCELLED, status.code)
        self.assertEqual(0, self._runtime.live_reactors())


class ChatterTest(unittest.TestCase):
    def setUp(self):
        self._runtime = _runtime.Runtime(pump_threads=2).start()
        self._call = test_common.ScriptedCall(self._runtime)
        self._board = board.NoteBoard()
        self._board.append(_note("m1", 0, 0))
        self._chatter = route_guide.Chatter(self._board)
        self._chatter._bind(self._call)

    def tearDown(self):
        self._runtime.stop()

    def _receive(self, note, count=1):
        message = self._call.wait_for(_common.READ, count)
        message.CopyFrom(note)
        self._chatter._complete(_common.READ, True)

    def testEchoThenRecordThenReadAgain(self):
        self._receive(_note("m2", 0, 0))
        self.assertEqual(
            _note("m1", 0, 0), self._call.wait_for(_common.WRITE)
        )
        self._chatter._complete(_common.WRITE, True)
        self._call.wait_for(_common.READ, 2)
        self.assertEqual(["m1", "m2"], _messages(self._board.notes()))
        self._chatter._complete(_common.READ, False)
        self.assertTrue(self._call.wait_for(_common.FINISH).ok())

    def testFailedEchoStillRecordsNote(self):
        self._receive(_note("m2", 0, 0))
        self._call.wait_for(_common.WRITE)
        self._chatter._complete(_common.WRITE, False)
        self._chatter._terminate(_common.CANCELLED)
        self._runtime.stop()
        self.assertEqual(["m1", "m2"], _messages(self._board.notes()))
        self.assertEqual([_common.READ, _common.WRITE], self._call.kinds())
        self.assertEqual(0, self._runtime.live_reactors())


def _idle_notes(release):
    release.wait()
    yield from ()


class _CountingService(route_guide.RouteGuideService):
    def __init__(self):
        super().__init__(test_common.small_catalog())
        self.chats = threading.Semaphore(0)

    def RouteChat(self, context):
        chatter = super().RouteChat(context)
        self.chats.release()
        return chatter


class IdleStreamsTest(unittest.TestCase):
    def setUp(self):
        self._idle_count = _runtime._DEFAULT_MAX_WORKERS + 1
        self._service = _CountingService()
        self._server = _server.CallbackServer(
            max_workers=self._idle_count + 2
        )
        self._server.add_service(self._service, route_guide_pb2, "RouteGuide")
        self._channel = test_common.start(self._server)
        self._stub = route_guide_pb2_grpc.RouteGuideStub(self._channel)
        self._release = threading.Event()

    def tearDown(self):
        self._release.set()
        self._channel.close()
        self._server.stop(None)

    def testRecordRouteBehindIdleStreams(self):
        idle_calls = [
            self._stub.RouteChat(_idle_notes(self._release))
            for _ in range(self._idle_count)
        ]
        for _ in idle_calls:
            self.assertTrue(
                self._service.chats.acquire(timeout=test_common.WAIT_TIMEOUT)
            )
        future = self._stub.RecordRoute.future(iter(_ROUTE))
        summary = future.result(timeout=test_common.WAIT_TIMEOUT)
        self.assertEqual(3, summary.point_count)
        for call in idle_calls:
            call.cancel()


class _CountingLister(route_guide.Lister):
    def __init__(self, feature_catalog, rectangle):
        super().__init__(feature_catalog, rectangle)
        self.done = threading.Event()
        self.done_count = 0

    def on_done(self):
        super().on_done()
        self.done_count += 1
        self.done.set()


class _CountingChatter(route_guide.Chatter):
    def __init__(self, note_board):
        super().__init__(note_board)
        self.done = threading.Event()
        self.done_count = 0

    def on_done(self):
        super().on_done()
        self.done_count += 1
        self.done.set()


class _ObservedService(route_guide.RouteGuideService):
    def __init__(self, feature_catalog, note_board):
        super().__init__(feature_catalog, note_board)
        self._feature_catalog = feature_catalog
        self._note_board = note_board
        self.reactors = []

    def ListFeatures(self, context, rectangle):
        lister = _CountingLister(self._feature_catalog, rectangle)
        self.reactors.append(lister)
        return lister

    def RouteChat(self, context):
        chatter = _CountingChatter(self._note_board)
        self.reactors.append(chatter)
        return chatter


_LARGE_NAME_LENGTH = 256 * 1024
_LARGE_FEATURE_COUNT = 64


def _large_catalog():
    return catalog.Catalog(
        test_common.make_feature(
            str(index) * _LARGE_NAME_LENGTH, index, index
        )
        for index in range(1, _LARGE_FEATURE_COUNT + 1)
    )


def _notes_then_wait(notes, release):
    yield from notes
    release.wait()


class StreamCancellationTest(unittest.TestCase):
    def setUp(self):
        self._board = board.NoteBoard()
        self._service = _ObservedService(_large_catalog(), self._board)
        self._server = _server.CallbackServer()
        self._server.add_service(self._service, route_guide_pb2, "RouteGuide")
        self._channel = test_common.start(self._server)
        self._stub = route_guide_pb2_grpc.RouteGuideStub(self._channel)
        self._release = threading.Event()

    def tearDown(self):
        self._release.set()
        self._channel.close()
        self._server.stop(None)

    def _finished_reactor(self):
        (server_reactor,) = self._service.reactors
        self.assertTrue(server_reactor.done.wait(test_common.WAIT_TIMEOUT))
        self._server.stop(None)
        self.assertEqual(1, server_reactor.done_count)
        self.assertEqual(0, self._server.runtime.live_reactors())
        return server_reactor

    def testListFeaturesCancelledMidStream(self):
        responses = self._stub.ListFeatures(
            test_common.make_rectangle((0, 0), (1000, 1000))
        )
        first = next(responses)
        responses.cancel()
        self.assertEqual("1" * _LARGE_NAME_LENGTH, first.name)
        self.assertIs(grpc.StatusCode.CANCELLED, responses.code())
        self._finished_reactor()

    def testRouteChatCancelledMidStream(self):
        self._board.append(_note("m0", 0, 0))
        responses = self._stub.RouteChat(
            _notes_then_wait([_note("m1", 0, 0)], self._release)
        )
        echoed = next(responses)
        responses.cancel()
        self._release.set()
        self.assertEqual(_note("m0", 0, 0), echoed)
        self._finished_reactor()
        self.assertEqual(["m0", "m1"], _messages(self._board.notes()))


if __name__ == "__main__":
    logging.basicConfig()
    unittest.main(verbosity=2)
