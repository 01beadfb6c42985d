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
"""The note board shared by every RouteChat call of a server."""

import threading

from reactor_examples.protos import route_guide_pb2


def _copy(note):
    kept = route_guide_pb2.RouteNote()
    kept.CopyFrom(note)
    return kept


class NoteBoard(object):
    """An append-only sequence of route_guide_pb2.RouteNotes.

    Notes are copied on the way in, so callers may keep reusing their
    buffers.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._notes = []

    def _matching_locked(self, location):
        return [_copy(note) for note in self._notes if note.location == location]

    def match_then_append(self, note):
        """Returns the notes already left at note.location, then adds note.

        Both steps happen in one critical section.
        """
        with self._lock:
            matches = self._matching_locked(note.location)
            self._notes.append(_copy(note))
        return matches

    def matching(self, location):
        """Returns a snapshot of the notes left at location, oldest first."""
        with self._lock:
            return self._matching_locked(location)

    def append(self, note):
        with self._lock:
            self._notes.append(_copy(note))

    def notes(self):
        with self._lock:
            return [_copy(note) for note in self._notes]

    def __len__(self):
        with self._lock:
            return len(self._notes)
