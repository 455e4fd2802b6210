import threading
import typing

import mido
import pytest


class FakeMidiOut:

	"""MIDI output stub that records every message it is sent."""

	def __init__ (self) -> None:

		"""Start with an empty message log."""

		self.messages: typing.List[mido.Message] = []
		self.closed = False
		self._lock = threading.Lock()


	def send (self, message: mido.Message) -> None:

		"""Record an outgoing MIDI message."""

		with self._lock:
			self.messages.append(message)


	def close (self) -> None:

		"""Mark the fake device closed."""

		self.closed = True


	def events (self, channel: typing.Optional[int] = None) -> typing.List[typing.Tuple[str, int, int]]:

		"""Return (type, channel, note) tuples, optionally for one channel only."""

		return [
			(m.type, m.channel, m.note)
			for m in self.messages
			if channel is None or m.channel == channel
		]


class FailingMidiOut (FakeMidiOut):

	"""MIDI output stub whose sends fail every time."""

	def send (self, message: mido.Message) -> None:

		"""Count the attempt, then fail like a disconnected device."""

		super().send(message)
		raise OSError("device disconnected")


# Module-level reference so tests can access the most recently opened FakeMidiOut.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


def current_fake_output () -> typing.Optional[FakeMidiOut]:

	"""Return the most recently opened fake output."""

	return _current_fake_output


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


@pytest.fixture
def fake_port () -> FakeMidiOut:

	"""A recording output port."""

	return FakeMidiOut()


def assert_notes_paired (events: typing.List[typing.Tuple[str, int, int]]) -> None:

	"""Within one channel: every note-on is closed by its own note-off before the next note-on."""

	sounding: typing.Optional[int] = None

	for kind, _, note in events:
		if kind == "note_on":
			assert sounding is None, f"note_on {note} while {sounding} still sounding"
			sounding = note
		else:
			assert sounding == note, f"note_off {note} does not match sounding {sounding}"
			sounding = None

	assert sounding is None, f"note {sounding} left sounding"
