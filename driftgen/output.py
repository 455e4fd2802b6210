import logging
import threading
import typing

import mido


logger = logging.getLogger(__name__)


@typing.runtime_checkable
class OutputSink (typing.Protocol):

	"""
	Protocol for anything that accepts MIDI messages (a mido output port).
	"""

	def send (self, message: mido.Message) -> None:

		"""Deliver one message."""

		...


class LockedOutput:

	"""
	One shared output port, safe to use from every voice at once.

	Each note-on or note-off is a single locked send, so the port never sees
	two voices' messages interleaved. The lock covers one send only and is
	never held while a note sounds, so voices keep independent timing.

	A failed send is logged and dropped: a single missed event must not stop
	the session or any other voice.
	"""

	def __init__ (self, port: OutputSink) -> None:

		"""Wrap the port that every voice will share."""

		self._port = port
		self._lock = threading.Lock()


	def note_on (self, channel: int, pitch: int, velocity: int) -> None:

		"""Start a note."""

		self._send(mido.Message('note_on', channel=channel, note=pitch, velocity=velocity))


	def note_off (self, channel: int, pitch: int, velocity: int) -> None:

		"""Release a note."""

		self._send(mido.Message('note_off', channel=channel, note=pitch, velocity=velocity))


	def _send (self, message: mido.Message) -> None:

		with self._lock:

			try:
				self._port.send(message)

			except Exception:
				logger.exception(f"MIDI send failed for {message} (device may be disconnected)")
