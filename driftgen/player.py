"""Timed playback of one voice.

A :class:`Player` takes notes from its voice's channel one at a time, turns
each into note-on / wait / note-off against the shared output, and stops
when the ensemble's cancellation event is set or the channel closes.

Whatever ends the wait (the note's own duration, cancellation, or the task
being cancelled outright) a sounding note always gets its note-off, so no
voice leaves a note hanging.
"""

import asyncio
import enum
import logging
import typing

import driftgen.channel
import driftgen.constants
import driftgen.note
import driftgen.output


logger = logging.getLogger(__name__)


class PlayerState (enum.Enum):

	"""Where a player is in its note cycle."""

	AWAITING_NOTE = "awaiting_note"
	SOUNDING = "sounding"
	SILENT = "silent"
	WAITING = "waiting"
	STOPPED = "stopped"


class Player:

	"""Plays one voice's notes on one MIDI channel of the shared output."""

	def __init__ (
		self,
		output: driftgen.output.LockedOutput,
		channel_number: int,
		notes: driftgen.channel.NoteChannel,
		cancel: asyncio.Event,
		velocity: int = driftgen.constants.DEFAULT_VELOCITY,
		name: typing.Optional[str] = None
	) -> None:

		"""
		Parameters:
			output: The shared, locked output.
			channel_number: MIDI channel (0-15) this voice plays on.
			notes: Channel the voice's generator feeds.
			cancel: Ensemble-wide shutdown signal; never cleared once set.
			velocity: Velocity for both note-on and note-off.
			name: Label used in log messages.
		"""

		if not 0 <= channel_number < driftgen.constants.MIDI_CHANNELS:
			raise ValueError(f"MIDI channel must be 0-15, got {channel_number}")

		if not driftgen.constants.MIN_VELOCITY <= velocity <= driftgen.constants.MAX_VELOCITY:
			raise ValueError(f"Velocity must be 0-127, got {velocity}")

		self.output = output
		self.channel_number = channel_number
		self.notes = notes
		self.cancel = cancel
		self.velocity = velocity
		self.name = name if name is not None else f"channel {channel_number}"

		self.state = PlayerState.AWAITING_NOTE
		self.notes_played = 0
		self.rests_played = 0


	async def run (self) -> None:

		"""Play notes until cancelled or the channel closes."""

		try:
			while not self.cancel.is_set():

				self.state = PlayerState.AWAITING_NOTE
				note = await self._next_note()

				if note is None:
					break

				if await self._play(note):
					break

		finally:
			self.state = PlayerState.STOPPED
			self.notes.close()
			logger.debug(f"Voice {self.name} stopped after {self.notes_played} notes and {self.rests_played} rests")


	async def _next_note (self) -> typing.Optional[driftgen.note.Note]:

		"""Wait for the next note; None when cancelled or the channel closed first."""

		receive = asyncio.ensure_future(self.notes.receive())
		cancelled = asyncio.ensure_future(self.cancel.wait())

		try:
			await asyncio.wait({receive, cancelled}, return_when=asyncio.FIRST_COMPLETED)

		finally:
			cancelled.cancel()

			if not receive.done():
				receive.cancel()

		if not receive.done():
			return None

		try:
			note = receive.result()

		except driftgen.channel.ChannelClosed:
			return None

		# Shutdown wins a tie: no new note starts once cancellation is set.
		if self.cancel.is_set():
			return None

		return note


	async def _play (self, note: driftgen.note.Note) -> bool:

		"""Sound (or rest) one note for its duration. Returns True if cancelled during the wait."""

		if note.sounding:
			self.state = PlayerState.SOUNDING
			self.output.note_on(self.channel_number, note.pitch, self.velocity)
			self.notes_played += 1
			logger.debug(f"Voice {self.name}: note {note.pitch} for {note.duration:.3f}s")

		else:
			self.state = PlayerState.SILENT
			self.rests_played += 1

		self.state = PlayerState.WAITING

		try:
			await asyncio.wait_for(self.cancel.wait(), timeout=note.duration)
			return True

		except asyncio.TimeoutError:
			return False

		finally:
			if note.sounding:
				self.output.note_off(self.channel_number, note.pitch, self.velocity)
