import dataclasses

import driftgen.constants


@dataclasses.dataclass (frozen=True)
class Note:

	"""
	One ring slot: a pitch held for a duration.

	``pitch`` is a MIDI note number, or ``0`` for a rest. ``duration`` is in
	seconds and covers the rest as well as a sounding note.
	"""

	pitch: int
	duration: float


	@property
	def sounding (self) -> bool:

		"""True when the note produces a note-on / note-off pair."""

		return self.pitch > driftgen.constants.REST_PITCH


def rest (duration: float) -> Note:

	"""Return a silent note of the given duration."""

	return Note(pitch=driftgen.constants.REST_PITCH, duration=duration)
