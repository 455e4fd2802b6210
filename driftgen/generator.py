"""Ring-based note generator.

Each :class:`Generator` owns a fixed-length ring of note slots. Every step
mutates one slot in place and hands the result on, so a voice keeps a
memory of what it played a lap ago and drifts away from it slowly (a
random walk, not independent draws).
"""

import asyncio
import dataclasses
import logging
import random
import typing

import driftgen.channel
import driftgen.constants
import driftgen.intervals
import driftgen.note


logger = logging.getLogger(__name__)


@dataclasses.dataclass (frozen=True)
class GeneratorConfig:

	"""
	Static settings for one voice's generator.

	Probabilities are denominators: an event with ``note_p = 4`` happens on
	roughly one step in four.
	"""

	min_pitch: int = 48
	max_pitch: int = 72
	min_duration: float = 0.25
	max_duration: float = 1.0
	step_duration: float = 0.25
	scale: driftgen.intervals.ScaleMask = driftgen.intervals.MAJOR
	ring_length: int = 8
	note_p: int = 4
	time_p: int = 4
	switch_p: int = 8


	def __post_init__ (self) -> None:

		"""Reject settings the generator cannot honour."""

		if self.min_pitch < driftgen.constants.MIN_PITCH:
			raise ValueError(f"min_pitch must be at least {driftgen.constants.MIN_PITCH} (0 is the rest sentinel)")

		if self.max_pitch > driftgen.constants.MAX_PITCH:
			raise ValueError(f"max_pitch must be at most {driftgen.constants.MAX_PITCH}")

		if self.min_pitch > self.max_pitch:
			raise ValueError("min_pitch cannot exceed max_pitch")

		if self.min_duration <= 0 or self.max_duration <= 0:
			raise ValueError("Durations must be positive")

		if self.min_duration > self.max_duration:
			raise ValueError("min_duration cannot exceed max_duration")

		if self.step_duration < 0:
			raise ValueError("step_duration cannot be negative")

		if self.ring_length < 1:
			raise ValueError("ring_length must be at least 1")

		for name in ("note_p", "time_p", "switch_p"):
			if getattr(self, name) < 1:
				raise ValueError(f"{name} must be at least 1")

		if not isinstance(self.scale, driftgen.intervals.ScaleMask):
			raise ValueError("scale must be a ScaleMask")

		if not any(self.scale.allows(p) for p in range(self.min_pitch, self.max_pitch + 1)):
			raise ValueError(f"No pitch in [{self.min_pitch}, {self.max_pitch}] is in the scale")


	@classmethod
	def from_profile (cls, name: str, **overrides: typing.Any) -> "GeneratorConfig":

		"""
		Build a config from a named profile, replacing any given fields.

		Example:
			```python
			GeneratorConfig.from_profile("lead", ring_length=8)
			```
		"""

		if name not in PROFILES:
			raise ValueError(f"Unknown profile '{name}'. Available: {sorted(PROFILES)}")

		return dataclasses.replace(PROFILES[name], **overrides)


_UNIT = driftgen.constants.BASE_DURATION

PROFILES: typing.Dict[str, GeneratorConfig] = {

	# Busy upper line: short notes, frequent pitch jitter, rare rests.
	"lead": GeneratorConfig(
		min_pitch = 48,
		max_pitch = 72,
		min_duration = _UNIT,
		max_duration = 4 * _UNIT,
		step_duration = _UNIT / 8,
		scale = driftgen.intervals.DORIAN,
		ring_length = 16,
		note_p = 4,
		time_p = 2,
		switch_p = 16,
	),

	# Slow low line: long notes, short ring, often toggling to silence.
	"bass": GeneratorConfig(
		min_pitch = 36,
		max_pitch = 60,
		min_duration = 4 * _UNIT,
		max_duration = 16 * _UNIT,
		step_duration = _UNIT,
		scale = driftgen.intervals.DORIAN,
		ring_length = 4,
		note_p = 2,
		time_p = 2,
		switch_p = 4,
	),

	"simple": GeneratorConfig(),
}


class Generator:

	"""Owns one voice's ring and produces an endless stream of mutated notes."""

	def __init__ (self, config: GeneratorConfig, rng: typing.Optional[random.Random] = None) -> None:

		"""Fill the ring: sounding notes on even slots, rests on odd slots."""

		self.config = config
		self.rng = rng if rng is not None else random.Random()

		self._ring: typing.List[driftgen.note.Note] = []

		for i in range(config.ring_length):
			if i % 2 == 0:
				pitch = self._fit_to_scale(self._random_pitch())
				self._ring.append(driftgen.note.Note(pitch=pitch, duration=config.min_duration))
			else:
				self._ring.append(driftgen.note.rest(config.min_duration))

		self._index = 0


	@property
	def ring (self) -> typing.Tuple[driftgen.note.Note, ...]:

		"""Snapshot of the current ring contents."""

		return tuple(self._ring)


	@property
	def index (self) -> int:

		"""Position of the slot the next step will mutate."""

		return self._index


	def _random_pitch (self) -> int:

		"""Draw a pitch from [min_pitch, max_pitch); a degenerate range yields min_pitch."""

		if self.config.max_pitch <= self.config.min_pitch:
			return self.config.min_pitch

		return self.rng.randrange(self.config.min_pitch, self.config.max_pitch)


	def _fit_to_scale (self, pitch: int) -> int:

		"""Quantize a pitch, then pull it back inside the range if quantizing pushed it out."""

		config = self.config
		quantized = driftgen.intervals.quantize_pitch(pitch, config.scale)

		if config.min_pitch <= quantized <= config.max_pitch:
			return quantized

		if quantized > config.max_pitch:
			candidates = range(config.max_pitch, config.min_pitch - 1, -1)
		else:
			candidates = range(config.min_pitch, config.max_pitch + 1)

		# GeneratorConfig guarantees at least one scale tone in range.
		return next(c for c in candidates if config.scale.allows(c))


	def _chance (self, denominator: int) -> bool:

		"""True with probability 1 / denominator."""

		return self.rng.randrange(denominator) == 0


	def mutate (self, note: driftgen.note.Note) -> driftgen.note.Note:

		"""
		Return a slightly changed copy of ``note``.

		In order: pitch jitter (sounding notes only), sounding/rest toggle,
		clamp and quantize (sounding notes only), duration nudge by one step.
		"""

		config = self.config
		pitch = note.pitch
		duration = note.duration

		# Tracked separately so jitter below the rest value cannot turn a note into a rest.
		sounding = note.sounding

		if sounding and self._chance(config.note_p):
			pitch += self.rng.randint(-driftgen.constants.MAX_PITCH_JITTER, driftgen.constants.MAX_PITCH_JITTER)

		if self._chance(config.switch_p):
			sounding = not sounding
			pitch = self._random_pitch() if sounding else driftgen.constants.REST_PITCH

		if sounding:
			pitch = max(config.min_pitch, min(config.max_pitch, pitch))
			pitch = self._fit_to_scale(pitch)

		if self._chance(config.time_p):
			duration += self.rng.randint(-1, 1) * config.step_duration
			duration = max(config.min_duration, min(config.max_duration, duration))

		return driftgen.note.Note(pitch=pitch, duration=duration)


	def step (self) -> driftgen.note.Note:

		"""Mutate the current slot in place, advance to the next one, and return the new note."""

		index = self._index
		self._ring[index] = self.mutate(self._ring[index])
		self._index = (index + 1) % len(self._ring)

		return self._ring[index]


	def __iter__ (self) -> "Generator":

		return self


	def __next__ (self) -> driftgen.note.Note:

		return self.step()


	async def run (self, channel: driftgen.channel.NoteChannel, cancel: asyncio.Event) -> None:

		"""
		Feed notes into ``channel`` until cancelled or the player stops listening.

		Each send waits for the player to take the note, so the generator
		only ever runs one note ahead of playback. The channel is closed on
		the way out so a waiting player does not block forever.
		"""

		try:
			while not cancel.is_set():
				await channel.send(self.step())

		except driftgen.channel.ChannelClosed:
			pass

		finally:
			channel.close()
			logger.debug(f"Generator stopped at ring slot {self._index}")
