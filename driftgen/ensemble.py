import asyncio
import dataclasses
import logging
import random
import signal
import typing

import driftgen.channel
import driftgen.constants
import driftgen.generator
import driftgen.keystroke
import driftgen.midi_utils
import driftgen.output
import driftgen.player


logger = logging.getLogger(__name__)


class InitializationError (Exception):

	"""Raised when the output device cannot be opened; no voice has started."""


@dataclasses.dataclass
class Voice:

	"""
	One independent line: a generator config played on one MIDI channel.
	"""

	name: str
	channel: int
	config: driftgen.generator.GeneratorConfig = dataclasses.field(default_factory=driftgen.generator.GeneratorConfig)


	def __post_init__ (self) -> None:

		if not 0 <= self.channel < driftgen.constants.MIDI_CHANNELS:
			raise ValueError(f"MIDI channel must be 0-15, got {self.channel}")


def default_voices () -> typing.List[Voice]:

	"""The built-in pair: a busy lead on channel 2 over a slow bass on channel 3."""

	return [
		Voice(name="lead", channel=2, config=driftgen.generator.GeneratorConfig.from_profile("lead")),
		Voice(name="bass", channel=3, config=driftgen.generator.GeneratorConfig.from_profile("bass")),
	]


async def _guarded (label: str, coroutine: typing.Awaitable[None]) -> None:

	"""Run one voice task so that its failure is logged instead of reaching its siblings."""

	try:
		await coroutine

	except asyncio.CancelledError:
		raise

	except Exception:
		logger.exception(f"{label} failed; the other voices continue")


class Ensemble:

	"""
	Plays several evolving voices on one shared MIDI output until told to stop.

	Every voice gets its own generator task and player task, joined by an
	unbuffered channel. All players share one locked output. The ensemble
	plays until the trigger completes (by default one keystroke on stdin),
	a SIGINT/SIGTERM arrives, or every player has stopped. It then sets the
	shared cancellation event once, gives the players ``grace_period``
	seconds to send their final note-offs, and stops whatever is left.

	Example:
		```python
		import driftgen

		ensemble = driftgen.Ensemble(output_device_name="My Synth", seed=7)
		ensemble.add_voice("lead", channel=2, profile="lead")
		ensemble.add_voice("bass", channel=3, profile="bass", ring_length=8)
		ensemble.play()
		```
	"""

	def __init__ (
		self,
		voices: typing.Optional[typing.Iterable[Voice]] = None,
		output_device_name: typing.Optional[str] = None,
		seed: typing.Optional[int] = None,
		grace_period: float = driftgen.constants.DEFAULT_GRACE_PERIOD,
		velocity: int = driftgen.constants.DEFAULT_VELOCITY
	) -> None:

		"""
		Parameters:
			voices: Initial voices. More can be added with :meth:`add_voice`.
			output_device_name: MIDI output name (or index). When omitted the
				only available device is used, or the user is prompted.
			seed: Master seed; each voice derives its own random stream from it.
			grace_period: Longest wait, in seconds, for players to finish after
				shutdown is requested.
			velocity: Velocity of every note-on and note-off.
		"""

		if grace_period < 0:
			raise ValueError("grace_period cannot be negative")

		if not driftgen.constants.MIN_VELOCITY <= velocity <= driftgen.constants.MAX_VELOCITY:
			raise ValueError(f"Velocity must be 0-127, got {velocity}")

		self.voices: typing.List[Voice] = []

		for voice in voices or ():
			self._check_unique(voice.name, voice.channel)
			self.voices.append(voice)

		self.output_device_name = output_device_name
		self.seed = seed
		self.grace_period = grace_period
		self.velocity = velocity

		self.players: typing.List[driftgen.player.Player] = []
		self.generators: typing.List[driftgen.generator.Generator] = []


	def add_voice (
		self,
		name: str,
		channel: int,
		config: typing.Optional[driftgen.generator.GeneratorConfig] = None,
		profile: typing.Optional[str] = None,
		**overrides: typing.Any
	) -> Voice:

		"""
		Add a voice, from an explicit config or a profile plus field overrides.
		"""

		if config is None:
			config = driftgen.generator.GeneratorConfig.from_profile(profile or "simple", **overrides)

		elif profile is not None or overrides:
			raise ValueError("Pass either config, or profile/overrides, not both")

		voice = Voice(name=name, channel=channel, config=config)
		self._check_unique(name, channel)
		self.voices.append(voice)

		return voice


	def _check_unique (self, name: str, channel: int) -> None:

		"""Each voice needs its own name and its own MIDI channel."""

		for voice in self.voices:

			if voice.name == name:
				raise ValueError(f"A voice named {name!r} already exists")

			# Two voices on one channel would release each other's notes.
			if voice.channel == channel:
				raise ValueError(f"Voice {voice.name!r} already plays on channel {channel}")


	def _open_port (self) -> driftgen.output.OutputSink:

		"""Open the output device or raise InitializationError."""

		device_name, port = driftgen.midi_utils.select_output_device(self.output_device_name)

		if device_name is None or port is None:
			raise InitializationError("No MIDI output could be opened")

		self.output_device_name = device_name

		return typing.cast(driftgen.output.OutputSink, port)


	def _voice_rngs (self) -> typing.List[random.Random]:

		"""One independent random stream per voice, derived from the seed when set."""

		if self.seed is None:
			return [random.Random() for _ in self.voices]

		master = random.Random(self.seed)
		return [random.Random(master.randint(0, 2 ** 63)) for _ in self.voices]


	async def run (
		self,
		trigger: typing.Optional[typing.Awaitable[typing.Any]] = None,
		port: typing.Optional[driftgen.output.OutputSink] = None
	) -> None:

		"""
		Play all voices until shutdown.

		Parameters:
			trigger: Awaitable whose completion requests shutdown. Defaults to
				waiting for one keystroke on stdin.
			port: Output to use instead of opening ``output_device_name``. A
				port passed in is left open; one opened here is closed on exit.
		"""

		if not self.voices:
			raise ValueError("An ensemble needs at least one voice")

		if port is not None:
			await self._play_on(port, trigger)
			return

		port = self._open_port()

		try:
			await self._play_on(port, trigger)

		finally:
			if hasattr(port, "close"):
				port.close()

			logger.info(f"Closed MIDI output {self.output_device_name}")


	async def _play_on (
		self,
		port: driftgen.output.OutputSink,
		trigger: typing.Optional[typing.Awaitable[typing.Any]]
	) -> None:

		"""Start every voice on ``port`` and shut them down cleanly on the way out."""

		output = driftgen.output.LockedOutput(port)
		cancel = asyncio.Event()

		self.players = []
		self.generators = []
		generator_tasks: typing.List[asyncio.Task] = []
		player_tasks: typing.List[asyncio.Task] = []
		lanes: typing.List[typing.Tuple[Voice, driftgen.channel.NoteChannel, driftgen.generator.Generator, driftgen.player.Player]] = []

		for voice, rng in zip(self.voices, self._voice_rngs()):

			notes = driftgen.channel.NoteChannel()
			generator = driftgen.generator.Generator(voice.config, rng=rng)
			player = driftgen.player.Player(
				output = output,
				channel_number = voice.channel,
				notes = notes,
				cancel = cancel,
				velocity = self.velocity,
				name = voice.name
			)

			self.generators.append(generator)
			self.players.append(player)
			lanes.append((voice, notes, generator, player))

		# No task starts until every voice has been built.
		for voice, notes, generator, player in lanes:

			generator_tasks.append(asyncio.create_task(
				_guarded(f"Generator for voice {voice.name!r}", generator.run(notes, cancel)),
				name = f"driftgen-generator-{voice.name}"
			))
			player_tasks.append(asyncio.create_task(
				_guarded(f"Player for voice {voice.name!r}", player.run()),
				name = f"driftgen-player-{voice.name}"
			))

		logger.info(f"Playing {len(self.voices)} voices: {', '.join(v.name for v in self.voices)}")

		try:
			await self._wait_for_shutdown(trigger, player_tasks)

		finally:
			cancel.set()

			_, pending = await asyncio.wait(player_tasks, timeout=self.grace_period)

			if pending:
				logger.warning(f"{len(pending)} voices did not stop within {self.grace_period}s")

			leftovers = list(pending) + generator_tasks
			for task in leftovers:
				task.cancel()

			await asyncio.gather(*leftovers, return_exceptions=True)

			logger.info("Ensemble stopped")


	async def _wait_for_shutdown (
		self,
		trigger: typing.Optional[typing.Awaitable[typing.Any]],
		player_tasks: typing.List[asyncio.Task]
	) -> None:

		"""Block until the trigger fires, a stop signal arrives, or every player has finished."""

		if trigger is None:
			logger.info("Press any key to stop.")
			trigger = driftgen.keystroke.wait_for_keystroke()

		stop_event = asyncio.Event()
		loop = asyncio.get_running_loop()
		installed: typing.List[signal.Signals] = []

		for sig in (signal.SIGINT, signal.SIGTERM):
			try:
				loop.add_signal_handler(sig, stop_event.set)
				installed.append(sig)
			except (NotImplementedError, RuntimeError, ValueError):
				# Not available on Windows or outside the main thread.
				pass

		trigger_task = asyncio.ensure_future(trigger)
		signal_task = asyncio.ensure_future(stop_event.wait())
		players_task = asyncio.ensure_future(asyncio.wait(player_tasks))

		try:
			done, _ = await asyncio.wait(
				{trigger_task, signal_task, players_task},
				return_when = asyncio.FIRST_COMPLETED
			)

			if trigger_task in done:
				error = trigger_task.exception()
				if error is not None:
					logger.warning(f"Stop trigger failed ({error!r}); stopping anyway")
				else:
					logger.info("Stop requested")
			elif signal_task in done:
				logger.info("Stop signal received")
			else:
				logger.info("All voices finished")

		finally:
			for task in (trigger_task, signal_task, players_task):
				task.cancel()

			for sig in installed:
				loop.remove_signal_handler(sig)


	def play (self, **kwargs: typing.Any) -> None:

		"""
		Start the ensemble and block until it stops.

		Keyword arguments are passed to :meth:`run`.
		"""

		try:
			asyncio.run(self.run(**kwargs))

		except KeyboardInterrupt:
			pass
