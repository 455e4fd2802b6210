"""Tests for the Player state machine.

Covers:
- note-on / note-off pairing, rests producing no messages
- stopping when the channel closes
- the note-off guarantee on cancellation and on task cancellation
- nothing new starts once the cancellation event is set
"""

import asyncio
import random
import typing

import pytest

import conftest
import driftgen.channel
import driftgen.generator
import driftgen.note
import driftgen.output
import driftgen.player


def _player (
	port: conftest.FakeMidiOut,
	channel_number: int = 2
) -> typing.Tuple[driftgen.player.Player, driftgen.channel.NoteChannel, asyncio.Event]:

	"""Create a player wired to a fresh channel and cancellation event."""

	notes = driftgen.channel.NoteChannel()
	cancel = asyncio.Event()
	player = driftgen.player.Player(
		output = driftgen.output.LockedOutput(port),
		channel_number = channel_number,
		notes = notes,
		cancel = cancel,
		name = "test"
	)

	return player, notes, cancel


async def _feed (channel: driftgen.channel.NoteChannel, notes: typing.List[driftgen.note.Note]) -> int:

	"""Send a fixed list of notes, then close the channel. Returns how many were delivered."""

	delivered = 0

	try:
		for note in notes:
			await channel.send(note)
			delivered += 1
	except driftgen.channel.ChannelClosed:
		pass
	finally:
		channel.close()

	return delivered


@pytest.mark.asyncio
async def test_plays_notes_and_skips_rests (fake_port: conftest.FakeMidiOut) -> None:

	player, channel, _ = _player(fake_port)
	notes = [
		driftgen.note.Note(pitch=60, duration=0.01),
		driftgen.note.rest(0.01),
		driftgen.note.Note(pitch=62, duration=0.01),
	]

	feeder = asyncio.create_task(_feed(channel, notes))
	await asyncio.wait_for(player.run(), timeout=2.0)
	await feeder

	assert fake_port.events() == [
		("note_on", 2, 60), ("note_off", 2, 60),
		("note_on", 2, 62), ("note_off", 2, 62),
	]
	assert player.state is driftgen.player.PlayerState.STOPPED
	assert player.notes_played == 2
	assert player.rests_played == 1


@pytest.mark.asyncio
async def test_rest_takes_its_duration (fake_port: conftest.FakeMidiOut) -> None:

	"""A rest still holds the voice for its duration."""

	player, channel, _ = _player(fake_port)
	loop = asyncio.get_running_loop()

	feeder = asyncio.create_task(_feed(channel, [driftgen.note.rest(0.1)]))
	started = loop.time()
	await asyncio.wait_for(player.run(), timeout=2.0)
	await feeder

	assert loop.time() - started >= 0.09
	assert fake_port.messages == []


@pytest.mark.asyncio
async def test_state_while_holding_a_note (fake_port: conftest.FakeMidiOut) -> None:

	player, channel, cancel = _player(fake_port)

	feeder = asyncio.create_task(_feed(channel, [driftgen.note.Note(pitch=60, duration=5.0)]))
	task = asyncio.create_task(player.run())
	await asyncio.sleep(0.05)

	assert player.state is driftgen.player.PlayerState.WAITING
	assert fake_port.events() == [("note_on", 2, 60)]

	cancel.set()
	await asyncio.wait_for(task, timeout=1.0)
	await feeder


@pytest.mark.asyncio
async def test_cancel_releases_held_note_promptly (fake_port: conftest.FakeMidiOut) -> None:

	"""Cancelling during a long note ends the wait early and still sends the note-off."""

	player, channel, cancel = _player(fake_port)
	loop = asyncio.get_running_loop()

	feeder = asyncio.create_task(_feed(channel, [
		driftgen.note.Note(pitch=64, duration=10.0),
		driftgen.note.Note(pitch=65, duration=10.0),
	]))
	task = asyncio.create_task(player.run())
	await asyncio.sleep(0.05)

	started = loop.time()
	cancel.set()
	await asyncio.wait_for(task, timeout=1.0)
	await asyncio.wait_for(feeder, timeout=1.0)

	assert loop.time() - started < 0.5
	assert fake_port.events() == [("note_on", 2, 64), ("note_off", 2, 64)]
	assert player.state is driftgen.player.PlayerState.STOPPED


@pytest.mark.asyncio
async def test_task_cancellation_releases_held_note (fake_port: conftest.FakeMidiOut) -> None:

	player, channel, _ = _player(fake_port)

	feeder = asyncio.create_task(_feed(channel, [driftgen.note.Note(pitch=67, duration=10.0)]))
	task = asyncio.create_task(player.run())
	await asyncio.sleep(0.05)

	task.cancel()
	with pytest.raises(asyncio.CancelledError):
		await task
	await asyncio.wait_for(feeder, timeout=1.0)

	assert fake_port.events() == [("note_on", 2, 67), ("note_off", 2, 67)]
	assert channel.closed


@pytest.mark.asyncio
async def test_idle_player_stops_on_cancel (fake_port: conftest.FakeMidiOut) -> None:

	"""A player waiting for a note that never comes still stops."""

	player, channel, cancel = _player(fake_port)
	task = asyncio.create_task(player.run())
	await asyncio.sleep(0.02)

	assert player.state is driftgen.player.PlayerState.AWAITING_NOTE

	cancel.set()
	await asyncio.wait_for(task, timeout=1.0)

	assert fake_port.messages == []
	assert channel.closed


@pytest.mark.asyncio
async def test_already_cancelled_player_plays_nothing (fake_port: conftest.FakeMidiOut) -> None:

	player, channel, cancel = _player(fake_port)
	cancel.set()

	feeder = asyncio.create_task(_feed(channel, [driftgen.note.Note(pitch=60, duration=0.01)]))
	await asyncio.wait_for(player.run(), timeout=1.0)

	assert await feeder == 0

	assert fake_port.messages == []


@pytest.mark.asyncio
async def test_at_most_one_note_off_after_cancel (fake_port: conftest.FakeMidiOut) -> None:

	"""Against a live generator: after cancellation only the held note's note-off may follow."""

	config = driftgen.generator.GeneratorConfig(min_duration=0.005, max_duration=0.02, step_duration=0.005)
	generator = driftgen.generator.Generator(config, rng=random.Random(3))
	player, channel, cancel = _player(fake_port)

	gen_task = asyncio.create_task(generator.run(channel, cancel))
	task = asyncio.create_task(player.run())
	await asyncio.sleep(0.3)

	before = len(fake_port.messages)
	cancel.set()
	await asyncio.wait_for(task, timeout=1.0)
	await asyncio.wait_for(gen_task, timeout=1.0)

	after = fake_port.messages[before:]

	assert len(after) <= 1
	assert all(m.type == "note_off" for m in after)
	assert before > 0
	conftest.assert_notes_paired(fake_port.events())


def test_invalid_channel_raises (fake_port: conftest.FakeMidiOut) -> None:

	with pytest.raises(ValueError):
		driftgen.player.Player(
			output = driftgen.output.LockedOutput(fake_port),
			channel_number = 16,
			notes = driftgen.channel.NoteChannel(),
			cancel = asyncio.Event()
		)


def test_invalid_velocity_raises (fake_port: conftest.FakeMidiOut) -> None:

	with pytest.raises(ValueError):
		driftgen.player.Player(
			output = driftgen.output.LockedOutput(fake_port),
			channel_number = 0,
			notes = driftgen.channel.NoteChannel(),
			cancel = asyncio.Event(),
			velocity = 128
		)
