import asyncio
import typing

import driftgen.note


class ChannelClosed (Exception):

	"""Raised by send or receive once a channel has been closed."""


class NoteChannel:

	"""
	Unbuffered point-to-point hand-off of notes from one generator to one player.

	``send()`` returns only after a receiver has taken the note, so a
	generator can never run ahead of its player. Either side may ``close()``
	the channel; a blocked sender or receiver then wakes with
	:class:`ChannelClosed`. A ``send()`` that returned normally always
	delivered its note.
	"""

	def __init__ (self) -> None:

		"""Create an open, empty channel."""

		self._slot: asyncio.Queue = asyncio.Queue(maxsize=1)
		self._closed = asyncio.Event()


	@property
	def closed (self) -> bool:

		"""True once either side has closed the channel."""

		return self._closed.is_set()


	async def send (self, note: driftgen.note.Note) -> None:

		"""Hand a note to the receiver and wait until it has been taken."""

		if self.closed:
			raise ChannelClosed()

		taken: asyncio.Future = asyncio.get_running_loop().create_future()

		await self._until_closed(self._slot.put((note, taken)))
		await self._until_closed(taken)


	async def receive (self) -> driftgen.note.Note:

		"""Wait for the next note."""

		if self.closed:
			raise ChannelClosed()

		note, taken = await self._until_closed(self._slot.get())

		if not taken.done():
			taken.set_result(None)

		return typing.cast(driftgen.note.Note, note)


	def close (self) -> None:

		"""Close the channel. Safe to call more than once, from either side."""

		self._closed.set()


	async def _until_closed (self, awaitable: typing.Awaitable[typing.Any]) -> typing.Any:

		"""Await ``awaitable`` unless the channel closes first; completed work wins a tie."""

		work = asyncio.ensure_future(awaitable)
		closed = asyncio.ensure_future(self._closed.wait())

		try:
			await asyncio.wait({work, closed}, return_when=asyncio.FIRST_COMPLETED)

		except BaseException:
			work.cancel()
			raise

		finally:
			closed.cancel()

		if not work.done():
			work.cancel()
			raise ChannelClosed()

		return work.result()
