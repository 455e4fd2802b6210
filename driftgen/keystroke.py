"""Single-keystroke shutdown trigger.

The ensemble plays until one unit of input arrives on stdin. On a POSIX
terminal the listener puts stdin into *cbreak* mode so any single keypress
counts, without waiting for Enter; elsewhere (pipes, Windows) it falls back
to reading one character, and end-of-file counts as the trigger too.

The read happens on a daemon thread that polls, so an ensemble stopped by
a signal never waits on a read that will not finish.
"""

import asyncio
import logging
import sys
import threading
import typing


logger = logging.getLogger(__name__)


#: ``True`` when stdin is a real terminal whose mode can be switched to cbreak.
CBREAK_SUPPORTED: bool = False

#: ``True`` when stdin can be polled with :func:`select.select` (POSIX).
POLL_SUPPORTED: bool = False

try:
	import select
	import termios
	import tty

	POLL_SUPPORTED = True

	if sys.stdin is not None and sys.stdin.isatty():
		_fd = sys.stdin.fileno()
		_saved = termios.tcgetattr(_fd)
		termios.tcsetattr(_fd, termios.TCSADRAIN, _saved)
		CBREAK_SUPPORTED = True

except ImportError:
	pass
except (OSError, ValueError, AttributeError) as _e:
	logger.debug(f"stdin cannot be switched to cbreak mode: {_e}")


# Seconds between checks of the stop flag while polling stdin.
_POLL_INTERVAL = 0.1


class KeystrokeListener:

	"""Waits, on a background daemon thread, for one keystroke from stdin.

	Example::

		listener = KeystrokeListener()
		key = await listener.wait()
	"""

	def __init__ (self, stream: typing.Optional[typing.TextIO] = None) -> None:

		"""Listen on ``stream`` (stdin by default)."""

		self.stream = stream if stream is not None else sys.stdin
		self._running = False
		self._thread: typing.Optional[threading.Thread] = None
		self._future: typing.Optional[asyncio.Future] = None


	async def wait (self) -> str:

		"""Return the first character read; an empty string means end-of-file."""

		loop = asyncio.get_running_loop()
		self._future = loop.create_future()
		self._running = True

		self._thread = threading.Thread(
			target = self._listen,
			args   = (loop, self._future),
			name   = "driftgen-keystroke-listener",
			daemon = True,   # Dies automatically when the main thread exits.
		)
		self._thread.start()

		try:
			return await self._future

		finally:
			self.stop()


	def stop (self) -> None:

		"""Ask the listener thread to stop polling. Returns immediately."""

		self._running = False


	def _listen (self, loop: asyncio.AbstractEventLoop, future: asyncio.Future) -> None:

		"""Thread target: read one key and hand it back to the event loop."""

		key = self._read_key()

		if key is None:
			return

		try:
			loop.call_soon_threadsafe(self._resolve, future, key)

		except RuntimeError:
			logger.debug("Keystroke arrived after the event loop closed")


	@staticmethod
	def _resolve (future: asyncio.Future, key: str) -> None:

		if not future.done():
			future.set_result(key)


	def _read_key (self) -> typing.Optional[str]:

		"""Read one character, or None if stopped first."""

		is_stdin = self.stream is sys.stdin

		if is_stdin and CBREAK_SUPPORTED:
			fd = self.stream.fileno()
			old_settings = termios.tcgetattr(fd)

			try:
				# cbreak: one character at a time, no Enter required.
				# Differs from raw in that Ctrl+C / Ctrl+Z still work normally.
				tty.setcbreak(fd)
				return self._poll()

			finally:
				# Always restore terminal, even after exceptions.
				termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)

		if POLL_SUPPORTED and self._pollable():
			return self._poll()

		return self.stream.read(1)


	def _pollable (self) -> bool:

		try:
			self.stream.fileno()

		except (OSError, ValueError, AttributeError):
			return False

		return True


	def _poll (self) -> typing.Optional[str]:

		"""Poll with a short timeout so the stop flag is noticed promptly."""

		while self._running:
			ready, _, _ = select.select([self.stream], [], [], _POLL_INTERVAL)
			if ready:
				return self.stream.read(1)

		return None


async def wait_for_keystroke () -> str:

	"""Wait for one keystroke (or end-of-file) on stdin."""

	return await KeystrokeListener().wait()
