import logging
import typing

import mido

logger = logging.getLogger(__name__)


def list_output_devices () -> typing.List[str]:

	"""Return the names of the available MIDI output devices."""

	return list(mido.get_output_names())


def print_output_devices () -> None:

	"""Print the available output devices, numbered, to stdout."""

	outputs = list_output_devices()

	if not outputs:
		print("No MIDI output devices found.")
		return

	for i, name in enumerate(outputs):
		print(f"Device {i}: {name}")


def resolve_device_name (requested: str, outputs: typing.Sequence[str]) -> typing.Optional[str]:

	"""
	Match a ``--device`` value against the device list.

	An exact name wins; otherwise a number is taken as the index printed by
	:func:`print_output_devices`. Returns None when nothing matches.
	"""

	if requested in outputs:
		return requested

	if requested.isdigit() and int(requested) < len(outputs):
		return outputs[int(requested)]

	return None


def _prompt_for_device (outputs: typing.Sequence[str]) -> typing.Optional[str]:

	"""Ask on the console which of several devices to use; None if stdin is closed."""

	print("\nSeveral MIDI outputs are available:\n")
	for i, name in enumerate(outputs, 1):
		print(f"  {i}. {name}")
	print()

	while True:
		try:
			answer = input(f"Play on which device (1-{len(outputs)})? ")
		except EOFError:
			return None

		if answer.strip().isdigit() and 1 <= int(answer) <= len(outputs):
			chosen = outputs[int(answer) - 1]
			print(f"\nNext time, skip this question with:\n\n  python -m driftgen --device \"{chosen}\"\n")
			return chosen

		print(f"Please answer with a number from 1 to {len(outputs)}.")


def select_output_device (device_name: typing.Optional[str] = None) -> typing.Tuple[typing.Optional[str], typing.Optional[typing.Any]]:

	"""
	Pick and open the output every voice will share.

	With ``device_name`` (a name or an index) that device is opened. Without
	it the only device is used, or the user chooses when there are several.

	Returns:
		``(name, port)``, or ``(None, None)`` when no device could be opened.
	"""

	outputs = list_output_devices()

	if not outputs:
		logger.error("No MIDI output devices found.")
		return None, None

	if device_name is not None:
		chosen = resolve_device_name(device_name, outputs)

		if chosen is None:
			logger.error(f"MIDI output device '{device_name}' not found. Available devices: {outputs}")

	elif len(outputs) == 1:
		chosen = outputs[0]

	else:
		chosen = _prompt_for_device(outputs)

		if chosen is None:
			logger.error("No device selected (stdin closed).")

	if chosen is None:
		return None, None

	try:
		port = mido.open_output(chosen)

	except Exception as e:
		logger.error(f"Failed to open MIDI output '{chosen}': {e}")
		return None, None

	logger.info(f"Opened MIDI output: {chosen}")

	return chosen, port
