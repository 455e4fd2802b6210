import argparse
import logging
import sys
import typing

import driftgen.config
import driftgen.ensemble
import driftgen.midi_utils


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "driftgen.yaml"


def parse_args (argv: typing.Optional[typing.List[str]] = None) -> argparse.Namespace:

	"""Parse command-line arguments."""

	parser = argparse.ArgumentParser(prog="driftgen", description="Evolving generative MIDI voices")
	parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"YAML config file (default: {DEFAULT_CONFIG_PATH})")
	parser.add_argument("--device", default=None, help="MIDI output device name or index")
	parser.add_argument("--list-devices", action="store_true", help="List MIDI output devices and exit")
	parser.add_argument("--seed", type=int, default=None, help="Seed for repeatable playback")
	parser.add_argument("--grace", type=float, default=None, help="Seconds to let notes release on shutdown")
	parser.add_argument("--verbose", action="store_true", help="Log every note")

	return parser.parse_args(argv)


def main (argv: typing.Optional[typing.List[str]] = None) -> int:

	"""
	Main entry point for the driftgen application.
	"""

	args = parse_args(argv)

	logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

	if args.list_devices:
		driftgen.midi_utils.print_output_devices()
		return 0

	logger.info("driftgen starting...")

	try:
		config = driftgen.config.load_config(args.config)
		ensemble = driftgen.config.build_ensemble(
			config,
			output_device_name = args.device,
			seed = args.seed,
			grace_period = args.grace
		)
	except ValueError as e:
		logger.error(f"Invalid configuration: {e}")
		return 1

	try:
		ensemble.play()
	except driftgen.ensemble.InitializationError as e:
		logger.error(str(e))
		return 1

	return 0


if __name__ == "__main__":
	sys.exit(main())
