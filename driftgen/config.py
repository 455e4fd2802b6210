"""YAML configuration for an ensemble.

Example file::

	midi:
	  device_name: "My Synth"
	ensemble:
	  seed: 42
	  grace_period: 1.0
	voices:
	  - name: lead
	    channel: 2
	    profile: lead
	    scale: dorian
	  - name: bass
	    channel: 3
	    profile: bass
	    scale: {key: D, mode: dorian}
	    ring_length: 8

Every :class:`~driftgen.generator.GeneratorConfig` field may be given per
voice and overrides the voice's profile (``simple`` when omitted).
"""

import dataclasses
import logging
import os
import typing

import yaml

import driftgen.ensemble
import driftgen.generator
import driftgen.intervals


logger = logging.getLogger(__name__)


class ConfigError (ValueError):

	"""Raised when a configuration file cannot be turned into voices."""


_GENERATOR_FIELDS = {f.name for f in dataclasses.fields(driftgen.generator.GeneratorConfig)}


def load_config (config_path: str) -> typing.Dict[str, typing.Any]:

	"""
	Load configuration from a YAML file. A missing file yields an empty config.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		try:
			config = yaml.safe_load(f)
		except yaml.YAMLError as e:
			raise ConfigError(f"Cannot parse {config_path}: {e}") from e

	if config is None:
		return {}

	if not isinstance(config, dict):
		raise ConfigError(f"{config_path} must contain a mapping at the top level")

	return config


def parse_scale (value: typing.Any) -> driftgen.intervals.ScaleMask:

	"""
	Turn a config value into a scale mask.

	Accepts a mask name (``"dorian"``), a list of 12 booleans, a list of
	pitch classes, or a mapping with ``key`` and ``mode``.
	"""

	try:
		if isinstance(value, driftgen.intervals.ScaleMask):
			return value

		if isinstance(value, str):
			return driftgen.intervals.get_scale_mask(value)

		if isinstance(value, dict):
			key_pc = driftgen.intervals.key_name_to_pc(str(value.get("key", "C")))
			return driftgen.intervals.scale_mask(key_pc, str(value.get("mode", "ionian")))

		if isinstance(value, (list, tuple)):
			if len(value) == 12 and all(isinstance(v, bool) for v in value):
				return driftgen.intervals.ScaleMask(tuple(value))
			return driftgen.intervals.ScaleMask.from_pitch_classes(int(v) for v in value)

	except ValueError as e:
		raise ConfigError(f"Invalid scale {value!r}: {e}") from e

	raise ConfigError(f"Invalid scale {value!r}: expected a name, a list, or a key/mode mapping")


def parse_voice (entry: typing.Dict[str, typing.Any], index: int) -> driftgen.ensemble.Voice:

	"""Build one voice from its config mapping."""

	if not isinstance(entry, dict):
		raise ConfigError(f"Voice {index} must be a mapping")

	entry = dict(entry)
	name = str(entry.pop("name", f"voice{index}"))
	profile = entry.pop("profile", "simple")

	if "channel" not in entry:
		raise ConfigError(f"Voice {name!r} needs a MIDI channel")

	channel = entry.pop("channel")

	unknown = set(entry) - _GENERATOR_FIELDS
	if unknown:
		raise ConfigError(f"Voice {name!r} has unknown settings: {sorted(unknown)}")

	if "scale" in entry:
		entry["scale"] = parse_scale(entry["scale"])

	try:
		config = driftgen.generator.GeneratorConfig.from_profile(profile, **entry)
		return driftgen.ensemble.Voice(name=name, channel=int(channel), config=config)

	except (TypeError, ValueError) as e:
		raise ConfigError(f"Voice {name!r}: {e}") from e


def parse_voices (config: typing.Dict[str, typing.Any]) -> typing.List[driftgen.ensemble.Voice]:

	"""Build the voice list; falls back to the default pair when none is configured."""

	entries = config.get("voices")

	if not entries:
		return driftgen.ensemble.default_voices()

	if not isinstance(entries, list):
		raise ConfigError("'voices' must be a list")

	voices = [parse_voice(entry, i) for i, entry in enumerate(entries)]

	names = [voice.name for voice in voices]
	if len(set(names)) != len(names):
		raise ConfigError(f"Voice names must be unique: {names}")

	channels = [voice.channel for voice in voices]
	if len(set(channels)) != len(channels):
		raise ConfigError(f"Each voice needs its own MIDI channel: {channels}")

	return voices


def build_ensemble (config: typing.Dict[str, typing.Any], **overrides: typing.Any) -> driftgen.ensemble.Ensemble:

	"""
	Create an ensemble from a loaded config.

	Keyword overrides (``output_device_name``, ``seed``, ``grace_period``,
	``velocity``) take precedence over the file when not None.
	"""

	settings: typing.Dict[str, typing.Any] = {}

	midi = config.get("midi") or {}
	if "device_name" in midi:
		settings["output_device_name"] = midi["device_name"]

	ensemble_settings = config.get("ensemble") or {}
	for key in ("seed", "grace_period", "velocity"):
		if key in ensemble_settings:
			settings[key] = ensemble_settings[key]

	for key, value in overrides.items():
		if value is not None:
			settings[key] = value

	voices = parse_voices(config)

	try:
		return driftgen.ensemble.Ensemble(voices=voices, **settings)
	except (TypeError, ValueError) as e:
		raise ConfigError(f"Invalid ensemble settings: {e}") from e
