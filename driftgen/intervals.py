"""Scale masks and pitch quantization.

A :class:`ScaleMask` is a 12-entry set of permitted pitch classes.
:func:`quantize_pitch` snaps any pitch onto the mask by searching outward,
one semitone at a time, from the pitch's position in its octave.
"""

import dataclasses
import typing

import driftgen.constants
import driftgen.note


INTERVAL_DEFINITIONS: typing.Dict[str, typing.List[int]] = {
	"blues_scale": [0, 3, 5, 6, 7, 10],
	"chromatic": [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11],
	"dorian_mode": [0, 2, 3, 5, 7, 9, 10],
	"harmonic_minor": [0, 2, 3, 5, 7, 8, 11],
	"locrian_mode": [0, 1, 3, 5, 6, 8, 10],
	"lydian": [0, 2, 4, 6, 7, 9, 11],
	"major_ionian": [0, 2, 4, 5, 7, 9, 11],
	"major_pentatonic": [0, 2, 4, 7, 9],
	"melodic_minor": [0, 2, 3, 5, 7, 9, 11],
	"minor_pentatonic": [0, 3, 5, 7, 10],
	"mixolydian": [0, 2, 4, 5, 7, 9, 10],
	"natural_minor": [0, 2, 3, 5, 7, 8, 10],
	"phrygian_mode": [0, 1, 3, 5, 7, 8, 10],
	"whole_tone": [0, 2, 4, 6, 8, 10],
}


# Map mode names to interval registry keys.
MODE_MAP: typing.Dict[str, str] = {
	"ionian":           "major_ionian",
	"major":            "major_ionian",
	"dorian":           "dorian_mode",
	"phrygian":         "phrygian_mode",
	"lydian":           "lydian",
	"mixolydian":       "mixolydian",
	"aeolian":          "natural_minor",
	"minor":            "natural_minor",
	"locrian":          "locrian_mode",
	"harmonic_minor":   "harmonic_minor",
	"melodic_minor":    "melodic_minor",
	"major_pentatonic": "major_pentatonic",
	"minor_pentatonic": "minor_pentatonic",
	"blues":            "blues_scale",
	"whole_tone":       "whole_tone",
	"chromatic":        "chromatic",
}


NOTE_NAME_TO_PC: typing.Dict[str, int] = {
	"C": 0, "C#": 1, "Db": 1, "D": 2, "D#": 3, "Eb": 3, "E": 4, "F": 5,
	"F#": 6, "Gb": 6, "G": 7, "G#": 8, "Ab": 8, "A": 9, "A#": 10, "Bb": 10, "B": 11,
}


@dataclasses.dataclass (frozen=True)
class ScaleMask:

	"""
	Twelve booleans indexed by pitch class (0 = C ... 11 = B).

	At least one entry must be true: quantizing against an empty mask has no
	answer, so the check happens here rather than on every quantize call.
	"""

	permitted: typing.Tuple[bool, ...]


	def __post_init__ (self) -> None:

		"""Validate length and non-emptiness."""

		permitted = tuple(bool(p) for p in self.permitted)

		if len(permitted) != driftgen.constants.PITCH_CLASSES:
			raise ValueError(f"A scale mask needs exactly 12 entries, got {len(permitted)}")

		if not any(permitted):
			raise ValueError("A scale mask must permit at least one pitch class")

		object.__setattr__(self, "permitted", permitted)


	@classmethod
	def from_pitch_classes (cls, pitch_classes: typing.Iterable[int]) -> "ScaleMask":

		"""Build a mask from a collection of pitch classes (wrapped mod 12)."""

		pcs = {pc % driftgen.constants.PITCH_CLASSES for pc in pitch_classes}
		return cls(tuple(pc in pcs for pc in range(driftgen.constants.PITCH_CLASSES)))


	def allows (self, pitch: int) -> bool:

		"""Return True when the pitch's class is permitted."""

		return self.permitted[pitch % driftgen.constants.PITCH_CLASSES]


	def pitch_classes (self) -> typing.List[int]:

		"""Return the permitted pitch classes in ascending order."""

		return [pc for pc, ok in enumerate(self.permitted) if ok]


def get_intervals (name: str) -> typing.List[int]:

	"""
	Return a named interval list from the registry.
	"""

	if name not in INTERVAL_DEFINITIONS:
		raise ValueError(f"Unknown interval set: {name}")

	return list(INTERVAL_DEFINITIONS[name])


def key_name_to_pc (key: str) -> int:

	"""Convert a key name such as ``"D"`` or ``"Bb"`` to a pitch class."""

	if key not in NOTE_NAME_TO_PC:
		raise ValueError(f"Unknown key name '{key}'. Available: {sorted(NOTE_NAME_TO_PC)}")

	return NOTE_NAME_TO_PC[key]


def scale_mask (key_pc: int, mode: str = "ionian") -> ScaleMask:

	"""
	Build the mask for a key and mode.

	Parameters:
		key_pc: Root pitch class (0 = C, 1 = C#/Db, ..., 11 = B).
		mode: Any key of ``MODE_MAP`` (e.g. ``"dorian"``, ``"minor"``).

	Example:
		```python
		# D dorian
		scale_mask(2, "dorian").pitch_classes()  # -> [0, 2, 4, 5, 7, 9, 11]
		```
	"""

	if mode not in MODE_MAP:
		raise ValueError(f"Unknown mode '{mode}'. Available: {sorted(MODE_MAP)}")

	intervals = get_intervals(MODE_MAP[mode])
	return ScaleMask.from_pitch_classes(key_pc + i for i in intervals)


MAJOR = ScaleMask((True, False, True, False, True, True, False, True, False, True, False, True))
DORIAN = ScaleMask((True, False, True, True, False, True, False, True, False, True, True, False))
PENTATONIC = ScaleMask((False, True, False, True, False, False, True, False, True, False, True, False))
CHROMATIC = ScaleMask((True,) * 12)


_NAMED_MASKS: typing.Dict[str, ScaleMask] = {
	"major": MAJOR,
	"dorian": DORIAN,
	"pentatonic": PENTATONIC,
	"chromatic": CHROMATIC,
}


def register_scale_mask (name: str, mask: typing.Union[ScaleMask, typing.Iterable[int]]) -> None:

	"""
	Register a named mask for use in configuration files.

	``mask`` is either a :class:`ScaleMask` or a collection of pitch classes.
	"""

	if not isinstance(mask, ScaleMask):
		mask = ScaleMask.from_pitch_classes(mask)

	_NAMED_MASKS[name] = mask


def get_scale_mask (name: str) -> ScaleMask:

	"""Look up a named mask."""

	if name not in _NAMED_MASKS:
		raise ValueError(f"Unknown scale '{name}'. Available: {sorted(_NAMED_MASKS)}")

	return _NAMED_MASKS[name]


def _truncated_divmod (pitch: int) -> typing.Tuple[int, int]:

	"""Divide by 12 rounding toward zero; the remainder takes the pitch's sign."""

	octave = abs(pitch) // driftgen.constants.PITCH_CLASSES

	if pitch < 0:
		octave = -octave

	return octave, pitch - octave * driftgen.constants.PITCH_CLASSES


def quantize_pitch (pitch: int, mask: ScaleMask) -> int:

	"""
	Snap a pitch to the nearest pitch permitted by the mask.

	A permitted pitch is returned unchanged. Otherwise candidates are tried
	at increasing semitone distance, the lower before the upper, so ties
	resolve downward. The octave comes from truncating division of the
	original pitch, and the candidate is added to it unwrapped: the result
	may cross into the neighbouring octave (C with B allowed gives the B
	below).

	Example:
		```python
		quantize_pitch(61, MAJOR)  # -> 60
		```
	"""

	if mask.allows(pitch):
		return pitch

	octave, remainder = _truncated_divmod(pitch)

	for distance in range(1, driftgen.constants.PITCH_CLASSES // 2 + 1):

		lower = remainder - distance
		if mask.allows(lower):
			return lower + octave * driftgen.constants.PITCH_CLASSES

		upper = remainder + distance
		if mask.allows(upper):
			return upper + octave * driftgen.constants.PITCH_CLASSES

	return pitch  # Not reached: distance 6 spans the whole pitch-class circle


def quantize_note (note: driftgen.note.Note, mask: ScaleMask) -> driftgen.note.Note:

	"""Return ``note`` with its pitch quantized; permitted notes come back as-is."""

	pitch = quantize_pitch(note.pitch, mask)

	if pitch == note.pitch:
		return note

	return dataclasses.replace(note, pitch=pitch)
