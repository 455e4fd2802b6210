
"""
driftgen - evolving generative MIDI voices for Python.

Each voice owns a small ring of notes. On every lap the ring is nudged a
little: a pitch jitters, a note falls silent or wakes up, a duration
stretches or shrinks by one step, and every sounding pitch is snapped back
onto a scale. The result is a line that keeps its own identity while
slowly drifting, rather than a stream of unrelated random notes.

Several voices play at once over one shared MIDI output. Each voice runs
as a pair of asyncio tasks - a generator and a player - joined by an
unbuffered channel, so a generator never runs ahead of its playback. The
output is locked per message, so voices never interleave partial writes,
and every note that starts is always released, including at shutdown.

Minimal example:

    ```python
    import driftgen

    ensemble = driftgen.Ensemble(seed=42)
    ensemble.add_voice("lead", channel=2, profile="lead")
    ensemble.add_voice("bass", channel=3, profile="bass")
    ensemble.play()   # press any key to stop
    ```

Or from the command line::

    python -m driftgen --list-devices
    python -m driftgen --device "My Synth" --config driftgen.yaml

Package-level exports: ``Ensemble``, ``Voice``, ``GeneratorConfig``,
``Generator``, ``ScaleMask``, ``quantize_note``.
"""

import driftgen.ensemble
import driftgen.generator
import driftgen.intervals


Ensemble = driftgen.ensemble.Ensemble
Voice = driftgen.ensemble.Voice
GeneratorConfig = driftgen.generator.GeneratorConfig
Generator = driftgen.generator.Generator
ScaleMask = driftgen.intervals.ScaleMask
quantize_note = driftgen.intervals.quantize_note
