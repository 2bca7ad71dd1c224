"""Runtime config synthesis for the browser-side client."""

from stackcomposer.synth.synthesizer import OUTPUT_FIELDS, OutputField, RuntimeConfigSynthesizer

__all__ = ["OUTPUT_FIELDS", "OutputField", "RuntimeConfigSynthesizer"]
