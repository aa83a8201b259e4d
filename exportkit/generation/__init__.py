"""Planning and rendering of the virtual module and its declarations."""

from .declarations import emit_declarations
from .planner import ModulePlan, plan_module
from .synthesizer import SynthesisError, synthesize

__all__ = ["ModulePlan", "SynthesisError", "emit_declarations", "plan_module", "synthesize"]
