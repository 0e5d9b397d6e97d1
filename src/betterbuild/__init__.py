from .dsl import build, param, sh, target, Workflow
from .conditions import param_equals, param_set, tool_available, when
from .dag import plan
from .model import RunReport, SkipReason, Step, Target, TargetState
from .params import Context, Parameter, resolve_parameters
from .registry import TargetRegistry
from .runner import execute, load_workflow

__all__ = [
    "build", "param", "sh", "target", "Workflow",
    "param_equals", "param_set", "tool_available", "when",
    "plan", "execute", "load_workflow",
    "RunReport", "SkipReason", "Step", "Target", "TargetState",
    "Context", "Parameter", "resolve_parameters", "TargetRegistry",
]
