from .decision_workflow import DecisionWorkflow, build_default_workflow

__all__ = ["DecisionWorkflow", "build_default_workflow"]
