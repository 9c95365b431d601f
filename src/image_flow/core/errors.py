"""
Workflow Errors - Exceptions raised while executing a workflow graph.

Every error the engine can report on an Output node derives from
WorkflowError. The message of each error is user-facing: the orchestrator
writes ``str(error)`` straight into the branch status.

Provider-side errors (credentials, unsupported models, backend failures)
live in ``image_flow.providers.base`` and share the same base class.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base exception for all workflow execution errors."""
    pass


class NoOutputNodeError(WorkflowError):
    """The graph has no Output node, so nothing can run."""

    def __init__(self, message: str = "Add an Output Node to start."):
        super().__init__(message)


class MissingModelConnectionError(WorkflowError):
    """No edge feeds the Output node."""

    def __init__(self, message: str = "Connect a Model Node to the Output."):
        super().__init__(message)


class MissingPromptConnectionError(WorkflowError):
    """No edge feeds the Model node."""

    def __init__(self, message: str = "Connect a Prompt Node to the Model."):
        super().__init__(message)


class InvalidConnectionError(WorkflowError):
    """An edge points at a missing node or a node of the wrong kind."""
    pass


class MissingVariablesError(WorkflowError):
    """One or more template placeholders have no usable value."""

    def __init__(self, keys: list[str]):
        self.keys = list(keys)
        super().__init__(
            f"Missing values for: {', '.join(self.keys)}. "
            "Please fill in the Input Node."
        )


class EmptyPromptError(WorkflowError):
    """The prompt template resolved to blank text."""

    def __init__(
        self,
        message: str = "Prompt is empty. Please check your Prompt Node template.",
    ):
        super().__init__(message)
