from __future__ import annotations

from typing import Optional

# Shown in place of code when the model answer holds nothing extractable
PARSE_ERROR_PLACEHOLDER = "Error: Could not parse code from response"
# Shown in place of code when the /generate call itself failed
GENERATION_ERROR_PLACEHOLDER = "Error generating code"

ERROR_PLACEHOLDERS = (PARSE_ERROR_PLACEHOLDER, GENERATION_ERROR_PLACEHOLDER)


def is_error_placeholder(code: Optional[str]) -> bool:
    return (code or "").strip() in ERROR_PLACEHOLDERS


class GlimpseError(Exception):
    """Base class for every failure the service reports by kind."""


class UnparsableResponse(GlimpseError):
    def __init__(self, message: str = "no code found in model response") -> None:
        super().__init__(message)
        self.placeholder = PARSE_ERROR_PLACEHOLDER


class UnsupportedFramework(GlimpseError):
    def __init__(self, framework: object) -> None:
        super().__init__(f"Unsupported framework: {framework!r}")
        self.framework = framework


class UnsupportedProvider(GlimpseError):
    def __init__(self, provider: object) -> None:
        super().__init__(f"Unsupported provider: {provider!r}")
        self.provider = provider


class AgentNotFound(GlimpseError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent {agent_id} not found")
        self.agent_id = agent_id


class DuplicateAgent(GlimpseError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent {agent_id} is already registered")
        self.agent_id = agent_id


class RenderFault(GlimpseError):
    """A preview could not be built; shown in place, never raised to the view."""


class NoComponentFound(RenderFault):
    def __init__(self, entry: str) -> None:
        super().__init__(f"No component named '{entry}' found")
        self.entry = entry


class ProviderCallFailed(GlimpseError):
    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class FallbackAlsoFailed(ProviderCallFailed):
    pass
