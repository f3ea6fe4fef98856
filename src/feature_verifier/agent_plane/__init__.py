"""Agent plane: agent registry, invocation, retry policy and response parsing."""

from feature_verifier.agent_plane.agents import (
    DEFAULT_AGENTS,
    AgentDescriptor,
    AgentRegistry,
    AgentStatus,
    agent_priority_string,
    command_exists,
    load_agent_descriptors,
)
from feature_verifier.agent_plane.errors import (
    AgentPermanentError,
    AgentTransientError,
    AgentUnavailableError,
    ResponseParseError,
    StoreWriteError,
    VerifierError,
    classify_agent_error,
    is_transient_error,
)
from feature_verifier.agent_plane.invoker import AgentCallResult, AgentInvoker
from feature_verifier.agent_plane.response import (
    AgentAnalysis,
    ParseOutcome,
    parse_agent_response,
)
from feature_verifier.agent_plane.retry import (
    RetryCoordinator,
    RetryDecision,
    RetryPolicy,
    calculate_backoff,
    decide,
)

__all__ = [
    "AgentAnalysis",
    "AgentCallResult",
    "AgentDescriptor",
    "AgentInvoker",
    "AgentPermanentError",
    "AgentRegistry",
    "AgentStatus",
    "AgentTransientError",
    "AgentUnavailableError",
    "DEFAULT_AGENTS",
    "ParseOutcome",
    "ResponseParseError",
    "RetryCoordinator",
    "RetryDecision",
    "RetryPolicy",
    "StoreWriteError",
    "VerifierError",
    "agent_priority_string",
    "calculate_backoff",
    "classify_agent_error",
    "command_exists",
    "decide",
    "is_transient_error",
    "load_agent_descriptors",
    "parse_agent_response",
]
