"""Operations of the FlowMCP CLI and the facade that exposes them."""

from .context import AGENT_LABEL, ActiveSet, Services, expect, resolve_active
from .facade import FlowMcp
from .validation import RunScope

__all__ = ["FlowMcp", "Services", "ActiveSet", "RunScope", "AGENT_LABEL", "expect", "resolve_active"]
