"""LLM agents working on clustering results."""

from .abstraction_agent import AbstractionAgent, AbstractionResult

__all__ = ["AbstractionAgent", "AbstractionResult"]
