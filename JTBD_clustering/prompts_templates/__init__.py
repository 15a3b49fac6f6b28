"""Prompt templates used by the LLM agents."""
