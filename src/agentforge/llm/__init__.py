"""LLM provider clients."""

from agentforge.llm.interface import (
    BaseLLMClient,
    load_llm,
    register_llm,
)

__all__ = ["BaseLLMClient", "load_llm", "register_llm"]
