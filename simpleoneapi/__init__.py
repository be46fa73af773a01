"""Building blocks for an OpenAI-compatible multi-provider LLM gateway."""

__version__ = "0.1.0"