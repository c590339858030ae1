"""snapper - snapshot text files for LLM prompts and rebuild them later."""

__version__ = "0.2.0"
