"""
Blueprint Extraction Backend Application.

A FastAPI service that turns project implementation blueprints (PDF) into
structured pre-sales knowledge using an OpenAI-compatible LLM (Qwen).
"""

__version__ = "1.0.0"
