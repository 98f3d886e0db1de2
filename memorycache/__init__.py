"""
MemoryCacheAI - Memory Management for AI Assistants

This package keeps short-lived conversation state and long-lived semantic
memories for AI assistants by coordinating a key-value store, a vector
database, a delayed-task dispatcher and an embedding API.
"""

__version__ = "1.0.0"
