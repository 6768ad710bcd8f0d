"""Conversation thread reconstruction."""

from .reconstructor import reconstruct_threads, thread_index

__all__ = ["reconstruct_threads", "thread_index"]
