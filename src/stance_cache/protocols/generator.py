"""Generation service protocol.

The expensive call the cache guards, typically a chat completion.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Generator(Protocol):
    """Protocol for response generators."""

    async def generate(self, prompt: str) -> str:
        """Generate a response for a prompt."""
        ...
