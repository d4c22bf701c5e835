from typing import List, Protocol


class Retriever(Protocol):
    async def query(self, text: str) -> List[str]:
        """Top-k reference passages for ``text``, most relevant first."""
        ...


class ScoringService(Protocol):
    async def complete(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """Raw model output, expected to be a JSON object."""
        ...


class TextExtractor(Protocol):
    def extract(self, storage_ref: str) -> str:
        ...
