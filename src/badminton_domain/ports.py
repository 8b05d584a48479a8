from typing import Protocol, Dict, Any


class IAnalysisEngine(Protocol):
    """Interface for the service that turns a stored video into feedback."""

    name: str

    async def analyze(self, artifact_location: str) -> Dict[str, Any]:
        """
        Analyze the artifact and return a results payload.

        Raises on any failure; the caller converts errors into a failed record.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by the engine."""
        ...
