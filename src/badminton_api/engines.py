"""
Analysis engines.

No computer vision runs in this service. An engine turns a stored video into
a results payload; the tracker only depends on the IAnalysisEngine port so
the concrete engine can be swapped by configuration:

- simulated: randomized scores after a delay, with optional failure injection
- mock: the fixed reference payload after a delay
- remote: POSTs the video to an external analysis service
"""

import asyncio
import copy
import logging
import random
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from badminton_domain.errors import AnalysisEngineFailure
from .config import Settings


logger = logging.getLogger(__name__)


TECHNIQUE_FEEDBACK = [
    "Good racket preparation on your forehand side",
    "Try to maintain a higher elbow position during backhand strokes",
    "Your follow-through is excellent on smashes",
    "Work on wrist positioning during net shots",
    "Contact the shuttle earlier and higher on overhead clears",
]

FOOTWORK_FEEDBACK = [
    "Your split-step timing is good",
    "Work on faster recovery to the center court",
    "Good lateral movement on the forehand side",
    "Try to use more chassé steps when moving to the backhand corner",
    "Stay lower on your lunges to the front court",
]

STRATEGY_FEEDBACK = [
    "Good variety in your shot selection",
    "Try to use more attacking clears when opponent is at front court",
    "Effective use of drop shots",
    "Work on deception in your shot preparation",
    "Look for the straight smash when your opponent leaves the line open",
]

SHOT_TYPES = ["Net shots", "Clears", "Drops", "Drives", "Smashes"]

MOCK_RESULTS: Dict[str, Any] = {
    "technique": {
        "overallScore": 78,
        "feedback": TECHNIQUE_FEEDBACK[:4],
        "detailedMetrics": {
            "backswing": 82,
            "followThrough": 75,
            "contactPoint": 68,
            "racketPath": 86
        },
        "timeMarkers": [
            {"time": 15, "label": "Good forehand technique"},
            {"time": 42, "label": "Backhand needs improvement"},
            {"time": 78, "label": "Excellent smash execution"}
        ]
    },
    "footwork": {
        "overallScore": 72,
        "feedback": FOOTWORK_FEEDBACK[:4],
        "detailedMetrics": {
            "movementEfficiency": 70,
            "recoverySpeed": 65,
            "courtCoverage": 80
        },
        "timeMarkers": [
            {"time": 28, "label": "Good split-step"},
            {"time": 56, "label": "Slow recovery to center"},
            {"time": 92, "label": "Efficient forehand movement"}
        ]
    },
    "strategy": {
        "overallScore": 75,
        "feedback": STRATEGY_FEEDBACK[:4],
        "patterns": [
            {"name": "Net shots", "value": 32},
            {"name": "Clears", "value": 28},
            {"name": "Drops", "value": 18},
            {"name": "Drives", "value": 12},
            {"name": "Smashes", "value": 10}
        ],
        "timeMarkers": [
            {"time": 35, "label": "Good shot variation"},
            {"time": 68, "label": "Missed attacking opportunity"},
            {"time": 105, "label": "Effective defensive play"}
        ]
    }
}


class SimulatedAnalysisEngine:
    """
    Resolves a randomized result after a fixed delay.

    Scores are drawn from [min_score, 100]. With failure_rate > 0 a share of
    analyses raise AnalysisEngineFailure instead.
    """

    name = "simulated"

    def __init__(
        self,
        delay_s: float = 5.0,
        failure_rate: float = 0.0,
        min_score: int = 60,
        seed: Optional[int] = None
    ):
        self.delay_s = delay_s
        self.failure_rate = failure_rate
        self.min_score = min_score
        self._rng = random.Random(seed)

    def _score(self) -> int:
        return self._rng.randint(self.min_score, 100)

    def _feedback(self, bank) -> list:
        return self._rng.sample(bank, k=min(4, len(bank)))

    def _patterns(self) -> list:
        weights = [self._rng.randint(1, 10) for _ in SHOT_TYPES]
        total = sum(weights)
        return [
            {"name": name, "value": round(100.0 * w / total, 1)}
            for name, w in zip(SHOT_TYPES, weights)
        ]

    def build_results(self) -> Dict[str, Any]:
        technique = {
            "backswing": self._score(),
            "followThrough": self._score(),
            "contactPoint": self._score(),
            "racketPath": self._score(),
        }
        footwork = {
            "movementEfficiency": self._score(),
            "recoverySpeed": self._score(),
            "courtCoverage": self._score(),
        }
        return {
            "technique": {
                "overallScore": round(sum(technique.values()) / len(technique)),
                "feedback": self._feedback(TECHNIQUE_FEEDBACK),
                "detailedMetrics": technique,
            },
            "footwork": {
                "overallScore": round(sum(footwork.values()) / len(footwork)),
                "feedback": self._feedback(FOOTWORK_FEEDBACK),
                "detailedMetrics": footwork,
            },
            "strategy": {
                "overallScore": self._score(),
                "feedback": self._feedback(STRATEGY_FEEDBACK),
                "patterns": self._patterns(),
            },
        }

    async def analyze(self, artifact_location: str) -> Dict[str, Any]:
        await asyncio.sleep(self.delay_s)
        if self.failure_rate and self._rng.random() < self.failure_rate:
            raise AnalysisEngineFailure("Simulated analysis failure")
        return self.build_results()

    async def close(self) -> None:
        pass


class MockAnalysisEngine:
    """Returns the fixed reference payload after a delay."""

    name = "mock"

    def __init__(self, delay_s: float = 0.0):
        self.delay_s = delay_s

    async def analyze(self, artifact_location: str) -> Dict[str, Any]:
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        return copy.deepcopy(MOCK_RESULTS)

    async def close(self) -> None:
        pass


class RemoteAnalysisEngine:
    """
    Sends the video to an external analysis service.

    The service receives a multipart upload with field `video` and must answer
    with the results JSON, either bare or wrapped as {"results": {...}}.
    """

    name = "remote"

    def __init__(self, url: str, request_timeout_s: float = 60.0, session: Optional[requests.Session] = None):
        self.url = url
        self.request_timeout_s = request_timeout_s
        self._session = session or requests.Session()

    def _post(self, artifact_location: str) -> Dict[str, Any]:
        path = Path(artifact_location)
        try:
            with open(path, 'rb') as f:
                response = self._session.post(
                    self.url,
                    files={"video": (path.name, f, "application/octet-stream")},
                    timeout=self.request_timeout_s,
                )
        except requests.RequestException as e:
            raise AnalysisEngineFailure("Analysis service unreachable") from e
        except OSError as e:
            raise AnalysisEngineFailure("Stored video could not be read") from e

        if response.status_code != 200:
            logger.error("Analysis service answered %s: %s", response.status_code, response.text[:200])
            raise AnalysisEngineFailure(f"Analysis service error ({response.status_code})")

        try:
            body = response.json()
        except ValueError as e:
            raise AnalysisEngineFailure("Analysis service returned invalid JSON") from e
        if not isinstance(body, dict):
            raise AnalysisEngineFailure("Analysis service returned an unexpected payload")
        return body.get("results", body)

    async def analyze(self, artifact_location: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self._post, artifact_location)

    async def close(self) -> None:
        self._session.close()


def build_engine(settings: Settings):
    """Create the engine selected by settings.analysis_engine."""
    if settings.analysis_engine == "mock":
        return MockAnalysisEngine(delay_s=settings.analysis_delay_s)
    if settings.analysis_engine == "remote":
        return RemoteAnalysisEngine(
            settings.analysis_engine_url,
            request_timeout_s=settings.analysis_timeout_s,
        )
    return SimulatedAnalysisEngine(
        delay_s=settings.analysis_delay_s,
        failure_rate=settings.analysis_failure_rate,
    )
