import cv2
import numpy as np
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from recommendations import Recommendation, RecommendationEngine, get_policy
from skin_score import (
    DependencyUnavailable,
    InputError,
    SkinAnalyzer,
    SkinScoreResult,
    validate_raster,
)


def vision_backend_ready() -> bool:
    """True once the OpenCV routines used by the pipeline can be called"""
    return all(
        hasattr(cv2, name)
        for name in ('cvtColor', 'GaussianBlur', 'absdiff', 'meanStdDev', 'threshold', 'countNonZero')
    )


@dataclass(frozen=True)
class AnalysisOutcome:
    result: SkinScoreResult
    recommendations: List[Recommendation]
    policy: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict:
        record = self.result.to_dict()
        record.update({
            'policy': self.policy,
            'timestamp': self.timestamp,
            'recommendations': [rec.to_dict() for rec in self.recommendations]
        })
        return record


class AnalysisSession:
    """
    Capture/analyze/retake lifecycle for one camera surface.

    The session owns the captured frame and the in-progress flag; every
    analysis runs on a worker thread and is handed back as a Future. The
    worker is started by the first analyze() call and stopped by close(),
    which the with-statement calls on exit.
    """

    def __init__(
        self,
        policy_name: str = 'beyond',
        backend_ready: Callable[[], bool] = vision_backend_ready,
        max_attempts: int = 100,
        retry_delay: float = 0.1,
        analyzer: Optional[SkinAnalyzer] = None
    ):
        self.logger = self._setup_logger()
        self.policy = get_policy(policy_name)
        self.engine = RecommendationEngine(self.policy)
        self.analyzer = analyzer or SkinAnalyzer()
        self.backend_ready = backend_ready
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

        self._captured: Optional[np.ndarray] = None
        self._analyzing = False
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    def _setup_logger(self):
        """Initialize logging configuration"""
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s'
        )
        return logging.getLogger(__name__)

    @property
    def has_capture(self) -> bool:
        return self._captured is not None

    @property
    def is_analyzing(self) -> bool:
        with self._lock:
            return self._analyzing

    def capture(self, raster: np.ndarray) -> None:
        """Store a decoded frame for analysis; the stored copy is read-only"""
        validate_raster(raster)
        frame = raster.copy()
        frame.setflags(write=False)
        self._captured = frame
        self.logger.info(f"Image captured ({frame.shape[1]}x{frame.shape[0]})")

    def retake(self) -> None:
        self._captured = None
        self.logger.info("Captured image discarded")

    def wait_for_backend(self) -> None:
        """Poll the vision backend until it is ready or the attempts run out"""
        for attempt in range(self.max_attempts):
            if self.backend_ready():
                return
            if attempt + 1 < self.max_attempts:
                time.sleep(self.retry_delay)

        self.logger.error(f"Vision backend not ready after {self.max_attempts} attempts")
        raise DependencyUnavailable(
            "Vision backend failed to load. Please restart and try again."
        )

    def _run(self, raster: np.ndarray) -> AnalysisOutcome:
        try:
            self.wait_for_backend()
            result = self.analyzer.analyze(raster)
            return AnalysisOutcome(
                result=result,
                recommendations=self.engine.recommend(result),
                policy=self.policy.name
            )
        except Exception as e:
            self.logger.error(f"Analysis failed: {str(e)}")
            raise
        finally:
            with self._lock:
                self._analyzing = False

    def analyze(self) -> 'Future[AnalysisOutcome]':
        """
        Start analysing the captured frame.
        Raises InputError without a capture and RuntimeError while a run is active.
        """
        raster = self._captured
        if raster is None:
            raise InputError("No image captured")

        with self._lock:
            if self._analyzing:
                raise RuntimeError("An analysis is already in progress")
            self._analyzing = True

        try:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1)
            return self._executor.submit(self._run, raster)
        except Exception:
            with self._lock:
                self._analyzing = False
            raise

    def close(self) -> None:
        """Wait for a running analysis and stop the worker thread"""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
