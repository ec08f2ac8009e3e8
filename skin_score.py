import cv2
import numpy as np
from typing import Dict, Iterator
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass


class AnalysisError(Exception):
    """Base error for the skin analysis pipeline"""


class InputError(AnalysisError):
    """Raised for empty or malformed rasters"""


class DependencyUnavailable(AnalysisError):
    """Raised when the vision backend is not ready"""


@dataclass(frozen=True)
class ChannelStatistics:
    mean: float
    stddev: float


@dataclass(frozen=True)
class SkinScoreResult:
    overall: int
    smoothness: int
    evenness: int
    clarity: int
    label: str

    def to_dict(self) -> Dict:
        return {
            'overall': self.overall,
            'smoothness': self.smoothness,
            'evenness': self.evenness,
            'clarity': self.clarity,
            'label': self.label
        }


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def channel_statistics(plane: np.ndarray) -> ChannelStatistics:
    """Population mean and standard deviation of a single-channel plane"""
    mean, stddev = cv2.meanStdDev(plane)
    return ChannelStatistics(mean=float(mean[0][0]), stddev=float(stddev[0][0]))


def validate_raster(raster: np.ndarray) -> None:
    """
    Check that the raster is a decoded 8-bit RGB or RGBA image.
    Raises InputError otherwise.
    """
    if not isinstance(raster, np.ndarray):
        raise InputError(f"Raster must be a numpy array, got {type(raster).__name__}")
    if raster.ndim != 3:
        raise InputError(f"Raster must have shape (height, width, channels), got {raster.shape}")

    h, w, channels = raster.shape
    if h == 0 or w == 0:
        raise InputError(f"Raster is empty ({w}x{h})")
    if channels not in (3, 4):
        raise InputError(f"Unsupported channel count: {channels}")
    if raster.dtype != np.uint8:
        raise InputError(f"Raster must be 8-bit per channel, got {raster.dtype}")


def load_raster(image_path: str) -> np.ndarray:
    """Decode an image file into an RGB(A) raster"""
    image = cv2.imread(image_path, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise InputError(f"Could not load image from {image_path}")

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


@contextmanager
def color_planes(raster: np.ndarray) -> Iterator[Dict[str, np.ndarray]]:
    """
    Convert a validated raster into grayscale, HSV and Lab representations.
    The planes only live inside the with-block and are dropped on exit.
    """
    rgb = raster
    if raster.shape[2] == 4:
        rgb = cv2.cvtColor(raster, cv2.COLOR_RGBA2RGB)

    planes = {
        'gray': cv2.cvtColor(rgb, cv2.COLOR_RGB2GRAY),
        'hsv': cv2.cvtColor(rgb, cv2.COLOR_RGB2HSV),
        'lab': cv2.cvtColor(rgb, cv2.COLOR_RGB2Lab)
    }
    try:
        yield planes
    finally:
        planes.clear()


class SkinAnalyzer:
    def __init__(self):
        self.logger = self._setup_logger()

        # Texture (smoothness) settings
        self.texture_params = {
            'blur_kernel': (15, 15),
            'blur_sigma': 0,
            'multiplier': 2
        }

        # Lightness dispersion (evenness) settings
        self.tone_params = {
            'multiplier': 3
        }

        # Low saturation (clarity) settings
        self.blemish_params = {
            'saturation_threshold': 30,
            'ratio_multiplier': 500
        }

        # Minimum overall score for each label, checked in order
        self.label_thresholds = [
            (80, 'Excellent'),
            (60, 'Good'),
            (40, 'Fair')
        ]
        self.fallback_label = 'Needs Attention'

    def _setup_logger(self):
        """Initialize logging configuration"""
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s'
        )
        return logging.getLogger(__name__)

    def analyze_smoothness(self, gray: np.ndarray) -> int:
        """Score texture from the high-frequency residual of the grayscale plane"""
        blurred = cv2.GaussianBlur(
            gray,
            self.texture_params['blur_kernel'],
            self.texture_params['blur_sigma']
        )
        residual = cv2.absdiff(gray, blurred)
        stats = channel_statistics(residual)
        score = 100 - (stats.stddev * self.texture_params['multiplier'])
        return round_half_up(clamp_score(score))

    def analyze_evenness(self, lab: np.ndarray) -> int:
        """Score tone evenness from the spread of the L channel"""
        stats = channel_statistics(np.ascontiguousarray(lab[:, :, 0]))
        score = 100 - (stats.stddev * self.tone_params['multiplier'])
        return round_half_up(clamp_score(score))

    def blemish_ratio(self, hsv: np.ndarray) -> float:
        """Fraction of pixels whose saturation falls below the threshold"""
        saturation = np.ascontiguousarray(hsv[:, :, 1])
        _, mask = cv2.threshold(
            saturation,
            self.blemish_params['saturation_threshold'],
            255,
            cv2.THRESH_BINARY_INV
        )
        return cv2.countNonZero(mask) / mask.size

    def analyze_clarity(self, hsv: np.ndarray) -> int:
        """Score clarity from the share of low saturation pixels"""
        ratio = self.blemish_ratio(hsv)
        score = 100 - (ratio * self.blemish_params['ratio_multiplier'])
        return round_half_up(clamp_score(score))

    def calculate_overall_score(self, smoothness: int, evenness: int, clarity: int) -> int:
        """Average of the three sub-scores"""
        return round((smoothness + evenness + clarity) / 3)

    def categorize_score(self, score: int) -> str:
        """Map an overall score to its descriptive label"""
        for minimum, label in self.label_thresholds:
            if score >= minimum:
                return label
        return self.fallback_label

    def analyze(self, raster: np.ndarray) -> SkinScoreResult:
        """
        Run the full scoring pipeline on a decoded RGB(A) raster.
        Every call is independent: the same raster always gives the same result.
        """
        try:
            validate_raster(raster)
        except InputError as e:
            self.logger.error(f"Rejected raster: {str(e)}")
            raise

        with color_planes(raster) as planes:
            smoothness = self.analyze_smoothness(planes['gray'])
            evenness = self.analyze_evenness(planes['lab'])
            clarity = self.analyze_clarity(planes['hsv'])

        overall = self.calculate_overall_score(smoothness, evenness, clarity)
        result = SkinScoreResult(
            overall=overall,
            smoothness=smoothness,
            evenness=evenness,
            clarity=clarity,
            label=self.categorize_score(overall)
        )
        self.logger.info(
            f"Skin scores - overall: {overall}, smoothness: {smoothness}, "
            f"evenness: {evenness}, clarity: {clarity}"
        )
        return result

    def analyze_image(self, image_path: str) -> SkinScoreResult:
        """Load an image file and score it"""
        return self.analyze(load_raster(image_path))


def analyze(raster: np.ndarray) -> SkinScoreResult:
    return SkinAnalyzer().analyze(raster)
