# backend/safesignal/audio/dsp/vad.py
from typing import Optional
import numpy as np
from safesignal.core.config import settings


def frame_rms(samples: np.ndarray) -> float:
    if samples is None or len(samples) == 0:
        return 0.0
    x = np.asarray(samples, dtype=np.float64)
    return float(np.sqrt(np.mean(x * x)))


def zero_crossing_rate(samples: np.ndarray) -> float:
    """Sign changes between adjacent samples divided by the frame length."""
    if samples is None or len(samples) < 2:
        return 0.0
    non_negative = np.asarray(samples) >= 0
    crossings = np.count_nonzero(non_negative[1:] != non_negative[:-1])
    return float(crossings / len(samples))


def is_voiced(
    samples: np.ndarray,
    energy_threshold: Optional[float] = None,
    zcr_min: Optional[float] = None,
    zcr_max: Optional[float] = None,
) -> bool:
    """
    Energy + ZCR voice activity check for one frame.
    Voiced iff RMS is above the energy threshold and the ZCR lies strictly
    inside (zcr_min, zcr_max): too low is silence or a pure tone, too high
    is broadband noise or sibilance only.
    """
    if energy_threshold is None:
        energy_threshold = settings.vad_energy_threshold
    if zcr_min is None:
        zcr_min = settings.vad_zcr_min
    if zcr_max is None:
        zcr_max = settings.vad_zcr_max

    if samples is None or len(samples) == 0:
        return False

    has_energy = frame_rms(samples) > energy_threshold
    zcr = zero_crossing_rate(samples)
    return has_energy and zcr_min < zcr < zcr_max
