"""Feature extraction from audio frames for stress inference."""
from typing import List, Optional
import librosa
import numpy as np
from safesignal.audio.models import AudioFrame, FeatureSet, FeatureWindow
from safesignal.audio.dsp.pitch import estimate_pitch
from safesignal.audio.dsp.vad import frame_rms, zero_crossing_rate
from safesignal.core.config import settings
from safesignal.core.logging import logger


def extract_rms(samples: np.ndarray) -> float:
    """
    Extract RMS (Root Mean Square) loudness from a frame.

    Args:
        samples: Normalized mono samples

    Returns:
        RMS value (0.0 to 1.0 for normalized audio)
    """
    return frame_rms(samples)


def extract_zero_crossing_rate(samples: np.ndarray) -> float:
    """
    Extract zero-crossing rate (ZCR) from a frame.

    ZCR indicates how often the signal crosses zero.
    Higher ZCR typically indicates noise or unvoiced speech.
    Lower ZCR indicates voiced speech or silence.

    Args:
        samples: Normalized mono samples

    Returns:
        Zero-crossing rate (0.0 to 1.0)
    """
    return zero_crossing_rate(samples)


def _pad_to(samples: np.ndarray, size: int) -> np.ndarray:
    if len(samples) >= size:
        return samples
    return np.pad(samples, (0, size - len(samples)), mode='constant')


def extract_spectral_centroid(samples: np.ndarray, sample_rate: int, n_fft: Optional[int] = None) -> float:
    """
    Extract spectral centroid from a frame.

    Spectral centroid indicates the "brightness" of the sound.
    Higher values indicate brighter/more high-frequency content.

    Args:
        samples: Normalized mono samples
        sample_rate: Sample rate in Hz
        n_fft: FFT size; shorter frames are zero-padded (if None, uses config value)

    Returns:
        Spectral centroid in Hz
    """
    if n_fft is None:
        n_fft = settings.n_fft

    if len(samples) < 2:
        return 0.0

    audio = _pad_to(np.asarray(samples, dtype=np.float64), n_fft)
    fft_size = len(audio)

    magnitude = np.abs(np.fft.rfft(audio))
    freqs = np.fft.rfftfreq(fft_size, 1.0 / sample_rate)

    total = np.sum(magnitude)
    if total > 0:
        return float(np.sum(freqs * magnitude) / total)

    return 0.0


def extract_cepstral_coeffs(
    samples: np.ndarray,
    sample_rate: int,
    num_coeffs: Optional[int] = None,
    n_fft: Optional[int] = None
) -> np.ndarray:
    """
    Mel-frequency cepstral coefficients of a single frame.

    The frame is zero-padded to one FFT window and analysed as exactly one
    STFT column (no centering), so the result describes this frame only.

    Args:
        samples: Normalized mono samples
        sample_rate: Sample rate in Hz
        num_coeffs: Number of coefficients (if None, uses config value)
        n_fft: FFT size (if None, uses config value)

    Returns:
        1-D float32 array of ``num_coeffs`` coefficients
    """
    if num_coeffs is None:
        num_coeffs = settings.num_cepstral_coeffs
    if n_fft is None:
        n_fft = settings.n_fft

    audio = _pad_to(np.asarray(samples, dtype=np.float32), n_fft)
    n_fft = len(audio)

    mfcc = librosa.feature.mfcc(
        y=audio,
        sr=sample_rate,
        n_mfcc=num_coeffs,
        n_fft=n_fft,
        hop_length=n_fft,
        n_mels=max(40, num_coeffs),
        center=False,
    )
    return mfcc[:, 0].astype(np.float32)


def extract_features(
    frame: AudioFrame,
    num_coeffs: Optional[int] = None
) -> FeatureSet:
    """
    Extract the full feature set of one frame.

    Malformed input (empty or non-finite samples) or a failing extractor
    yields a neutral, all-zero FeatureSet for that frame instead of an
    exception so the monitoring loop keeps running.

    Args:
        frame: Input audio frame
        num_coeffs: Number of cepstral coefficients (if None, uses config value)

    Returns:
        FeatureSet for the frame
    """
    if num_coeffs is None:
        num_coeffs = settings.num_cepstral_coeffs

    samples = frame.samples
    if samples.size == 0:
        logger.warning("Empty audio frame, returning neutral features")
        return FeatureSet.neutral(num_coeffs)
    if not np.all(np.isfinite(samples)):
        logger.warning("Non-finite samples in audio frame, returning neutral features")
        return FeatureSet.neutral(num_coeffs)

    try:
        return FeatureSet(
            pitch_hz=estimate_pitch(samples, frame.sample_rate),
            rms=extract_rms(samples),
            zcr=extract_zero_crossing_rate(samples),
            spectral_centroid_hz=extract_spectral_centroid(samples, frame.sample_rate),
            cepstral_coeffs=extract_cepstral_coeffs(samples, frame.sample_rate, num_coeffs),
        )
    except Exception as e:
        logger.error(f"Feature extraction failed ({e}), returning neutral features", exc_info=True)
        return FeatureSet.neutral(num_coeffs)


def split_into_frames(samples: np.ndarray, sample_rate: int, frame_size_ms: Optional[int] = None) -> List[np.ndarray]:
    """
    Split a buffer into contiguous, non-overlapping analysis frames.

    A trailing partial frame is dropped.
    """
    if frame_size_ms is None:
        frame_size_ms = settings.frame_size_ms

    frame_size = int(sample_rate * frame_size_ms / 1000)
    if frame_size <= 0:
        return []

    n = len(samples) // frame_size
    return [samples[i * frame_size:(i + 1) * frame_size] for i in range(n)]


def build_feature_window(
    samples: np.ndarray,
    sample_rate: int,
    num_coeffs: Optional[int] = None,
    start_time: float = 0.0
) -> FeatureWindow:
    """
    Extract features for every frame of a rolling window.

    Args:
        samples: Window of normalized mono samples
        sample_rate: Sample rate in Hz
        num_coeffs: Number of cepstral coefficients (if None, uses config value)
        start_time: Timestamp of the first sample, used to stamp frames

    Returns:
        FeatureWindow with one FeatureSet per frame
    """
    frames = split_into_frames(samples, sample_rate)
    features = []
    for index, chunk in enumerate(frames):
        frame = AudioFrame(
            samples=chunk,
            sample_rate=sample_rate,
            timestamp=start_time + index * len(chunk) / sample_rate
        )
        features.append(extract_features(frame, num_coeffs))
    return FeatureWindow(features=features)
