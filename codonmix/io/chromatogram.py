"""
Chromatogram access.

Read-only accessor over a Sanger chromatogram's four fluorescence channels
and its per-base peak positions. Channels are stored in A, C, G, T order.

Author: Kevin R. Roy
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
import logging

import numpy as np

from ..utils.sequence import BASES, reverse_complement

logger = logging.getLogger(__name__)

CHANNEL_INDEX = {base: i for i, base in enumerate(BASES)}

# ABIF raw data tags hold channels in the order given by FWO_1
ABI_DATA_TAGS = ('DATA9', 'DATA10', 'DATA11', 'DATA12')


@dataclass(frozen=True, eq=False)
class Chromatogram:
    """
    Immutable Sanger chromatogram.

    Attributes:
        traces: Intensities, shape (n_samples, 4), channels A, C, G, T
        base_calls: Called bases, one per peak
        peak_locations: Sample index of each called base
        name: Sample or file name
    """
    traces: np.ndarray
    base_calls: str
    peak_locations: np.ndarray
    name: str = 'chromatogram'

    def __post_init__(self):
        traces = np.array(self.traces, dtype=float)
        peaks = np.array(self.peak_locations, dtype=int)
        calls = ''.join(
            base if base in BASES else 'N' for base in str(self.base_calls).upper()
        )

        if traces.ndim != 2 or traces.shape[1] != 4:
            raise ValueError(
                f"{self.name}: traces must have shape (n_samples, 4), got {traces.shape}"
            )
        if traces.shape[0] == 0:
            raise ValueError(f"{self.name}: chromatogram has no trace samples")
        if not np.all(np.isfinite(traces)):
            raise ValueError(f"{self.name}: traces contain non-finite values")
        if peaks.ndim != 1 or len(peaks) != len(calls):
            raise ValueError(
                f"{self.name}: {len(calls)} base calls but {peaks.size} peak locations"
            )
        if len(peaks) and (peaks.min() < 0 or peaks.max() >= traces.shape[0]):
            raise ValueError(f"{self.name}: peak locations fall outside the trace")
        if np.any(np.diff(peaks) < 0):
            raise ValueError(f"{self.name}: peak locations must be non-decreasing")

        # Frozen dataclass: normalize fields in place
        object.__setattr__(self, 'traces', traces)
        object.__setattr__(self, 'peak_locations', peaks)
        object.__setattr__(self, 'base_calls', calls)
        traces.setflags(write=False)
        peaks.setflags(write=False)

    @property
    def n_samples(self) -> int:
        return self.traces.shape[0]

    @property
    def n_bases(self) -> int:
        return len(self.base_calls)

    def intensities(self, start: int, end: int) -> np.ndarray:
        """Return the (end - start, 4) intensity matrix for a sample range."""
        if start < 0 or end > self.n_samples or start >= end:
            raise IndexError(
                f"Sample range {start}-{end} outside trace of {self.n_samples} samples"
            )
        return self.traces[start:end]

    def anchor(self, base_index: int) -> int:
        """Sample index of a called base."""
        return int(self.peak_locations[base_index])

    def samples_per_base(self, start: int = 0, end: Optional[int] = None) -> int:
        """Median spacing between consecutive peaks over a range of calls."""
        peaks = self.peak_locations[start:end]
        if len(peaks) < 2:
            peaks = self.peak_locations
        if len(peaks) < 2:
            return 1
        spacing = np.median(np.diff(peaks))
        return max(1, int(round(spacing)))

    def reverse_complement(self) -> 'Chromatogram':
        """
        Chromatogram as read from the opposite strand.

        Time is reversed, channels are complemented (A<->T, C<->G), base calls
        are reverse-complemented and peak positions are mirrored.
        """
        # A,C,G,T -> T,G,C,A is a reversal of the channel axis
        traces = self.traces[::-1, ::-1].copy()
        peaks = (self.n_samples - 1 - self.peak_locations[::-1]).copy()
        return Chromatogram(
            traces=traces,
            base_calls=reverse_complement(self.base_calls),
            peak_locations=peaks,
            name=self.name,
        )

    @classmethod
    def from_arrays(
        cls,
        channels: Dict[str, np.ndarray],
        base_calls: str,
        peak_locations,
        name: str = 'chromatogram',
    ) -> 'Chromatogram':
        """
        Build a chromatogram from per-channel arrays.

        Args:
            channels: Dict mapping 'A', 'C', 'G', 'T' to intensity arrays
            base_calls: Called bases
            peak_locations: Sample index of each called base
            name: Sample name
        """
        missing = [b for b in BASES if b not in channels]
        if missing:
            raise ValueError(f"{name}: missing channels {missing}")
        lengths = {len(channels[b]) for b in BASES}
        if len(lengths) != 1:
            raise ValueError(f"{name}: channels have different lengths {sorted(lengths)}")
        traces = np.column_stack([np.asarray(channels[b], dtype=float) for b in BASES])
        return cls(
            traces=traces,
            base_calls=base_calls,
            peak_locations=np.asarray(peak_locations, dtype=int),
            name=name,
        )

    @classmethod
    def from_abi(cls, path: Path, name: Optional[str] = None) -> 'Chromatogram':
        """
        Read an ABI (.ab1) chromatogram with Biopython.

        Uses the analyzed traces (DATA9-12), the channel order in FWO_1,
        the base calls (PBAS2) and the peak locations (PLOC2).
        """
        from Bio import SeqIO

        path = Path(path)
        record = SeqIO.read(str(path), 'abi')
        raw = record.annotations.get('abif_raw', {})

        order = raw.get('FWO_1', b'GATC')
        if isinstance(order, bytes):
            order = order.decode('ascii')
        order = order.upper()

        channels = {}
        for base, tag in zip(order, ABI_DATA_TAGS):
            if tag not in raw:
                raise ValueError(f"{path.name}: ABI file has no {tag} trace")
            channels[base] = np.asarray(raw[tag], dtype=float)

        calls = raw.get('PBAS2', raw.get('PBAS1', str(record.seq)))
        if isinstance(calls, bytes):
            calls = calls.decode('ascii')
        peaks = raw.get('PLOC2', raw.get('PLOC1'))
        if peaks is None:
            raise ValueError(f"{path.name}: ABI file has no peak locations")

        logger.debug(f"Read {path.name}: {len(calls)} bases, {len(channels['A'])} samples")

        return cls.from_arrays(
            channels,
            base_calls=calls,
            peak_locations=peaks,
            name=name or path.stem,
        )
