from dataclasses import dataclass, field
from typing import Optional, List, Dict, Sequence
import numpy as np

from leadfield import ChannelLocation
from utils.exceptions import MissingGeometryError


@dataclass
class Recording:
    """
    Minimal EEG recording container (EEGLAB ``EEG`` structure layout).

    Attributes
    ----------
    data : np.ndarray
        Continuous data (n_channels, n_times), or segmented data
        (n_channels, n_times, n_epochs).
    chanlocs : List[ChannelLocation]
        Channel information, one entry per data row.
    srate : float
        Sampling rate in Hz.
    ref : str
        Current reference of the data (e.g. 'average', 'Cz', 'rest').
    """

    data: np.ndarray
    """Data matrix [n_channels x n_times (x n_epochs)]"""

    chanlocs: List[ChannelLocation] = field(default_factory=list)
    """Channel location information"""

    srate: float = 1.0
    """Sampling rate (Hz)"""

    ref: str = 'unknown'
    """Reference label"""

    metadata: Dict = field(default_factory=dict)
    """Additional metadata"""

    @property
    def nbchan(self) -> int:
        """Number of channels."""
        return self.data.shape[0] if self.data.ndim else 0

    @property
    def pnts(self) -> int:
        """Number of samples per epoch (or in total for continuous data)."""
        return self.data.shape[1] if self.data.ndim > 1 else 0

    @property
    def trials(self) -> int:
        """Number of epochs (1 for continuous data)."""
        return self.data.shape[2] if self.data.ndim > 2 else 1

    @property
    def is_continuous(self) -> bool:
        return self.data.ndim == 2

    @property
    def channel_labels(self) -> List[str]:
        """List of channel labels."""
        return [ch.labels for ch in self.chanlocs]

    def electrode_positions(self, channels: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        Cartesian electrode coordinates of the selected channels.

        Parameters
        ----------
        channels : sequence of int, optional
            Channel indices, in the order of the returned rows. Defaults to
            all channels with location information.

        Returns
        -------
        np.ndarray
            Positions of shape (n_selected, 3), in the recording's own units.

        Raises
        ------
        MissingGeometryError
            If any selected channel lacks X/Y/Z coordinates.
        """
        if channels is None:
            channels = range(len(self.chanlocs))
        channels = list(channels)

        if not self.chanlocs or not channels:
            raise MissingGeometryError(
                "No channel locations available; load electrode X/Y/Z coordinates first"
            )

        out_of_range = [c for c in channels if c < 0 or c >= len(self.chanlocs)]
        if out_of_range:
            raise MissingGeometryError(
                f"No channel location entry for channel indices {out_of_range} "
                f"({len(self.chanlocs)} locations available)",
                channels=out_of_range)

        missing = [self.chanlocs[c].labels for c in channels if not self.chanlocs[c].has_position]
        if missing:
            raise MissingGeometryError(
                f"Electrode coordinates (X/Y/Z) are empty for {len(missing)} channel(s): "
                f"{', '.join(missing)}. Load channel locations first",
                channels=missing)

        return np.array([self.chanlocs[c].xyz for c in channels])

    def copy(self) -> 'Recording':
        return Recording(
            data=self.data.copy(),
            chanlocs=[ChannelLocation(**ch.to_dict()) for ch in self.chanlocs],
            srate=self.srate,
            ref=self.ref,
            metadata=dict(self.metadata)
        )

    def __repr__(self) -> str:
        return (
            f"Recording(\n"
            f"  channels={self.nbchan},\n"
            f"  samples={self.pnts},\n"
            f"  trials={self.trials},\n"
            f"  srate={self.srate},\n"
            f"  ref='{self.ref}'\n"
            f")"
        )
