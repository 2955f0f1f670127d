from dataclasses import dataclass, field
from typing import Optional, List, Dict, Tuple, Union
import numpy as np
from pathlib import Path

from .headmodel import HeadModel


@dataclass
class ChannelLocation:
    """Information regarding a single EEG channel/electrode"""
    labels: str # Channel label (e.g. "Fz", "C3", ...)
    X: Optional[float] = None # X coordinate (None when unknown)
    Y: Optional[float] = None # Y coordinate
    Z: Optional[float] = None # Z coordinate

    type: str = 'EEG'
    """Channel type"""

    urchan: int = 0
    """Original channel index (before removing the channel)"""

    ref: str = ''
    """Reference of this channel (e.g. 'average', 'rest')"""

    @property
    def has_position(self) -> bool:
        """True if all three coordinates are known and not all zero."""
        xyz = (self.X, self.Y, self.Z)
        if any(c is None for c in xyz):
            return False
        xyz = np.asarray(xyz, dtype=np.float64)
        return bool(np.all(np.isfinite(xyz)) and np.any(xyz != 0))

    @property
    def xyz(self) -> np.ndarray:
        """Cartesian position as an array of shape (3,)."""
        return np.array([self.X, self.Y, self.Z], dtype=np.float64)

    def to_dict(self) -> Dict:
        """Convert to dictionary (EEGLAB-compatible format)"""
        return {
            'labels': self.labels,
            'X': self.X, 'Y': self.Y, 'Z': self.Z,
            'type': self.type,
            'urchan': self.urchan,
            'ref': self.ref
        }


@dataclass
class LeadField:
    """
    Lead field structure containing forward model information.

    This represents the relationship between source activity and scalp
    recordings for a fixed set of oriented equivalent dipoles: each column is
    the scalp topography of one unit dipole.

    Attributes
    ----------
    leadfield : np.ndarray
        Lead field matrix of shape (n_channels, n_sources).

    electrodes : np.ndarray
        Electrode positions of shape (n_channels, 3) used for the computation,
        in head-model units (scalp radius 1).

    pos : np.ndarray
        Source positions of shape (n_sources, 3), head-model units.

    orientation : np.ndarray
        Fixed dipole orientations of shape (n_sources, 3).

    chanlocs : List[ChannelLocation]
        Channel information for each electrode.

    headmodel : Optional[HeadModel]
        Volume conductor the lead field was computed for.

    method : str
        Method used to generate the lead field (e.g., 'concentricspheres').

    source : str
        Source of the dipole data.

    unit : str
        Units of the lead field values.
    """

    leadfield: np.ndarray
    """Lead field matrix [n_channels x n_sources]"""

    electrodes: np.ndarray
    """Electrode positions [n_channels x 3]"""

    pos: np.ndarray
    """Source positions [n_sources x 3]"""

    orientation: np.ndarray
    """Dipole orientations [n_sources x 3]"""

    chanlocs: List[ChannelLocation]
    """Channel location information"""

    headmodel: Optional[HeadModel] = None
    """Head model"""

    method: str = 'unknown'
    """Generation method"""

    source: str = 'unknown'
    """Data source"""

    unit: str = 'relative'
    """Lead field units"""

    metadata: Dict = field(default_factory=dict)
    """Additional metadata"""

    def __post_init__(self):
        """Validate lead field structure after initialization."""
        self._validate()

    def _validate(self):
        """Validate the lead field structure."""
        if self.leadfield.ndim != 2:
            raise ValueError(
                f"Lead field must be 2D (n_channels, n_sources), got shape {self.leadfield.shape}"
            )
        n_channels, n_sources = self.leadfield.shape

        if self.electrodes.shape != (n_channels, 3):
            raise ValueError(
                f"Electrode array shape {self.electrodes.shape} doesn't match "
                f"expected ({n_channels}, 3)"
            )

        if self.pos.shape != (n_sources, 3):
            raise ValueError(
                f"Position array shape {self.pos.shape} doesn't match "
                f"expected ({n_sources}, 3)"
            )

        if self.orientation.shape != (n_sources, 3):
            raise ValueError(
                f"Orientation array shape {self.orientation.shape} doesn't match "
                f"expected ({n_sources}, 3)"
            )

        if len(self.chanlocs) != n_channels:
            raise ValueError(
                f"Number of channel locations ({len(self.chanlocs)}) doesn't match "
                f"number of channels ({n_channels})"
            )

    @property
    def n_channels(self) -> int:
        """Number of EEG channels."""
        return self.leadfield.shape[0]

    @property
    def n_sources(self) -> int:
        """Number of equivalent sources."""
        return self.leadfield.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.leadfield.shape

    @property
    def channel_labels(self) -> List[str]:
        """List of channel labels."""
        return [ch.labels for ch in self.chanlocs]

    def get_projection(self,
                      source_idx: Union[int, np.ndarray, List[int]],
                      normalize_leadfield: bool = False
        ) -> np.ndarray:
        """
        Get the scalp projection pattern for source(s).

        Parameters
        ----------
        source_idx : int, np.ndarray, or List[int]
            Single source index or array of source indices (0 to n_sources-1).
            If array, the mean projection of all sources will be returned.
        normalize_leadfield : bool, default=False
            Whether to normalize each source's projection to have the most
            extreme value be either 1 or -1, depending on its sign.

        Returns
        -------
        np.ndarray
            Projection pattern of shape (n_channels,).
        """
        source_idx = np.atleast_1d(source_idx)

        if source_idx.ndim > 1:
            raise ValueError(f"Source index must be 1D array, list or scalar. Got shape: {source_idx.shape}")
        if np.any(source_idx < 0) or np.any(source_idx >= self.n_sources):
            raise ValueError(f"Source index out of range [0, {self.n_sources}). Got: {source_idx}")

        lf_sources = self.leadfield[:, source_idx]

        if normalize_leadfield:
            max_vals = np.abs(lf_sources).max(axis=0, keepdims=True)
            lf_sources = lf_sources / np.where(max_vals > 0, max_vals, 1)

        return lf_sources.mean(axis=1)

    def project(self, activity: np.ndarray) -> np.ndarray:
        """
        Forward-project source activity to the electrodes.

        Parameters
        ----------
        activity : np.ndarray
            Source strengths of shape (n_sources,) or (n_sources, n_samples).

        Returns
        -------
        np.ndarray
            Reference-free (infinity-referenced) potentials of shape
            (n_channels,) or (n_channels, n_samples).
        """
        activity = np.asarray(activity, dtype=np.float64)
        if activity.shape[0] != self.n_sources:
            raise ValueError(
                f"Activity has {activity.shape[0]} sources, lead field has {self.n_sources}"
            )
        return self.leadfield @ activity

    def to_dict(self) -> Dict:
        """Convert lead field to a flat dictionary of arrays for serialization."""
        chan_xyz = np.array([[np.nan if c is None else c for c in (ch.X, ch.Y, ch.Z)]
                             for ch in self.chanlocs], dtype=np.float64).reshape(-1, 3)
        data = {
            'leadfield': self.leadfield,
            'electrodes': self.electrodes,
            'pos': self.pos,
            'orientation': self.orientation,
            'labels': np.array(self.channel_labels, dtype=np.str_),
            'chantypes': np.array([ch.type for ch in self.chanlocs], dtype=np.str_),
            'chan_xyz': chan_xyz,
            'method': self.method,
            'source': self.source,
            'unit': self.unit,
        }
        if self.headmodel is not None:
            hm = self.headmodel.to_dict()
            data.update({
                'headmodel_r': hm['r'],
                'headmodel_cond': hm['cond'],
                'headmodel_o': hm['o'],
                'headmodel_tissue': np.array(hm['tissue'], dtype=np.str_),
            })
        return data

    def save(self, filepath: str):
        """
        Save lead field to file.

        Parameters
        ----------
        filepath : str
            Path to save the lead field. Extension determines format:
            - .npz: NumPy compressed format (recommended)
            - .mat: MATLAB format (requires scipy)
        """
        filepath = Path(filepath)

        if filepath.suffix == '.npz':
            np.savez_compressed(filepath, **self.to_dict())

        elif filepath.suffix == '.mat':
            from scipy.io import savemat
            savemat(filepath, self.to_dict())

        else:
            raise ValueError(
                f"Unsupported file format: {filepath.suffix}. "
                f"Use .npz or .mat"
            )

    @classmethod
    def load(cls, filepath: str) -> 'LeadField':
        """
        Load lead field from file.

        Parameters
        ----------
        filepath : str
            Path to the lead field file (.npz or .mat).

        Returns
        -------
        LeadField
            Loaded lead field object.
        """
        filepath = Path(filepath)

        if filepath.suffix == '.npz':
            with np.load(filepath, allow_pickle=False) as npz:
                data = {key: npz[key] for key in npz.files}
        elif filepath.suffix == '.mat':
            from scipy.io import loadmat
            data = loadmat(filepath, squeeze_me=True)
        else:
            raise ValueError(f"Unsupported file format: {filepath.suffix}")

        leadfield = np.asarray(data["leadfield"], dtype=np.float64)
        labels = [str(lbl).strip() for lbl in np.atleast_1d(data['labels'])]
        types = [str(t).strip() for t in np.atleast_1d(data['chantypes'])]
        chan_xyz = np.asarray(data['chan_xyz'], dtype=np.float64).reshape(-1, 3)

        chanlocs = [
            ChannelLocation(labels=lbl, type=typ,
                            **{axis: (None if np.isnan(v) else float(v))
                               for axis, v in zip(('X', 'Y', 'Z'), xyz)})
            for lbl, typ, xyz in zip(labels, types, chan_xyz)
        ]

        headmodel = None
        if 'headmodel_r' in data:
            headmodel = HeadModel(
                radii=np.atleast_1d(data['headmodel_r']),
                conductivities=np.atleast_1d(data['headmodel_cond']),
                tissues=[str(t).strip() for t in np.atleast_1d(data['headmodel_tissue'])],
                origin=np.atleast_1d(data['headmodel_o']),
            )

        return cls(
            leadfield=leadfield.reshape(len(labels), -1),
            electrodes=np.asarray(data['electrodes'], dtype=np.float64).reshape(-1, 3),
            pos=np.asarray(data['pos'], dtype=np.float64).reshape(-1, 3),
            orientation=np.asarray(data['orientation'], dtype=np.float64).reshape(-1, 3),
            chanlocs=chanlocs,
            headmodel=headmodel,
            method=str(data.get('method', 'unknown')),
            source=str(data.get('source', 'unknown')),
            unit=str(data.get('unit', 'relative')),
        )

    def __repr__(self) -> str:
        """String representation of lead field."""
        return (
            f"LeadField(\n"
            f"  channels={self.n_channels},\n"
            f"  sources={self.n_sources},\n"
            f"  method='{self.method}',\n"
            f"  unit='{self.unit}',\n"
            f"  has_headmodel={self.headmodel is not None}\n"
            f")"
        )
