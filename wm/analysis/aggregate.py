"""
Fold geolocated observations from many sessions into per-access-point histories.
"""

from __future__ import annotations

from bisect import insort
from collections.abc import Mapping
from typing import Iterable, Iterator

from wm.analysis.types import AccessPointRecord
from wm.errors import WorkingSetFrozenError
from wm.utils.validate import GeolocatedObservation


class WorkingSet(Mapping):
    """
    Mapping of BSSID to AccessPointRecord.

    Each record keeps its observations sorted by ``(timestamp, session,
    frame_index)``, so folding sessions in any order, or merging partial sets
    built in parallel, gives equal results.
    """

    def __init__(self) -> None:
        self._records: dict[str, AccessPointRecord] = {}
        self.frozen = False

    def __getitem__(self, bssid: str) -> AccessPointRecord:
        return self._records[bssid]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkingSet):
            return NotImplemented
        if self._records.keys() != other._records.keys():
            return False
        return all(
            list(rec.observations) == list(other._records[bssid].observations)
            for bssid, rec in self._records.items()
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"WorkingSet({len(self)} access points, frozen={self.frozen})"

    def _check_writable(self) -> None:
        if self.frozen:
            raise WorkingSetFrozenError("WorkingSet is frozen; no observations may be added")

    def add(self, obs: GeolocatedObservation) -> None:
        self._check_writable()
        record = self._records.get(obs.bssid)
        if record is None:
            record = AccessPointRecord(bssid=obs.bssid)
            self._records[obs.bssid] = record
        insort(record.observations, obs, key=lambda o: o.sort_key)

    def fold(self, observations: Iterable[GeolocatedObservation]) -> "WorkingSet":
        for obs in observations:
            self.add(obs)
        return self

    def merge(self, other: "WorkingSet") -> "WorkingSet":
        """
        Fold every observation of `other` into this set, in place.
        """
        self._check_writable()
        # snapshot first, `other` may be this set
        for record in list(other._records.values()):
            for obs in list(record.observations):
                self.add(obs)
        return self

    @classmethod
    def combine(cls, parts: Iterable["WorkingSet"]) -> "WorkingSet":
        """
        New WorkingSet holding the union of `parts`; the inputs are left untouched.
        """
        out = cls()
        for part in parts:
            out.merge(part)
        return out

    def freeze(self) -> "WorkingSet":
        """
        End aggregation: observation lists become tuples and further adds raise.
        """
        for record in self._records.values():
            record.observations = tuple(record.observations)
        self.frozen = True
        return self

    @property
    def observation_count(self) -> int:
        return sum(len(r.observations) for r in self._records.values())
