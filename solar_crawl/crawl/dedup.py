"""Point id deduplication index."""

from __future__ import annotations

from typing import Any, Iterable

from solar_crawl.common.models import PointRecord

POINT_ID_FIELD = "pointId"


def point_id_of(record: Any) -> Any | None:
    if not isinstance(record, dict):
        return None
    point_id = record.get(POINT_ID_FIELD)
    if point_id is None or point_id == "" or isinstance(point_id, (dict, list)):
        return None
    return point_id


class DedupIndex:
    """Set of known point ids; grows only.

    With ``intra_batch=True`` every admitted id is recorded as soon as it is
    seen, so a batch repeating an id admits it once. With ``intra_batch=False``
    a batch is checked against the ids known before it arrived and repeats
    inside the batch all pass.
    """

    def __init__(self, point_ids: Iterable[Any] = (), *, intra_batch: bool = True) -> None:
        self._ids: set[Any] = set(point_ids)
        self.intra_batch = intra_batch

    @classmethod
    def from_points(cls, points: Iterable[PointRecord], *, intra_batch: bool = True) -> "DedupIndex":
        ids = (point_id_of(point) for point in points)
        return cls((point_id for point_id in ids if point_id is not None), intra_batch=intra_batch)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, point_id: object) -> bool:
        return point_id in self._ids

    def is_novel(self, point_id: Any) -> bool:
        if point_id is None or point_id == "":
            return False
        return point_id not in self._ids

    def add(self, point_id: Any) -> None:
        if point_id is None or point_id == "":
            return
        self._ids.add(point_id)

    def filter_batch(self, records: Iterable[PointRecord]) -> list[PointRecord]:
        """Return the novel records of one fetch in input order and index their ids."""
        novel: list[PointRecord] = []
        for record in records:
            point_id = point_id_of(record)
            if not self.is_novel(point_id):
                continue
            novel.append(record)
            if self.intra_batch:
                self.add(point_id)

        if not self.intra_batch:
            for record in novel:
                self.add(point_id_of(record))
        return novel
