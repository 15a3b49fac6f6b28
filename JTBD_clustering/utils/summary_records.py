"""Helpers for summary records produced from a cluster hierarchy.

Summary records (see :class:`~JTBD_clustering.agents.AbstractionAgent`) are
the persisted output of a run. These helpers turn them back into an
ExistingClusterSnapshot for the next incremental run, merge record sets, and
find items not covered yet.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from JTBD_clustering.clustering.models import ExistingClusterSnapshot, Item
from JTBD_clustering.DEFAULT_CONSTS import DEFAULT_RECORD_KEYS, RecordKeys

LOGGER = logging.getLogger(__name__)


def extract_snapshot(
    records: Sequence[Dict[str, Any]],
    keys: RecordKeys = DEFAULT_RECORD_KEYS,
) -> Optional[ExistingClusterSnapshot]:
    """
    Rebuild the cluster snapshot recorded in summary records.

    Level-1 records map their ``cluster_id`` to their ``item_ids``. Level-2
    records map their ``cluster_id`` to the cluster ids of their child
    records; child ids that match no record are skipped.

    Parameters
    ----------
    records : Sequence[Dict[str, Any]]
        Records of a previous run

    Returns
    -------
    Optional[ExistingClusterSnapshot]
        None when there are no records
    """
    if not records:
        return None

    cluster_id_by_record = {
        record.get(keys.id): record.get(keys.cluster_id)
        for record in records
        if record.get(keys.cluster_id)
    }

    layer1: Dict[str, List[str]] = {}
    layer2: Dict[str, List[str]] = {}
    for record in records:
        cluster_id = record.get(keys.cluster_id)
        if not cluster_id:
            continue

        level = record.get(keys.level)
        if level == 1 and record.get(keys.item_ids):
            layer1[cluster_id] = list(record[keys.item_ids])
        elif level == 2 and record.get(keys.child_ids):
            child_cluster_ids = []
            for child_id in record[keys.child_ids]:
                child_cluster_id = cluster_id_by_record.get(child_id)
                if child_cluster_id is None:
                    LOGGER.debug(f"Child record {child_id} of {cluster_id} not found")
                    continue
                child_cluster_ids.append(child_cluster_id)
            layer2[cluster_id] = child_cluster_ids

    LOGGER.info(
        f"Extracted snapshot with {len(layer1)} layer-1 and {len(layer2)} layer-2 clusters"
    )
    return ExistingClusterSnapshot(layer1=layer1, layer2=layer2)


def merge_summary_records(
    previous: Sequence[Dict[str, Any]],
    new: Sequence[Dict[str, Any]],
    keys: RecordKeys = DEFAULT_RECORD_KEYS,
) -> List[Dict[str, Any]]:
    """
    Merge the records of a new run into the previous ones.

    Previous records whose items are all covered by new records are
    replaced; the others (including records without item ids) are kept.

    Returns
    -------
    List[Dict[str, Any]]
        Kept previous records followed by the new records
    """
    if not previous:
        return list(new)
    if not new:
        return list(previous)

    covered = {item_id for record in new for item_id in (record.get(keys.item_ids) or [])}
    kept = [
        record
        for record in previous
        if not record.get(keys.item_ids)
        or not all(item_id in covered for item_id in record[keys.item_ids])
    ]

    LOGGER.debug(f"Keeping {len(kept)} of {len(previous)} previous records")
    return kept + list(new)


def filter_unprocessed(
    items: Sequence[Item],
    records: Sequence[Dict[str, Any]],
    keys: RecordKeys = DEFAULT_RECORD_KEYS,
) -> List[Item]:
    """Return the items whose ids appear in no record."""
    processed = {item_id for record in records for item_id in (record.get(keys.item_ids) or [])}
    return [item for item in items if item.id not in processed]
