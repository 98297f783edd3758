"""Retention of past backup runs.

The first run of a day, ISO week, month, quarter or year represents that
period; the newest periods of each kind are kept up to the configured
limit. Only the files this tool wrote are pruned; snapshots are
thinned out by snapper's own cleanup algorithm.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from ..config import RetentionConfig
from ..config.loader import RETENTION_KINDS
from .layout import BackupLayout
from .manifest import Manifest

logger = logging.getLogger(__name__)


def _bucket_keys(day: date) -> dict[str, tuple]:
    iso = day.isocalendar()
    return {
        "daily": (day.year, day.month, day.day),
        "weekly": (iso[0], iso[1]),
        "monthly": (day.year, day.month),
        "quarterly": (day.year, (day.month - 1) // 3 + 1),
        "yearly": (day.year,),
    }


@dataclass
class RetentionPlan:
    keep: list[Manifest] = field(default_factory=list)
    prune: list[Manifest] = field(default_factory=list)


def plan_retention(manifests: Iterable[Manifest], policy: RetentionConfig) -> RetentionPlan:
    """Split runs into kept and pruned ones.

    For every kind the first run of each bucket represents it, and the
    newest ``limit`` buckets are kept (all of them when the limit is None).
    The newest run is always kept.

    Args:
        manifests: Manifests of a backup root, in any order
        policy: How many runs of each kind to keep

    Returns:
        The plan, both lists ordered newest first
    """
    ordered = sorted(manifests, key=lambda m: m.run_id)
    if not ordered:
        return RetentionPlan()

    keep = {ordered[-1].run_id}
    for kind in RETENTION_KINDS:
        limit: Optional[int] = getattr(policy, kind)
        if limit == 0:
            continue
        first_in_bucket: dict[tuple, Manifest] = {}
        for manifest in ordered:
            key = _bucket_keys(manifest.started_at.date())[kind]
            first_in_bucket.setdefault(key, manifest)
        buckets = sorted(first_in_bucket, reverse=True)
        if limit is not None:
            buckets = buckets[:limit]
        keep.update(first_in_bucket[key].run_id for key in buckets)

    plan = RetentionPlan()
    for manifest in reversed(ordered):
        if manifest.run_id in keep:
            plan.keep.append(manifest)
        else:
            plan.prune.append(manifest)
    return plan


def apply_retention(layout: BackupLayout, prune: Iterable[Manifest], dry_run: bool = False) -> int:
    """Delete the files of pruned runs.

    Artifacts go first; a manifest is only removed once all its artifacts
    are gone, so a failed deletion is retried by the next pass.

    Returns:
        Number of runs fully removed
    """
    removed = 0
    for manifest in prune:
        files = [layout.resolve(p) for p in (manifest.database_dump, manifest.config_copy) if p]
        manifest_path = layout.manifest_path(manifest.run_id)

        if dry_run:
            for path in (*files, manifest_path):
                logger.info("Dry run, would remove %s", path)
            continue

        complete = True
        for path in files:
            try:
                path.unlink()
                logger.info("Removed %s", path)
            except FileNotFoundError:
                logger.debug("Already gone: %s", path)
            except OSError as e:
                logger.error("Could not remove %s: %s", path, e)
                complete = False
        if not complete:
            logger.warning("Keeping manifest of run %s until its files are removed", manifest.run_id)
            continue

        try:
            manifest_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Could not remove %s: %s", manifest_path, e)
            continue
        logger.info("Pruned backup run %s", manifest.run_id)
        removed += 1
    return removed
