# audit_core/services/assignment.py
"""
Assignment engine.

Single assignment, least-loaded assignment, and fair bulk distribution of
available samples across eligible auditors.

Bulk distribution:
  1. keep samples that are currently available and auditors that are eligible
  2. shuffle both lists independently
  3. pick a distribution strategy and a starting auditor at random
  4. write each pairing in its own transaction, collecting per-item errors
  5. report the number assigned plus the errors

Every strategy hands each auditor floor(n/k) or ceil(n/k) samples. The
strategies only change which sample lands with which auditor, so repeated
runs do not follow a guessable pattern.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from django.db import transaction
from django.utils import timezone

from audit_core.exceptions import InvalidState, NotEligible, SampleError
from audit_core.models import AuditSample
from audit_core.services.directory import Auditor, AuditorDirectory
from audit_core.services.events import SAMPLE_ASSIGNED, EventSink, SampleEvent, default_sink
from audit_core.services.store import SampleStore
from audit_core.workflows import ASSIGNED, AVAILABLE

logger = logging.getLogger(__name__)


Pairing = Tuple[Any, Any]


# ---------------------------------------------------------------------
# DISTRIBUTION STRATEGIES
# ---------------------------------------------------------------------

def round_robin(samples: Sequence, auditors: Sequence, offset: int) -> List[Pairing]:
    """
    Sample i goes to auditor (offset + i) mod k.
    """
    k = len(auditors)
    return [(s, auditors[(offset + i) % k]) for i, s in enumerate(samples)]


def reverse_round_robin(samples: Sequence, auditors: Sequence, offset: int) -> List[Pairing]:
    """
    Samples consumed from the end while the auditor index still moves
    forward from the offset.
    """
    k = len(auditors)
    n = len(samples)
    return [(samples[n - 1 - i], auditors[(offset + i) % k]) for i in range(n)]


def fair_quotas(n: int, k: int, offset: int) -> List[int]:
    """
    Per-auditor share of n samples: the n mod k auditors starting at
    offset get one extra, matching what round-robin from offset produces.
    """
    base, extra = divmod(n, k)
    quotas = [base] * k
    for j in range(extra):
        quotas[(offset + j) % k] += 1
    return quotas


def blocked_round_robin(samples: Sequence, auditors: Sequence, offset: int) -> List[Pairing]:
    """
    Consecutive blocks of ceil(n / 2k) samples go to one auditor each,
    advancing one auditor per block from the offset.

    A block is cut short when its auditor reaches their fair quota and
    auditors with a full quota are passed over, so the final counts stay
    within one of each other.
    """
    n, k = len(samples), len(auditors)
    if not n or not k:
        return []

    block = max(1, math.ceil(n / (k * 2)))
    quotas = fair_quotas(n, k, offset)

    out: List[Pairing] = []
    cursor = offset
    i = 0
    while i < n:
        while quotas[cursor % k] == 0:
            cursor += 1
        idx = cursor % k
        take = min(block, quotas[idx], n - i)
        out.extend((s, auditors[idx]) for s in samples[i:i + take])
        quotas[idx] -= take
        i += take
        cursor += 1
    return out


STRATEGIES: Dict[str, Callable[[Sequence, Sequence, int], List[Pairing]]] = {
    "round_robin": round_robin,
    "blocked": blocked_round_robin,
    "reverse": reverse_round_robin,
}


# ---------------------------------------------------------------------
# RESULTS
# ---------------------------------------------------------------------

@dataclass
class BulkAssignResult:
    assigned_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    assignments: List[Dict[str, Any]] = field(default_factory=list)
    strategy: Optional[str] = None
    workload_before: Dict[int, int] = field(default_factory=dict)

    def per_auditor(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for row in self.assignments:
            counts[row["auditor_id"]] = counts.get(row["auditor_id"], 0) + 1
        return counts

    def as_dict(self) -> Dict[str, Any]:
        return {
            "assigned": self.assigned_count,
            "errors": self.errors,
            "assignments": self.assignments,
            "strategy": self.strategy,
            "workload_before": {str(k): v for k, v in self.workload_before.items()},
        }


# ---------------------------------------------------------------------
# ENGINE
# ---------------------------------------------------------------------

class AssignmentEngine:
    def __init__(
        self,
        store: Optional[SampleStore] = None,
        directory: Optional[AuditorDirectory] = None,
        sink: Optional[EventSink] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store or SampleStore()
        self.directory = directory or AuditorDirectory()
        self.sink = sink or default_sink()
        self.rng = rng or random.SystemRandom()

    # -----------------------------------------------------------------
    # single sample
    # -----------------------------------------------------------------
    def assign_one(self, sample_id: str, auditor_id: int, *, assigned_by=None) -> AuditSample:
        with transaction.atomic():
            sample = self.store.get_for_update(sample_id)

            if sample.status != AVAILABLE:
                raise InvalidState(
                    f"Sample {sample_id} is '{sample.status}', only available samples can be assigned.",
                    sample_id=sample_id,
                    status=sample.status,
                )

            if not self.directory.identity(auditor_id).eligible:
                raise NotEligible(
                    f"User {auditor_id} is not an eligible auditor.",
                    auditor_id=auditor_id,
                )

            sample = self._write_assignment(sample_id, auditor_id)

        logger.info("Assigned %s to auditor %s", sample_id, auditor_id)
        self._emit(sample, assigned_by)
        return sample

    def pick_least_loaded(self, excluding: Optional[int] = None) -> Auditor:
        auditors = self.directory.list_eligible(excluding=excluding)
        if not auditors:
            raise NotEligible("No eligible auditors are available.")
        # min() keeps the first of equal workloads, i.e. directory order
        return min(auditors, key=lambda a: a.workload)

    def assign_random(self, sample_id: str, *, excluding: Optional[int] = None, assigned_by=None) -> AuditSample:
        """
        Assign to the eligible auditor with the lowest current workload.
        """
        sample = self.store.get(sample_id)
        if sample.status != AVAILABLE:
            raise InvalidState(
                f"Sample {sample_id} is '{sample.status}', only available samples can be assigned.",
                sample_id=sample_id,
                status=sample.status,
            )
        auditor = self.pick_least_loaded(excluding=excluding)
        return self.assign_one(sample_id, auditor.user_id, assigned_by=assigned_by)

    # -----------------------------------------------------------------
    # bulk
    # -----------------------------------------------------------------
    def bulk_assign(
        self,
        sample_ids: Iterable[str],
        auditor_ids: Iterable[int],
        *,
        strategy: Optional[str] = None,
        assigned_by=None,
    ) -> BulkAssignResult:
        """
        Distribute available samples across eligible auditors.

        Never raises for input problems: they are reported in `errors`.
        """
        result = BulkAssignResult()

        sample_ids = list(dict.fromkeys(sample_ids or []))
        auditor_ids = list(dict.fromkeys(auditor_ids or []))

        if not sample_ids:
            result.errors.append({"message": "No samples provided for assignment"})
            return result
        if not auditor_ids:
            result.errors.append({"message": "No auditors provided for assignment"})
            return result

        if strategy is not None and strategy not in STRATEGIES:
            result.errors.append({"message": f"Unknown distribution strategy: {strategy}"})
            return result

        # 1) filter
        available = self.store.available_ids(sample_ids)

        if not available:
            result.errors.append({"message": "No available samples found"})
            return result

        auditors = self.directory.list_eligible(restrict_to=auditor_ids)
        if not auditors:
            result.errors.append({"message": "No valid auditors found with audit rights"})
            return result

        result.workload_before = {a.user_id: a.workload for a in auditors}

        # 2) shuffle (Fisher-Yates)
        shuffled_samples = list(available)
        shuffled_auditors = list(auditors)
        self.rng.shuffle(shuffled_samples)
        self.rng.shuffle(shuffled_auditors)

        # 3) strategy + starting point
        name = strategy or self.rng.choice(sorted(STRATEGIES))
        offset = self.rng.randrange(len(shuffled_auditors))
        result.strategy = name

        pairings = STRATEGIES[name](shuffled_samples, shuffled_auditors, offset)

        # 4) apply, one transaction per sample
        for sample_id, auditor in pairings:
            try:
                sample = self._apply_bulk_item(sample_id, auditor.user_id)
            except SampleError as exc:
                result.errors.append(
                    {
                        "sample_id": sample_id,
                        "auditor_id": auditor.user_id,
                        "error": exc.code,
                        "detail": exc.message,
                    }
                )
                continue
            except Exception as exc:
                logger.exception("Unexpected bulk assignment error for %s", sample_id)
                result.errors.append(
                    {
                        "sample_id": sample_id,
                        "auditor_id": auditor.user_id,
                        "error": "unexpected",
                        "detail": exc.__class__.__name__,
                    }
                )
                continue

            result.assigned_count += 1
            result.assignments.append(
                {"sample_id": sample_id, "auditor_id": auditor.user_id, "username": auditor.username}
            )
            self._emit(sample, assigned_by, bulk=True)

        # 5) report
        logger.info(
            "Bulk assignment (%s): %d assigned, %d errors",
            name,
            result.assigned_count,
            len(result.errors),
        )
        return result

    # -----------------------------------------------------------------
    # internals
    # -----------------------------------------------------------------
    def _apply_bulk_item(self, sample_id: str, auditor_id: int) -> AuditSample:
        with transaction.atomic():
            sample = self.store.get_for_update(sample_id)
            # Status may have changed since the batch was filtered
            if sample.status != AVAILABLE:
                raise InvalidState(
                    f"Sample {sample_id} is no longer available.",
                    sample_id=sample_id,
                    status=sample.status,
                )
            return self._write_assignment(sample_id, auditor_id)

    def _write_assignment(self, sample_id: str, auditor_id: int) -> AuditSample:
        return self.store.update(
            sample_id,
            status=ASSIGNED,
            assigned_to_id=auditor_id,
            assigned_at=timezone.now(),
        )

    def _emit(self, sample: AuditSample, actor, bulk: bool = False) -> None:
        self.sink.emit(
            SampleEvent(
                kind=SAMPLE_ASSIGNED,
                sample_id=sample.sample_id,
                actor_id=getattr(actor, "pk", actor),
                payload={"auditor_id": sample.assigned_to_id, "bulk": bulk},
            )
        )


__all__ = [
    "AssignmentEngine",
    "BulkAssignResult",
    "STRATEGIES",
    "round_robin",
    "reverse_round_robin",
    "blocked_round_robin",
    "fair_quotas",
]
