"""
Topic Selector.

Chooses the topics for the next quiz from the learner's ProgressState:

- Phase 1 (Coverage): never-covered topics, balanced across domains
- Phase 2 (Remediation): due topics split 50% struggling / 30% learning /
  20% mastered, short buckets spilling into the next, then random fill
- Phase 3 (Maintenance): 20% struggling / 30% mastered due / 50% random

Optional post-filters keep a selection inside one domain (single-domain
questions) or spread it across domains (cross-domain questions).

Only topics present in the state are ever returned. Randomness comes from
an injectable random.Random so selection can be reproduced.
"""

from __future__ import annotations

import math
import random
from collections import defaultdict

from loguru import logger

from masterycore.core.models import Phase, ProgressState, QuestionCategory, TopicPerformance
from masterycore.study.quiz_schedule import topics_due

PHASE2_SPLIT = (0.5, 0.3)  # struggling, learning; mastered gets the rest
PHASE3_SPLIT = (0.2, 0.3)  # struggling, mastered; random gets the rest


class TopicSelector:
    """Picks next-quiz topics according to the learner's phase."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def select(
        self,
        state: ProgressState,
        count: int,
        category: QuestionCategory | str | None = None,
    ) -> list[str]:
        """
        Ordered topic ids for the next quiz.

        Args:
            state: Learner state (not modified)
            count: Number of topics wanted
            category: Optional question category constraining domain spread
        """
        if count <= 0 or not state.topic_coverage:
            return []

        quiz_index = state.next_quiz_number
        phase = state.current_phase
        if phase == Phase.COVERAGE:
            selected = self.select_phase1(state, count)
        elif phase == Phase.REMEDIATION:
            selected = self.select_phase2(state, count, quiz_index)
        else:
            selected = self.select_phase3(state, count, quiz_index)

        if category is not None:
            category = QuestionCategory(category)
            if category.is_single_domain:
                selected = self.ensure_same_domain(state, selected, count)
            else:
                selected = self.ensure_cross_domain(state, selected, count)

        logger.debug(f"Quiz {quiz_index}, {phase.display_name}: selected {len(selected[:count])} topics")
        return selected[:count]

    # -------------------------------------------------------------------------
    # Phase 1
    # -------------------------------------------------------------------------

    def select_phase1(self, state: ProgressState, count: int) -> list[str]:
        """
        Uncovered topics, one per turn from the domain with the most left.

        Ties go to the domain picked least recently, so no domain is starved.
        If fewer than count topics are uncovered the rest come from covered
        topics.
        """
        by_domain = _group_by_domain(
            state, sorted(t for t, c in state.topic_coverage.items() if c.times_covered == 0)
        )
        domain_order = _domain_order(state)
        last_pick: dict[str, int] = {d: -1 for d in by_domain}

        selected: list[str] = []
        turn = 0
        while len(selected) < count and any(by_domain.values()):
            domain = min(
                (d for d, topics in by_domain.items() if topics),
                key=lambda d: (-len(by_domain[d]), last_pick[d], domain_order.get(d, 0)),
            )
            topics = by_domain[domain]
            selected.append(topics.pop(self.rng.randrange(len(topics))))
            last_pick[domain] = turn
            turn += 1

        if len(selected) < count:
            covered = [p.topic_id for p in topics_due(state) if p.topic_id not in selected]
            selected.extend(covered[: count - len(selected)])
            self._random_fill(state, selected, count)

        return selected

    # -------------------------------------------------------------------------
    # Phase 2 / 3
    # -------------------------------------------------------------------------

    def select_phase2(self, state: ProgressState, count: int, quiz_index: int) -> list[str]:
        due = topics_due(state, quiz_index)
        struggling = [p.topic_id for p in due if p.is_struggling]
        learning = [p.topic_id for p in due if p.is_learning]
        mastered = [p.topic_id for p in due if p.is_mastered]

        struggling_quota = math.ceil(count * PHASE2_SPLIT[0])
        learning_quota = math.ceil(count * PHASE2_SPLIT[1])
        mastered_quota = max(0, count - struggling_quota - learning_quota)

        selected: list[str] = []
        carry = 0
        for bucket, quota in (
            (struggling, struggling_quota),
            (learning, learning_quota),
            (mastered, mastered_quota),
        ):
            carry = _take(bucket, quota + carry, selected, count)

        self._random_fill(state, selected, count)
        _log_mix(state, selected, "Remediation")
        return selected

    def select_phase3(self, state: ProgressState, count: int, quiz_index: int) -> list[str]:
        due = topics_due(state, quiz_index)
        struggling = [p.topic_id for p in due if p.is_struggling]
        mastered = [p.topic_id for p in due if p.is_mastered]

        selected: list[str] = []
        _take(struggling, math.ceil(count * PHASE3_SPLIT[0]), selected, count)
        _take(mastered, math.ceil(count * PHASE3_SPLIT[1]), selected, count)

        self._random_fill(state, selected, count)
        _log_mix(state, selected, "Maintenance")
        return selected

    def _random_fill(self, state: ProgressState, selected: list[str], count: int) -> None:
        """Top up selected in place with random topics from the whole state."""
        needed = count - len(selected)
        if needed <= 0:
            return
        remaining = sorted(t for t in state.topic_performance if t not in selected)
        selected.extend(self.rng.sample(remaining, min(needed, len(remaining))))

    # -------------------------------------------------------------------------
    # Domain post-filters
    # -------------------------------------------------------------------------

    def ensure_same_domain(self, state: ProgressState, topics: list[str], count: int) -> list[str]:
        """Keep the best-represented domain and backfill from its other topics."""
        if not topics:
            return topics

        by_domain = _group_by_domain(state, topics)
        # max() keeps the first domain on ties, i.e. the one appearing first
        domain = max(by_domain, key=lambda d: len(by_domain[d]))
        same = list(by_domain[domain])

        if len(same) < count:
            additional = sorted(
                t for t, c in state.topic_coverage.items() if c.domain_id == domain and t not in same
            )
            same.extend(self.rng.sample(additional, min(count - len(same), len(additional))))

        return same[:count]

    def ensure_cross_domain(self, state: ProgressState, topics: list[str], count: int) -> list[str]:
        """Interleave domains round-robin; backfill from domains not yet used."""
        by_domain = _group_by_domain(state, topics)
        selected: list[str] = []
        while len(selected) < count and any(by_domain.values()):
            for domain_topics in by_domain.values():
                if domain_topics and len(selected) < count:
                    selected.append(domain_topics.pop(0))

        if len(selected) < count:
            used = {state.topic_coverage[t].domain_id for t in selected}
            candidates = sorted(t for t in state.topic_coverage if t not in selected)
            self.rng.shuffle(candidates)
            # Stable sort: unused domains first, random within each group
            candidates.sort(key=lambda t: state.topic_coverage[t].domain_id in used)
            selected.extend(candidates[: count - len(selected)])

        return selected


# =============================================================================
# HELPERS
# =============================================================================


def _group_by_domain(state: ProgressState, topics: list[str]) -> dict[str, list[str]]:
    by_domain: dict[str, list[str]] = defaultdict(list)
    for topic in topics:
        coverage = state.topic_coverage.get(topic)
        if coverage is not None:
            by_domain[coverage.domain_id].append(topic)
    return dict(by_domain)


def _domain_order(state: ProgressState) -> dict[str, int]:
    order: dict[str, int] = {}
    for domain in sorted({c.domain_id for c in state.topic_coverage.values()}):
        order[domain] = len(order)
    return order


def _take(bucket: list[str], quota: int, selected: list[str], count: int) -> int:
    """Append up to quota new topics from bucket; return the unfilled part of the quota."""
    taken = 0
    for topic in bucket:
        if taken >= quota or len(selected) >= count:
            break
        if topic not in selected:
            selected.append(topic)
            taken += 1
    return quota - taken


def _log_mix(state: ProgressState, selected: list[str], label: str) -> None:
    performances: list[TopicPerformance] = [state.topic_performance[t] for t in selected]
    logger.debug(
        f"{label}: {sum(p.is_struggling for p in performances)} struggling, "
        f"{sum(p.is_learning for p in performances)} learning, "
        f"{sum(p.is_mastered for p in performances)} mastered"
    )
