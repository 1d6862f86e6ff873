"""
Expertise service - who knows what.

Two kinds of evidence feed a (person, topic) expert row:
- expertise signals written at ingestion (weight = strength * confidence)
- cluster memberships of knowledge points the person authored
  (weight = similarity to the topic centroid)

expertise_score = min(1, total weight / SCORE_SATURATION); a person stays
active while their last contribution is within ACTIVE_WINDOW_DAYS.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger("HiMind.Expertise")

SCORE_SATURATION = 5.0
ACTIVE_WINDOW_DAYS = 90


def _parse_ts(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class ExpertiseService:
    """Maintains topic_experts incrementally and by full recompute."""

    def __init__(self, db, active_window_days: int = ACTIVE_WINDOW_DAYS):
        self.db = db
        self.active_window = timedelta(days=active_window_days)

    def _is_active(self, last_contribution: Optional[datetime]) -> bool:
        if last_contribution is None:
            return False
        return datetime.now(timezone.utc) - last_contribution <= self.active_window

    def record_contribution(
        self,
        person_id: str,
        topic_id: str,
        weight: float,
        occurred_at: datetime,
    ) -> Dict:
        """Fold one contribution into the person's expert row for a topic."""
        existing = self.db.experts.get_topic_expert(person_id, topic_id)
        occurred_at = _parse_ts(occurred_at)

        if existing:
            count = (existing.get("contribution_count") or 0) + 1
            score = min(1.0, (existing.get("expertise_score") or 0.0) + weight / SCORE_SATURATION)
            last = _parse_ts(existing.get("last_contribution_at"))
            if last is None or occurred_at > last:
                last = occurred_at
        else:
            count = 1
            score = min(1.0, weight / SCORE_SATURATION)
            last = occurred_at

        row = {
            "person_id": person_id,
            "topic_id": topic_id,
            "expertise_score": round(score, 4),
            "contribution_count": count,
            "last_contribution_at": last.isoformat(),
            "is_active": self._is_active(last),
        }
        self.db.experts.upsert_topic_expert(row)
        return row

    def recompute_topic_experts(
        self,
        organization_id: str,
        topic_ids: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Rebuild expert rows for the given topics (all org topics by default).

        Returns:
            Number of expert rows written
        """
        topics = self.db.topics.list(organization_id)
        if topic_ids is not None:
            wanted = set(topic_ids)
            topics = [t for t in topics if t["id"] in wanted]
        if not topics:
            return 0

        ids = [t["id"] for t in topics]
        weights: Dict[str, Dict[str, Dict]] = {tid: defaultdict(lambda: {"weight": 0.0, "count": 0, "last": None}) for tid in ids}

        def add(topic_id: str, person_id: str, weight: float, when) -> None:
            entry = weights[topic_id][person_id]
            entry["weight"] += weight
            entry["count"] += 1
            when = _parse_ts(when)
            if when is not None and (entry["last"] is None or when > entry["last"]):
                entry["last"] = when

        for signal in self.db.experts.list_signals(ids):
            add(
                signal["topic_id"],
                signal["person_id"],
                (signal.get("strength") or 0.0) * (signal.get("confidence") or 0.0),
                signal.get("occurred_at"),
            )

        for topic_id in ids:
            memberships = self.db.topics.list_memberships(topic_id)
            similarity_by_point = {m["knowledge_point_id"]: m["similarity_score"] for m in memberships}
            for point in self.db.knowledge.get_points(similarity_by_point):
                if point.get("author_person_id"):
                    add(
                        topic_id,
                        point["author_person_id"],
                        max(0.0, similarity_by_point[point["id"]]),
                        point.get("processed_at"),
                    )

        written = 0
        for topic_id in ids:
            rows = [
                {
                    "person_id": person_id,
                    "topic_id": topic_id,
                    "expertise_score": round(min(1.0, entry["weight"] / SCORE_SATURATION), 4),
                    "contribution_count": entry["count"],
                    "last_contribution_at": entry["last"].isoformat() if entry["last"] else None,
                    "is_active": self._is_active(entry["last"]),
                }
                for person_id, entry in weights[topic_id].items()
            ]
            self.db.experts.replace_topic_experts(topic_id, rows)
            written += len(rows)

        logger.info(f"Recomputed experts for {len(ids)} topics: {written} expert rows")
        return written

    def topic_experts(self, topic_id: str, limit: int = 5) -> List[Dict]:
        """Active experts for a topic, best first, with display names."""
        experts = self.db.experts.list_topic_experts(topic_id, limit=limit)
        people = self.db.experts.get_people(e["person_id"] for e in experts)
        for expert in experts:
            expert["display_name"] = people.get(expert["person_id"], {}).get("display_name")
        return experts
