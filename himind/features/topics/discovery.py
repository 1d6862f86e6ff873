"""
Topic discovery - cluster an organization's knowledge points into topics.

A run clusters every point with a valid embedding, drops small clusters and
reconciles each surviving cluster with the existing topics:

- centroid close to an approved topic  → update that topic
- otherwise                             → create a topic named after the
                                          cluster's dominant keywords

Memberships are written with each point's similarity to its cluster
centroid. Every touched topic then gets its centroid recomputed from all of
its members, and its experts rebuilt.

Runs for one organization never overlap (per-org asyncio.Lock).
"""

import asyncio
import logging
from collections import Counter
from typing import Dict, List, Optional, Set

import numpy as np
from pydantic import BaseModel, Field

from himind.core.config import settings
from himind.core.tracing import get_tracer
from himind.features.database import resolve_organization_id
from himind.features.expertise import ExpertiseService
from himind.features.extraction import canonical_name
from himind.features.knowledge.similarity import centroid as mean_vector
from himind.features.knowledge.similarity import similarity_matrix
from himind.features.topics.clustering import CentroidSeeder, FarthestPointSeeder, choose_k, kmeans

logger = logging.getLogger("HiMind.Topics")
tracer = get_tracer(__name__)

KEYWORDS_PER_TOPIC = 5


# ===================== Models =====================

class DiscoveryOptions(BaseModel):
    min_cluster_size: int = Field(default_factory=lambda: settings.DISCOVERY_MIN_CLUSTER_SIZE, ge=1)
    max_clusters: int = Field(default_factory=lambda: settings.DISCOVERY_MAX_CLUSTERS, ge=1)
    similarity_threshold: float = Field(
        default_factory=lambda: settings.DISCOVERY_SIMILARITY_THRESHOLD, ge=-1.0, le=1.0
    )
    max_iterations: int = Field(default_factory=lambda: settings.DISCOVERY_MAX_ITERATIONS, ge=1)
    seed: Optional[int] = None
    auto_approve: bool = True


class DiscoveredTopic(BaseModel):
    id: str
    name: str
    canonical_name: str
    keywords: List[str] = Field(default_factory=list)
    cluster_size: int
    member_count: int
    confidence_score: float
    is_new: bool
    knowledge_point_ids: List[str] = Field(default_factory=list)


class DiscoveryStats(BaseModel):
    points_considered: int = 0
    points_rejected: int = 0
    clusters_found: int = 0
    new_topics: int = 0
    updated_topics: int = 0
    iterations: int = 0
    converged: bool = False


class DiscoveryResult(BaseModel):
    topics: List[DiscoveredTopic] = Field(default_factory=list)
    stats: DiscoveryStats = Field(default_factory=DiscoveryStats)


# ===================== Helpers =====================

def dominant_keywords(members: List[Dict], limit: int = KEYWORDS_PER_TOPIC) -> List[str]:
    """Most frequent keywords across members; ties keep first-seen order."""
    counts = Counter(
        keyword.lower()
        for member in members
        for keyword in (member.get("keywords") or [])
    )
    return [keyword for keyword, _ in counts.most_common(limit)]


def topic_name(keywords: List[str], summary: Optional[str]) -> str:
    if keywords:
        primary = keywords[0]
        return primary[:1].upper() + primary[1:] + " Development"
    words = (summary or "").split()[:2]
    if not words:
        return "Untitled Topic"
    return " ".join(words) + " Topic"


def topic_confidence(member_count: int) -> float:
    return round(min(1.0, member_count / 10), 4)


# ===================== Engine =====================

class TopicDiscoveryEngine:
    """Clusters knowledge points and reconciles clusters with topic rows."""

    def __init__(
        self,
        db,
        expertise: Optional[ExpertiseService] = None,
        seeder: Optional[CentroidSeeder] = None,
        embedding_dimension: Optional[int] = None,
    ):
        self.db = db
        self.expertise = expertise or ExpertiseService(db)
        self.seeder = seeder or FarthestPointSeeder()
        self.embedding_dimension = embedding_dimension or settings.EMBEDDING_DIMENSION
        self._locks: Dict[str, asyncio.Lock] = {}

    async def discover(
        self,
        organization_id: Optional[str] = None,
        options: Optional[DiscoveryOptions] = None,
    ) -> DiscoveryResult:
        """
        Run one discovery pass for an organization.

        Args:
            organization_id: Org to cluster; defaults to the store's default org
            options: Clustering knobs; omitted fields use configured defaults

        Returns:
            DiscoveryResult with the touched topics and run statistics
        """
        options = options or DiscoveryOptions()
        org_id = await asyncio.to_thread(resolve_organization_id, self.db, organization_id)

        lock = self._locks.setdefault(org_id, asyncio.Lock())
        if lock.locked():
            logger.info(f"Discovery already running for org {org_id}, waiting")

        async with lock:
            with tracer.start_as_current_span("topics.discover") as span:
                span.set_attribute("organization.id", org_id)
                result = await asyncio.to_thread(self._run, org_id, options)
                span.set_attribute("discovery.clusters_found", result.stats.clusters_found)
                span.set_attribute("discovery.new_topics", result.stats.new_topics)
                return result

    def _valid(self, vector) -> bool:
        return bool(vector) and len(vector) == self.embedding_dimension

    def _run(self, org_id: str, options: DiscoveryOptions) -> DiscoveryResult:
        points = self.db.knowledge.list_points(org_id)
        valid = [p for p in points if self._valid(p.get("embedding"))]
        stats = DiscoveryStats(points_considered=len(valid), points_rejected=len(points) - len(valid))
        if stats.points_rejected:
            logger.warning(
                f"Skipping {stats.points_rejected} knowledge points whose embedding "
                f"is not {self.embedding_dimension}-dimensional"
            )

        if len(valid) < options.min_cluster_size:
            logger.info(
                f"Not enough knowledge points to cluster for org {org_id}: "
                f"{len(valid)} < {options.min_cluster_size}"
            )
            return DiscoveryResult(stats=stats)

        matrix = np.asarray([p["embedding"] for p in valid], dtype=float)
        k = choose_k(len(valid), options.max_clusters)
        clustering = kmeans(
            matrix,
            k,
            max_iterations=options.max_iterations,
            seeder=self.seeder,
            rng=np.random.default_rng(options.seed),
        )
        stats.iterations = clustering.iterations
        stats.converged = clustering.converged
        logger.info(
            f"Clustered {len(valid)} points into {k} clusters "
            f"({clustering.iterations} iterations, converged={clustering.converged})"
        )

        approved = {
            t["id"]: t for t in self.db.topics.list(org_id, approved_only=True)
            if self._valid(t.get("centroid"))
        }
        discovered: List[DiscoveredTopic] = []
        new_ids: Set[str] = set()
        touched: List[str] = []

        for cluster in range(k):
            indices = np.flatnonzero(clustering.assignments == cluster)
            if len(indices) < options.min_cluster_size:
                continue
            stats.clusters_found += 1

            members = [valid[i] for i in indices]
            center = clustering.centroids[cluster]
            similarities = similarity_matrix(matrix[indices], center[None, :])[:, 0]
            keywords = dominant_keywords(members)

            topic, is_new = self._reconcile(org_id, center, members, similarities, keywords, approved, options)

            for member, similarity in zip(members, similarities):
                self.db.topics.upsert_membership(member["id"], topic["id"], float(similarity))

            topic = self._refresh_topic(topic["id"])
            if topic.get("is_approved") and self._valid(topic.get("centroid")):
                approved[topic["id"]] = topic

            if is_new:
                new_ids.add(topic["id"])
            if topic["id"] not in touched:
                touched.append(topic["id"])

            discovered.append(DiscoveredTopic(
                id=topic["id"],
                name=topic["name"],
                canonical_name=topic["canonical_name"],
                keywords=topic.get("keyword_signatures") or [],
                cluster_size=len(members),
                member_count=topic.get("member_count") or 0,
                confidence_score=topic.get("confidence_score") or 0.0,
                is_new=is_new,
                knowledge_point_ids=[m["id"] for m in members],
            ))

        stats.new_topics = len(new_ids)
        stats.updated_topics = len([tid for tid in touched if tid not in new_ids])

        if touched:
            self.expertise.recompute_topic_experts(org_id, touched)

        logger.info(
            f"Discovery for org {org_id}: {stats.clusters_found} clusters, "
            f"{stats.new_topics} new topics, {stats.updated_topics} updated"
        )
        return DiscoveryResult(topics=discovered, stats=stats)

    def _reconcile(
        self,
        org_id: str,
        center: np.ndarray,
        members: List[Dict],
        similarities: np.ndarray,
        keywords: List[str],
        approved: Dict[str, Dict],
        options: DiscoveryOptions,
    ):
        """Return (topic, is_new) for one cluster."""
        if approved:
            topics = list(approved.values())
            scores = similarity_matrix(
                center[None, :],
                np.asarray([t["centroid"] for t in topics], dtype=float),
            )[0]
            best = int(np.argmax(scores))
            if scores[best] > options.similarity_threshold:
                logger.info(f"Cluster merges into topic '{topics[best]['name']}' (similarity {scores[best]:.3f})")
                return self._merge_keywords(topics[best], keywords), False

        representative = members[int(np.argmax(similarities))]
        name = topic_name(keywords, representative.get("summary"))
        topic, created = self.db.topics.get_or_create({
            "organization_id": org_id,
            "name": name,
            "canonical_name": canonical_name(name),
            "description": representative.get("summary"),
            "keyword_signatures": keywords,
            "centroid": center.tolist(),
            "member_count": 0,
            "confidence_score": topic_confidence(len(members)),
            "emergence_strength": float(np.mean(similarities)),
            "is_approved": options.auto_approve,
        })
        if not created:
            logger.info(f"Cluster name '{name}' matches existing topic, updating it")
            return self._merge_keywords(topic, keywords), False
        return topic, True

    def _merge_keywords(self, topic: Dict, keywords: List[str]) -> Dict:
        merged = list(topic.get("keyword_signatures") or [])
        merged.extend(k for k in keywords if k not in merged)
        return self.db.topics.update(topic["id"], {"keyword_signatures": merged})

    def _refresh_topic(self, topic_id: str) -> Dict:
        """Recompute centroid and member count from all current members."""
        memberships = self.db.topics.list_memberships(topic_id)
        points = self.db.knowledge.get_points(m["knowledge_point_id"] for m in memberships)
        vectors = [p["embedding"] for p in points if self._valid(p.get("embedding"))]

        fields = {
            "member_count": len(memberships),
            "confidence_score": topic_confidence(len(memberships)),
        }
        if vectors:
            fields["centroid"] = mean_vector(vectors)
        return self.db.topics.update(topic_id, fields)
