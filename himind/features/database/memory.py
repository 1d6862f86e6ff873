"""
In-memory knowledge store.

Mirrors the Supabase repositories method for method so every service runs
unchanged against it. Used by the test suite and as a local fallback when
SUPABASE_URL/SUPABASE_KEY are not configured. Rows go in and come out as
copies; a single lock makes each repository call atomic, which is what the
job claim relies on.
"""

import copy
import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

logger = logging.getLogger("HiMind.Database.Memory")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_ts(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


class InMemoryStore:
    """Tables as dicts of rows keyed by id, plus a global lock."""

    TABLES = [
        "organizations",
        "people",
        "external_identities",
        "knowledge_sources",
        "knowledge_statements",
        "knowledge_points",
        "topics",
        "statement_topics",
        "knowledge_topic_memberships",
        "expertise_signals",
        "topic_experts",
        "processing_jobs",
        "processing_errors",
        "search_queries",
    ]

    def __init__(self):
        self.lock = threading.RLock()
        self.tables: Dict[str, Dict[str, Dict]] = {name: {} for name in self.TABLES}
        self._seq = 0

    def next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def insert(self, table: str, row: Dict) -> Dict:
        row = copy.deepcopy(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now_iso())
        row["_seq"] = self.next_seq()
        self.tables[table][row["id"]] = row
        return row

    def rows(self, table: str) -> List[Dict]:
        return sorted(self.tables[table].values(), key=lambda r: r["_seq"])

    def find_one(self, table: str, **criteria) -> Optional[Dict]:
        for row in self.rows(table):
            if all(row.get(k) == v for k, v in criteria.items()):
                return row
        return None

    @staticmethod
    def out(row: Optional[Dict]) -> Optional[Dict]:
        if row is None:
            return None
        return {k: copy.deepcopy(v) for k, v in row.items() if k != "_seq"}


class _MemoryRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store


class MemoryOrganizationsRepository(_MemoryRepository):
    def get(self, organization_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.tables["organizations"].get(organization_id))

    def get_default(self) -> Optional[Dict]:
        with self.store.lock:
            rows = self.store.rows("organizations")
            return self.store.out(rows[0]) if rows else None


class MemorySourcesRepository(_MemoryRepository):
    def find(self, organization_id: str, source_type: str, external_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.find_one(
                "knowledge_sources",
                organization_id=organization_id,
                source_type=source_type,
                external_id=external_id,
            ))

    def find_id(self, organization_id: str, external_id: str) -> Optional[str]:
        with self.store.lock:
            row = self.store.find_one(
                "knowledge_sources", organization_id=organization_id, external_id=external_id
            )
            return row["id"] if row else None

    def get(self, source_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.tables["knowledge_sources"].get(source_id))

    def upsert(self, row: Dict) -> Dict:
        with self.store.lock:
            payload = {k: v for k, v in row.items() if v is not None}
            payload["is_processed"] = False
            payload["updated_at"] = _now_iso()
            existing = self.store.find_one(
                "knowledge_sources",
                organization_id=row["organization_id"],
                source_type=row["source_type"],
                external_id=row["external_id"],
            )
            if existing:
                existing.update(copy.deepcopy(payload))
                return self.store.out(existing)
            return self.store.out(self.store.insert("knowledge_sources", payload))

    def mark_processed(self, source_id: str, metadata: Dict) -> None:
        with self.store.lock:
            row = self.store.tables["knowledge_sources"][source_id]
            row["is_processed"] = True
            row["processing_metadata"] = copy.deepcopy(metadata)
            row["updated_at"] = _now_iso()

    def upsert_statement(self, row: Dict) -> Dict:
        with self.store.lock:
            existing = self.store.find_one(
                "knowledge_statements",
                source_id=row["source_id"],
                content_hash=row["content_hash"],
            )
            if existing:
                existing.update(copy.deepcopy(row))
                return self.store.out(existing)
            return self.store.out(self.store.insert("knowledge_statements", row))

    def list_statements(self, source_id: str) -> List[Dict]:
        with self.store.lock:
            return [
                self.store.out(row) for row in self.store.rows("knowledge_statements")
                if row["source_id"] == source_id
            ]


class MemoryKnowledgeRepository(_MemoryRepository):
    def upsert_point(self, row: Dict) -> Dict:
        with self.store.lock:
            existing = self.store.find_one("knowledge_points", source_id=row["source_id"])
            if existing:
                existing.update(copy.deepcopy(row))
                return self.store.out(existing)
            return self.store.out(self.store.insert("knowledge_points", row))

    def get_point_by_source(self, source_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.find_one("knowledge_points", source_id=source_id))

    def list_points(self, organization_id: str) -> List[Dict]:
        with self.store.lock:
            return [
                self.store.out(row) for row in self.store.rows("knowledge_points")
                if row.get("organization_id") == organization_id and row.get("embedding")
            ]

    def get_points(self, point_ids: Iterable[str]) -> List[Dict]:
        with self.store.lock:
            points = self.store.tables["knowledge_points"]
            return [self.store.out(points[pid]) for pid in point_ids if pid in points]

    def count_by_author(self, organization_id: str, person_ids: Iterable[str]) -> Dict[str, int]:
        wanted = set(person_ids)
        with self.store.lock:
            return dict(Counter(
                row["author_person_id"] for row in self.store.rows("knowledge_points")
                if row.get("organization_id") == organization_id
                and row.get("author_person_id") in wanted
            ))

    def match_points(
        self,
        organization_id: str,
        query_embedding: List[float],
        threshold: float,
        limit: int,
    ) -> List[Dict]:
        query_vec = np.asarray(query_embedding, dtype=float)
        query_norm = np.linalg.norm(query_vec)
        if query_norm == 0:
            return []

        matches = []
        with self.store.lock:
            sources = self.store.tables["knowledge_sources"]
            for point in self.store.rows("knowledge_points"):
                embedding = point.get("embedding")
                if point.get("organization_id") != organization_id or not embedding:
                    continue
                if len(embedding) != len(query_vec):
                    continue
                point_vec = np.asarray(embedding, dtype=float)
                norm = np.linalg.norm(point_vec)
                if norm == 0:
                    continue
                similarity = float(np.dot(query_vec, point_vec) / (query_norm * norm))
                if similarity < threshold:
                    continue
                source = sources.get(point["source_id"], {})
                matches.append({
                    "knowledge_point_id": point["id"],
                    "source_id": point["source_id"],
                    "author_person_id": point.get("author_person_id"),
                    "summary": point.get("summary"),
                    "keywords": list(point.get("keywords") or []),
                    "source_title": source.get("title"),
                    "source_url": source.get("external_url"),
                    "similarity": similarity,
                })

        matches.sort(key=lambda m: m["similarity"], reverse=True)
        return matches[:limit]

    def log_search(self, organization_id: str, query_text: str, match_count: int) -> None:
        with self.store.lock:
            self.store.insert("search_queries", {
                "organization_id": organization_id,
                "query_text": query_text,
                "matched_knowledge_points": match_count,
            })


class MemoryTopicsRepository(_MemoryRepository):
    def get(self, topic_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.tables["topics"].get(topic_id))

    def find_by_canonical(self, organization_id: str, canonical_name: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.find_one(
                "topics", organization_id=organization_id, canonical_name=canonical_name
            ))

    def get_or_create(self, row: Dict) -> Tuple[Dict, bool]:
        with self.store.lock:
            existing = self.store.find_one(
                "topics",
                organization_id=row["organization_id"],
                canonical_name=row["canonical_name"],
            )
            if existing:
                return self.store.out(existing), False
            now = _now_iso()
            created = self.store.insert("topics", {"created_at": now, "updated_at": now, **row})
            return self.store.out(created), True

    def update(self, topic_id: str, fields: Dict) -> Dict:
        with self.store.lock:
            row = self.store.tables["topics"][topic_id]
            row.update(copy.deepcopy(fields))
            row["updated_at"] = _now_iso()
            return self.store.out(row)

    def list(self, organization_id: str, approved_only: bool = False) -> List[Dict]:
        with self.store.lock:
            rows = [
                row for row in self.store.rows("topics")
                if row["organization_id"] == organization_id
                and (row.get("is_approved") or not approved_only)
            ]
            rows.sort(key=lambda r: r.get("member_count") or 0, reverse=True)
            return [self.store.out(row) for row in rows]

    def link_statement(self, statement_id: str, topic_id: str, relevance_score: float) -> None:
        with self.store.lock:
            existing = self.store.find_one(
                "statement_topics", statement_id=statement_id, topic_id=topic_id
            )
            if existing:
                existing["relevance_score"] = relevance_score
            else:
                self.store.insert("statement_topics", {
                    "statement_id": statement_id,
                    "topic_id": topic_id,
                    "relevance_score": relevance_score,
                })

    def upsert_membership(self, knowledge_point_id: str, topic_id: str, similarity_score: float) -> None:
        with self.store.lock:
            existing = self.store.find_one(
                "knowledge_topic_memberships",
                knowledge_point_id=knowledge_point_id,
                topic_id=topic_id,
            )
            if existing:
                existing["similarity_score"] = similarity_score
            else:
                self.store.insert("knowledge_topic_memberships", {
                    "knowledge_point_id": knowledge_point_id,
                    "topic_id": topic_id,
                    "similarity_score": similarity_score,
                })

    def list_memberships(self, topic_id: str) -> List[Dict]:
        with self.store.lock:
            return [
                self.store.out(row) for row in self.store.rows("knowledge_topic_memberships")
                if row["topic_id"] == topic_id
            ]


class MemoryExpertsRepository(_MemoryRepository):
    def resolve_identity(self, platform: str, external_id: str) -> Optional[str]:
        with self.store.lock:
            row = self.store.find_one(
                "external_identities", platform=platform, external_id=external_id
            )
            return row["person_id"] if row else None

    def get_people(self, person_ids: Iterable[str]) -> Dict[str, Dict]:
        with self.store.lock:
            people = self.store.tables["people"]
            return {pid: self.store.out(people[pid]) for pid in person_ids if pid in people}

    def add_signal(self, row: Dict) -> bool:
        with self.store.lock:
            existing = self.store.find_one(
                "expertise_signals",
                person_id=row["person_id"],
                topic_id=row["topic_id"],
                source_id=row.get("source_id"),
                signal_type=row["signal_type"],
            )
            if existing:
                return False
            self.store.insert("expertise_signals", row)
            return True

    def list_signals(self, topic_ids: Iterable[str]) -> List[Dict]:
        wanted = set(topic_ids)
        with self.store.lock:
            return [
                self.store.out(row) for row in self.store.rows("expertise_signals")
                if row["topic_id"] in wanted
            ]

    def get_topic_expert(self, person_id: str, topic_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.find_one(
                "topic_experts", person_id=person_id, topic_id=topic_id
            ))

    def upsert_topic_expert(self, row: Dict) -> None:
        with self.store.lock:
            existing = self.store.find_one(
                "topic_experts", person_id=row["person_id"], topic_id=row["topic_id"]
            )
            if existing:
                existing.update(copy.deepcopy(row))
            else:
                self.store.insert("topic_experts", row)

    def replace_topic_experts(self, topic_id: str, rows: List[Dict]) -> None:
        with self.store.lock:
            table = self.store.tables["topic_experts"]
            for key in [k for k, row in table.items() if row["topic_id"] == topic_id]:
                del table[key]
            for row in rows:
                self.store.insert("topic_experts", row)

    def list_topic_experts(self, topic_id: str, limit: int = 10, active_only: bool = True) -> List[Dict]:
        with self.store.lock:
            rows = [
                row for row in self.store.rows("topic_experts")
                if row["topic_id"] == topic_id and (row.get("is_active") or not active_only)
            ]
            rows.sort(key=lambda r: r["expertise_score"], reverse=True)
            return [self.store.out(row) for row in rows[:limit]]


class MemoryJobsRepository(_MemoryRepository):
    def insert(self, row: Dict) -> Dict:
        with self.store.lock:
            return self.store.out(self.store.insert("processing_jobs", row))

    def get(self, job_id: str) -> Optional[Dict]:
        with self.store.lock:
            return self.store.out(self.store.tables["processing_jobs"].get(job_id))

    def update(self, job_id: str, fields: Dict) -> None:
        with self.store.lock:
            row = self.store.tables["processing_jobs"][job_id]
            row.update(copy.deepcopy(fields))
            row["updated_at"] = _now_iso()

    def claim_next(self, now: datetime) -> Optional[Dict]:
        with self.store.lock:
            eligible = [
                row for row in self.store.rows("processing_jobs")
                if row["status"] in ("pending", "retrying")
                and (row.get("scheduled_for") is None or _parse_ts(row["scheduled_for"]) <= now)
            ]
            if not eligible:
                return None
            eligible.sort(key=lambda r: (-r.get("priority_weight", 0), _parse_ts(r["created_at"]), r["_seq"]))
            job = eligible[0]
            job["status"] = "processing"
            job["started_at"] = now.isoformat()
            job["updated_at"] = now.isoformat()
            return self.store.out(job)

    def requeue_stale(self, started_before: datetime) -> int:
        with self.store.lock:
            stale = [
                row for row in self.store.rows("processing_jobs")
                if row["status"] == "processing"
                and (row.get("started_at") is None or _parse_ts(row["started_at"]) < started_before)
            ]
            for row in stale:
                row.update({"status": "pending", "started_at": None, "updated_at": _now_iso()})
            return len(stale)

    def count_by_status(self) -> Dict[str, int]:
        with self.store.lock:
            return dict(Counter(row["status"] for row in self.store.rows("processing_jobs")))

    def list_retryable_failed(self, created_after: Optional[datetime] = None) -> List[Dict]:
        with self.store.lock:
            return [
                self.store.out(row) for row in self.store.rows("processing_jobs")
                if row["status"] == "failed"
                and row["retry_count"] < row["max_retries"]
                and (created_after is None or _parse_ts(row["created_at"]) >= created_after)
            ]

    def reset_for_retry(self, job_id: str, retry_count: int) -> bool:
        with self.store.lock:
            row = self.store.tables["processing_jobs"].get(job_id)
            if not row or row["status"] != "failed":
                return False
            row.update({
                "status": "pending",
                "retry_count": retry_count,
                "error": None,
                "scheduled_for": None,
                "updated_at": _now_iso(),
            })
            return True


class MemoryErrorsRepository(_MemoryRepository):
    def insert(self, row: Dict) -> Dict:
        with self.store.lock:
            return self.store.out(self.store.insert("processing_errors", row))

    def mark_resolved(self, error_id: str, resolution: str) -> bool:
        with self.store.lock:
            row = self.store.tables["processing_errors"].get(error_id)
            if not row:
                return False
            row.update({"resolved": True, "resolution": resolution, "resolved_at": _now_iso()})
            return True

    def list_since(self, since: datetime) -> List[Dict]:
        with self.store.lock:
            return [
                self.store.out(row) for row in self.store.rows("processing_errors")
                if _parse_ts(row["created_at"]) >= since
            ]


class InMemoryDatabaseClient:
    """
    Drop-in replacement for DatabaseClient backed by InMemoryStore.

    Usage:
        db = InMemoryDatabaseClient()
        org = db.add_organization("Acme")
        person = db.add_person("Ada", identities=[("slack", "U123")])
    """

    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store = store or InMemoryStore()
        self.organizations = MemoryOrganizationsRepository(self.store)
        self.sources = MemorySourcesRepository(self.store)
        self.knowledge = MemoryKnowledgeRepository(self.store)
        self.topics = MemoryTopicsRepository(self.store)
        self.experts = MemoryExpertsRepository(self.store)
        self.jobs = MemoryJobsRepository(self.store)
        self.errors = MemoryErrorsRepository(self.store)
        logger.info("In-memory database client initialized")

    def add_organization(self, name: str, organization_id: Optional[str] = None) -> Dict:
        row = {"name": name}
        if organization_id:
            row["id"] = organization_id
        with self.store.lock:
            return self.store.out(self.store.insert("organizations", row))

    def add_person(self, display_name: str, identities: Iterable[Tuple[str, str]] = ()) -> Dict:
        """Create a person and the platform accounts that resolve to them."""
        with self.store.lock:
            person = self.store.insert("people", {"display_name": display_name})
            for platform, external_id in identities:
                self.store.insert("external_identities", {
                    "platform": platform,
                    "external_id": external_id,
                    "person_id": person["id"],
                })
            return self.store.out(person)

    def table(self, name: str) -> List[Dict]:
        """Snapshot of a table's rows, oldest first."""
        with self.store.lock:
            return [self.store.out(row) for row in self.store.rows(name)]
