"""
Ingestion service - one content source end to end.

Steps: resolve org → short-circuit already processed sources → resolve
author → upsert source → extract → embed knowledge point → persist
statements → find/create topics and link them → expertise signals →
mark processed.

The processed flag is written last, so any failure leaves the source to be
reprocessed by a retry. Every write before it is keyed (statements on
(source_id, content_hash), the knowledge point on source_id, links and
memberships on their pairs, expertise signals on (person, topic, source,
signal type)), and a contribution is only counted when its signal is new,
so a replay after a partial run does not
duplicate rows.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from himind.core.config import settings
from himind.features.database import resolve_organization_id
from himind.features.expertise import ExpertiseService
from himind.features.extraction import ContentExtractor, ExtractedStatement, ExtractionResult
from himind.features.knowledge.embedder import validate_dimension
from himind.features.knowledge.scoring import (
    content_hash,
    extract_keywords,
    quality_score,
    relevance_score,
    summarize,
)
from himind.features.processing.models import ContentSource, IngestionResult, IngestionTopic

logger = logging.getLogger("HiMind.Ingestion")

SIGNAL_TYPE = "authored"
SIGNAL_CONFIDENCE = 0.7


class IngestionService:
    """Turns one ContentSource into statements, topics, a knowledge point and signals."""

    def __init__(
        self,
        db,
        extractor: ContentExtractor,
        embedder,
        expertise: Optional[ExpertiseService] = None,
        embedding_dimension: Optional[int] = None,
        error_handler=None,
    ):
        self.db = db
        self.extractor = extractor
        self.embedder = embedder
        self.expertise = expertise or ExpertiseService(db)
        self.embedding_dimension = embedding_dimension or getattr(
            embedder, "dimension", settings.EMBEDDING_DIMENSION
        )
        self.error_handler = error_handler

    async def ingest(self, content: ContentSource, organization_id: Optional[str] = None) -> IngestionResult:
        """
        Ingest one content source.

        Args:
            content: Validated content payload
            organization_id: Owning org; defaults to the store's default org

        Returns:
            IngestionResult with the source id, statements, topics and counts

        Raises:
            OrganizationNotFoundError: no org could be resolved
            EmbeddingDimensionError: the embedder returned a wrong-length vector
        """
        context = {"content_type": content.type, "external_id": content.external_id}
        try:
            org_id = await asyncio.to_thread(resolve_organization_id, self.db, organization_id)

            existing = await asyncio.to_thread(
                self.db.sources.find, org_id, content.type, content.external_id
            )
            if existing and existing.get("is_processed"):
                logger.info(f"Source already processed, skipping: {content.type}/{content.external_id}")
                return await asyncio.to_thread(self._existing_result, existing)

            source_id, author_person_id = await asyncio.to_thread(self._store_source, content, org_id)
            context["source_id"] = source_id

            extraction = await self.extractor.extract(content.text)
            logger.info(
                f"Extracted {len(extraction.statements)} statements and "
                f"{len(extraction.topics)} topics from {content.type}/{content.external_id}"
            )

            embedding = await self.embedder.embed(content.text)
            validate_dimension(embedding, self.embedding_dimension)

            return await asyncio.to_thread(
                self._persist, content, org_id, source_id, author_person_id, extraction, embedding
            )
        except Exception as e:
            logger.error(f"Ingestion failed for {content.type}/{content.external_id}: {e}")
            if self.error_handler is not None:
                await asyncio.to_thread(
                    self.error_handler.log_error, None, content.type, e, context, "high"
                )
            raise

    # ===================== Steps =====================

    def _store_source(self, content: ContentSource, org_id: str) -> Tuple[str, Optional[str]]:
        author_person_id = self.db.experts.resolve_identity(content.platform, content.author_external_id)
        if author_person_id is None:
            logger.info(
                f"No person for {content.platform} account {content.author_external_id}; "
                "storing knowledge without attribution"
            )

        parent_source_id = None
        if content.parent_external_id:
            parent_source_id = self.db.sources.find_id(org_id, content.parent_external_id)
            if parent_source_id is None:
                logger.debug(f"Parent {content.parent_external_id} not ingested yet")

        source = self.db.sources.upsert({
            "organization_id": org_id,
            "platform": content.platform,
            "source_type": content.type,
            "external_id": content.external_id,
            "external_url": content.external_url,
            "title": content.title,
            "content": content.body,
            "raw_content": content.raw_content,
            "author_external_id": content.author_external_id,
            "author_person_id": author_person_id,
            "parent_source_id": parent_source_id,
            "platform_created_at": content.platform_created_at.isoformat(),
        })
        return source["id"], author_person_id

    def _persist(
        self,
        content: ContentSource,
        org_id: str,
        source_id: str,
        author_person_id: Optional[str],
        extraction: ExtractionResult,
        embedding: List[float],
    ) -> IngestionResult:
        text = content.text
        keywords = extract_keywords(text)
        relevance = relevance_score(text)
        point = self.db.knowledge.upsert_point({
            "source_id": source_id,
            "organization_id": org_id,
            "author_person_id": author_person_id,
            "summary": summarize(text),
            "keywords": keywords,
            "embedding": embedding,
            "quality_score": quality_score(text, keywords),
            "relevance_score": relevance,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        })

        statement_ids: List[str] = []
        stored_statements: List[ExtractedStatement] = []
        for statement in extraction.statements:
            try:
                row = self.db.sources.upsert_statement({
                    "organization_id": org_id,
                    "source_id": source_id,
                    "author_person_id": author_person_id,
                    "headline": statement.headline,
                    "content": statement.content,
                    "statement_type": statement.statement_type,
                    "keywords": statement.keywords,
                    "confidence_score": statement.confidence,
                    "content_hash": content_hash(statement.content),
                })
                if row["id"] not in statement_ids:
                    statement_ids.append(row["id"])
                    stored_statements.append(statement)
            except Exception as e:
                logger.warning(f"Skipping statement '{statement.headline}' for source {source_id}: {e}")

        topics: List[IngestionTopic] = []
        topics_created = 0
        occurred_at = content.platform_created_at
        for candidate in extraction.topics:
            topic, created = self.db.topics.get_or_create({
                "organization_id": org_id,
                "name": candidate.name,
                "canonical_name": candidate.canonical_name,
                "description": candidate.description,
                "keyword_signatures": candidate.keywords,
                "member_count": 0,
                "confidence_score": candidate.confidence,
                "emergence_strength": candidate.confidence,
                "is_approved": True,
            })
            topics_created += int(created)

            for statement_id in statement_ids:
                self.db.topics.link_statement(statement_id, topic["id"], candidate.confidence)

            if author_person_id:
                is_new = self.db.experts.add_signal({
                    "organization_id": org_id,
                    "person_id": author_person_id,
                    "topic_id": topic["id"],
                    "signal_type": SIGNAL_TYPE,
                    "strength": candidate.confidence,
                    "confidence": SIGNAL_CONFIDENCE,
                    "source_id": source_id,
                    "occurred_at": occurred_at.isoformat(),
                })
                if is_new:
                    self.expertise.record_contribution(
                        author_person_id,
                        topic["id"],
                        candidate.confidence * SIGNAL_CONFIDENCE,
                        occurred_at,
                    )

            topics.append(IngestionTopic(
                id=topic["id"],
                name=topic["name"],
                canonical_name=topic["canonical_name"],
                keywords=candidate.keywords,
                relevance_score=candidate.confidence,
            ))

        metadata = {
            "statements_created": len(stored_statements),
            "topics_created": topics_created,
            "topics_linked": len(topics),
            "topic_relevance": {t.id: t.relevance_score for t in topics},
            "knowledge_point_id": point["id"],
            "author_resolved": author_person_id is not None,
            "extractor": getattr(self.extractor, "name", type(self.extractor).__name__),
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }
        self.db.sources.mark_processed(source_id, metadata)
        logger.info(
            f"Ingested {content.type}/{content.external_id}: "
            f"{len(stored_statements)} statements, {len(topics)} topics"
        )

        return IngestionResult(
            content_artifact_id=source_id,
            statements=stored_statements,
            topics=topics,
            metadata=metadata,
        )

    def _existing_result(self, source: Dict) -> IngestionResult:
        metadata = source.get("processing_metadata") or {}
        statements = self.db.sources.list_statements(source["id"])
        topics = []
        for topic_id, relevance in (metadata.get("topic_relevance") or {}).items():
            topic = self.db.topics.get(topic_id)
            if topic:
                topics.append({**topic, "relevance_score": relevance})
        return IngestionResult(
            content_artifact_id=source["id"],
            statements=[
                ExtractedStatement(
                    headline=s["headline"],
                    content=s["content"],
                    statement_type=s["statement_type"],
                    keywords=s.get("keywords") or [],
                    confidence=s.get("confidence_score") or 0.0,
                )
                for s in statements
            ],
            topics=[
                IngestionTopic(
                    id=t["id"],
                    name=t["name"],
                    canonical_name=t["canonical_name"],
                    keywords=t.get("keyword_signatures") or [],
                    relevance_score=t.get("relevance_score") or 0.0,
                )
                for t in topics
            ],
            metadata=metadata,
            already_processed=True,
        )
