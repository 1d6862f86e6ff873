"""
Setup database functions and keys for the HiMind knowledge store.

Installs:
- match_knowledge_points: pgvector nearest-neighbour search used by search
- claim_next_processing_job: atomic job claim (FOR UPDATE SKIP LOCKED)
- the unique keys the repositories upsert on

Usage:
    DATABASE_URL=postgresql://... python scripts/setup_db_functions.py
"""
import os
import sys

import psycopg2
from dotenv import load_dotenv

load_dotenv()

EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", "1536"))

MATCH_KNOWLEDGE_POINTS = f"""
CREATE OR REPLACE FUNCTION match_knowledge_points(
    query_embedding vector({EMBEDDING_DIMENSION}),
    org_id uuid,
    match_threshold float DEFAULT 0.7,
    match_count int DEFAULT 10
)
RETURNS TABLE(
    knowledge_point_id uuid,
    source_id uuid,
    author_person_id uuid,
    summary text,
    keywords text[],
    source_title text,
    source_url text,
    similarity float
) AS $$
BEGIN
    RETURN QUERY
    SELECT
        kp.id,
        kp.source_id,
        kp.author_person_id,
        kp.summary,
        kp.keywords,
        ks.title,
        ks.external_url,
        (1 - (kp.embedding <=> query_embedding))::float AS similarity
    FROM knowledge_points kp
    JOIN knowledge_sources ks ON ks.id = kp.source_id
    WHERE kp.organization_id = org_id
    AND kp.embedding IS NOT NULL
    AND 1 - (kp.embedding <=> query_embedding) >= match_threshold
    ORDER BY kp.embedding <=> query_embedding
    LIMIT match_count;
END;
$$ LANGUAGE plpgsql STABLE;
"""

CLAIM_NEXT_PROCESSING_JOB = """
CREATE OR REPLACE FUNCTION claim_next_processing_job(claim_time timestamptz DEFAULT now())
RETURNS SETOF processing_jobs AS $$
BEGIN
    RETURN QUERY
    UPDATE processing_jobs
    SET status = 'processing', started_at = claim_time, updated_at = claim_time
    WHERE id = (
        SELECT id FROM processing_jobs
        WHERE status IN ('pending', 'retrying')
        AND (scheduled_for IS NULL OR scheduled_for <= claim_time)
        ORDER BY priority_weight DESC, created_at ASC
        LIMIT 1
        FOR UPDATE SKIP LOCKED
    )
    RETURNING *;
END;
$$ LANGUAGE plpgsql;
"""

UNIQUE_KEYS = [
    ("knowledge_sources_org_type_external_key", "knowledge_sources", "organization_id, source_type, external_id"),
    ("knowledge_statements_source_hash_key", "knowledge_statements", "source_id, content_hash"),
    ("knowledge_points_source_key", "knowledge_points", "source_id"),
    ("topics_org_canonical_key", "topics", "organization_id, canonical_name"),
    ("statement_topics_pair_key", "statement_topics", "statement_id, topic_id"),
    ("knowledge_topic_memberships_pair_key", "knowledge_topic_memberships", "knowledge_point_id, topic_id"),
    ("topic_experts_pair_key", "topic_experts", "person_id, topic_id"),
    ("expertise_signals_source_key", "expertise_signals", "person_id, topic_id, source_id, signal_type"),
]

CLAIM_INDEX = """
CREATE INDEX IF NOT EXISTS processing_jobs_claim_idx
ON processing_jobs (status, priority_weight DESC, created_at ASC);
"""


def main() -> int:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("❌ DATABASE_URL is not set")
        return 1

    conn = psycopg2.connect(database_url)
    cur = conn.cursor()

    print("Creating match_knowledge_points function...")
    cur.execute(MATCH_KNOWLEDGE_POINTS)
    conn.commit()
    print("✅ Function match_knowledge_points created!")

    print("Creating claim_next_processing_job function...")
    cur.execute(CLAIM_NEXT_PROCESSING_JOB)
    cur.execute(CLAIM_INDEX)
    conn.commit()
    print("✅ Function claim_next_processing_job created!")

    print("\nCreating unique keys...")
    for name, table, columns in UNIQUE_KEYS:
        cur.execute(f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {table} ({columns})")
        print(f"  - {table} ({columns})")
    conn.commit()

    conn.close()
    print("\n✅ Database setup complete!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
