"""Search the knowledge base from the command line."""
import asyncio
import sys

from himind.api.dependencies import get_search_service
from himind.shared.logging_config import setup_logging


async def main(query: str):
    result = await get_search_service().search(query)

    print(f"\n🔍 {result.query}")
    print(f"\n📚 {len(result.knowledge_matches)} matches:")
    for match in result.knowledge_matches:
        title = match.source_title or match.source_id
        print(f"  [{match.similarity:.3f}] {title}: {(match.summary or '')[:100]}")

    if result.suggested_experts:
        print("\n👤 Suggested experts:")
        for expert in result.suggested_experts:
            print(f"  {expert.display_name or expert.person_id} "
                  f"(score {expert.score:.3f}, {expert.relevant_contributions}/{expert.total_contributions})")

    if result.topic_matches:
        print("\n🏷  Related topics: " + ", ".join(t.name for t in result.topic_matches))

    if result.has_direct_answers:
        print("\n✓ Direct answers available")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python search_knowledge.py <query>")
        sys.exit(1)
    setup_logging("himind-search", json_output=False)
    asyncio.run(main(" ".join(sys.argv[1:])))
