"""Run topic discovery for an organization and print the resulting topics."""
import argparse
import asyncio

from himind.features.database import get_database_client
from himind.features.topics import DiscoveryOptions, TopicDiscoveryEngine
from himind.shared.logging_config import setup_logging


async def main():
    parser = argparse.ArgumentParser(description="Cluster knowledge points into topics")
    parser.add_argument("--org", dest="organization_id", default=None, help="Organization id (default org if omitted)")
    parser.add_argument("--min-cluster-size", type=int, default=None)
    parser.add_argument("--max-clusters", type=int, default=None)
    parser.add_argument("--threshold", type=float, default=None, help="Merge threshold against existing topics")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    overrides = {
        "min_cluster_size": args.min_cluster_size,
        "max_clusters": args.max_clusters,
        "similarity_threshold": args.threshold,
        "seed": args.seed,
    }
    options = DiscoveryOptions(**{k: v for k, v in overrides.items() if v is not None})

    engine = TopicDiscoveryEngine(get_database_client())
    result = await engine.discover(args.organization_id, options)
    stats = result.stats

    print(f"\n{'='*50}")
    print("DISCOVERY RESULTS:")
    print(f"{'='*50}")
    print(f"  Points considered: {stats.points_considered} (rejected: {stats.points_rejected})")
    print(f"  Iterations: {stats.iterations} (converged: {stats.converged})")
    print(f"  Clusters: {stats.clusters_found}, new topics: {stats.new_topics}, updated: {stats.updated_topics}")
    for topic in result.topics:
        status = "+" if topic.is_new else "~"
        print(f"  {status} {topic.name}: {topic.cluster_size} points, {topic.member_count} members "
              f"[{', '.join(topic.keywords)}]")


if __name__ == "__main__":
    setup_logging("himind-discovery", json_output=False)
    asyncio.run(main())
