#!/usr/bin/env python3
"""OpenSearch bootstrap script for campaign search.

Creates the entity index used by the OpenSearch prefilter and scope scan.
"""

import argparse
import sys
import time
from typing import List, Optional
import structlog
from opensearchpy import OpenSearch

from campaign_search.common.config import SearchConfig
from campaign_search.common.logging import configure_logging

logger = structlog.get_logger("opensearch_bootstrap")


def create_opensearch_client(
    hosts: List[str],
    username: Optional[str] = None,
    password: Optional[str] = None,
    verify_certs: bool = False
) -> OpenSearch:
    """Create OpenSearch client."""
    return OpenSearch(
        hosts=hosts,
        http_auth=(username, password) if username and password else None,
        verify_certs=verify_certs,
        ssl_assert_hostname=False,
        ssl_show_warn=False,
        use_ssl=True if hosts[0].startswith('https') else False,
    )


def entity_index_body() -> dict:
    """Mapping and settings of the entity index.

    Text fields fold accents and case the same way the engine normalizes
    queries, so prefix matches line up with ranking.
    """
    folded_text = {"type": "text", "analyzer": "folded"}
    return {
        "mappings": {
            "properties": {
                "entity_id": {"type": "keyword"},
                "campaign_id": {"type": "keyword"},
                "entity_type": {"type": "keyword"},
                "name": {**folded_text, "fields": {"keyword": {"type": "keyword"}}},
                "description": folded_text,
                "metadata": folded_text,
                "related_names": folded_text,
                "deleted_at": {"type": "date"},
            }
        },
        "settings": {
            "index": {
                "number_of_shards": 1,
                "number_of_replicas": 0,
                "refresh_interval": "1s"
            },
            "analysis": {
                "analyzer": {
                    "folded": {
                        "type": "custom",
                        "tokenizer": "standard",
                        "filter": ["lowercase", "asciifolding"]
                    }
                }
            }
        }
    }


def create_entity_index(client: OpenSearch, index_name: str) -> None:
    """Create the entity index if it does not exist yet."""
    try:
        if client.indices.exists(index=index_name):
            logger.info("Index already exists", index_name=index_name)
            return

        client.indices.create(index=index_name, body=entity_index_body())
        logger.info("Created entity index", index_name=index_name)

    except Exception as e:
        logger.error("Failed to create entity index", index_name=index_name, error=str(e))
        raise


def wait_for_cluster(client: OpenSearch, timeout: int = 60) -> None:
    """Wait for OpenSearch cluster to be ready."""
    start_time = time.time()

    while time.time() - start_time < timeout:
        try:
            health = client.cluster.health()
            if health['status'] in ['green', 'yellow']:
                logger.info("OpenSearch cluster is ready", status=health['status'])
                return
            else:
                logger.info("Waiting for OpenSearch cluster", status=health['status'])
                time.sleep(5)
        except Exception as e:
            logger.warning("Failed to check cluster health", error=str(e))
            time.sleep(5)

    raise TimeoutError("OpenSearch cluster did not become ready within timeout")


def main():
    """Main bootstrap function."""
    config = SearchConfig()
    configure_logging("opensearch-bootstrap", config.cs_log_level, config.cs_log_format)

    parser = argparse.ArgumentParser(description="Bootstrap OpenSearch for campaign search")
    parser.add_argument("--hosts", default=config.cs_opensearch_hosts, help="OpenSearch hosts (comma-separated)")
    parser.add_argument("--username", default=config.cs_opensearch_username, help="OpenSearch username")
    parser.add_argument("--password", default=config.cs_opensearch_password, help="OpenSearch password")
    parser.add_argument("--verify-certs", action="store_true", help="Verify SSL certificates")
    parser.add_argument("--index", default=config.cs_opensearch_index, help="Entity index name")
    parser.add_argument("--wait-timeout", type=int, default=60, help="Cluster wait timeout in seconds")

    args = parser.parse_args()

    # Parse hosts
    hosts = [host.strip() for host in args.hosts.split(",")]

    client = create_opensearch_client(
        hosts=hosts,
        username=args.username,
        password=args.password,
        verify_certs=args.verify_certs or config.cs_opensearch_verify_certs
    )

    try:
        wait_for_cluster(client, args.wait_timeout)
        create_entity_index(client, args.index)
        logger.info("OpenSearch bootstrap completed successfully")

    except Exception as e:
        logger.error("OpenSearch bootstrap failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
