"""Similarity search over the research document embeddings."""

import structlog

from cyclica_api.config import get_settings
from cyclica_api.models import ContextExcerpt
from cyclica_api.observability import get_trace_id
from cyclica_api.supabase_client import SupabaseClient

logger = structlog.get_logger()


async def find_relevant_context(
    query: str,
    store: SupabaseClient,
    llm_client,
    top_k: int | None = None,
) -> list[ContextExcerpt]:
    """Embed ``query`` and return up to ``top_k`` excerpts above the match threshold.

    Returns an empty list if either the embedding or the search fails.
    """
    settings = get_settings()
    top_k = top_k or settings.match_count

    try:
        embedding = await llm_client.embed(query, model=settings.embedding_model)
        rows = await store.rpc(
            settings.match_function,
            {
                "query_embedding": embedding,
                "match_threshold": settings.match_threshold,
                "match_count": top_k,
            },
        )
        excerpts = [ContextExcerpt.model_validate(row) for row in rows][:top_k]
    except Exception as e:
        logger.error(
            "context_retrieval_failed",
            trace_id=get_trace_id(),
            query_preview=query[:50],
            error=str(e),
        )
        return []

    logger.info(
        "context_retrieved",
        trace_id=get_trace_id(),
        query_preview=query[:50],
        excerpts=len(excerpts),
    )
    return excerpts


async def get_available_pdfs(store: SupabaseClient) -> list[str]:
    """Distinct indexed document names, in first-seen order.

    Reads at most ``max_documents`` embedding rows; returns an empty list on failure.
    """
    settings = get_settings()
    try:
        rows = await store.select(
            settings.embeddings_table,
            columns="filename",
            limit=settings.max_documents,
        )
    except Exception as e:
        logger.error("document_listing_failed", error=str(e))
        return []

    return list(dict.fromkeys(row["filename"] for row in rows if row.get("filename")))
