"""Web search client and the search-backed research sub-flow.

`TavilySearchClient.search` is the thin provider call used by quickSearch.
`complete_search` expands a topic into several queries, runs each one and
asks the model to organize the raw results, producing the prompt for a
search-backed document.
"""
from typing import Any, Optional
import json
import logging

import httpx
from pydantic import BaseModel

from app.ai.provider import ModelProvider
from app.core.errors import UpstreamGenerationFailure

logger = logging.getLogger(__name__)


class QueryPlan(BaseModel):
    queries: list[str]


class OrganizedResult(BaseModel):
    Titre: str
    Source: str
    Content: str


class OrganizedResults(BaseModel):
    organizedResults: list[OrganizedResult] = []


class TavilySearchClient:
    """Search provider client for the Tavily API."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: Optional[str], url: str):
        self.http_client = http_client
        self.api_key = api_key
        self.url = url

    async def search(
        self,
        query: str,
        search_depth: str = "basic",
        topic: str = "general",
        **options: Any,
    ) -> dict[str, Any]:
        """
        Run one search.

        Returns:
            Raw provider response; ranked hits are under "results"

        Raises:
            UpstreamGenerationFailure: If the request fails
        """
        body = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": search_depth,
            "topic": topic,
            **{key: value for key, value in options.items() if value is not None},
        }
        logger.info(f"Performing search for query: {query}")
        try:
            response = await self.http_client.post(
                self.url,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Search failed for query '{query}': {str(e)}")
            raise UpstreamGenerationFailure(f"Search failed: {str(e)}") from e
        return response.json()


async def complete_search(
    provider: ModelProvider,
    search_client: TavilySearchClient,
    model: str,
    user_request: str,
    query_count: int = 3,
) -> str:
    """
    Research a topic and return the findings as structured text.

    Raises:
        UpstreamGenerationFailure: If query generation, a search, or result
            organization fails, or a search returns no results
    """
    plan = await provider.generate_object(
        model=model,
        prompt=f"Generate {query_count} diverses queries for the topic: {user_request}",
        schema=QueryPlan,
    )

    structured_text = f'Search results for the topic: "{user_request}"\n\n'
    for query in plan.queries:
        structured_text += f'Query: "{query}"\n'

        search_results = await search_client.search(
            query,
            search_depth="advanced",
            include_answer=True,
            include_raw_content=True,
        )
        if not search_results or not search_results.get("results"):
            logger.error(f"No search results found for query: {query}")
            raise UpstreamGenerationFailure("No search results found")

        structured_text += f"Raw Results:\n{json.dumps(search_results, indent=2)}\n"

        organization_prompt = (
            "Organize the following search results into a structured JSON format.\n"
            'Please return a JSON object with a property "organizedResults" that is an array of objects.\n'
            "Each object should have:\n"
            '- "Titre" (the title of the search result),\n'
            '- "Source" (the URL or source reference),\n'
            '- "Content" (a synthesized summary of the raw content).\n\n'
            f"Raw search results:\n{json.dumps(search_results)}"
        )
        organized = await provider.generate_object(
            model=model,
            prompt=organization_prompt,
            schema=OrganizedResults,
        )

        if not organized.organizedResults:
            logger.warning(f"No organized results found for query: {query}")
            structured_text += f"\nNo organized results found for query: {query}\n"
        for result in organized.organizedResults:
            structured_text += f"\nTitre: {result.Titre}\nSource: {result.Source}\nContent: {result.Content}\n"

        structured_text += "\n"

    return structured_text
