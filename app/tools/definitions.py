"""Built-in tools offered to the model on every chat turn.

Two fixed groups are always active together:
- document tools: createDocument, updateDocument, requestSuggestions
- augmentation tools: getWeather, quickSearch

Each tool body wraps an existing service; argument models are strict so
mismatched arguments are rejected instead of coerced.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.document import DocumentKind
from app.services import drafts, suggestions
from app.tools.context import ToolContext
from app.tools.registry import Tool, ToolRegistry
from app.tools.weather import fetch_weather

DOCUMENT_TOOLS = ["createDocument", "updateDocument", "requestSuggestions"]
AUGMENTATION_TOOLS = ["getWeather", "quickSearch"]
ALL_TOOLS = DOCUMENT_TOOLS + AUGMENTATION_TOOLS


class StrictArguments(BaseModel):
    model_config = ConfigDict(strict=True)


class GetWeatherArgs(StrictArguments):
    latitude: float
    longitude: float


class QuickSearchArgs(StrictArguments):
    query: str
    search_depth: Literal["basic", "advanced"] = Field(
        default="basic", description="La profondeur de la recherche."
    )
    topic: Literal["general", "news"] = Field(
        default="general", description="Le sujet ou la catégorie de recherche."
    )
    days: Optional[float] = Field(
        default=None,
        description='Nombre de jours pour les résultats de recherche (uniquement applicable pour "news").',
    )
    max_results: float = Field(
        default=5, description="Nombre maximum de résultats de recherche à retourner."
    )
    include_answer: bool = Field(
        default=True, description="Si une réponse directe doit être incluse dans la réponse."
    )


class CreateDocumentArgs(StrictArguments):
    title: str
    kind: Literal["text", "code", "search"]


class UpdateDocumentArgs(StrictArguments):
    id: str = Field(description="L'ID du document à mettre à jour")
    description: str = Field(description="La description des modifications à apporter")


class RequestSuggestionsArgs(StrictArguments):
    documentId: str = Field(description="L'ID du document pour lequel des suggestions sont demandées")


async def get_weather(context: ToolContext, args: GetWeatherArgs) -> dict[str, Any]:
    """
    Current weather at a location.

    Wraps: weather.fetch_weather against Open-Meteo
    """
    return await fetch_weather(context.http_client, context.weather_url, args.latitude, args.longitude)


async def quick_search(context: ToolContext, args: QuickSearchArgs) -> list[dict[str, Any]]:
    """
    Single web search.

    Wraps: TavilySearchClient.search
    Returns: List of {title, url, content, answer}
    """
    data = await context.search_client.search(
        args.query,
        search_depth=args.search_depth,
        topic=args.topic,
        days=int(args.days) if args.days is not None else None,
        max_results=int(args.max_results),
        include_answer=args.include_answer,
    )
    return [
        {
            "title": result.get("title"),
            "url": result.get("url"),
            "content": result.get("content"),
            "answer": result.get("answer", data.get("answer")),
        }
        for result in data.get("results") or []
    ]


async def create_document(context: ToolContext, args: CreateDocumentArgs) -> dict[str, Any]:
    """Wraps: drafts.create_document"""
    return await drafts.create_document(context, args.title, DocumentKind(args.kind))


async def update_document(context: ToolContext, args: UpdateDocumentArgs) -> dict[str, Any]:
    """Wraps: drafts.update_document"""
    return await drafts.update_document(context, args.id, args.description)


async def request_suggestions(context: ToolContext, args: RequestSuggestionsArgs) -> dict[str, Any]:
    """Wraps: suggestions.request_suggestions"""
    return await suggestions.request_suggestions(context, args.documentId)


# Tool table: name -> (description, argument model, body)
TOOLS = {
    "getWeather": (
        "Obtenir la météo actuelle à un emplacement",
        GetWeatherArgs,
        get_weather,
    ),
    "quickSearch": (
        "Rechercher des informations en utilisant l'API Tavily.",
        QuickSearchArgs,
        quick_search,
    ),
    "createDocument": (
        "Créer un document pour une activité d'écriture.",
        CreateDocumentArgs,
        create_document,
    ),
    "updateDocument": (
        "Mettre à jour un document avec la description donnée",
        UpdateDocumentArgs,
        update_document,
    ),
    "requestSuggestions": (
        "Demander des suggestions pour un document",
        RequestSuggestionsArgs,
        request_suggestions,
    ),
}


def build_chat_registry(context: ToolContext) -> ToolRegistry:
    """Create the tool registry for one turn, bound to that turn's context."""
    tools = []
    for name, (description, parameters, body) in TOOLS.items():

        async def _execute(args: BaseModel, _body=body) -> Any:
            return await _body(context, args)

        tools.append(Tool(name=name, description=description, execute=_execute, parameters=parameters))
    return ToolRegistry(tools, active_tools=ALL_TOOLS)
