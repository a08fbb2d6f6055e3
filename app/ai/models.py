"""Models a client may select for a turn."""
from typing import Optional

from pydantic import BaseModel


class ChatModel(BaseModel):
    id: str
    label: str
    api_identifier: str
    description: str


MODELS: list[ChatModel] = [
    ChatModel(
        id="gpt-4o-mini",
        label="GPT 4o mini",
        api_identifier="gpt-4o-mini",
        description="Petit modèle pour les tâches rapides et légères",
    ),
    ChatModel(
        id="gpt-4o",
        label="GPT 4o",
        api_identifier="gpt-4o",
        description="Pour les tâches complexes en plusieurs étapes",
    ),
]


def find_model(model_id: Optional[str]) -> Optional[ChatModel]:
    """Return the known model with this id, or None."""
    for model in MODELS:
        if model.id == model_id:
            return model
    return None
