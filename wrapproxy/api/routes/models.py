"""Models listing endpoint - OpenAI compatible."""

import logging
import time

from fastapi import Request

logger = logging.getLogger("wrapproxy")


async def list_models(request: Request) -> dict:
    """List available models in OpenAI API format.

    GET /v1/models

    Returns:
        A dictionary containing the list of available models.
    """
    logger.info("Received models list request")

    settings = request.app.state.settings
    created = int(time.time())
    models = []
    for model_name in settings.models:
        models.append({
            "id": model_name,
            "object": "model",
            "created": created,
            "owned_by": settings.variant.owned_by,
        })

    return {
        "object": "list",
        "data": models
    }
