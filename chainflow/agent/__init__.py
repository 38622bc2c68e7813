from .models import EchoModelClient, ModelClient, PydanticAIModelClient, get_model_client

__all__ = [
    "EchoModelClient",
    "ModelClient",
    "PydanticAIModelClient",
    "get_model_client",
]
