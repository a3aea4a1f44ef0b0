"""External service contracts and adapters."""

from hearforyou.services.base import ExternalJobClient, ImmediateJobClient, IntentClassifier, UnconfiguredClassifier
from hearforyou.services.luis import LuisClassifier
from hearforyou.services.speech import SpeechService
from hearforyou.services.translator import TranslationRequest, TranslatorService
from hearforyou.services.vision import ReadApiClient

__all__ = [
    "ExternalJobClient",
    "ImmediateJobClient",
    "IntentClassifier",
    "LuisClassifier",
    "ReadApiClient",
    "SpeechService",
    "TranslationRequest",
    "TranslatorService",
    "UnconfiguredClassifier",
]
