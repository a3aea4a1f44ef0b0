"""HearForYou: a conversational router for translation, speech and OCR tasks."""

__version__ = "0.1.0"
