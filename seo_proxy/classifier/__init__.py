from .bot_classifier import BOT_SIGNATURES, BotClassifier, default_classifier

__all__ = ["BOT_SIGNATURES", "BotClassifier", "default_classifier"]
