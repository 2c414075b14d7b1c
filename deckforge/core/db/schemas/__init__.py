# Importing the models registers them on Base.metadata for create_all
from .auth import User  # noqa: F401
from .decks import Deck, DeckCard  # noqa: F401
