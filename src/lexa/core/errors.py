"""Error taxonomy for the research controller.

Every error that can end a conversation turn derives from LexaError and
carries the text shown to the user in the chat.
"""

from typing import Optional


CONNECTIVITY_HINT = (
    "No se pudo conectar con el servicio de LeyChile. "
    "Revisa tu conexión de red o posibles bloqueos de CORS."
)


class LexaError(Exception):
    """Base class for errors surfaced to the user."""

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class BackendError(LexaError):
    """Transport failure or non-2xx reply from the search/full-text backend."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        network: bool = False,
    ):
        super().__init__(message, CONNECTIVITY_HINT if network else message)
        self.status = status
        self.network = network


class MalformedResponseError(LexaError):
    """Backend replied, but the payload is not a recognizable listing."""


class PlanningError(LexaError):
    """The planning oracle failed or returned an invalid plan."""

    def __init__(self, message: str):
        super().__init__(message, "La IA no pudo decidir el siguiente paso.")


class SnippetExtractionError(LexaError):
    """Snippet oracle failure. Never leaves extract_snippets."""


class LoopBudgetExceeded(LexaError):
    """Search rounds exhausted without reaching an answer."""

    def __init__(self, rounds: int):
        super().__init__(
            f"Search loop budget exhausted after {rounds} rounds",
            "No pude encontrar una respuesta satisfactoria después de múltiples búsquedas.",
        )
        self.rounds = rounds
