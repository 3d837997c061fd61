from __future__ import annotations


class BankrollError(Exception):
    """Base class for errors raised by the ticket and messaging services.

    ``user_message`` is safe to show in the chat; ``str(exc)`` may carry
    internal detail and is only meant for logs.
    """

    user_message = "❌ Ocorreu um erro inesperado. Tente novamente."

    def __init__(self, detail: str | None = None, *, user_message: str | None = None) -> None:
        super().__init__(detail or self.__class__.__doc__ or self.__class__.__name__)
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(BankrollError):
    """A required secret or token is missing."""


class AuthorizationError(BankrollError):
    """Secret mismatch or ownership mismatch."""

    user_message = "❌ Você não tem permissão para esta ação."


class ValidationError(BankrollError):
    """Malformed command parameters."""

    user_message = "❌ Parâmetro inválido."


class NotFound(BankrollError):
    """Unknown account or bet."""

    user_message = "❌ Registro não encontrado."


class AccountNotFound(NotFound):
    """No account matches the supplied id."""

    user_message = "❌ Conta não encontrada. Verifique se o ID está correto."


class BetNotFound(NotFound):
    """The bet does not exist or belongs to someone else."""

    user_message = "Aposta não encontrada ou você não tem permissão para alterá-la."


class NoBindingFound(NotFound):
    """The chat identity is not linked to any account."""

    user_message = "❌ Nenhuma conta está vinculada a este Telegram."


class LinkConflict(BankrollError):
    """Linking would break the one-account-per-chat rule."""


class ChatAlreadyLinked(LinkConflict):
    """The chat id is already bound to a different account."""

    user_message = (
        "❌ Este Telegram já está vinculado a outra conta. "
        "Desvincule primeiro usando /desvincular ou no perfil do sistema."
    )


class AccountAlreadyLinked(LinkConflict):
    """The account is already bound to a different chat id."""

    user_message = (
        "❌ Esta conta já está vinculada a outro Telegram. "
        "Desvincule primeiro no perfil do sistema."
    )


class AcquisitionError(BankrollError):
    """The ticket image could not be fetched from the chat platform."""

    user_message = "❌ Não foi possível baixar a imagem do bilhete. Tente reenviar."


class FileResolutionFailed(AcquisitionError):
    """The platform did not resolve the file reference to a path."""


class DownloadFailed(AcquisitionError):
    """The file path resolved but the bytes could not be downloaded."""


class TicketExtractionError(BankrollError):
    """No usable ticket data could be extracted."""

    user_message = (
        "❌ Não conseguimos interpretar este bilhete no momento. Verifique se o bot "
        "está com a IA configurada e tente reenviar em alguns minutos."
    )


class UpstreamFailure(TicketExtractionError):
    """The recognition service answered with an error or an unexpected body."""


class UpstreamTimeout(UpstreamFailure):
    """The recognition service did not answer in time."""


class NoProviderConfigured(TicketExtractionError):
    """No recognition strategy is configured."""


class NoProviderSucceeded(TicketExtractionError):
    """Every configured recognition strategy failed."""
