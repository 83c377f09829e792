"""
Eccezioni Custom per l'applicazione.
Progetto: Logistics Back-Office (Fatturazione Consolidata)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business (gestiti dal nostro handler → 422)

Gli errori del flusso di emissione sono sempre rilanciati al chiamante:
nessun retry automatico, nessun errore silenziato.
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "ConflictError",
    "ServiceUnavailableError",
    "PromotionFailure",
    "SubmissionFailure",
    "InconsistentMapping",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'operatore
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """Eccezione sollevata quando una risorsa non viene trovata."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Sollevata PRIMA di qualsiasi chiamata di rete. Esempi:
        - "Selezionare almeno una voce di addebito"
        - "Tasso di cambio mancante o pari a zero"
        - "La voce X non è in stato unbilled"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando un tentativo di emissione è già stato completato
    e si prova a reinviarlo.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflitto di stato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class ServiceUnavailableError(AppException):
    """
    Il servizio remoto non è raggiungibile (timeout, connessione rifiutata,
    risposta non JSON).

    Sollevata dal client HTTP; il motore la incapsula sempre in
    PromotionFailure o SubmissionFailure a seconda della fase.
    """

    status_code: int = 503
    error_code: str = "SERVICE_UNAVAILABLE"

    def __init__(
        self,
        detail: str = "Servizio remoto non raggiungibile",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class PromotionFailure(AppException):
    """
    La chiamata batch di persistenza delle voci virtuali è fallita
    o ha restituito dati non validi.

    Il tentativo viene interrotto: nessuna fattura creata,
    nessuna voce cambia stato, la bozza resta disponibile.
    """

    status_code: int = 502
    error_code: str = "PROMOTION_FAILED"

    def __init__(
        self,
        detail: str = "Impossibile finalizzare le voci di addebito virtuali",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class SubmissionFailure(AppException):
    """
    La chiamata di creazione fattura è fallita o ha restituito success=false.

    Se avviene dopo una promozione riuscita, le voci promosse restano
    'unbilled' e tornano selezionabili al successivo caricamento.
    """

    status_code: int = 502
    error_code: str = "SUBMISSION_FAILED"

    def __init__(
        self,
        detail: str = "Impossibile creare la fattura",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class InconsistentMapping(AppException):
    """
    Una voce virtuale non trova corrispondenza tra i record persistiti
    dopo una promozione nominalmente riuscita.

    Non viene mai propagato l'id virtuale: il collegamento source_id
    della riga fattura sarebbe corrotto.
    """

    status_code: int = 409
    error_code: str = "INCONSISTENT_MAPPING"

    def __init__(
        self,
        detail: str = "Mappatura delle voci promosse incoerente",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)
