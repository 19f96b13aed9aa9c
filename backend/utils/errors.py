class ServiceError(Exception):
    """
    Erreur métier remontée par les services (commandes, stock, ventes).
    `code` est stable et lisible par les clients, `detail` est le message affiché.
    """

    code = "service_error"
    default_detail = "Erreur."

    def __init__(self, detail=None, items=None):
        self.detail = detail or self.default_detail
        self.items = items or []
        super().__init__(self.detail)


class NotFoundError(ServiceError):
    code = "not_found"
    default_detail = "Ressource introuvable."


class InvalidArgumentError(ServiceError):
    code = "invalid_argument"
    default_detail = "Paramètre invalide."


class PreconditionFailedError(ServiceError):
    code = "precondition_failed"
    default_detail = "Opération impossible dans l'état actuel."


class ConflictError(ServiceError):
    """Modification concurrente perdue: le client relit puis réessaie."""

    code = "conflict"
    default_detail = "Modifiée entre-temps, rechargez puis réessayez."


class InternalError(ServiceError):
    code = "internal"
    default_detail = "Erreur interne."
