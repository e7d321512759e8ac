class OfferError(Exception):
    """Fallo de negocio del motor de ofertas; el mensaje es texto para mostrar."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OfferNotFound(OfferError):
    status_code = 404

    def __init__(self, message: str = "Offer not found"):
        super().__init__(message)


class InvalidOfferType(OfferError):
    status_code = 422

    def __init__(self, message: str = "Invalid offer type"):
        super().__init__(message)


class NotEnoughEntries(OfferError):
    status_code = 409

    def __init__(self, found: int, required: int):
        super().__init__(
            "Not enough unique customers for winner selection. "
            f"Found {found}, need at least {required}."
        )
        self.found = found
        self.required = required


class OfferAlreadyCompleted(OfferError):
    status_code = 409

    def __init__(self, message: str = "Offer already completed; winners were already drawn"):
        super().__init__(message)
