class CatequesisError(Exception):
    """Base de los errores de los servicios remotos (correo, informes IA)."""


class TooManyRecipientsError(CatequesisError, ValueError):
    def __init__(self, got: int, maximum: int):
        super().__init__(f"too_many_recipients: {got} > {maximum}")
        self.got = got
        self.maximum = maximum


class NotificationError(CatequesisError):
    pass


class ReportGenerationError(CatequesisError):
    pass


class ReportPermissionError(CatequesisError):
    pass
