from fastapi import HTTPException


class AppError(HTTPException):
    status_code_default = 500

    def __init__(self, detail: str = "Internal error"):
        super().__init__(status_code=self.status_code_default, detail=detail)


class NotFoundError(AppError):
    status_code_default = 404

    def __init__(self, detail: str = "Not found"):
        super().__init__(detail)


class BadRequestError(AppError):
    status_code_default = 400

    def __init__(self, detail: str = "Bad request"):
        super().__init__(detail)
