class AppError(Exception):
    def __init__(self, message: str, status_code: int):
        """
        Custom exception class for application errors.

        Args:
            message (str): The error message.
            status_code (int): The HTTP status code associated with the error.
        """
        super().__init__(message)

        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.is_operational = True


# ----------------------------
# Verification errors
# ----------------------------
class MissingField(AppError):
    def __init__(self, field: str, label: str = None):
        super().__init__(f"Please provide {label or field}", 400)
        self.field = field


class VerificationMismatch(AppError):
    # Never name the field that failed
    def __init__(self):
        super().__init__("The information provided doesn't match our records.", 400)


# ----------------------------
# Claim lifecycle errors
# ----------------------------
class ItemNotClaimable(AppError):
    def __init__(self, message: str = "This item is no longer available to claim."):
        super().__init__(message, 409)


class ClaimNotFound(AppError):
    def __init__(self, claim_id=None):
        super().__init__("Claim not found", 404)
        self.claim_id = claim_id


class ClaimNotOpen(AppError):
    def __init__(self, status: str):
        super().__init__(f"Claim is already {status}", 409)
        self.claim_status = status


# ----------------------------
# Tip payment errors
# ----------------------------
class InvalidTipRequest(AppError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class TipNotApplicable(AppError):
    def __init__(self, message: str = "The finder did not leave a number for tips."):
        super().__init__(message, 409)


class PaymentInitiationFailed(AppError):
    def __init__(self, description: str):
        super().__init__(description or "Payment failed", 502)
        self.description = description
