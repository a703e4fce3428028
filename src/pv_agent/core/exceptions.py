"""
Error taxonomy for the adverse event pipeline.

- ParseError: input bytes, Base64 or MIME could not be decoded
- ModelCallError: the language model call failed (transport, timeout, auth, quota)
- ExtractionParseError: the model answered, but not with usable JSON
- ValidationError: required fields are missing
- NotFoundError: a referenced case, patient or drug does not exist
"""


class PharmacovigilanceError(Exception):
    """Base class for all pipeline errors."""


class ParseError(PharmacovigilanceError):
    pass


class ModelCallError(PharmacovigilanceError):
    pass


class ExtractionParseError(PharmacovigilanceError):
    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class ValidationError(PharmacovigilanceError):
    pass


class NotFoundError(PharmacovigilanceError):
    pass
