class FareError(Exception):
    """Base class for fare engine failures."""

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(FareError):
    """Caller supplied an input the calculator cannot price."""

    def __init__(self, field: str, detail: str):
        super().__init__(f"{field}: {detail}")
        self.field = field
        self.reason = detail


class ConfigurationError(FareError):
    """The tariff configuration is broken (gap, overlap, malformed data)."""
