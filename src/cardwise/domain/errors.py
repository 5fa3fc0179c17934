"""Domain errors raised by the application services."""


class SetNotFoundError(LookupError):
    def __init__(self, set_name: str):
        super().__init__(f"Card set not found: {set_name}")
        self.set_name = set_name


class CardNotFoundError(LookupError):
    def __init__(self, set_name: str, card_id: str):
        super().__init__(f"Card {card_id} not found in set {set_name}")
        self.set_name = set_name
        self.card_id = card_id


class SchedulerDisabledError(RuntimeError):
    """Raised when a scheduled review is requested while the scheduler is off."""
