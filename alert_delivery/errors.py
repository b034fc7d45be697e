"""Exceptions raised by the delivery and reminder engine."""


class AlertingError(Exception):
    """Base class for all alerting errors."""


class UnknownChannel(AlertingError, LookupError):
    """No deliverer is registered for a delivery type."""

    def __init__(self, delivery_type: str):
        self.delivery_type = delivery_type
        super().__init__(f"No notification channel registered for type: {delivery_type}")


class ChannelDeliveryFailure(AlertingError):
    """A channel could not hand an alert off to its transport."""

    def __init__(self, delivery_type: str, user_id: str, reason: str = ""):
        self.delivery_type = delivery_type
        self.user_id = user_id
        self.reason = reason
        message = f"{delivery_type} delivery to user {user_id} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NotFound(AlertingError, LookupError):
    """A referenced alert, team, user or preference does not exist."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found: {entity_id}")
