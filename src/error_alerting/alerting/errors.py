"""Failure taxonomy for alert evaluation and dispatch."""


class AlertEngineError(Exception):
    pass


class StoreUnavailable(AlertEngineError):
    """Rule or event store I/O failed; state is unchanged and the event may be retried."""


class InvalidRule(AlertEngineError):
    """Rule configuration cannot be evaluated (threshold, window, types or channels)."""


class NotificationWriteFailed(AlertEngineError):
    pass


class EmailDeliveryFailed(AlertEngineError):
    pass
