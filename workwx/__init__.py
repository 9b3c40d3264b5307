"""WeCom callback message parsing, token refreshing, member records and group robot webhooks."""

__version__ = "0.1.0"
__all__ = ["rx_types", "rx_message", "user_info", "token", "webhook"]