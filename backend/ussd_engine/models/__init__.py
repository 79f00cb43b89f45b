from ussd_engine.models.ussd_session import UssdSession

__all__ = ["UssdSession"]
