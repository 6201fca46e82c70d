from quicktap.models.booking import Booking

__all__ = ["Booking"]
