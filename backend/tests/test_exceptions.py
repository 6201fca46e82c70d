"""
Tests for domain error rendering.
"""

import warnings

from quicktap.core.exceptions import InvalidSeatNumber


def test_invalid_seat_number_is_422_without_deprecation_warning():
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        error = InvalidSeatNumber("Seats [0] are outside 1..100")
    assert error.status_code == 422
    assert error.detail == "Seats [0] are outside 1..100"
