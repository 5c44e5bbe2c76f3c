"""Tests for reference number generation."""
import re
from datetime import datetime, timezone as dt_timezone

from django.test import SimpleTestCase

from bookings.exceptions import RequestValidationError
from bookings.models import ServiceType
from bookings.references import generate_reference_number

FIXED_NOW = datetime(2024, 3, 9, 14, 5, 7, 123456, tzinfo=dt_timezone.utc)


class ReferenceNumberTest(SimpleTestCase):

    def test_hotel_quote_prefix(self):
        ref = generate_reference_number('Q', ServiceType.HOTEL, now=FIXED_NOW)
        self.assertTrue(ref.startswith('QHT240309140507123'), ref)

    def test_booking_has_no_kind_prefix(self):
        ref = generate_reference_number('', ServiceType.COMPLETE_PACKAGE, now=FIXED_NOW)
        self.assertTrue(ref.startswith('CP2403'), ref)

    def test_shape_and_length(self):
        for service in ServiceType.values:
            ref = generate_reference_number('Q', service)
            self.assertRegex(ref, r'^Q[A-Z]{2}\d{27}$')
            self.assertLessEqual(len(ref), 50)

    def test_unique_within_the_same_millisecond(self):
        refs = {
            generate_reference_number('', ServiceType.FLIGHT, now=FIXED_NOW)
            for _ in range(10_000)
        }
        self.assertEqual(len(refs), 10_000)

    def test_unknown_service_rejected(self):
        with self.assertRaises(RequestValidationError):
            generate_reference_number('', 'CRUISE', now=FIXED_NOW)

    def test_timestamp_sorts_by_creation_time(self):
        earlier = generate_reference_number('', ServiceType.TOUR, now=FIXED_NOW)
        later = generate_reference_number(
            '', ServiceType.TOUR, now=FIXED_NOW.replace(second=8),
        )
        stamp = re.compile(r'^TR(\d{15})')
        self.assertLess(stamp.match(earlier).group(1), stamp.match(later).group(1))
