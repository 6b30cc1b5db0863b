"""
Model and helper tests
Pet age and microchips, invoice arithmetic, booking rules
"""

import pytest
from datetime import date, timedelta
from pydantic import ValidationError


class TestPetHelpers:
    """Tests for pet age and microchip helpers"""

    def test_age_whole_years_and_months(self):
        from app.utils.pet_utils import calculate_age

        assert calculate_age(date(2020, 3, 15), on=date(2023, 5, 20)) == {"years": 3, "months": 2}

    def test_age_counts_month_only_after_day_reached(self):
        from app.utils.pet_utils import calculate_age

        assert calculate_age(date(2022, 1, 31), on=date(2022, 3, 30)) == {"years": 0, "months": 1}

    def test_age_leap_day_birthday(self):
        from app.utils.pet_utils import calculate_age

        assert calculate_age(date(2020, 2, 29), on=date(2021, 2, 28)) == {"years": 1, "months": 0}
        assert calculate_age(date(2020, 2, 29), on=date(2021, 2, 27)) == {"years": 0, "months": 11}

    def test_age_unknown_without_birth_date(self):
        from app.utils.pet_utils import calculate_age, format_age

        assert calculate_age(None) is None
        assert format_age(None) == "Unknown"

    def test_format_age(self):
        from app.utils.pet_utils import format_age

        assert format_age({"years": 1, "months": 0}) == "1 year"
        assert format_age({"years": 2, "months": 3}) == "2 years 3 months"
        assert format_age({"years": 0, "months": 0}) == "0 months"

    @pytest.mark.parametrize("chip", ["985112345678901", "1234567890", "ABC123DEF45", "985-112-345-678-901"])
    def test_valid_microchips(self, chip):
        from app.utils.pet_utils import is_valid_microchip

        assert is_valid_microchip(chip)

    @pytest.mark.parametrize("chip", ["12345", "98511234567890123", "ABC!23DEF45"])
    def test_invalid_microchips(self, chip):
        from app.utils.pet_utils import is_valid_microchip

        assert not is_valid_microchip(chip)

    def test_pet_create_normalizes_microchip(self):
        from app.models.pet import PetCreate

        pet = PetCreate(name="Bruno", species="dog", microchip_id="985 112 345 678 901")
        assert pet.microchip_id == "985112345678901"

    def test_pet_create_rejects_bad_microchip(self):
        from app.models.pet import PetCreate

        with pytest.raises(ValidationError):
            PetCreate(name="Bruno", species="dog", microchip_id="12-34")

    def test_birth_date_cannot_be_in_future(self):
        from app.models.pet import PetCreate

        with pytest.raises(ValidationError):
            PetCreate(name="Bruno", species="dog", date_of_birth=date.today() + timedelta(days=1))

    def test_pet_age_in_months(self, sample_pet):
        sample_pet.date_of_birth = date(2020, 1, 10)
        assert sample_pet.age_in_months(date(2021, 1, 10)) == 12
        assert sample_pet.age_in_months(date(2021, 1, 9)) == 11


class TestInvoiceTotals:
    """Tests for invoice arithmetic"""

    def test_simple_total_with_tax(self):
        from app.models.invoice import InvoiceItem, calculate_totals

        totals = calculate_totals(
            [InvoiceItem(description="Full Groom", quantity=1, unit_price=1000)],
            tax_rate=18
        )
        assert totals.subtotal == 1000
        assert totals.tax_amount == 180
        assert totals.total == 1180

    def test_untaxed_items_are_not_taxed(self):
        from app.models.invoice import InvoiceItem, calculate_totals

        totals = calculate_totals(
            [
                InvoiceItem(description="Bath", unit_price=500),
                InvoiceItem(description="Shampoo", quantity=2, unit_price=250, taxable=False),
            ],
            tax_rate=10
        )
        assert totals.subtotal == 1000
        assert totals.tax_amount == 50
        assert totals.total == 1050

    def test_percentage_discount_and_tip(self):
        from app.models.invoice import Discount, DiscountType, InvoiceItem, calculate_totals

        totals = calculate_totals(
            [InvoiceItem(description="Checkup", unit_price=200)],
            tax_rate=10,
            discount=Discount(type=DiscountType.PERCENTAGE, amount=25),
            tip=15
        )
        assert totals.discount_amount == 50
        assert totals.tax_amount == 15
        assert totals.total == 180

    def test_fixed_discount_capped_at_subtotal(self):
        from app.models.invoice import Discount, InvoiceItem, calculate_totals

        totals = calculate_totals(
            [InvoiceItem(description="Nail Trim", unit_price=300)],
            discount=Discount(amount=500)
        )
        assert totals.discount_amount == 300
        assert totals.total == 0

    def test_payment_status_rollup(self):
        from app.models.invoice import InvoiceStatus
        from app.services.invoice_service import rollup_status

        assert rollup_status(1000, 0) == InvoiceStatus.SENT
        assert rollup_status(1000, 400) == InvoiceStatus.PARTIAL
        assert rollup_status(1000, 1000) == InvoiceStatus.PAID
        assert rollup_status(1000, 1200) == InvoiceStatus.PAID

    def test_invoice_number_format(self):
        from app.services.invoice_service import format_invoice_number

        assert format_invoice_number(date(2024, 7, 1), 42) == "INV-20240701-0042"


class TestStatusTransitions:
    """Tests for the appointment lifecycle table"""

    def test_actions_from_scheduled(self):
        from app.models.appointment import AppointmentStatus, StatusAction, available_actions

        assert available_actions(AppointmentStatus.SCHEDULED) == [
            StatusAction.CHECKIN, StatusAction.START, StatusAction.CANCEL, StatusAction.NO_SHOW
        ]

    def test_actions_from_in_progress(self):
        from app.models.appointment import AppointmentStatus, StatusAction, available_actions

        assert available_actions(AppointmentStatus.IN_PROGRESS) == [StatusAction.COMPLETE]

    @pytest.mark.parametrize("status", ["completed", "cancelled", "no_show"])
    def test_terminal_statuses_have_no_actions(self, status):
        from app.models.appointment import AppointmentStatus, available_actions

        assert available_actions(AppointmentStatus(status)) == []

    def test_cannot_complete_before_start(self):
        from app.models.appointment import AppointmentStatus, StatusAction, can_transition

        assert not can_transition(AppointmentStatus.SCHEDULED, StatusAction.COMPLETE)
        assert can_transition(AppointmentStatus.CONFIRMED, StatusAction.START)


class TestBookingHelpers:
    """Tests for time arithmetic and eligibility rules"""

    def test_time_arithmetic(self):
        from app.models.appointment import add_minutes, time_to_minutes

        assert time_to_minutes("09:30") == 570
        assert add_minutes("09:30", 75) == "10:45"

    def test_overlap_is_half_open(self):
        from app.models.appointment import times_overlap

        assert times_overlap("10:00", "11:00", "10:30", "11:30")
        assert not times_overlap("10:00", "11:00", "11:00", "12:00")

    def test_species_and_vaccine_requirements(self, sample_service, sample_pet):
        from app.models.pet import Species
        from app.models.service import ServiceRequirements
        from app.services.appointment_service import check_service_requirements

        sample_service.requirements = ServiceRequirements(
            species=[Species.CAT],
            vaccination_required=True,
            required_vaccines=["Rabies", "DHPP"]
        )
        reasons = check_service_requirements(sample_service, sample_pet, date.today())

        assert len(reasons) == 2
        assert "only available for: cat" in reasons[0]
        assert "DHPP" in reasons[1]

    def test_eligible_pet_has_no_reasons(self, sample_service, sample_pet):
        from app.services.appointment_service import check_service_requirements

        assert check_service_requirements(sample_service, sample_pet, date.today()) == []

    def test_age_range_must_be_ordered(self):
        from app.models.service import ServiceRequirements

        with pytest.raises(ValidationError):
            ServiceRequirements(min_age_months=12, max_age_months=6)
