"""Tests for the flight phase registry."""

import pytest

from atcvirtual.core.errors import InputValidationError
from atcvirtual.services.atc.flight_phase import (
    AirportRole,
    FlightPhase,
    all_phases,
    find_closest_phase,
    get_phase_info,
    parse_phase,
)
from atcvirtual.services.atc.frequencies import ServiceType
from atcvirtual.services.atc.models import FlightRules


class TestPhaseTable:
    """Tests for the static phase table."""

    def test_seventeen_phases_in_flight_order(self) -> None:
        """Test that the table lists every phase in declaration order."""
        phases = all_phases()
        assert len(phases) == 17
        assert [info.id for info in phases] == list(FlightPhase)

    def test_positions_increase(self) -> None:
        """Test that timeline positions run from 0 to 100."""
        positions = [info.position for info in all_phases()]
        assert positions[0] == 0
        assert positions[-1] == 100
        assert positions == sorted(positions)

    @pytest.mark.parametrize("phase", list(FlightPhase))
    def test_silence_implies_no_communication(self, phase: FlightPhase) -> None:
        """Test that silent phases forbid transmitting and expect no service."""
        info = get_phase_info(phase)
        if info.silence_required:
            assert info.communication_allowed is False
            assert info.expected_services(FlightRules.VFR) == (ServiceType.NONE,)
            assert info.expected_services(FlightRules.IFR) == (ServiceType.NONE,)

    def test_silent_phases(self) -> None:
        """Test which phases demand radio silence."""
        silent = {info.id for info in all_phases() if info.silence_required}
        assert silent == {
            FlightPhase.PARKING_COLD,
            FlightPhase.TAKEOFF_ROLL,
            FlightPhase.LANDING,
            FlightPhase.ROLLOUT,
        }

    def test_takeoff_roll_message(self) -> None:
        """Test the takeoff roll silence message."""
        info = get_phase_info(FlightPhase.TAKEOFF_ROLL)
        assert info.silence_message == "Corrida de decolagem. Silêncio absoluto."

    def test_parking_hot_services_differ_by_rules(self) -> None:
        """Test that IFR adds clearance delivery before ground."""
        info = get_phase_info(FlightPhase.PARKING_HOT)
        assert info.expected_services(FlightRules.VFR) == (ServiceType.ATIS, ServiceType.GND)
        assert info.expected_services(FlightRules.IFR) == (
            ServiceType.ATIS,
            ServiceType.CLR,
            ServiceType.GND,
        )

    def test_cruise_vfr_may_stay_off_frequency(self) -> None:
        """Test that VFR cruise accepts no service but IFR cruise does not."""
        info = get_phase_info(FlightPhase.CRUISE)
        assert info.expects_no_service(FlightRules.VFR)
        assert not info.expects_no_service(FlightRules.IFR)
        assert info.expected_services(FlightRules.IFR) == (ServiceType.CTR,)

    def test_parking_arrived_ends_communications(self) -> None:
        """Test that the last phase is quiet without demanding silence."""
        info = get_phase_info(FlightPhase.PARKING_ARRIVED)
        assert info.communication_allowed is False
        assert info.silence_required is False

    def test_atc_initiates_contact(self) -> None:
        """Test phases where ATC speaks first."""
        initiating = {info.id for info in all_phases() if info.atc_initiates_contact}
        assert initiating == {FlightPhase.INITIAL_CLIMB, FlightPhase.ROLLOUT}

    def test_airport_roles(self) -> None:
        """Test airport reference of representative phases."""
        assert get_phase_info(FlightPhase.TAXI_OUT).airport == AirportRole.DEPARTURE
        assert get_phase_info(FlightPhase.CRUISE).airport == AirportRole.ENROUTE
        assert get_phase_info(FlightPhase.FINAL).airport == AirportRole.ARRIVAL


class TestParsePhase:
    """Tests for parse_phase."""

    def test_known_identifier(self) -> None:
        """Test parsing a wire identifier."""
        assert parse_phase("TAXI_OUT") == FlightPhase.TAXI_OUT

    def test_unknown_identifier_rejected(self) -> None:
        """Test that unknown identifiers raise a validation error."""
        with pytest.raises(InputValidationError) as exc_info:
            parse_phase("BOARDING")
        assert exc_info.value.field == "currentPhase"
        assert exc_info.value.user_message == "Fase do voo inválida"


class TestFindClosestPhase:
    """Tests for find_closest_phase."""

    def test_ends(self) -> None:
        """Test timeline ends."""
        assert find_closest_phase(0) == FlightPhase.PARKING_COLD
        assert find_closest_phase(100) == FlightPhase.PARKING_ARRIVED

    def test_nearest(self) -> None:
        """Test snapping to the nearest phase."""
        assert find_closest_phase(49) == FlightPhase.CRUISE
        assert find_closest_phase(80) == FlightPhase.LANDING

    def test_clamped(self) -> None:
        """Test out-of-range positions are clamped."""
        assert find_closest_phase(-10) == FlightPhase.PARKING_COLD
        assert find_closest_phase(150) == FlightPhase.PARKING_ARRIVED

    def test_tie_goes_to_earlier_phase(self) -> None:
        """Test equidistant positions pick the earlier phase."""
        assert find_closest_phase(3) == FlightPhase.PARKING_COLD
