from __future__ import annotations

from database.models import Technician, UserRole
from services.session_gate import SessionGate

ROLE_CODES = {"1111": "Admin", "2222": "Controller", "3333": "Coordinator"}

TECHNICIANS = [
    Technician(id="tech1", name="Anil Kumar", pin="1234"),
    Technician(id="tech1700000004321", name="Ravi", pin=None),
]


def test_admin_code() -> None:
    attempt = SessionGate(ROLE_CODES).attempt("1111", TECHNICIANS)
    assert attempt.ok
    assert attempt.user.role is UserRole.ADMIN
    assert attempt.user.id == "admin01"


def test_controller_and_coordinator_codes() -> None:
    gate = SessionGate(ROLE_CODES)
    assert gate.attempt("2222", TECHNICIANS).user.role is UserRole.CONTROLLER
    assert gate.attempt("3333", TECHNICIANS).user.role is UserRole.COORDINATOR


def test_technician_by_id_suffix() -> None:
    attempt = SessionGate(ROLE_CODES).attempt("4321", TECHNICIANS)
    assert attempt.ok
    assert attempt.user.id == "tech1700000004321"
    assert attempt.user.role is UserRole.TECHNICIAN


def test_technician_by_pin() -> None:
    attempt = SessionGate(ROLE_CODES).attempt("1234", TECHNICIANS)
    assert attempt.user.id == "tech1"
    assert attempt.user.name == "Anil Kumar"


def test_unknown_code_clears_input() -> None:
    attempt = SessionGate(ROLE_CODES).attempt("9999", TECHNICIANS)
    assert not attempt.ok
    assert attempt.error == "Invalid code. Please try again."
    assert attempt.code == ""


def test_malformed_code() -> None:
    gate = SessionGate(ROLE_CODES)
    for code in ("", "12", "abcd", "12345"):
        attempt = gate.attempt(code, TECHNICIANS)
        assert not attempt.ok
        assert attempt.code == ""


def test_non_ascii_digits_are_malformed() -> None:
    gate = SessionGate(ROLE_CODES)
    for code in ("١٢٣٤", "１２３４"):
        attempt = gate.attempt(code, TECHNICIANS)
        assert not attempt.ok
        assert attempt.error == "Enter your 4-digit code."
