import pytest

from config import cargar_configuracion
from motor_remuneraciones import (
    CalculadoraRemuneraciones,
    ParametrosRemuneraciones,
    Periodo,
    Trabajador,
)


@pytest.fixture(autouse=True)
def sin_config_externa(monkeypatch):
    monkeypatch.delenv("REMUNERACIONES_CONFIG", raising=False)


@pytest.fixture
def parametros():
    return ParametrosRemuneraciones.desde_config(cargar_configuracion())


@pytest.fixture
def calculadora(parametros):
    return CalculadoraRemuneraciones(parametros)


@pytest.fixture
def trabajador():
    return Trabajador(
        rut="12.345.678-9",
        nombres="Juan Carlos",
        apellidos="González Silva",
        sueldo_base=800000,
        cargo="Desarrollador",
    )


@pytest.fixture
def periodo():
    return Periodo(anio=2025, mes=11)
