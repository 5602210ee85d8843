import json

import pytest

from config import (
    AFP_COMISIONES,
    INDICADORES_ECONOMICOS,
    ErrorConfiguracion,
    cargar_configuracion,
)
from motor_remuneraciones import ParametrosRemuneraciones


def escribir(tmp_path, datos):
    ruta = tmp_path / "empresa.json"
    ruta.write_text(json.dumps(datos), encoding="utf-8")
    return str(ruta)


def test_valores_por_defecto():
    config = cargar_configuracion()
    assert config["INDICADORES_ECONOMICOS"]["IMM"] == 529000
    assert set(config["AFP_COMISIONES"]) == {"CAPITAL", "CUPRUM", "HABITAT", "MODELO", "PLANVITAL", "PROVIDA", "UNO"}
    assert config["TABLA_IMPUESTO_UNICO"][-1][1] is None


def test_override_no_modifica_defaults(tmp_path):
    ruta = escribir(tmp_path, {
        "INDICADORES_ECONOMICOS": {"IMM": 539000},
        "AFP_COMISIONES": {"habitat": {"comision": 1.30}},
    })
    config = cargar_configuracion(ruta)

    assert config["INDICADORES_ECONOMICOS"]["IMM"] == 539000
    assert config["INDICADORES_ECONOMICOS"]["UF"] == INDICADORES_ECONOMICOS["UF"]
    assert config["AFP_COMISIONES"]["HABITAT"] == {"nombre": "AFP Habitat", "comision": 1.30}
    assert INDICADORES_ECONOMICOS["IMM"] == 529000
    assert AFP_COMISIONES["HABITAT"]["comision"] == 1.27


def test_override_recalcula_tope_gratificacion(tmp_path):
    ruta = escribir(tmp_path, {"INDICADORES_ECONOMICOS": {"IMM": 539000}})
    parametros = ParametrosRemuneraciones.desde_config(cargar_configuracion(ruta))
    assert parametros.tope_gratificacion == 213354


def test_ruta_desde_variable_de_entorno(tmp_path, monkeypatch):
    ruta = escribir(tmp_path, {"INDICADORES_ECONOMICOS": {"UTM": 70000.0}})
    monkeypatch.setenv("REMUNERACIONES_CONFIG", ruta)
    assert cargar_configuracion()["INDICADORES_ECONOMICOS"]["UTM"] == 70000.0


def test_tabla_impuesto_reemplazable(tmp_path):
    ruta = escribir(tmp_path, {"TABLA_IMPUESTO_UNICO": [[0, None, 0.1, 0]]})
    assert cargar_configuracion(ruta)["TABLA_IMPUESTO_UNICO"] == [(0, None, 0.1, 0)]


def test_afp_nueva_sin_comision(tmp_path):
    ruta = escribir(tmp_path, {"AFP_COMISIONES": {"NUEVA": {"nombre": "AFP Nueva"}}})
    with pytest.raises(ErrorConfiguracion, match="NUEVA"):
        ParametrosRemuneraciones.desde_config(cargar_configuracion(ruta))


@pytest.mark.parametrize("datos", [
    {"SECCION_RARA": {}},
    {"INDICADORES_ECONOMICOS": {"NO_EXISTE": 1}},
    {"AFP_COMISIONES": [1, 2]},
    [1, 2, 3],
    {"TABLA_IMPUESTO_UNICO": 5},
    {"TABLA_IMPUESTO_UNICO": []},
    {"TABLA_IMPUESTO_UNICO": [[0, None, 0.1]]},
    {"TABLA_IMPUESTO_UNICO": [["cero", None, 0.1, 0]]},
    {"TRAMOS_ASIGNACION_FAMILIAR": [[1, 620251, 22007]]},
    {"TRAMOS_ASIGNACION_FAMILIAR": {"A": 22007}},
    {"AFP_COMISIONES": {"HABITAT": 1.27}},
    {"INSTITUCIONES_SALUD": {"FONASA": [7.0]}},
    {"SEGURO_CESANTIA": {"honorarios": {"trabajador": 0.0, "empleador": 0.0}}},
    {"SEGURO_CESANTIA": {"indefinido": {"trabajador": "0.6%"}}},
    {"SEGURO_CESANTIA": {"indefinido": {"aporte": 0.01}}},
    {"INDICADORES_ECONOMICOS": {"IMM": "529000"}},
])
def test_configuracion_invalida(tmp_path, datos):
    with pytest.raises(ErrorConfiguracion):
        cargar_configuracion(escribir(tmp_path, datos))


def test_archivo_inexistente(tmp_path):
    with pytest.raises(ErrorConfiguracion):
        cargar_configuracion(str(tmp_path / "no_existe.json"))


def test_override_seguro_cesantia(tmp_path):
    ruta = escribir(tmp_path, {"SEGURO_CESANTIA": {"indefinido": {"empleador": 0.03}}})
    assert cargar_configuracion(ruta)["SEGURO_CESANTIA"]["indefinido"] == {"trabajador": 0.006, "empleador": 0.03}


def test_comision_no_numerica(tmp_path):
    ruta = escribir(tmp_path, {"AFP_COMISIONES": {"HABITAT": {"comision": "1.27"}}})
    with pytest.raises(ErrorConfiguracion, match="HABITAT"):
        ParametrosRemuneraciones.desde_config(cargar_configuracion(ruta))
