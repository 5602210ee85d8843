import io
from dataclasses import replace

import pandas as pd
import pytest

from config import COLUMNAS_PLANTILLA
from libro_remuneraciones import (
    exportar_libro_excel,
    generar_archivo_previred,
    generar_centralizacion,
    generar_libro,
    generar_liquidacion_pdf,
    generar_plantilla,
    leer_planilla_trabajadores,
    procesar_planilla,
)
from motor_remuneraciones import DescuentosAdicionales, ErrorValidacion, HaberesAdicionales


@pytest.fixture
def liquidaciones(calculadora, trabajador, periodo):
    maria = replace(trabajador, rut="87.654.321-0", nombres="María Elena", apellidos="Martínez",
                    sueldo_base=650000, cargas_familiares=1, codigo_afp="MODELO")
    return [
        calculadora.calcular_liquidacion(trabajador, periodo, HaberesAdicionales(colacion=20000, movilizacion=30000)),
        calculadora.calcular_liquidacion(maria, periodo, descuentos=DescuentosAdicionales(anticipos=50000)),
    ]


def planilla_excel(filas):
    buffer = io.BytesIO()
    pd.DataFrame(filas).to_excel(buffer, index=False)
    buffer.seek(0)
    return buffer


class TestLibro:

    def test_filas_y_total(self, liquidaciones):
        libro = generar_libro(liquidaciones)

        assert len(libro) == 3
        assert list(libro["Nombre"][:2]) == ["Juan Carlos González Silva", "María Elena Martínez"]
        total = libro.iloc[-1]
        assert total["RUT"] == "TOTAL"
        assert total["Líquido a Pagar"] == sum(r.liquido for r in liquidaciones)
        assert total["Total Haberes"] == sum(r.total_haberes for r in liquidaciones)
        assert total["Total Descuentos"] + total["Líquido a Pagar"] == total["Total Haberes"]

    def test_libro_vacio(self):
        libro = generar_libro([])
        assert libro.empty
        assert "Líquido a Pagar" in libro.columns

    def test_exportar_excel(self, liquidaciones, periodo):
        datos = exportar_libro_excel(generar_libro(liquidaciones), periodo, {"nombre": "Mi Empresa SpA", "rut": "76.111.111-1"})

        assert datos[:2] == b"PK"
        leido = pd.read_excel(io.BytesIO(datos), skiprows=3)
        assert list(leido["RUT"]) == ["12.345.678-9", "87.654.321-0", "TOTAL"]
        assert leido["Líquido a Pagar"].iloc[0] == liquidaciones[0].liquido

        titulo = pd.read_excel(io.BytesIO(datos), header=None, nrows=1).iloc[0, 0]
        assert titulo == "LIBRO DE REMUNERACIONES - NOVIEMBRE 2025"


class TestCentralizacion:

    def test_asiento_cuadrado(self, liquidaciones, periodo):
        asiento = generar_centralizacion(liquidaciones, periodo)

        debe = sum(l["debe"] for l in asiento)
        haber = sum(l["haber"] for l in asiento)
        assert debe == haber == sum(r.total_haberes for r in liquidaciones)

        por_cuenta = {l["cuenta"]: l for l in asiento}
        assert por_cuenta["2.1.10 Remuneraciones por Pagar"]["haber"] == sum(r.liquido for r in liquidaciones)
        assert por_cuenta["2.1.05 AFP por Pagar"]["haber"] == sum(r.afp_total for r in liquidaciones)
        assert por_cuenta["2.1.09 Descuentos Varios por Pagar"]["haber"] == 50000

    def test_omite_lineas_en_cero(self, calculadora, trabajador, periodo):
        asiento = generar_centralizacion([calculadora.calcular_liquidacion(trabajador, periodo)], periodo)
        cuentas = [l["cuenta"] for l in asiento]
        assert "2.1.08 Impuesto Único por Pagar" not in cuentas
        assert "6.1.02 Asignaciones No Imponibles" not in cuentas

    def test_sin_liquidaciones(self, periodo):
        with pytest.raises(ErrorValidacion):
            generar_centralizacion([], periodo)


def test_liquidacion_pdf(calculadora, trabajador, periodo):
    res = calculadora.calcular_liquidacion(
        replace(trabajador, codigo_salud="CONSALUD", plan_isapre_uf=3.5), periodo,
        HaberesAdicionales(bonos=50000, colacion=25000),
    )
    pdf = generar_liquidacion_pdf(res, {"nombre": "Mi Empresa SpA", "rut": "76.111.111-1"})
    assert isinstance(pdf, bytes)
    assert pdf.startswith(b"%PDF")


class TestPlanilla:

    def test_plantilla_vacia(self):
        plantilla = pd.read_excel(io.BytesIO(generar_plantilla()))
        assert list(plantilla.columns) == COLUMNAS_PLANTILLA
        assert plantilla.empty

    def test_lee_trabajadores_y_omite_bajo_minimo(self):
        archivo = planilla_excel([
            {"RUT": "11.111.111-1", "NOMBRES": "Ana", "APELLIDOS": "Rojas", "SUELDO_BASE": 900000,
             "AFP": "uno", "SALUD": "fonasa", "DIAS_TRABAJADOS": 20, "COLACION": 15000},
            {"RUT": "22.222.222-2", "NOMBRES": "Luis", "APELLIDOS": "Soto", "SUELDO_BASE": 300000},
        ])
        filas, log = leer_planilla_trabajadores(archivo, 2025, 11, 529000)

        assert len(filas) == 1
        trabajador, periodo, haberes = filas[0]
        assert trabajador.codigo_afp == "UNO"
        assert trabajador.tipo_contrato == "indefinido"
        assert periodo.dias_trabajados == 20
        assert haberes.colacion == 15000
        assert log[0].startswith("✅ Ana Rojas")
        assert "Omitido" in log[1]

    def test_columnas_obligatorias(self):
        with pytest.raises(ErrorValidacion, match="SUELDO_BASE"):
            leer_planilla_trabajadores(planilla_excel([{"RUT": "1-9"}]), 2025, 11, 529000)

    def test_procesar_planilla(self, calculadora):
        archivo = planilla_excel([
            {"RUT": "11.111.111-1", "NOMBRES": "Ana", "SUELDO_BASE": 900000, "AFP": "HABITAT"},
            {"RUT": "33.333.333-3", "NOMBRES": "Pedro", "SUELDO_BASE": 700000, "AFP": "NO_EXISTE"},
        ])
        liquidaciones, log = procesar_planilla(archivo, calculadora, 2025, 11)

        assert [r.trabajador.rut for r in liquidaciones] == ["11.111.111-1"]
        assert any("AFP desconocida" in linea for linea in log)

    def test_fila_invalida_no_detiene_la_carga(self):
        archivo = planilla_excel([
            {"RUT": "11.111.111-1", "NOMBRES": "Ana", "SUELDO_BASE": 900000, "CARGAS": 1, "TIPO_CONTRATO": "indefinido"},
            {"RUT": "22.222.222-2", "NOMBRES": "Luis", "SUELDO_BASE": "novecientos mil", "CARGAS": 0, "TIPO_CONTRATO": "indefinido"},
            {"RUT": "33.333.333-3", "NOMBRES": "Pedro", "SUELDO_BASE": 700000, "CARGAS": "dos", "TIPO_CONTRATO": "indefinido"},
            {"RUT": "44.444.444-4", "NOMBRES": "Rosa", "SUELDO_BASE": 700000, "CARGAS": 0, "TIPO_CONTRATO": "honorarios"},
        ])
        filas, log = leer_planilla_trabajadores(archivo, 2025, 11, 529000)

        assert [t.rut for t, _, _ in filas] == ["11.111.111-1"]
        assert log[0] == "✅ Ana: Cargado"
        assert all("Omitido (datos inválidos" in linea for linea in log[1:])
        assert len(log) == 4

    def test_procesar_planilla_con_fila_invalida(self, calculadora):
        archivo = planilla_excel([
            {"RUT": "11.111.111-1", "NOMBRES": "Ana", "SUELDO_BASE": 900000, "DIAS_TRABAJADOS": 30},
            {"RUT": "22.222.222-2", "NOMBRES": "Luis", "SUELDO_BASE": 800000, "DIAS_TRABAJADOS": "veinte"},
        ])
        liquidaciones, log = procesar_planilla(archivo, calculadora, 2025, 11)

        assert [r.trabajador.rut for r in liquidaciones] == ["11.111.111-1"]
        assert log[1].startswith("❌ Luis")


class TestArchivoPrevired:

    def test_una_linea_por_trabajador(self, liquidaciones, periodo):
        lineas = generar_archivo_previred(liquidaciones, periodo).split("\n")

        assert lineas[0] == "12345678;9;González;Silva;Juan Carlos;112025;30;32;800000;90160;15040;FONASA;56000;4800;19200;0"
        campos = lineas[1].split(";")
        assert campos[:8] == ["87654321", "0", "Martínez", "", "María Elena", "112025", "30", "34"]
        assert len(campos) == 16

    def test_afp_sin_codigo_previred(self, calculadora, trabajador, periodo):
        calculadora.parametros.afps["NUEVA"] = {"nombre": "AFP Nueva", "comision": 1.0}
        res = calculadora.calcular_liquidacion(replace(trabajador, codigo_afp="NUEVA"), periodo)
        with pytest.raises(ErrorValidacion, match="NUEVA"):
            generar_archivo_previred([res], periodo)

    def test_sin_liquidaciones(self, periodo):
        with pytest.raises(ErrorValidacion):
            generar_archivo_previred([], periodo)
