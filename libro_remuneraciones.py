"""
Libro de remuneraciones, liquidación en PDF y centralización contable.

Agrupa las liquidaciones de un período en un DataFrame (una fila por
trabajador más una fila TOTAL), lo exporta a Excel con xlsxwriter y
genera los documentos asociados (liquidación PDF, centralización
y archivo de cotizaciones Previred).
"""

import io
import logging

import pandas as pd
from fpdf import FPDF
from fpdf.enums import XPos, YPos

from config import CODIGOS_AFP_PREVIRED, COLUMNAS_LIBRO, COLUMNAS_PLANTILLA, CUENTAS_CENTRALIZACION
from motor_remuneraciones import (
    ErrorValidacion,
    HaberesAdicionales,
    Periodo,
    Trabajador,
    formatear_periodo,
    formatear_pesos,
)

logger = logging.getLogger(__name__)

COLUMNAS_MONTO = [c for c in COLUMNAS_LIBRO.values() if c not in ("RUT", "Nombre", "Cargo", "Días Trabajados")]


# =============================================================================
# 1. LIBRO DE REMUNERACIONES
# =============================================================================

def _fila_libro(resultado):
    t = resultado.trabajador
    fila = {
        "rut": t.rut,
        "nombre": t.nombre_completo,
        "cargo": t.cargo,
        "dias_trabajados": resultado.periodo.dias_trabajados,
        "sueldo_base": resultado.sueldo_base,
        "gratificacion": resultado.gratificacion,
        "total_imponible": resultado.total_imponible,
        "colacion": resultado.colacion,
        "movilizacion": resultado.movilizacion,
        "asignacion_familiar": resultado.asignacion_familiar,
        "total_haberes": resultado.total_haberes,
        "afp": resultado.afp_total,
        "salud": resultado.salud_total,
        "cesantia": resultado.seguro_cesantia,
        "impuesto": resultado.impuesto_unico,
        "otros_descuentos": resultado.otros_descuentos,
        "total_descuentos": resultado.total_descuentos,
        "liquido": resultado.liquido,
    }
    return {COLUMNAS_LIBRO[k]: v for k, v in fila.items()}


def generar_libro(liquidaciones):
    """DataFrame del libro de remuneraciones ordenado por nombre, con fila TOTAL al final."""
    if not liquidaciones:
        return pd.DataFrame(columns=list(COLUMNAS_LIBRO.values()))

    df = pd.DataFrame([_fila_libro(r) for r in liquidaciones])
    df = df.sort_values("Nombre", kind="stable").reset_index(drop=True)

    total = {col: int(df[col].sum()) for col in COLUMNAS_MONTO}
    total.update({"RUT": "TOTAL", "Nombre": f"{len(df)} trabajadores", "Cargo": "", "Días Trabajados": ""})
    return pd.concat([df, pd.DataFrame([total])], ignore_index=True)


def exportar_libro_excel(libro, periodo, empresa=None):
    """Exporta el libro a .xlsx y retorna los bytes del archivo."""
    empresa = empresa or {}
    buffer = io.BytesIO()
    hoja = "Libro Remuneraciones"

    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        libro.to_excel(writer, sheet_name=hoja, index=False, startrow=3)
        workbook = writer.book
        worksheet = writer.sheets[hoja]

        titulo = workbook.add_format({"bold": True, "font_size": 14, "font_color": "#003366"})
        encabezado = workbook.add_format({"bold": True, "bg_color": "#003366", "font_color": "white", "border": 1})
        dinero = workbook.add_format({"num_format": "$#,##0"})

        worksheet.write(0, 0, f"LIBRO DE REMUNERACIONES - {formatear_periodo(periodo.anio, periodo.mes).upper()}", titulo)
        worksheet.write(1, 0, f"{empresa.get('nombre', '')} {empresa.get('rut', '')}".strip())

        for i, columna in enumerate(libro.columns):
            worksheet.write(3, i, columna, encabezado)
            ancho = max(len(str(columna)), 12) + 2
            worksheet.set_column(i, i, ancho, dinero if columna in COLUMNAS_MONTO else None)

        worksheet.freeze_panes(4, 2)

    logger.info("Libro de remuneraciones exportado: %s filas", max(len(libro) - 1, 0))
    return buffer.getvalue()


# =============================================================================
# 2. CENTRALIZACIÓN CONTABLE
# =============================================================================

def generar_centralizacion(liquidaciones, periodo):
    """
    Asiento contable consolidado del período.

    Debe: gasto en remuneraciones (imponible y no imponible).
    Haber: retenciones legales por pagar y líquido a pagar.
    """
    if not liquidaciones:
        raise ErrorValidacion("No se encontraron liquidaciones para el período especificado")

    def suma(atributo):
        return sum(getattr(r, atributo) for r in liquidaciones)

    glosa = f"Remuneraciones {formatear_periodo(periodo.anio, periodo.mes)} - {len(liquidaciones)} trabajadores"
    lineas = [
        ("gasto_remuneraciones", suma("total_imponible"), 0, f"Provisión {glosa}"),
        ("gasto_no_imponible", suma("total_no_imponible"), 0, f"Asignaciones {glosa}"),
        ("afp_por_pagar", 0, suma("afp_total"), "Cotizaciones AFP"),
        ("salud_por_pagar", 0, suma("salud_total"), "Cotizaciones salud"),
        ("cesantia_por_pagar", 0, suma("seguro_cesantia"), "Seguro de cesantía"),
        ("impuesto_por_pagar", 0, suma("impuesto_unico"), "Impuesto único segunda categoría"),
        ("otros_descuentos_por_pagar", 0, suma("otros_descuentos"), "Préstamos, anticipos y APV"),
        ("remuneraciones_por_pagar", 0, suma("liquido"), f"Líquido a pagar {glosa}"),
    ]
    asiento = [
        {"cuenta": CUENTAS_CENTRALIZACION[cuenta], "debe": debe, "haber": haber, "glosa": texto}
        for cuenta, debe, haber, texto in lineas
        if debe or haber
    ]

    debe = sum(l["debe"] for l in asiento)
    haber = sum(l["haber"] for l in asiento)
    if debe != haber:
        raise ErrorValidacion(f"Asiento descuadrado: debe {debe} != haber {haber}")
    return asiento


# =============================================================================
# 3. LIQUIDACIÓN PDF
# =============================================================================

class PDFGenerator(FPDF):
    def header(self):
        self.set_font("Helvetica", "B", 12)
        self.cell(0, 10, "LIQUIDACIÓN DE SUELDO", align="R", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
        self.line(10, 20, 200, 20)
        self.ln(5)

    def footer(self):
        self.set_y(-15)
        self.set_font("Helvetica", "I", 8)
        self.cell(0, 10, f"Página {self.page_no()}", align="C")


def _texto_pdf(texto):
    # las fuentes base de fpdf solo cubren latin-1
    return str(texto).encode("latin-1", "replace").decode("latin-1")


def generar_liquidacion_pdf(resultado, empresa=None):
    empresa = empresa or {}
    t = resultado.trabajador
    pdf = PDFGenerator()
    pdf.add_page()
    pdf.set_font("Helvetica", "", 10)

    y = pdf.get_y()
    pdf.rect(10, y, 90, 25)
    pdf.set_xy(12, y + 2)
    pdf.multi_cell(85, 5, _texto_pdf(
        f"EMPRESA: {empresa.get('nombre', '')}\nRUT: {empresa.get('rut', '')}\n"
        f"PERÍODO: {formatear_periodo(resultado.periodo.anio, resultado.periodo.mes)}"
    ))
    pdf.rect(110, y, 90, 25)
    pdf.set_xy(112, y + 2)
    pdf.multi_cell(85, 5, _texto_pdf(
        f"TRABAJADOR: {t.nombre_completo}\nRUT: {t.rut}\nCARGO: {t.cargo}"
    ))
    pdf.set_y(y + 30)

    haberes = [
        ("Sueldo Base", resultado.sueldo_base),
        ("Horas Extra", resultado.horas_extra),
        ("Bonos", resultado.bonos),
        ("Comisiones", resultado.comisiones),
        ("Gratificación", resultado.gratificacion),
        ("Colación", resultado.colacion),
        ("Movilización", resultado.movilizacion),
        ("Asignación Familiar", resultado.asignacion_familiar),
    ]
    descuentos = [
        (f"AFP ({resultado.porcentaje_afp + resultado.porcentaje_comision_afp:.2f}%)", resultado.afp_total),
        ("Salud (7%)", resultado.salud_legal),
        ("Adicional Isapre", resultado.salud_adicional),
        ("Seguro Cesantía", resultado.seguro_cesantia),
        ("Impuesto Único", resultado.impuesto_unico),
        ("Otros Descuentos", resultado.otros_descuentos),
    ]
    haberes = [h for h in haberes if h[1]]
    descuentos = [d for d in descuentos if d[1]]

    pdf.set_fill_color(200, 220, 255)
    pdf.cell(95, 7, "HABERES", border=1, align="C", fill=True)
    pdf.cell(95, 7, "DESCUENTOS", border=1, align="C", fill=True, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    for i in range(max(len(haberes), len(descuentos))):
        h = haberes[i] if i < len(haberes) else ("", None)
        d = descuentos[i] if i < len(descuentos) else ("", None)
        pdf.cell(65, 6, _texto_pdf(h[0]), border="L")
        pdf.cell(30, 6, formatear_pesos(h[1]) if h[1] is not None else "", align="R")
        pdf.cell(65, 6, _texto_pdf(d[0]), border="L")
        pdf.cell(30, 6, formatear_pesos(d[1]) if d[1] is not None else "", border="R", align="R",
                 new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.cell(65, 7, "TOTAL HABERES", border="LTB")
    pdf.cell(30, 7, formatear_pesos(resultado.total_haberes), border="TB", align="R")
    pdf.cell(65, 7, "TOTAL DESCUENTOS", border="LTB")
    pdf.cell(30, 7, formatear_pesos(resultado.total_descuentos), border="RTB", align="R",
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.ln(5)
    pdf.set_font("Helvetica", "B", 12)
    pdf.cell(130, 10, _texto_pdf("LÍQUIDO A PAGAR"), border=1, align="R")
    pdf.cell(60, 10, formatear_pesos(resultado.liquido), border=1, align="C", fill=True,
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    if resultado.warnings:
        pdf.ln(3)
        pdf.set_font("Helvetica", "I", 8)
        for glosa in resultado.warnings:
            pdf.multi_cell(0, 4, _texto_pdf(f"- {glosa}"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    return bytes(pdf.output())


# =============================================================================
# 4. CARGA MASIVA
# =============================================================================

def generar_plantilla():
    """Plantilla Excel vacía para la carga masiva de trabajadores."""
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        pd.DataFrame(columns=COLUMNAS_PLANTILLA).to_excel(writer, index=False, sheet_name="Trabajadores")
    return buffer.getvalue()


def _valor(fila, columna, defecto):
    valor = fila.get(columna, defecto)
    return defecto if pd.isna(valor) else valor


def leer_planilla_trabajadores(archivo, anio, mes, sueldo_minimo):
    """
    Lee la planilla de carga masiva.

    Returns:
        (filas, log): filas es una lista de (Trabajador, Periodo, HaberesAdicionales);
        log registra cada fila procesada u omitida.
    """
    df = pd.read_excel(archivo)
    faltantes = {"RUT", "SUELDO_BASE"} - set(df.columns)
    if faltantes:
        raise ErrorValidacion(f"Columnas obligatorias ausentes: {', '.join(sorted(faltantes))}")

    filas, log = [], []
    for i, fila in df.iterrows():
        nombre = f"{_valor(fila, 'NOMBRES', '')} {_valor(fila, 'APELLIDOS', '')}".strip() or f"Fila_{i + 2}"

        try:
            sueldo = float(_valor(fila, "SUELDO_BASE", 0))
            if sueldo < sueldo_minimo:
                log.append(f"❌ {nombre}: Omitido (Sueldo bajo mínimo)")
                logger.warning("Fila %s omitida: sueldo %s bajo el mínimo %s", i + 2, sueldo, sueldo_minimo)
                continue

            trabajador = Trabajador(
                rut=str(_valor(fila, "RUT", "")),
                nombres=str(_valor(fila, "NOMBRES", "")),
                apellidos=str(_valor(fila, "APELLIDOS", "")),
                cargo=str(_valor(fila, "CARGO", "")),
                sueldo_base=int(sueldo),
                tipo_contrato=str(_valor(fila, "TIPO_CONTRATO", "indefinido")).strip().lower(),
                codigo_afp=str(_valor(fila, "AFP", "HABITAT")).strip().upper(),
                codigo_salud=str(_valor(fila, "SALUD", "FONASA")).strip().upper(),
                plan_isapre_uf=float(_valor(fila, "PLAN_UF", 0.0)),
                cargas_familiares=int(_valor(fila, "CARGAS", 0)),
            )
            periodo = Periodo(anio=anio, mes=mes, dias_trabajados=int(_valor(fila, "DIAS_TRABAJADOS", 30)))
            haberes = HaberesAdicionales(
                colacion=int(_valor(fila, "COLACION", 0)),
                movilizacion=int(_valor(fila, "MOVILIZACION", 0)),
            )
        except (TypeError, ValueError, OverflowError) as e:
            log.append(f"❌ {nombre}: Omitido (datos inválidos: {e})")
            logger.warning("Fila %s omitida por datos inválidos: %s", i + 2, e)
            continue

        filas.append((trabajador, periodo, haberes))
        log.append(f"✅ {nombre}: Cargado")

    return filas, log


def procesar_planilla(archivo, calculadora, anio, mes):
    """Calcula las liquidaciones de una planilla; los errores por fila quedan en el log."""
    filas, log = leer_planilla_trabajadores(archivo, anio, mes, calculadora.parametros.sueldo_minimo)
    liquidaciones = []
    for trabajador, periodo, haberes in filas:
        try:
            liquidaciones.append(calculadora.calcular_liquidacion(trabajador, periodo, haberes))
        except ErrorValidacion as e:
            log.append(f"❌ {trabajador.nombre_completo or trabajador.rut}: {e}")
            logger.warning("Liquidación omitida para %s: %s", trabajador.rut, e)
    return liquidaciones, log


# =============================================================================
# 5. ARCHIVO PREVIRED
# =============================================================================

def _separar_rut(rut):
    limpio = str(rut).replace(".", "").replace("-", "").strip().upper()
    return limpio[:-1], limpio[-1:]


def _linea_previred(resultado, periodo_previred):
    t = resultado.trabajador
    numero, dv = _separar_rut(t.rut)
    paterno, _, materno = t.apellidos.strip().partition(" ")
    codigo_afp = str(t.codigo_afp).upper()
    if codigo_afp not in CODIGOS_AFP_PREVIRED:
        raise ErrorValidacion(f"AFP sin código Previred: {t.codigo_afp!r} ({t.rut})")

    campos = [
        numero, dv, paterno, materno.strip(), t.nombres,
        periodo_previred,
        resultado.periodo.dias_trabajados,
        CODIGOS_AFP_PREVIRED[codigo_afp],
        resultado.total_imponible,
        resultado.afp_total,
        resultado.sis_empleador,
        str(t.codigo_salud).upper(),
        resultado.salud_total,
        resultado.seguro_cesantia,
        resultado.cesantia_empleador,
        resultado.impuesto_unico,
    ]
    return ";".join(str(c) for c in campos)


def generar_archivo_previred(liquidaciones, periodo):
    """
    Archivo de cotizaciones para Previred: una línea por trabajador, campos
    separados por punto y coma y período en formato MMAAAA.

    Campos: RUT, DV, apellido paterno, apellido materno, nombres, período,
    días trabajados, código AFP, renta imponible, cotización AFP, SIS,
    institución de salud, cotización salud, cesantía trabajador, cesantía
    empleador e impuesto único.
    """
    if not liquidaciones:
        raise ErrorValidacion("No se pudieron generar líneas para el archivo Previred")

    periodo_previred = f"{periodo.mes:02d}{periodo.anio}"
    lineas = [_linea_previred(r, periodo_previred) for r in liquidaciones]
    logger.info("Archivo Previred %s generado con %s trabajadores", periodo_previred, len(lineas))
    return "\n".join(lineas)
