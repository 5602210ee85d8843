# Configuración de Indicadores y Tablas Previsionales - Chile 2025
# Actualizar estos valores según los boletines oficiales del SII, Previred y la Superintendencia de Pensiones

import json
import os

# Indicadores base actualizados a Noviembre 2025
INDICADORES_ECONOMICOS = {
    # UF (Unidad de Fomento)
    "UF": 39643.59,

    # UTM (Unidad Tributaria Mensual) - SII
    "UTM": 69542.0,

    # IMM (Ingreso Mínimo Mensual)
    "IMM": 529000,

    # Topes imponibles (UF)
    "TOPE_AFP": 87.8,    # AFP y salud
    "TOPE_AFC": 131.9,   # Seguro de cesantía

    # Jornada laboral
    "HORAS_SEMANALES_LEGALES": 44,  # Ley 21.561, tramo vigente desde abril 2024

    # Porcentajes legales
    "PORCENTAJE_AFP": 0.10,         # Cotización obligatoria trabajador
    "PORCENTAJE_SALUD_MIN": 0.07,   # 7% mínimo
    "PORCENTAJE_SIS": 0.0188,       # Seguro invalidez y sobrevivencia (cargo empleador)

    # Gratificación Art. 50
    "FACTOR_GRATIFICACION": 0.25,   # 25% de lo devengado
    "FACTOR_TOPE_GRATIFICACION": 4.75,  # 4.75 IMM anuales

    # Horas extras
    "RECARGO_HORAS_EXTRAS": 0.50,   # 50% recargo

    # Límite de descuentos (porcentaje del total de haberes)
    "MAX_PORCENTAJE_DESCUENTOS": 0.45,
}

# Comisiones AFP (% sobre renta imponible)
AFP_COMISIONES = {
    "CAPITAL": {"nombre": "AFP Capital", "comision": 1.44},
    "CUPRUM": {"nombre": "AFP Cuprum", "comision": 1.44},
    "HABITAT": {"nombre": "AFP Habitat", "comision": 1.27},
    "MODELO": {"nombre": "AFP Modelo", "comision": 0.77},
    "PLANVITAL": {"nombre": "AFP PlanVital", "comision": 1.16},
    "PROVIDA": {"nombre": "AFP ProVida", "comision": 1.45},
    "UNO": {"nombre": "AFP Uno", "comision": 0.69},
}

# Instituciones de salud (% base legal)
INSTITUCIONES_SALUD = {
    "FONASA": {"nombre": "FONASA", "porcentaje": 7.0, "isapre": False},
    "BANMEDICA": {"nombre": "Isapre Banmédica", "porcentaje": 7.0, "isapre": True},
    "COLMENA": {"nombre": "Isapre Colmena", "porcentaje": 7.0, "isapre": True},
    "CONSALUD": {"nombre": "Isapre Consalud", "porcentaje": 7.0, "isapre": True},
    "CRUZ_BLANCA": {"nombre": "Isapre Cruz Blanca", "porcentaje": 7.0, "isapre": True},
    "NUEVA_MASVIDA": {"nombre": "Isapre Nueva Masvida", "porcentaje": 7.0, "isapre": True},
    "VIDA_TRES": {"nombre": "Isapre Vida Tres", "porcentaje": 7.0, "isapre": True},
}

# Seguro de cesantía por tipo de contrato (trabajador / empleador)
SEGURO_CESANTIA = {
    "indefinido": {"trabajador": 0.006, "empleador": 0.024},
    "plazo_fijo": {"trabajador": 0.0, "empleador": 0.03},
    "obra_faena": {"trabajador": 0.0, "empleador": 0.03},
}

# Impuesto Único de Segunda Categoría - tabla mensual en UTM
# (desde, hasta, factor, rebaja)
TABLA_IMPUESTO_UNICO = [
    (0, 13.5, 0.0, 0.0),
    (13.5, 30, 0.04, 0.54),
    (30, 50, 0.08, 1.74),
    (50, 70, 0.135, 4.49),
    (70, 90, 0.23, 11.14),
    (90, 120, 0.304, 17.80),
    (120, 310, 0.35, 23.32),
    (310, None, 0.40, 38.82),
]

# Asignación familiar por carga (tramo, renta máxima, monto)
TRAMOS_ASIGNACION_FAMILIAR = [
    ("A", 620251, 22007),
    ("B", 905941, 13505),
    ("C", 1412957, 4267),
    ("D", None, 0),
]

# Columnas del libro de remuneraciones
COLUMNAS_LIBRO = {
    "rut": "RUT",
    "nombre": "Nombre",
    "cargo": "Cargo",
    "dias_trabajados": "Días Trabajados",
    "sueldo_base": "Sueldo Base",
    "gratificacion": "Gratificación",
    "total_imponible": "Total Imponible",
    "colacion": "Colación",
    "movilizacion": "Movilización",
    "asignacion_familiar": "Asignación Familiar",
    "total_haberes": "Total Haberes",
    "afp": "AFP",
    "salud": "Salud",
    "cesantia": "Seguro Cesantía",
    "impuesto": "Impuesto Único",
    "otros_descuentos": "Otros Descuentos",
    "total_descuentos": "Total Descuentos",
    "liquido": "Líquido a Pagar",
}

# Plantilla de carga masiva
COLUMNAS_PLANTILLA = [
    "RUT", "NOMBRES", "APELLIDOS", "CARGO", "SUELDO_BASE", "TIPO_CONTRATO",
    "AFP", "SALUD", "PLAN_UF", "CARGAS", "DIAS_TRABAJADOS",
    "COLACION", "MOVILIZACION",
]

# Cuentas contables para la centralización de remuneraciones
# Códigos de AFP en el archivo de cotizaciones Previred
CODIGOS_AFP_PREVIRED = {
    "CAPITAL": "03",
    "CUPRUM": "08",
    "HABITAT": "32",
    "MODELO": "34",
    "PLANVITAL": "29",
    "PROVIDA": "02",
    "UNO": "05",
}

CUENTAS_CENTRALIZACION = {
    "gasto_remuneraciones": "6.1.01 Remuneraciones",
    "gasto_no_imponible": "6.1.02 Asignaciones No Imponibles",
    "afp_por_pagar": "2.1.05 AFP por Pagar",
    "salud_por_pagar": "2.1.06 Salud por Pagar",
    "cesantia_por_pagar": "2.1.07 Seguro Cesantía por Pagar",
    "impuesto_por_pagar": "2.1.08 Impuesto Único por Pagar",
    "otros_descuentos_por_pagar": "2.1.09 Descuentos Varios por Pagar",
    "remuneraciones_por_pagar": "2.1.10 Remuneraciones por Pagar",
}


class ErrorConfiguracion(Exception):
    """Archivo de configuración inválido o con claves desconocidas."""


_SECCIONES = {
    "INDICADORES_ECONOMICOS": INDICADORES_ECONOMICOS,
    "AFP_COMISIONES": AFP_COMISIONES,
    "INSTITUCIONES_SALUD": INSTITUCIONES_SALUD,
    "SEGURO_CESANTIA": SEGURO_CESANTIA,
}

_LARGO_FILAS = {"TABLA_IMPUESTO_UNICO": 4, "TRAMOS_ASIGNACION_FAMILIAR": 3}


def _es_numero(valor, admite_nulo=False):
    if valor is None:
        return admite_nulo
    return isinstance(valor, (int, float)) and not isinstance(valor, bool)


def _leer_tabla(seccion, valores):
    """Filas de una tabla tramificada; el tope del último tramo puede ser null."""
    largo = _LARGO_FILAS[seccion]
    if not isinstance(valores, list) or not valores:
        raise ErrorConfiguracion(f"La sección {seccion} debe ser una lista de filas")
    filas = []
    for fila in valores:
        if not isinstance(fila, list) or len(fila) != largo:
            raise ErrorConfiguracion(f"Fila inválida en {seccion}: {fila!r} (se esperan {largo} valores)")
        if seccion == "TABLA_IMPUESTO_UNICO":
            desde, hasta, factor, rebaja = fila
            validos = _es_numero(desde) and _es_numero(hasta, True) and _es_numero(factor) and _es_numero(rebaja)
        else:
            tramo, maximo, monto = fila
            validos = isinstance(tramo, str) and _es_numero(maximo, True) and _es_numero(monto)
        if not validos:
            raise ErrorConfiguracion(f"Fila inválida en {seccion}: {fila!r}")
        filas.append(tuple(fila))
    return filas


def cargar_configuracion(ruta=None):
    """
    Retorna la configuración vigente: valores por defecto de este módulo
    sobrescritos por un JSON de empresa (si existe).

    La ruta se toma de REMUNERACIONES_CONFIG cuando no se indica.
    Las secciones de indicadores se fusionan clave a clave; AFP, salud y
    cesantía admiten entradas nuevas (ej. una AFP adicional).
    """
    config = {nombre: {k: (dict(v) if isinstance(v, dict) else v) for k, v in seccion.items()}
              for nombre, seccion in _SECCIONES.items()}
    config["TABLA_IMPUESTO_UNICO"] = list(TABLA_IMPUESTO_UNICO)
    config["TRAMOS_ASIGNACION_FAMILIAR"] = list(TRAMOS_ASIGNACION_FAMILIAR)

    ruta = ruta or os.environ.get("REMUNERACIONES_CONFIG")
    if not ruta:
        return config

    try:
        with open(ruta, "r", encoding="utf-8") as f:
            overrides = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ErrorConfiguracion(f"No se pudo leer la configuración {ruta}: {e}") from e

    if not isinstance(overrides, dict):
        raise ErrorConfiguracion(f"La configuración {ruta} debe ser un objeto JSON")

    for seccion, valores in overrides.items():
        if seccion in _LARGO_FILAS:
            config[seccion] = _leer_tabla(seccion, valores)
            continue
        if seccion not in _SECCIONES:
            raise ErrorConfiguracion(f"Sección desconocida en configuración: {seccion}")
        if not isinstance(valores, dict):
            raise ErrorConfiguracion(f"La sección {seccion} debe ser un objeto")
        if seccion == "INDICADORES_ECONOMICOS":
            desconocidas = set(valores) - set(INDICADORES_ECONOMICOS)
            if desconocidas:
                raise ErrorConfiguracion(f"Indicadores desconocidos: {', '.join(sorted(desconocidas))}")
            no_numericos = sorted(k for k, v in valores.items() if not _es_numero(v))
            if no_numericos:
                raise ErrorConfiguracion(f"Indicadores no numéricos: {', '.join(no_numericos)}")
            config[seccion].update(valores)
            continue

        for codigo, datos in valores.items():
            if not isinstance(datos, dict):
                raise ErrorConfiguracion(f"{seccion}.{codigo} debe ser un objeto")
            if seccion == "SEGURO_CESANTIA":
                # solo los contratos que el cálculo sabe seleccionar
                if codigo not in SEGURO_CESANTIA:
                    raise ErrorConfiguracion(f"Tipo de contrato desconocido en SEGURO_CESANTIA: {codigo}")
                tasas_invalidas = set(datos) - {"trabajador", "empleador"}
                if tasas_invalidas or not all(_es_numero(v) for v in datos.values()):
                    raise ErrorConfiguracion(f"Tasas inválidas para {codigo}: {datos!r}")
            else:
                codigo = codigo.upper()
            config[seccion].setdefault(codigo, {}).update(datos)

    return config
