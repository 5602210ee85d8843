"""
Servicio de liquidaciones SIMPLE - solo cálculos locales.

Recibe solicitudes como diccionarios (formato JSON de la API de
liquidaciones), aplica la configuración estándar chilena y retorna
siempre un diccionario {"success": bool, "data" | "error": ...}.
"""

import logging

from motor_remuneraciones import (
    DIAS_MES_COMERCIAL,
    CalculadoraRemuneraciones,
    DescuentosAdicionales,
    ErrorRemuneraciones,
    HaberesAdicionales,
    Periodo,
    Trabajador,
    formatear_periodo,
)

logger = logging.getLogger(__name__)

# Configuración estándar (más común en Chile)
DEFAULTS_TRABAJADOR = {
    "contract_type": "indefinido",
    "afp_code": "HABITAT",
    "health_code": "FONASA",
    "isapre_plan_uf": 0.0,
    "family_charges": 0,
}

_CAMPOS_HABERES = {
    "bonuses": "bonos",
    "commissions": "comisiones",
    "gratification": "gratificacion",
    "overtime_amount": "horas_extra",
    "food_allowance": "colacion",
    "transport_allowance": "movilizacion",
}

_CAMPOS_DESCUENTOS = {
    "loan_deductions": "prestamos",
    "advance_payments": "anticipos",
    "apv_amount": "apv",
    "other_deductions": "otros",
}


def _error(mensaje):
    return {"success": False, "error": mensaje}


def _con_defecto(valor, defecto):
    return defecto if valor is None else valor


def _mapear(origen, campos, clase):
    origen = origen or {}
    if not isinstance(origen, dict):
        raise ErrorRemuneraciones(f"Se esperaba un objeto con montos, no {type(origen).__name__}")
    desconocidos = set(origen) - set(campos)
    if desconocidos:
        raise ErrorRemuneraciones(f"Campos desconocidos: {', '.join(sorted(desconocidos))}")
    return clase(**{campos[k]: v or 0 for k, v in origen.items()})


class ServicioLiquidaciones:

    def __init__(self, calculadora=None):
        self.calculadora = calculadora or CalculadoraRemuneraciones()

    def calcular_liquidacion(self, request):
        """Calcular liquidación con datos locales únicamente."""
        if not isinstance(request, dict):
            return _error("Solicitud inválida")

        empleado = request.get("employee")
        if not isinstance(empleado, dict) or not empleado.get("base_salary"):
            return _error("Datos del empleado incompletos")

        periodo = request.get("period")
        if not isinstance(periodo, dict) or not periodo.get("year") or not periodo.get("month"):
            return _error("Período no especificado")

        datos = {**DEFAULTS_TRABAJADOR, **{k: v for k, v in empleado.items() if v is not None}}

        try:
            trabajador = Trabajador(
                id=str(datos.get("id", "")),
                rut=datos.get("rut", ""),
                nombres=datos.get("first_name", ""),
                apellidos=datos.get("last_name", ""),
                cargo=datos.get("position", ""),
                sueldo_base=datos["base_salary"],
                tipo_contrato=str(datos["contract_type"]).lower(),
                codigo_afp=datos["afp_code"],
                codigo_salud=datos["health_code"],
                plan_isapre_uf=datos["isapre_plan_uf"],
                cargas_familiares=datos["family_charges"],
                gratificacion_legal=bool(datos.get("legal_gratification", False)),
            )
            periodo_calculo = Periodo(
                anio=periodo["year"],
                mes=periodo["month"],
                dias_trabajados=_con_defecto(periodo.get("days_worked"), DIAS_MES_COMERCIAL),
                horas_extra=_con_defecto(periodo.get("overtime_hours"), 0),
            )
            haberes = _mapear(request.get("additional_income"), _CAMPOS_HABERES, HaberesAdicionales)
            descuentos = _mapear(request.get("additional_deductions"), _CAMPOS_DESCUENTOS, DescuentosAdicionales)

            resultado = self.calculadora.calcular_liquidacion(trabajador, periodo_calculo, haberes, descuentos)
        except ErrorRemuneraciones as e:
            logger.warning("Liquidación rechazada: %s", e)
            return _error(str(e))
        except (TypeError, KeyError, ValueError) as e:
            logger.exception("Error en cálculo simple")
            return _error(f"Error de cálculo: {e}")

        logger.info("Liquidación calculada para %s (%s/%s)", trabajador.rut, periodo_calculo.mes, periodo_calculo.anio)

        return {
            "success": True,
            "data": {
                "liquidation": resultado.como_dict(),
                "calculation_mode": "simple_local",
                "employee_name": trabajador.nombre_completo,
                "period_display": formatear_periodo(periodo_calculo.anio, periodo_calculo.mes),
                "warnings": list(resultado.warnings),
            },
        }

    def calcular_lote(self, requests):
        """Procesa varias solicitudes; cada una responde por separado."""
        respuestas = [self.calcular_liquidacion(r) for r in requests]
        exitosas = sum(1 for r in respuestas if r["success"])
        logger.info("Lote procesado: %s de %s liquidaciones exitosas", exitosas, len(respuestas))
        return respuestas
